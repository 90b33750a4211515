# rfbclient

A client library for the Remote Framebuffer protocol (RFB, RFC 6143), the
protocol spoken by VNC servers.

It handles:

- the protocol-version, security and initialization handshakes
  (protocol 3.3 and 3.8);
- authentication with no security, classic VNC password authentication and
  VeNCrypt (X.509 with VNC authentication, over TLS without certificate
  verification);
- the client-to-server messages: pixel format, encodings, framebuffer update
  requests, key events, pointer events and cut text;
- the server-to-client messages: framebuffer updates, color map entries,
  bell and server cut text;
- the Raw, CopyRect, RRE, Hextile, ZRLE and Tight encodings and the Cursor
  and DesktopSize pseudo-encodings.

## Installation

```
pip install rfbclient
```

The only runtime dependency is `pycryptodome`, used for the DES step of VNC
password authentication.

## Connecting

`rfbclient.connection.connect` takes an already connected socket and a
`ClientConfig`, runs the handshake and returns a `ClientConn`:

```python
import socket

from rfbclient.connection import ClientConfig, connect
from rfbclient.constants import Button, RFBFlag
from rfbclient.keys import Key

password = "password"
sock = socket.create_connection(("localhost", 5900))
conn = connect(sock, ClientConfig(password=password), None)

print(conn.desktop_name, conn.framebuffer_width, conn.framebuffer_height)

# Type a key: press, then release.
conn.key_event(Key.RETURN, True)
conn.key_event(Key.RETURN, False)

# Move the pointer, then click the left button.
conn.pointer_event(Button.NONE, 100, 200)
conn.pointer_event(Button.LEFT, 100, 200)
conn.pointer_event(Button.NONE, 100, 200)

# Put text on the server's clipboard (Latin-1 only; "\r" is removed).
conn.client_cut_text("hello")

conn.close()
```

Passing `"3.3"` or `"3.8"` as the last argument of `connect` forces the
protocol version the client answers with; `None` takes the highest version
both sides support. Any other value raises `ValueError`.

`ClientConfig` also takes `auth` (a list of `ClientAuth` objects from
`rfbclient.auth`; by default None, VNC password and VeNCrypt are offered, in
that order), `exclusive` (ask the server to disconnect other clients),
`logger`, `server_message_queue` and `server_messages`. `ClientConn` is a
context manager that closes the connection on exit.

After every key, pointer and cut-text event the client sleeps briefly to let
the remote UI settle; `rfbclient.common.set_settle(seconds)` changes that
delay (25 ms by default) and `settle()` returns it.

## Receiving updates

By default only the Raw encoding is advertised. Use `set_encodings` to accept
others (Raw is always added if missing), ask for updates with
`framebuffer_update_request`, then run `listen_and_handle`, which reads server
messages until the connection ends or an error occurs:

```python
import queue

from rfbclient.encoding import CopyRectEncoding, RawEncoding
from rfbclient.tight import HextileEncoding

messages = queue.Queue()
password = "password"
conn = connect(sock, ClientConfig(password=password, server_message_queue=messages), None)
conn.set_encodings([HextileEncoding(), CopyRectEncoding(), RawEncoding()])
conn.framebuffer_update_request(RFBFlag.TRUE, 0, 0, conn.framebuffer_width,
                                conn.framebuffer_height)
conn.listen_and_handle()  # blocks; run it in a thread if needed
```

Parsed messages are put on `server_message_queue` (they are discarded when
no queue is set). They are instances of the classes in `rfbclient.servermsg`:
`FramebufferUpdate`, `SetColorMapEntries`, `Bell` and `ServerCutText`. Each
`Rectangle` of a `FramebufferUpdate` carries its decoded `encoding`:

- `RawEncoding.colors` and `HextileEncoding.colors`: one `Color` per pixel;
- `CopyRectEncoding.src_x`, `src_y`;
- `RREEncoding.background_color` and `sub_rects`;
- `ZRLEEncoding.data`: the decompressed ZRLE stream;
- `TightEncoding.data`: decoded pixel bytes (copy, palette and gradient
  filters);
- `CursorPseudoEncoding.pixels` and `bitmask`;
- `DesktopSizePseudoEncoding`, which updates the connection's framebuffer
  size.

`SetColorMapEntries` also updates the connection's color map.

## Pixel formats and colors

`rfbclient.pixel_format.new_pixel_format(bpp)` builds a big-endian format for
8, 16 or 32 bits per pixel; `PixelFormat.marshal` and `PixelFormat.unmarshal`
convert to and from the 16-byte wire form. `ClientConn.set_pixel_format`
switches the format the server uses. `rfbclient.color.Color` converts single
pixels, using true color or a color map from `new_color_map()`.

## Keys and buttons

`rfbclient.keys.Key` holds the X keysym values used in key events, and
`int_to_keys` turns an integer into the keys that type it. Pointer buttons
are the flags of `rfbclient.constants.Button`, combined with `|`.

## Metrics

Every byte sent and received is counted in the `bytes-sent` and
`bytes-received` gauges of `conn.metrics` (a
`rfbclient.metrics.MetricRegistry`). `conn.debug_metrics()` logs them and
returns the values by name.

## Errors

Protocol failures — an unsupported version, a refused authentication, text
that is not Latin-1, an invalid pixel format, malformed encoded data — raise
`rfbclient.common.VNCError`.

## What it does not do

- It is a library only: there is no command-line program, viewer window or
  framebuffer image; decoded pixel data is handed to the caller.
- ZRLE data is decompressed but not decoded into pixels.
- Tight JPEG rectangles are rejected, and Hextile and Tight data cannot be
  marshalled back to the wire.
- The CoRRE, Zlib, ZlibHex, TRLE and Hitachi encodings are not decoded.
- There is no server side.

## Running the tests

```
pip install -e ".[test]"
pytest
```