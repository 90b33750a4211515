"""A client library for the Remote Framebuffer (VNC) protocol."""

__version__ = "0.1.0"