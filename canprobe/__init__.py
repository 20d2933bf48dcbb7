"""SocketCAN structures and raw CAN socket test tools."""

__version__ = "0.1.0"