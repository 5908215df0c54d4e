"""Encoding of NR MAC control elements into fixed-size MAC PDUs."""

__version__ = "0.1.0"
__all__ = ["ce", "parser"]