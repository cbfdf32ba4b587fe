"""Image and animated GIF operations on in-memory image data."""

__version__ = "0.1.8"

__all__ = ["errors", "gifcodec", "gif", "image"]