"""Exception raised by the image operations."""


class ImageToolError(Exception):
    """An image could not be decoded, processed or encoded."""