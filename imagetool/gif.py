"""Splitting, merging, reversing and retiming animated GIFs."""

from __future__ import annotations

import io
import math
from dataclasses import replace
from typing import Iterable

from PIL import Image

from .errors import ImageToolError
from .gifcodec import (
    DisposalMethod,
    GifError,
    GifFrame,
    GifImage,
    decode_gif,
    encode_gif,
    frame_from_rgba,
)

_WHITE = b"\xff\xff\xff\xff"
_NOT_ANIMATED = "the image is not an animation: it needs more than one frame"
_DEFAULT_MERGE_DURATION = 0.05
_DEFAULT_FRAME_DURATION = 0.02


def _to_u16(value: float) -> int:
    """Convert to a 16-bit unsigned integer, saturating at the limits."""
    if math.isnan(value):
        return 0
    return int(max(0.0, min(value, 65535.0)))


def _round_half_away(value: float) -> float:
    return math.floor(value + 0.5) if value >= 0 else math.ceil(value - 0.5)


def _animation(image_data) -> GifImage:
    image = decode_gif(image_data)
    if len(image.frames) <= 1:
        raise ImageToolError(_NOT_ANIMATED)
    return image


def _encode_png(width: int, height: int, pixels: bytes) -> bytes:
    output = io.BytesIO()
    try:
        Image.frombytes("RGBA", (width, height), pixels).save(output, "PNG")
    except (ValueError, OSError, SystemError) as error:
        raise ImageToolError(f"image encoding failed: {error}") from error
    return output.getvalue()


def _load_image(data, what: str) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(bytes(data)))
        image.load()
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as error:
        raise ImageToolError(f"{what} could not be loaded: {error}") from error
    return image


def _palette_colors(palette: bytes) -> list[bytes]:
    channels = iter(palette)
    return [bytes((r, g, b, 255)) for r, g, b in zip(channels, channels, channels)]


def _draw_frame(
    canvas: bytearray, width: int, height: int, frame: GifFrame, colors: list[bytes]
) -> None:
    if not frame.width:
        return
    rows = (
        frame.buffer[start:start + frame.width]
        for start in range(0, len(frame.buffer), frame.width)
    )
    for y, row in enumerate(rows, start=frame.top):
        if y >= height:
            break
        for x, index in enumerate(row, start=frame.left):
            if x >= width:
                break
            if index >= len(colors):
                continue
            position = (y * width + x) * 4
            if index == frame.transparent:
                if frame.dispose is DisposalMethod.BACKGROUND:
                    canvas[position:position + 4] = _WHITE
            else:
                canvas[position:position + 4] = colors[index]


def gif_split(image_data) -> list[bytes]:
    """Split an animated GIF into one PNG per frame, composited on white."""
    try:
        image = decode_gif(image_data)
    except GifError as error:
        raise ImageToolError(f"GIF decoding failed: {error}") from error
    if len(image.frames) <= 1:
        raise ImageToolError(_NOT_ANIMATED)

    width, height = image.width, image.height
    base = bytearray(_WHITE * (width * height))
    pngs = []
    for frame in image.frames:
        palette = frame.palette if frame.palette is not None else image.global_palette
        if palette is None:
            raise ImageToolError("no colour palette is available for the frame")
        current = bytearray(base)
        _draw_frame(current, width, height, frame, _palette_colors(palette))
        if frame.dispose in (DisposalMethod.ANY, DisposalMethod.KEEP):
            base = bytearray(current)
        pngs.append(_encode_png(width, height, bytes(current)))
    return pngs


def gif_merge(images: Iterable, duration: float | None = None) -> bytes:
    """Merge images into a looping GIF, scaling each to the first one's size.

    ``duration`` is the time between frames in seconds (default 0.05).
    """
    images = list(images)
    if not images:
        raise ImageToolError("the list of images must not be empty")
    width, height = _load_image(images[0], "the first image").size
    if duration is None:
        duration = _DEFAULT_MERGE_DURATION
    delay = max(_to_u16(duration * 100.0), 1)

    frames = []
    for data in images:
        picture = _load_image(data, "an image").convert("RGBA")
        resized = picture.resize((width, height), Image.Resampling.LANCZOS)
        frames.append(replace(frame_from_rgba(width, height, resized.tobytes()), delay=delay))
    return encode_gif(width, height, None, frames)


def gif_reverse(image_data) -> bytes:
    """Return the GIF with its frames in reverse order."""
    image = _animation(image_data)
    return encode_gif(
        image.width, image.height, image.global_palette, reversed(image.frames)
    )


def gif_change_duration(image_data, duration: float | None = None) -> bytes:
    """Set every frame's delay to ``duration`` seconds (default 0.02).

    A duration of zero or less keeps the original delays.
    """
    if duration is None:
        duration = _DEFAULT_FRAME_DURATION
    image = _animation(image_data)
    if duration > 0.0:
        delay = _to_u16(_round_half_away(duration * 100.0))
        frames = [replace(frame, delay=delay) for frame in image.frames]
    else:
        frames = list(image.frames)
    return encode_gif(image.width, image.height, image.global_palette, frames)