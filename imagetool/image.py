"""Still-image operations that take encoded images and return PNG data."""

from __future__ import annotations

import io
import math
import re
import struct
from dataclasses import dataclass
from typing import Iterable

from PIL import Image, ImageChops

from .errors import ImageToolError
from .gifcodec import decode_gif

_F32 = struct.Struct("<f")
_GIF_SIGNATURES = (b"GIF87a", b"GIF89a")
_WHITE_PIXEL = b"\xff\xff\xff\xff"
_HEX_PAIR = re.compile(rb"\+?[0-9A-Fa-f]+")
_U32_MAX = 0xFFFFFFFF
_DEFAULT_CROP_SIZE = 100
_DEFAULT_ROTATION = 90.0


@dataclass(frozen=True)
class ImageInfo:
    """Basic facts about an image."""

    width: int
    height: int
    is_multi_frame: bool
    frame_count: int | None = None
    average_duration: float | None = None


def _f32(value: float) -> float:
    """Round a float to single precision."""
    if math.isnan(value) or math.isinf(value):
        return value
    try:
        return _F32.unpack(_F32.pack(value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


_PI_F32 = _f32(math.pi)


def _f32_trig(function, value: float) -> float:
    if not math.isfinite(value):
        return math.nan
    return _f32(function(value))


def _to_u32(value: float) -> int:
    """Convert to an unsigned 32-bit integer, saturating like a numeric cast."""
    if math.isnan(value):
        return 0
    if math.isinf(value):
        return _U32_MAX if value > 0 else 0
    return int(max(0, min(int(value), _U32_MAX)))


def _ceil_u32(value: float) -> int:
    if not math.isfinite(value):
        return _to_u32(value)
    return _to_u32(math.ceil(value))


def _round_half_away(value: float) -> int:
    return int(math.floor(value + 0.5)) if value >= 0 else int(math.ceil(value - 0.5))


def _decode(image_data) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(bytes(image_data)))
        image.load()
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as error:
        raise ImageToolError(str(error)) from error
    return image


def _decode_rgba(image_data) -> Image.Image:
    return _decode(image_data).convert("RGBA")


def _png(image: Image.Image) -> bytes:
    output = io.BytesIO()
    try:
        image.convert("RGBA").save(output, "PNG")
    except (ValueError, OSError, SystemError) as error:
        raise ImageToolError(f"image encoding failed: {error}") from error
    return output.getvalue()


def _png_from_rgba(width: int, height: int, pixels: bytes) -> bytes:
    try:
        image = Image.frombytes("RGBA", (width, height), pixels)
    except (ValueError, SystemError) as error:
        raise ImageToolError(f"image encoding failed: {error}") from error
    return _png(image)


def _resize(image: Image.Image, width: int, height: int) -> Image.Image:
    try:
        return image.resize((width, height), Image.Resampling.BILINEAR)
    except (ValueError, MemoryError) as error:
        raise ImageToolError(f"image resizing failed: {error}") from error


def _decode_all(images: Iterable) -> list[Image.Image]:
    images = list(images)
    if not images:
        raise ImageToolError("the list of images must not be empty")
    return [_decode_rgba(data) for data in images]


def image_info(image_data) -> ImageInfo:
    """Describe an image; GIFs also report their frame count and mean delay."""
    data = bytes(image_data)
    if data.startswith(_GIF_SIGNATURES):
        gif = decode_gif(data)
        count = len(gif.frames)
        total = sum(frame.delay / 100.0 for frame in gif.frames)
        average = total / count if count > 1 else 0.0
        return ImageInfo(
            width=gif.width,
            height=gif.height,
            is_multi_frame=count > 1,
            frame_count=count,
            average_duration=average,
        )
    width, height = _decode(data).size
    return ImageInfo(width=width, height=height, is_multi_frame=False)


def image_crop(image_data, left=None, top=None, width=None, height=None) -> bytes:
    """Cut a rectangle out of an image (defaults: 0, 0, 100, 100)."""
    left = 0 if left is None else left
    top = 0 if top is None else top
    width = _DEFAULT_CROP_SIZE if width is None else width
    height = _DEFAULT_CROP_SIZE if height is None else height
    if min(left, top, width, height) < 0:
        raise ImageToolError("crop coordinates must not be negative")
    image = _decode(image_data)
    image_width, image_height = image.size
    if left + width > image_width or top + height > image_height:
        raise ImageToolError("the crop region lies outside the image")
    cropped = image.convert("RGBA").crop((left, top, left + width, top + height))
    return _png(cropped)


def image_resize(buffer, width=None, height=None) -> bytes:
    """Scale an image to exactly ``width`` x ``height``."""
    if width is None or height is None:
        raise ImageToolError("both a width and a height are required")
    image = _decode_rgba(buffer)
    return _png(_resize(image, width, height))


def image_rotate(image_data, degrees=None) -> bytes:
    """Rotate an image on a white canvas large enough to hold it (default 90 degrees)."""
    degrees = _DEFAULT_ROTATION if degrees is None else float(degrees)
    source = _decode_rgba(image_data)
    width, height = source.size

    radians = _f32(_f32(_f32(degrees) * _PI_F32) / 180.0)
    sin_v = _f32_trig(math.sin, radians)
    cos_v = _f32_trig(math.cos, radians)
    float_width = _f32(width)
    float_height = _f32(height)

    new_width = _ceil_u32(
        _f32(_f32(float_width * abs(cos_v)) + _f32(float_height * abs(sin_v)))
    )
    new_height = _ceil_u32(
        _f32(_f32(float_width * abs(sin_v)) + _f32(float_height * abs(cos_v)))
    )

    half_width = _f32(float_width * 0.5)
    half_height = _f32(float_height * 0.5)
    half_new_width = _f32(_f32(new_width) * 0.5)
    half_new_height = _f32(_f32(new_height) * 0.5)

    columns = [
        (_f32(dx * cos_v), _f32(-dx * sin_v))
        for dx in (_f32(_f32(x) - half_new_width) for x in range(new_width))
    ]
    rows = [
        (_f32(dy * sin_v), _f32(dy * cos_v))
        for dy in (_f32(_f32(y) - half_new_height) for y in range(new_height))
    ]

    pixels = source.tobytes()
    out = bytearray(_WHITE_PIXEL * (new_width * new_height))
    for y, (row_sin, row_cos) in enumerate(rows):
        row_start = y * new_width
        for x, (column_cos, column_sin) in enumerate(columns):
            old_x = int(_f32(_f32(column_cos + row_sin) + half_width))
            old_y = int(_f32(_f32(column_sin + row_cos) + half_height))
            if 0 <= old_x < width and 0 <= old_y < height:
                source_at = (old_y * width + old_x) * 4
                target_at = (row_start + x) * 4
                out[target_at:target_at + 4] = pixels[source_at:source_at + 4]
    return _png_from_rgba(new_width, new_height, bytes(out))


def image_flip_horizontal(image_data) -> bytes:
    """Mirror an image left to right."""
    image = _decode_rgba(image_data)
    return _png(image.transpose(Image.Transpose.FLIP_LEFT_RIGHT))


def image_flip_vertical(image_data) -> bytes:
    """Mirror an image top to bottom."""
    image = _decode_rgba(image_data)
    return _png(image.transpose(Image.Transpose.FLIP_TOP_BOTTOM))


def image_grayscale(image_data) -> bytes:
    """Convert an image to grey using Rec. 709 luma, keeping alpha."""
    image = _decode_rgba(image_data)
    red, green, blue, alpha = image.split()
    luma = bytes(
        (2126 * r + 7152 * g + 722 * b) // 10000
        for r, g, b in zip(red.tobytes(), green.tobytes(), blue.tobytes())
    )
    gray = Image.frombytes("L", image.size, luma)
    return _png(Image.merge("RGBA", (gray, gray, gray, alpha)))


def image_invert(image_data) -> bytes:
    """Invert the colour channels of an image, keeping alpha."""
    image = _decode_rgba(image_data)
    red, green, blue, alpha = image.split()
    inverted = [ImageChops.invert(channel) for channel in (red, green, blue)]
    return _png(Image.merge("RGBA", (*inverted, alpha)))


def image_merge_horizontal(images) -> bytes:
    """Join images side by side, scaling each to the smallest height."""
    pictures = _decode_all(images)
    min_height = min(picture.height for picture in pictures)

    def scaled_width(picture: Image.Image) -> int:
        if picture.height == 0:
            return 0
        scale = _f32(_f32(min_height) / _f32(picture.height))
        return _to_u32(_f32(_f32(picture.width) * scale))

    widths = [scaled_width(picture) for picture in pictures]
    merged = Image.new("RGBA", (sum(widths), min_height), (0, 0, 0, 0))
    current_x = 0
    for picture, width in zip(pictures, widths):
        if width and min_height:
            merged.paste(_resize(picture, width, min_height), (current_x, 0))
        current_x += width
    return _png(merged)


def image_merge_vertical(images) -> bytes:
    """Stack images top to bottom, scaling each to the largest width."""
    pictures = _decode_all(images)
    max_width = max(picture.width for picture in pictures)
    total_height = sum(picture.height for picture in pictures)
    merged = Image.new("RGBA", (max_width, total_height), (0, 0, 0, 0))
    current_y = 0
    for picture in pictures:
        if max_width and picture.height:
            merged.paste(_resize(picture, max_width, picture.height), (0, current_y))
        current_y += picture.height
    return _png(merged)


def _parse_channel(pair: bytes, name: str) -> int:
    if not _HEX_PAIR.fullmatch(pair):
        raise ImageToolError(f"failed to parse the {name} channel")
    return int(pair, 16)


def _blend(target: int, value: int, source_alpha: float, keep: float) -> int:
    tinted = _f32(_f32(target * source_alpha) * 0.5)
    kept = _f32(value * keep)
    return max(0, min(255, _round_half_away(_f32(tinted + kept))))


def _mask_tables(alpha: int, color: tuple[int, int, int]) -> tuple[bytes, ...]:
    source_alpha = _f32(alpha / 255.0)
    keep = _f32(1.0 - _f32(source_alpha * 0.5))
    return tuple(
        bytes(_blend(target, value, source_alpha, keep) for value in range(256))
        for target in color
    )


def image_color_mask(image_data, hex_color: str) -> bytes:
    """Tint an image halfway towards a colour such as ``"#FF5733"``.

    The strength of the tint follows each pixel's alpha.
    """
    encoded = hex_color.encode("utf-8")
    if len(encoded) != 7 or not encoded.startswith(b"#"):
        raise ImageToolError("invalid hexadecimal colour code")
    color = (
        _parse_channel(encoded[1:3], "red"),
        _parse_channel(encoded[3:5], "green"),
        _parse_channel(encoded[5:7], "blue"),
    )

    image = _decode_rgba(image_data)
    tables: dict[int, tuple[bytes, ...]] = {}
    channels = iter(image.tobytes())
    out = bytearray()
    for red, green, blue, alpha in zip(channels, channels, channels, channels):
        if alpha not in tables:
            tables[alpha] = _mask_tables(alpha, color)
        red_table, green_table, blue_table = tables[alpha]
        out += bytes((red_table[red], green_table[green], blue_table[blue], alpha))
    return _png_from_rgba(image.width, image.height, bytes(out))