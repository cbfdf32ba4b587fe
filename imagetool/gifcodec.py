"""Reading and writing GIF streams as indexed frames."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, Iterator

from PIL import Image

from .errors import ImageToolError

_MAX_CODES = 4096
_MAX_CODE_SIZE = 12
_INTERLACE_PASSES = ((0, 8), (4, 8), (2, 4), (1, 2))
_LOOP_FOREVER = b"\x21\xff\x0bNETSCAPE2.0\x03\x01\x00\x00\x00"


class GifError(ImageToolError):
    """GIF data could not be decoded or encoded."""


class DisposalMethod(IntEnum):
    """What happens to a frame's area before the next frame is drawn."""

    ANY = 0
    KEEP = 1
    BACKGROUND = 2
    PREVIOUS = 3


@dataclass
class GifFrame:
    """One image of a GIF stream, held as palette indices."""

    width: int
    height: int
    buffer: bytes
    left: int = 0
    top: int = 0
    delay: int = 0
    dispose: DisposalMethod = DisposalMethod.KEEP
    transparent: int | None = None
    palette: bytes | None = None
    interlaced: bool = False
    needs_user_input: bool = False


@dataclass
class GifImage:
    """A decoded GIF stream: screen size, global palette and frames."""

    width: int
    height: int
    global_palette: bytes | None = None
    background_index: int = 0
    repeat: int | None = None
    frames: list[GifFrame] = field(default_factory=list)


@dataclass
class _Control:
    delay: int = 0
    dispose: DisposalMethod = DisposalMethod.KEEP
    transparent: int | None = None
    needs_user_input: bool = False


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def exhausted(self) -> bool:
        return self._pos >= len(self._data)

    def take(self, count: int) -> bytes:
        end = self._pos + count
        if end > len(self._data):
            raise GifError("unexpected end of GIF data")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def byte(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return int.from_bytes(self.take(2), "little")

    def sub_blocks(self) -> Iterator[bytes]:
        while size := self.byte():
            yield self.take(size)


class _BitWriter:
    def __init__(self) -> None:
        self._out = bytearray()
        self._acc = 0
        self._bits = 0

    def write(self, code: int, size: int) -> None:
        self._acc |= code << self._bits
        self._bits += size
        while self._bits >= 8:
            self._out.append(self._acc & 0xFF)
            self._acc >>= 8
            self._bits -= 8

    def finish(self) -> bytes:
        if self._bits:
            self._out.append(self._acc & 0xFF)
            self._acc = 0
            self._bits = 0
        return bytes(self._out)


def _disposal(value: int) -> DisposalMethod:
    try:
        return DisposalMethod(value)
    except ValueError:
        return DisposalMethod.ANY


def _lzw_decode(data: bytes, min_code_size: int, pixel_count: int) -> bytes:
    if not 1 <= min_code_size <= 11:
        raise GifError(f"invalid LZW minimum code size {min_code_size}")
    clear = 1 << min_code_size
    end = clear + 1
    base = [bytes([value]) for value in range(clear)] + [b"", b""]
    table = list(base)
    code_size = min_code_size + 1
    previous: int | None = None
    out = bytearray()
    acc = 0
    bits = 0
    for byte in data:
        acc |= byte << bits
        bits += 8
        while bits >= code_size:
            code = acc & ((1 << code_size) - 1)
            acc >>= code_size
            bits -= code_size
            if code == clear:
                table = list(base)
                code_size = min_code_size + 1
                previous = None
                continue
            if code == end:
                return bytes(out[:pixel_count]).ljust(pixel_count, b"\0")
            if previous is None:
                if code >= len(table):
                    raise GifError(f"invalid LZW code {code}")
                out += table[code]
                previous = code
                continue
            if code < len(table):
                entry = table[code]
                added = table[previous] + entry[:1]
            elif code == len(table):
                added = table[previous] + table[previous][:1]
                entry = added
            else:
                raise GifError(f"invalid LZW code {code}")
            out += entry
            if len(table) < _MAX_CODES:
                table.append(added)
                if len(table) == 1 << code_size and code_size < _MAX_CODE_SIZE:
                    code_size += 1
            previous = code
    return bytes(out[:pixel_count]).ljust(pixel_count, b"\0")


def _lzw_encode(pixels: bytes, min_code_size: int) -> bytes:
    clear = 1 << min_code_size
    end = clear + 1
    writer = _BitWriter()
    code_size = min_code_size + 1
    writer.write(clear, code_size)
    if not pixels:
        writer.write(end, code_size)
        return writer.finish()
    table: dict[int, int] = {}
    next_code = end + 1
    prefix = pixels[0]
    for byte in memoryview(pixels)[1:]:
        key = (prefix << 8) | byte
        code = table.get(key)
        if code is not None:
            prefix = code
            continue
        writer.write(prefix, code_size)
        if next_code == _MAX_CODES:
            writer.write(clear, code_size)
            table.clear()
            code_size = min_code_size + 1
            next_code = end + 1
        else:
            table[key] = next_code
            next_code += 1
            if next_code > 1 << code_size and code_size < _MAX_CODE_SIZE:
                code_size += 1
        prefix = byte
    writer.write(prefix, code_size)
    writer.write(end, code_size)
    return writer.finish()


def _deinterlace(pixels: bytes, width: int, height: int) -> bytes:
    order = [row for start, step in _INTERLACE_PASSES for row in range(start, height, step)]
    rows = [b""] * height
    for source_row, target_row in enumerate(order):
        rows[target_row] = pixels[source_row * width:(source_row + 1) * width]
    return b"".join(rows)


def _read_extension(reader: _Reader, image: GifImage) -> _Control | None:
    label = reader.byte()
    blocks = list(reader.sub_blocks())
    if label == 0xF9 and blocks and len(blocks[0]) >= 4:
        flags, delay_low, delay_high, transparent = blocks[0][:4]
        return _Control(
            delay=delay_low | (delay_high << 8),
            dispose=_disposal((flags >> 2) & 0x07),
            transparent=transparent if flags & 0x01 else None,
            needs_user_input=bool(flags & 0x02),
        )
    if (
        label == 0xFF
        and len(blocks) > 1
        and blocks[0] == b"NETSCAPE2.0"
        and len(blocks[1]) >= 3
        and blocks[1][0] == 1
    ):
        image.repeat = blocks[1][1] | (blocks[1][2] << 8)
    return None


def _read_frame(reader: _Reader, control: _Control) -> GifFrame:
    left, top, width, height = (reader.u16() for _ in range(4))
    flags = reader.byte()
    palette = reader.take(3 * (2 << (flags & 0x07))) if flags & 0x80 else None
    interlaced = bool(flags & 0x40)
    min_code_size = reader.byte()
    data = b"".join(reader.sub_blocks())
    pixels = _lzw_decode(data, min_code_size, width * height)
    if interlaced:
        pixels = _deinterlace(pixels, width, height)
    return GifFrame(
        width=width,
        height=height,
        buffer=pixels,
        left=left,
        top=top,
        delay=control.delay,
        dispose=control.dispose,
        transparent=control.transparent,
        palette=palette,
        interlaced=interlaced,
        needs_user_input=control.needs_user_input,
    )


def decode_gif(data) -> GifImage:
    """Decode a GIF stream into its frames of palette indices."""
    reader = _Reader(bytes(data))
    if reader.take(6) not in (b"GIF87a", b"GIF89a"):
        raise GifError("malformed GIF header")
    width = reader.u16()
    height = reader.u16()
    flags = reader.byte()
    background = reader.byte()
    reader.byte()
    global_palette = reader.take(3 * (2 << (flags & 0x07))) if flags & 0x80 else None
    image = GifImage(width, height, global_palette, background)
    control = _Control()
    while not reader.exhausted:
        introducer = reader.byte()
        if introducer == 0x3B:
            break
        if introducer == 0x21:
            found = _read_extension(reader, image)
            if found is not None:
                control = found
        elif introducer == 0x2C:
            image.frames.append(_read_frame(reader, control))
            control = _Control()
        else:
            raise GifError(f"unknown block type 0x{introducer:02x}")
    return image


def _check_dimensions(width: int, height: int) -> None:
    if not (0 <= width <= 0xFFFF and 0 <= height <= 0xFFFF):
        raise GifError("GIF dimensions must fit in 16 bits")


def _table_bits(palette: bytes) -> int:
    if len(palette) % 3 or not 3 <= len(palette) <= 768:
        raise GifError("a GIF palette holds between 1 and 256 RGB colours")
    return max(0, (len(palette) // 3 - 1).bit_length() - 1)


def _padded(palette: bytes, bits: int) -> bytes:
    return bytes(palette).ljust(3 * (2 << bits), b"\0")


def _sub_blocks(data: bytes) -> Iterator[bytes]:
    for start in range(0, len(data), 255):
        chunk = data[start:start + 255]
        yield bytes([len(chunk)]) + chunk
    yield b"\0"


def _encode_frame(frame: GifFrame, global_bits: int | None) -> bytes:
    _check_dimensions(frame.width, frame.height)
    _check_dimensions(frame.left, frame.top)
    buffer = bytes(frame.buffer)
    if len(buffer) != frame.width * frame.height:
        raise GifError("frame buffer does not match the frame size")
    if not 0 <= frame.delay <= 0xFFFF:
        raise GifError("frame delay must fit in 16 bits")
    if frame.transparent is not None and not 0 <= frame.transparent <= 0xFF:
        raise GifError("transparent index must be between 0 and 255")

    if frame.palette:
        table_bits = _table_bits(frame.palette)
        local_table = _padded(frame.palette, table_bits)
        descriptor_flags = 0x80 | table_bits
    elif global_bits is not None:
        table_bits = global_bits
        local_table = b""
        descriptor_flags = 0
    else:
        raise GifError("the GIF format requires a color palette but none was given")

    control_flags = (int(frame.dispose) & 0x07) << 2
    if frame.needs_user_input:
        control_flags |= 0x02
    if frame.transparent is not None:
        control_flags |= 0x01

    out = bytearray(b"\x21\xf9\x04")
    out.append(control_flags)
    out += struct.pack("<H", frame.delay)
    out += bytes([frame.transparent or 0, 0])
    out.append(0x2C)
    out += struct.pack("<HHHH", frame.left, frame.top, frame.width, frame.height)
    out.append(descriptor_flags)
    out += local_table

    min_code_size = max(2, table_bits + 1, max(buffer, default=0).bit_length())
    out.append(min_code_size)
    for block in _sub_blocks(_lzw_encode(buffer, min_code_size)):
        out += block
    return bytes(out)


def encode_gif(width, height, global_palette, frames: Iterable[GifFrame]) -> bytes:
    """Encode frames into a GIF89a stream that loops forever."""
    _check_dimensions(width, height)
    out = bytearray(b"GIF89a")
    out += struct.pack("<HH", width, height)
    global_bits: int | None = None
    if global_palette:
        global_bits = _table_bits(global_palette)
        out.append(0x80 | (global_bits << 4) | global_bits)
        out += b"\0\0"
        out += _padded(global_palette, global_bits)
    else:
        out += b"\0\0\0"
    out += _LOOP_FOREVER
    for frame in frames:
        out += _encode_frame(frame, global_bits)
    out.append(0x3B)
    return bytes(out)


def frame_from_rgba(width, height, rgba) -> GifFrame:
    """Build an indexed frame from RGBA pixels.

    Pixels with zero alpha become transparent, any other alpha is opaque.
    Up to 256 distinct colours are kept exactly; more are quantised.
    """
    _check_dimensions(width, height)
    rgba = bytes(rgba)
    if len(rgba) != width * height * 4:
        raise GifError("RGBA data does not match the frame size")
    channels = iter(rgba)
    keys = [(r, g, b) if a else None for r, g, b, a in zip(channels, channels, channels, channels)]
    distinct = set(keys)

    if len(distinct) <= 256:
        colors = sorted(key for key in distinct if key is not None)
        transparent = None
        if None in distinct:
            transparent = len(colors)
            colors.append((0, 0, 0))
        if not colors:
            colors.append((0, 0, 0))
        index_of: dict[tuple[int, int, int] | None, int | None] = {
            color: position for position, color in enumerate(colors)
        }
        index_of[None] = transparent
        buffer = bytes(index_of[key] for key in keys)
        palette = bytes(channel for color in colors for channel in color)
        return GifFrame(width, height, buffer, transparent=transparent, palette=palette)

    has_transparency = None in distinct
    rgb = bytes(channel for key in keys for channel in (key or (0, 0, 0)))
    quantized = Image.frombytes("RGB", (width, height), rgb).quantize(
        colors=255 if has_transparency else 256,
        method=Image.Quantize.MEDIANCUT,
        dither=Image.Dither.NONE,
    )
    indices = bytearray(quantized.tobytes())
    used = max(indices) + 1
    palette = bytes((quantized.getpalette() or [])[: used * 3]).ljust(used * 3, b"\0")
    transparent = None
    if has_transparency:
        transparent = used
        palette += b"\0\0\0"
        for position, key in enumerate(keys):
            if key is None:
                indices[position] = transparent
    return GifFrame(width, height, bytes(indices), transparent=transparent, palette=palette)