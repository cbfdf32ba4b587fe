import io

import pytest
from PIL import Image

from imagetool.errors import ImageToolError
from imagetool.gifcodec import GifFrame, encode_gif
from imagetool.image import (
    ImageInfo,
    image_color_mask,
    image_crop,
    image_flip_horizontal,
    image_flip_vertical,
    image_grayscale,
    image_info,
    image_invert,
    image_merge_horizontal,
    image_merge_vertical,
    image_resize,
    image_rotate,
)

PALETTE = b"\x00\x00\x00\xff\xff\xff"


def _png(image):
    buffer = io.BytesIO()
    image.save(buffer, "PNG")
    return buffer.getvalue()


def _open(data):
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def _gradient(width, height):
    image = Image.new("RGBA", (width, height))
    image.putdata(
        [
            ((x * 7) % 256, (y * 11) % 256, (x + y) % 256, 255)
            for y in range(height)
            for x in range(width)
        ]
    )
    return image


def _solid(width, height, color):
    return _png(Image.new("RGBA", (width, height), color))


def _gif(frame_count, delay):
    frames = [GifFrame(4, 3, bytes(12), delay=delay) for _ in range(frame_count)]
    return encode_gif(4, 3, PALETTE, frames)


def test_image_info_for_png():
    info = image_info(_png(_gradient(30, 20)))
    assert info == ImageInfo(30, 20, False, None, None)


def test_image_info_for_animated_gif():
    info = image_info(_gif(3, 10))
    assert (info.width, info.height) == (4, 3)
    assert info.is_multi_frame is True
    assert info.frame_count == 3
    assert info.average_duration == pytest.approx(10 / 100)


def test_image_info_for_single_frame_gif():
    info = image_info(_gif(1, 10))
    assert info.is_multi_frame is False
    assert info.frame_count == 1
    assert info.average_duration == 0.0


def test_image_info_rejects_garbage():
    with pytest.raises(ImageToolError):
        image_info(b"definitely not an image")


def test_crop_takes_the_requested_region():
    source = _gradient(150, 120)
    cropped = _open(image_crop(_png(source), 10, 20, 30, 40))
    assert cropped.size == (30, 40)
    for x, y in [(0, 0), (5, 7), (29, 39)]:
        assert cropped.getpixel((x, y)) == source.getpixel((x + 10, y + 20))


def test_crop_defaults_to_top_left_hundred_square():
    source = _gradient(150, 120)
    cropped = _open(image_crop(_png(source)))
    assert cropped.size == (100, 100)
    assert cropped.getpixel((99, 99)) == source.getpixel((99, 99))


@pytest.mark.parametrize(
    "args",
    [(None, None, None, None), (0, 0, 51, 10), (10, 45, 5, 6)],
)
def test_crop_outside_image_raises(args):
    with pytest.raises(ImageToolError):
        image_crop(_png(_gradient(50, 50)), *args)


def test_resize_gives_exact_size_and_keeps_solid_colour():
    data = _solid(20, 10, (12, 34, 56, 255))
    resized = _open(image_resize(data, 17, 9))
    assert resized.size == (17, 9)
    assert resized.convert("RGBA").getcolors() == [(17 * 9, (12, 34, 56, 255))]


def test_resize_requires_both_dimensions():
    with pytest.raises(ImageToolError):
        image_resize(_solid(4, 4, (0, 0, 0, 255)), 10, None)


def test_rotate_by_zero_keeps_pixels():
    source = _gradient(13, 9)
    rotated = _open(image_rotate(_png(source), 0))
    assert rotated.size == source.size
    assert rotated.convert("RGBA").tobytes() == source.tobytes()


def test_rotate_quarter_turn_swaps_dimensions():
    rotated = _open(image_rotate(_solid(40, 20, (255, 0, 0, 255)), 90))
    width, height = rotated.size
    assert abs(width - 20) <= 1
    assert abs(height - 40) <= 1
    assert rotated.getpixel((width // 2, height // 2)) == (255, 0, 0, 255)


def test_rotate_defaults_to_ninety_degrees():
    data = _png(_gradient(11, 7))
    assert image_rotate(data) == image_rotate(data, 90.0)


def test_flip_horizontal_mirrors_columns():
    source = _gradient(12, 8)
    flipped = _open(image_flip_horizontal(_png(source)))
    assert flipped.getpixel((0, 3)) == source.getpixel((11, 3))
    twice = _open(image_flip_horizontal(_png(flipped)))
    assert twice.tobytes() == source.tobytes()


def test_flip_vertical_mirrors_rows():
    source = _gradient(12, 8)
    flipped = _open(image_flip_vertical(_png(source)))
    assert flipped.getpixel((4, 0)) == source.getpixel((4, 7))
    twice = _open(image_flip_vertical(_png(flipped)))
    assert twice.tobytes() == source.tobytes()


def test_grayscale_makes_channels_equal_and_keeps_alpha():
    source = _gradient(10, 10)
    source.putpixel((0, 0), (200, 10, 90, 77))
    gray = _open(image_grayscale(_png(source)))
    for r, g, b, _ in gray.getdata():
        assert r == g == b
    assert gray.getpixel((0, 0))[3] == 77


def test_grayscale_keeps_grey_pixels():
    gray = _open(image_grayscale(_solid(3, 3, (77, 77, 77, 200))))
    assert gray.getpixel((1, 1)) == (77, 77, 77, 200)


def test_invert_pins_value_and_round_trips():
    data = _solid(2, 2, (10, 20, 30, 40))
    inverted = _open(image_invert(data))
    assert inverted.getpixel((0, 0)) == (245, 235, 225, 40)
    source = _gradient(9, 6)
    twice = _open(image_invert(image_invert(_png(source))))
    assert twice.tobytes() == source.tobytes()


def test_merge_horizontal_places_images_side_by_side():
    left = _solid(10, 10, (255, 0, 0, 255))
    right = _solid(20, 10, (0, 0, 255, 255))
    merged = _open(image_merge_horizontal([left, right]))
    assert merged.size == (10 + 20, 10)
    assert merged.getpixel((2, 5)) == (255, 0, 0, 255)
    assert merged.getpixel((25, 5)) == (0, 0, 255, 255)


def test_merge_horizontal_uses_smallest_height():
    merged = _open(
        image_merge_horizontal(
            [_solid(10, 20, (0, 255, 0, 255)), _solid(8, 10, (0, 0, 0, 255))]
        )
    )
    assert merged.height == 10


def test_merge_vertical_stacks_images():
    top = _solid(10, 5, (255, 0, 0, 255))
    bottom = _solid(10, 7, (0, 0, 255, 255))
    merged = _open(image_merge_vertical([top, bottom]))
    assert merged.size == (10, 5 + 7)
    assert merged.getpixel((3, 1)) == (255, 0, 0, 255)
    assert merged.getpixel((3, 10)) == (0, 0, 255, 255)


def test_merge_vertical_uses_largest_width():
    merged = _open(
        image_merge_vertical([_solid(4, 3, (1, 2, 3, 255)), _solid(10, 5, (4, 5, 6, 255))])
    )
    assert merged.size == (10, 3 + 5)
    assert merged.getpixel((9, 0)) == (1, 2, 3, 255)


@pytest.mark.parametrize("merge", [image_merge_horizontal, image_merge_vertical])
def test_merge_of_nothing_raises(merge):
    with pytest.raises(ImageToolError):
        merge([])


@pytest.mark.parametrize("code", ["FF5733", "#GG0000", "#12345", "# 12345", "#1234567"])
def test_color_mask_rejects_bad_codes(code):
    with pytest.raises(ImageToolError):
        image_color_mask(_solid(2, 2, (0, 0, 0, 255)), code)


def test_color_mask_with_same_colour_changes_nothing():
    masked = _open(image_color_mask(_solid(3, 3, (200, 100, 50, 255)), "#C86432"))
    assert masked.getcolors() == [(9, (200, 100, 50, 255))]


def test_color_mask_leaves_transparent_pixels():
    masked = _open(image_color_mask(_solid(2, 2, (10, 20, 30, 0)), "#FF5733"))
    assert masked.getpixel((0, 0)) == (10, 20, 30, 0)


def test_color_mask_blends_towards_colour():
    masked = _open(image_color_mask(_solid(2, 2, (255, 255, 255, 255)), "#000000"))
    r, g, b, a = masked.getpixel((1, 1))
    assert r == g == b
    assert 0 < r < 255
    assert a == 255