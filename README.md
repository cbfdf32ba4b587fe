# imagetool

Everyday image and animated GIF operations. Every function takes an image's
encoded bytes and returns new encoded bytes. Still images come back as PNG and
animations come back as GIF. The package never reads or writes files itself.

## Installation

From a checkout of the package:

```
pip install .
```

## Still images

All of these are in `imagetool.image`. Each accepts any format Pillow can
read, and every result is an RGBA PNG.

| Function | What it does |
| --- | --- |
| `image_info(image_data)` | Returns a frozen `ImageInfo` with `width`, `height`, `is_multi_frame`, `frame_count` and `average_duration`. `average_duration` is the mean frame delay in seconds, and 0.0 for a GIF with a single frame. For anything other than a GIF, `frame_count` and `average_duration` are `None` |
| `image_crop(image_data, left=None, top=None, width=None, height=None)` | Crops a rectangle. The defaults are 0, 0, 100 and 100. Raises an error if a value is negative or if the region reaches outside the image |
| `image_resize(buffer, width=None, height=None)` | Scales to exactly `width` x `height` with bilinear filtering. Both values are required |
| `image_rotate(image_data, degrees=None)` | Rotates by `degrees`, 90 by default. The canvas grows to hold the rotated image and the uncovered area is white. Pixels are sampled by nearest neighbour |
| `image_flip_horizontal(image_data)` | Mirrors the image left to right |
| `image_flip_vertical(image_data)` | Mirrors the image top to bottom |
| `image_grayscale(image_data)` | Converts to grey with Rec. 709 luma and keeps alpha |
| `image_invert(image_data)` | Inverts the red, green and blue channels and keeps alpha |
| `image_merge_horizontal(images)` | Scales every image to the smallest height, keeping its proportions, and places them side by side |
| `image_merge_vertical(images)` | Stretches every image to the largest width, keeping its height, and stacks them top to bottom |
| `image_color_mask(image_data, hex_color)` | Tints the image halfway towards a `#RRGGBB` colour. The strength of the tint follows each pixel's alpha |

```python
from imagetool.image import image_info, image_rotate

with open("photo.jpg", "rb") as fh:
    data = fh.read()

info = image_info(data)
print(info.width, info.height, info.is_multi_frame)

with open("rotated.png", "wb") as fh:
    fh.write(image_rotate(data, 45))
```

## Animated GIFs

All of these are in `imagetool.gif`:

| Function | What it does |
| --- | --- |
| `gif_split(image_data)` | Returns a list of PNG images, one for each frame. Each frame is composed over a white background and takes account of the previous frames and their disposal methods |
| `gif_merge(images, duration=None)` | Builds a GIF that loops forever from a list of images in any format Pillow can read. Each frame is resized with Lanczos filtering to the size of the first image and shows for `duration` seconds, 0.05 by default. The shortest delay is 1/100 second. A frame with more than 256 colours is quantised |
| `gif_reverse(image_data)` | Returns the animation with its frames in reverse order, set to loop forever |
| `gif_change_duration(image_data, duration=None)` | Gives every frame a delay of `duration` seconds, 0.02 by default, set to loop forever. A duration of zero or less keeps the original delays |

`gif_split`, `gif_reverse` and `gif_change_duration` accept only animations
with more than one frame.

```python
from imagetool.gif import gif_merge, gif_split

with open("anim.gif", "rb") as fh:
    frames = gif_split(fh.read())

with open("rebuilt.gif", "wb") as fh:
    fh.write(gif_merge(frames, 0.1))
```

## The GIF codec

`imagetool.gifcodec` holds the GIF reader and writer that the functions above
use:

- `decode_gif(data)` returns a `GifImage`. A `GifImage` holds the screen size, the global palette, the background index, the loop count and a list of `GifFrame` objects.
- A `GifFrame` holds palette indices together with the frame's position, delay, `DisposalMethod`, transparent index and local palette. Interlaced frames are de-interlaced when they are read.
- `encode_gif(width, height, global_palette, frames)` writes a GIF89a stream that loops forever.
- `frame_from_rgba(width, height, rgba)` turns RGBA pixels into an indexed `GifFrame`. Pixels with zero alpha become transparent. Up to 256 colours are kept exactly, and more are quantised.

## Errors

Any failure raises `imagetool.errors.ImageToolError`. This includes data that
cannot be decoded, an empty list of images, a crop region outside the image, a
missing resize dimension, an invalid colour code, and a GIF with only one
frame. Errors in GIF data raise `imagetool.gifcodec.GifError`, which is a
subclass of `ImageToolError`.

## Running the tests

```
pip install ".[test]"
pytest
```