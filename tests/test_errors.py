import pytest

from imagetool.errors import ImageToolError
from imagetool.gifcodec import decode_gif


def test_message_is_kept():
    reason = "裁剪区域超出图像范围"
    error = ImageToolError(reason)
    assert str(error) == reason
    assert error.args == (reason,)


def test_gif_decoding_failure_is_an_image_tool_error():
    with pytest.raises(ImageToolError):
        decode_gif(b"definitely not a gif")


def test_truncated_gif_is_an_image_tool_error():
    with pytest.raises(ImageToolError):
        decode_gif(b"GIF89a\x01")