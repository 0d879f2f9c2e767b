import io

import pytest
from PIL import Image

from app.exceptions import UnsupportedImageError
from app.infrastructure.imaging.pillow_transformer import PillowImageTransformer
from fakes import make_image


@pytest.fixture
def transformer():
    return PillowImageTransformer()


@pytest.mark.parametrize("fmt,mime", [("PNG", "image/png"), ("JPEG", "image/jpeg"), ("WEBP", "image/webp")])
def test_probe_reports_real_dimensions(transformer, fmt, mime):
    info = transformer.probe(make_image(64, 48, fmt=fmt))
    assert (info.width, info.height, info.mime_type) == (64, 48, mime)


def test_probe_rejects_garbage(transformer):
    with pytest.raises(UnsupportedImageError):
        transformer.probe(b"\x00\x01not an image")


def test_resize_to_both_dimensions_stretches(transformer):
    result = transformer.resize(make_image(64, 48), 10, 30)
    assert (result.width, result.height) == (10, 30)
    assert Image.open(io.BytesIO(result.data)).size == (10, 30)
    assert result.mime_type == "image/png"


@pytest.mark.parametrize("width,height,expected", [(32, None, (32, 24)), (None, 12, (16, 12)), (1, None, (1, 1))])
def test_resize_single_dimension_keeps_aspect(transformer, width, height, expected):
    result = transformer.resize(make_image(64, 48), width, height)
    assert (result.width, result.height) == expected


def test_resize_without_dimensions_returns_input(transformer):
    data = make_image(64, 48)
    result = transformer.resize(data)
    assert result.data == data
    assert (result.width, result.height) == (64, 48)


def test_resize_is_deterministic(transformer):
    data = make_image(64, 48, fmt="JPEG")
    first = transformer.resize(data, 20, 20)
    second = transformer.resize(data, 20, 20)
    assert first.data == second.data
    assert first.mime_type == "image/jpeg"


def test_grayscale_jpeg_is_converted_to_rgb(transformer):
    buf = io.BytesIO()
    Image.new("L", (30, 30), 128).save(buf, format="JPEG")
    result = transformer.resize(buf.getvalue(), 10, 10)
    assert Image.open(io.BytesIO(result.data)).mode == "RGB"
