import base64
import io
from datetime import datetime

import pytest
import requests
import responses
from PIL import Image

from wxhookbot.images import feature_image, gif_to_png

NOW = datetime(2023, 1, 2, 3, 4, 5)


def _gif_bytes():
    red = Image.new("RGB", (4, 3), (255, 0, 0))
    blue = Image.new("RGB", (4, 3), (0, 0, 255))
    buf = io.BytesIO()
    red.save(buf, format="GIF", save_all=True, append_images=[blue], duration=100)
    return buf.getvalue()


def _png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (2, 2), (0, 255, 0)).save(buf, format="PNG")
    return buf.getvalue()


def test_gif_to_png_keeps_size_and_first_frame(tmp_path):
    src = tmp_path / "a.gif"
    src.write_bytes(_gif_bytes())
    dst = tmp_path / "a.png"
    gif_to_png(src, dst)
    with Image.open(dst) as png:
        assert png.format == "PNG"
        assert png.size == (4, 3)
        assert png.convert("RGBA").getpixel((0, 0)) == (255, 0, 0, 255)


def test_gif_to_png_rejects_other_formats(tmp_path):
    src = tmp_path / "a.png"
    src.write_bytes(_png_bytes())
    with pytest.raises(ValueError):
        gif_to_png(src, tmp_path / "b.png")


def test_feature_image_needs_a_source(tmp_path):
    with pytest.raises(ValueError, match="url和b64不能同时为空"):
        feature_image(tmp_path, now=NOW)


def test_feature_image_refuses_two_sources(tmp_path):
    with pytest.raises(ValueError, match="url和b64不能同时存在"):
        feature_image(tmp_path, url="http://example.com/a.png", b64="AAAA", now=NOW)


def test_feature_image_png_is_its_own_thumbnail(tmp_path):
    b64 = base64.b64encode(_png_bytes()).decode()
    original, thumbnail = feature_image(tmp_path, b64=b64, now=NOW)
    assert original == str(tmp_path / "origin_20230102030405.png")
    assert thumbnail == original
    assert (tmp_path / "origin_20230102030405.png").read_bytes() == _png_bytes()
    assert not (tmp_path / "tmp_20230102030405.png").exists()


def test_feature_image_gif_gets_png_thumbnail(tmp_path):
    b64 = base64.b64encode(_gif_bytes()).decode()
    original, thumbnail = feature_image(tmp_path, b64=b64, now=NOW)
    assert original.endswith(".gif")
    assert thumbnail == str(tmp_path / "thumb_20230102030405.png")
    with Image.open(thumbnail) as png:
        assert png.format == "PNG"
        assert png.size == (4, 3)


def test_feature_image_downloads_from_url(tmp_path):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, "http://example.com/meme.gif", body=_gif_bytes())
        original, thumbnail = feature_image(
            tmp_path, url="http://example.com/meme.gif", session=requests.Session(), now=NOW
        )
    with open(original, "rb") as fh:
        assert fh.read() == _gif_bytes()
    assert thumbnail != original
    with Image.open(thumbnail) as png:
        assert png.format == "PNG"


def test_feature_image_unknown_content_has_no_extension(tmp_path):
    b64 = base64.b64encode(b"plain bytes").decode()
    original, thumbnail = feature_image(tmp_path, b64=b64, now=NOW)
    assert original == str(tmp_path / "origin_20230102030405")
    assert thumbnail == original


def test_feature_image_rejects_bad_base64(tmp_path):
    with pytest.raises(ValueError):
        feature_image(tmp_path, b64="not*base64!", now=NOW)
    assert list(tmp_path.iterdir()) == []