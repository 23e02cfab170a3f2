"""Saving sticker pictures and making still thumbnails of animated ones."""

from __future__ import annotations

import base64
import binascii
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import requests
from PIL import Image

_TIMEOUT = 30.0

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", ".png"),
    (b"\xff\xd8\xff", ".jpg"),
    (b"GIF87a", ".gif"),
    (b"GIF89a", ".gif"),
    (b"BM", ".bmp"),
)


def _extension(path: Path) -> str:
    """The file extension its content calls for, or an empty string."""
    with open(path, "rb") as fh:
        head = fh.read(16)
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return ".webp"
    return next((ext for magic, ext in _SIGNATURES if head.startswith(magic)), "")


def gif_to_png(src: Union[str, Path], dst: Union[str, Path]) -> None:
    """Write the first frame of a GIF as an RGBA PNG of the GIF's full size."""
    with Image.open(src) as gif:
        if gif.format != "GIF":
            raise ValueError(f"not a GIF image: {src}")
        gif.seek(0)
        frame = gif.convert("RGBA")
    canvas = Image.new("RGBA", frame.size, (0, 0, 0, 0))
    canvas.paste(frame, (0, 0))
    canvas.save(dst, format="PNG")


def feature_image(
    cache_dir: Union[str, Path],
    url: str = "",
    b64: str = "",
    session: Optional[requests.Session] = None,
    now: Optional[datetime] = None,
) -> tuple[str, str]:
    """Save a picture from a URL or base64 text; return (original, thumbnail) paths.

    GIFs get a PNG thumbnail of their first frame; other pictures are their own thumbnail.
    """
    if not url and not b64:
        raise ValueError("url和b64不能同时为空")
    if url and b64:
        raise ValueError("url和b64不能同时存在")
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    cache = Path(cache_dir)
    tmp_file = cache / f"tmp_{stamp}.png"

    try:
        if url:
            resp = (session or requests.Session()).get(url, timeout=_TIMEOUT)
            tmp_file.write_bytes(resp.content)
        else:
            try:
                data = base64.b64decode(b64, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError(f"invalid base64 picture: {exc}") from exc
            tmp_file.write_bytes(data)

        ext = _extension(tmp_file)
        original = cache / f"origin_{stamp}{ext}"
        os.replace(tmp_file, original)
    except BaseException:
        tmp_file.unlink(missing_ok=True)
        raise

    if ext == ".gif":
        thumb_name = original.name.replace("origin", "thumb").replace(".gif", ".png")
        thumbnail = cache / thumb_name
        gif_to_png(original, thumbnail)
        return str(original), str(thumbnail)
    return str(original), str(original)