from __future__ import annotations
from pathlib import Path
from typing import Union
import base64
import io
from PIL import Image


def is_data_uri(value: str) -> bool:
    return value.startswith("data:")


def is_remote_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def is_image_reference(value: str) -> bool:
    """True for the only string forms accepted from callers: http(s) urls and data uris."""
    return is_remote_url(value) or is_data_uri(value)


def to_base64(image_data: Union[str, Path, bytes, Image.Image]) -> str:
    if isinstance(image_data, str):
        # strings are never treated as file paths
        if not is_data_uri(image_data):
            raise ValueError("Image string must be a data URI")
        return image_data.split(",", 1)[1] if "," in image_data else ""

    if isinstance(image_data, Path):
        if not image_data.exists():
            raise FileNotFoundError(f"Image file not found: {image_data}")

        with Image.open(image_data) as img:
            return _encode_png(img)

    elif isinstance(image_data, bytes):
        return base64.b64encode(image_data).decode('utf-8')

    elif isinstance(image_data, Image.Image):
        return _encode_png(image_data)

    else:
        raise ValueError(f"Unsupported image data type: {type(image_data)}")


def to_image_url(image_data: Union[str, Path, bytes, Image.Image]) -> str:
    """Return something a vision model accepts as an image url: remote urls and data uris pass through."""
    if isinstance(image_data, str):
        if not is_image_reference(image_data):
            raise ValueError("Image reference must be an http(s) URL or a data URI")
        return image_data
    return f"data:image/png;base64,{to_base64(image_data)}"


def _encode_png(img: Image.Image) -> str:
    if img.mode in ('RGBA', 'P'):
        img = img.convert('RGB')
    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    buffer.seek(0)
    return base64.b64encode(buffer.getvalue()).decode('utf-8')
