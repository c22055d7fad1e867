"""
ImageCodec - Decoding and encoding of captured images

Captured frames reach the core either as raw encoded bytes (JPEG/PNG) or as a
base64 string, optionally carrying a data-URL header such as
"data:image/png;base64,". This module turns any of those into Pillow images and
back, remembering the container format so processed frames can be re-encoded
the way they arrived.
"""
import base64
import binascii
import io
from dataclasses import dataclass
from typing import Union
from PIL import Image

ImageData = Union[bytes, str]

DATA_URL_PREFIX = 'data:image'
DEFAULT_FORMAT = 'PNG'

# Pillow modes each container can store without conversion
_FORMAT_MODES = {
    'JPEG': ('L', 'RGB', 'CMYK'),
    'PNG': ('1', 'L', 'LA', 'P', 'RGB', 'RGBA', 'I'),
}


@dataclass
class SourceImage:
    """A decoded image plus the container format it was decoded from."""
    image: Image.Image
    format: str


def strip_data_url(data: str) -> str:
    """Remove a data-URL header ("data:image/<fmt>;base64,") if present."""
    if data.startswith(DATA_URL_PREFIX) and ',' in data:
        return data.split(',', 1)[1]
    return data


def to_image_bytes(image_data: ImageData) -> bytes:
    """Return the encoded image payload as bytes.

    Raises:
        ValueError: If a string payload is not valid base64
        TypeError: If image_data is neither bytes nor str
    """
    if isinstance(image_data, (bytes, bytearray)):
        if image_data.startswith(DATA_URL_PREFIX.encode()):
            return to_image_bytes(image_data.decode('ascii', errors='ignore'))
        return bytes(image_data)
    if isinstance(image_data, str):
        payload = strip_data_url(image_data.strip())
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 image payload: {e}")
    raise TypeError(f"Unsupported image payload type: {type(image_data).__name__}")


def to_base64(image_data: ImageData) -> str:
    """Return the payload as bare base64 text (no data-URL header)."""
    if isinstance(image_data, str):
        return strip_data_url(image_data.strip())
    return base64.b64encode(to_image_bytes(image_data)).decode('ascii')


def decode_image(image_data: ImageData) -> SourceImage:
    """Decode a payload into a fully loaded Pillow image.

    Raises:
        ValueError: If the payload cannot be decoded as an image
    """
    raw = to_image_bytes(image_data)
    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (OSError, Image.DecompressionBombError) as e:
        raise ValueError(f"Cannot decode image ({len(raw)} bytes): {e}")
    return SourceImage(image=image, format=image.format or DEFAULT_FORMAT)


def encode_image(image: Image.Image, fmt: str = DEFAULT_FORMAT) -> bytes:
    """Encode a Pillow image in the given container format."""
    fmt = (fmt or DEFAULT_FORMAT).upper()
    allowed = _FORMAT_MODES.get(fmt)
    if allowed is not None and image.mode not in allowed:
        image = image.convert('RGB' if fmt == 'JPEG' else 'RGBA')
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()
