# image_utils.py
import base64
import logging
import re
from dataclasses import dataclass
from io import BytesIO

from PIL import Image

logger = logging.getLogger(__name__)

JPEG_MIME_TYPE = "image/jpeg"
JPEG_QUALITY = 80

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w=-]+)*;base64,", re.IGNORECASE)


@dataclass(frozen=True)
class EncodedImage:
    """An image payload together with its MIME type"""
    mime_type: str
    data: bytes

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    @classmethod
    def from_data_uri(cls, data_uri: str) -> "EncodedImage":
        """Build an image from a ``data:<mime>;base64,<payload>`` string (or bare base64)"""
        match = _DATA_URI_RE.match(data_uri)
        mime_type = (match.group("mime") if match else None) or JPEG_MIME_TYPE
        return cls(mime_type=mime_type, data=base64_to_bytes(data_uri))


def strip_data_uri_prefix(image_base64: str) -> str:
    """Return only the base64 payload of a data URI; bare base64 passes through."""
    return _DATA_URI_RE.sub("", image_base64, count=1)


def base64_to_bytes(image_base64: str) -> bytes:
    return base64.b64decode(strip_data_uri_prefix(image_base64), validate=True)


def encode_jpeg(image: Image.Image, quality: int = JPEG_QUALITY) -> EncodedImage:
    """Re-encode a Pillow image as JPEG at the given quality."""
    image = image.convert("RGB")
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    logger.debug(f"Encoded {image.size[0]}x{image.size[1]} image as JPEG ({buffer.tell()} bytes)")
    return EncodedImage(mime_type=JPEG_MIME_TYPE, data=buffer.getvalue())
