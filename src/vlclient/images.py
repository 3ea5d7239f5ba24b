"""Image normalization: every accepted image becomes a data URI."""

import base64
import re

from vlclient.errors import InvalidImageError
from vlclient.types import EncodedImage, ImageInput

DEFAULT_MIME_TYPE = "image/jpeg"

# Leading bytes that identify common image encodings
_MAGIC_NUMBERS: list[tuple[bytes, str]] = [
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
]

# data:[<mediatype>][;param=value]*[;base64],<data>
_DATA_URI_HEADER = re.compile(
    r"data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[\w.+-]+=[\w.+-]+)*)"
    r"(?P<base64>;base64)?,",
    re.IGNORECASE,
)
_BASE64_BODY = re.compile(r"[A-Za-z0-9+/]*={0,2}")


def detect_mime_type(data: bytes) -> str:
    """Guess the image encoding from its leading bytes, assuming JPEG."""
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    for magic, mime_type in _MAGIC_NUMBERS:
        if data.startswith(magic):
            return mime_type
    return DEFAULT_MIME_TYPE


def validate_data_uri(uri: str) -> str:
    """Check that ``uri`` is a syntactically valid image data URI.

    Raises:
        InvalidImageError: If it is not.
    """
    match = _DATA_URI_HEADER.match(uri)
    if match is None:
        raise InvalidImageError("image_url is not a data URI")
    mime_type = match.group("mime")
    if mime_type and not mime_type.lower().startswith("image/"):
        raise InvalidImageError(f"data URI has non-image media type {mime_type}")
    body = uri[match.end() :]
    if not body:
        raise InvalidImageError("data URI has no payload")
    if match.group("base64") and (
        len(body) % 4 != 0 or _BASE64_BODY.fullmatch(body) is None
    ):
        raise InvalidImageError("data URI payload is not valid base64")
    return uri


def encode_image(image: ImageInput) -> str:
    """Normalize an image input to a data URI.

    Raw bytes are base64-encoded with a detected (or assumed JPEG) media
    type. Pre-encoded data URIs pass through unchanged after validation.

    Raises:
        InvalidImageError: For empty bytes, malformed data URIs or
            unsupported input types.
    """
    if isinstance(image, EncodedImage):
        return validate_data_uri(image.image_url)
    if isinstance(image, str):
        return validate_data_uri(image)
    if isinstance(image, (bytes, bytearray, memoryview)):
        data = bytes(image) if not isinstance(image, bytes) else image
        if not data:
            raise InvalidImageError("image bytes are empty")
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{detect_mime_type(data)};base64,{encoded}"
    raise InvalidImageError(f"Unsupported image type: {type(image).__name__}")
