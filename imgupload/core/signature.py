# Magic-byte detection for the image formats we accept.

from enum import Enum
from typing import Optional

# how many leading bytes a buffer needs before we try to classify it
HEADER_BYTES_TO_READ = 12


class ImageFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"


SIGNATURES = {
    ImageFormat.PNG: b"\x89PNG\r\n\x1a\n",     # 89 50 4E 47 0D 0A 1A 0A
    ImageFormat.JPEG: b"\xff\xd8\xff",
}
SIGNATURE_LENGTH = max(len(s) for s in SIGNATURES.values())

# what a complete file of each format ends with
TRAILERS = {
    ImageFormat.PNG: b"IEND\xaeB`\x82",        # 49 45 4E 44 AE 42 60 82
    ImageFormat.JPEG: b"\xff\xd9",              # EOI marker
}


def detect(buffer: Optional[bytes], min_length: int = HEADER_BYTES_TO_READ) -> Optional[ImageFormat]:
    # Returns None for anything we don't recognize, never raises.
    if not buffer or len(buffer) < min_length:
        return None
    # compare against the whole signature even when min_length is shorter
    head = bytes(buffer[:SIGNATURE_LENGTH])
    for fmt, signature in SIGNATURES.items():
        if head.startswith(signature):
            return fmt
    return None


def has_trailer(buffer: Optional[bytes], fmt: ImageFormat) -> bool:
    trailer = TRAILERS[fmt]
    if not buffer or len(buffer) < len(trailer):
        return False
    return bytes(buffer[-len(trailer):]) == trailer
