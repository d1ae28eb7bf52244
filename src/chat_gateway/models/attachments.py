"""
Attachment models and normalization.

Raw attachment descriptors arrive from the caller as loosely shaped dicts.
They are validated into one of three closed variants; anything that fails
validation is dropped rather than reported.
"""

import logging
import math
import re
from typing import Optional, List, Dict, Any, Union, Literal, Annotated

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

MAX_ATTACHMENTS = 5
MAX_TEXT_CHARS = 60_000
MAX_IMAGE_DATA_URL_CHARS = 5_000_000
MAX_TEXT_FILE_BYTES = 512 * 1024
MAX_LABEL_CHARS = 200

DEFAULT_NAME = "attachment"
DEFAULT_MIME_TYPE = "application/octet-stream"

DATA_URL_PATTERN = re.compile(r"data:([^;]+);base64,([a-z0-9+/=]+)", re.IGNORECASE)


class _Attachment(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    mime_type: str


class ImageAttachment(_Attachment):
    """Image carried both as a data URL and as bare base64."""
    kind: Literal["image"] = "image"
    data_url: str
    base64: str


class TextAttachment(_Attachment):
    """Text file content, capped at MAX_TEXT_CHARS."""
    kind: Literal["text"] = "text"
    content: str = ""
    truncated: bool = False
    size: Optional[int] = None


class BinaryAttachment(_Attachment):
    """Binary file described by metadata only."""
    kind: Literal["binary"] = "binary"
    size: int = 0


NormalizedAttachment = Annotated[
    Union[ImageAttachment, TextAttachment, BinaryAttachment],
    Field(discriminator="kind"),
]


def format_bytes(size: int) -> str:
    """Human readable byte count (e.g. 1.5 MB)."""
    if not size or size < 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    unit_index = 0
    while value >= 1024 and unit_index < len(units) - 1:
        value /= 1024
        unit_index += 1
    precision = 0 if unit_index == 0 else (1 if value < 10 else 0)
    return f"{value:.{precision}f} {units[unit_index]}"


def _label(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()[:MAX_LABEL_CHARS]
    return default


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _normalize_image(raw: Dict[str, Any], name: str, mime_type: str) -> Optional[ImageAttachment]:
    data_url = raw.get("dataUrl")
    if not isinstance(data_url, str) or not data_url:
        return None
    if len(data_url) > MAX_IMAGE_DATA_URL_CHARS:
        return None

    match = DATA_URL_PATTERN.fullmatch(data_url)
    if not match:
        return None

    data_mime_type = match.group(1).strip() or mime_type
    if not data_mime_type.startswith("image/"):
        return None

    return ImageAttachment(
        name=name,
        mime_type=data_mime_type,
        data_url=data_url,
        base64=match.group(2),
    )


def _normalize_text(raw: Dict[str, Any], name: str, mime_type: str) -> TextAttachment:
    size = _number(raw.get("size"))
    if size is not None and size > MAX_TEXT_FILE_BYTES:
        return TextAttachment(
            name=name,
            mime_type=mime_type,
            content=(
                f"File is {format_bytes(int(size))}; omitted because it exceeds "
                f"the {format_bytes(MAX_TEXT_FILE_BYTES)} limit."
            ),
            truncated=True,
            size=int(size),
        )

    source = raw.get("content")
    if not isinstance(source, str):
        source = ""

    return TextAttachment(
        name=name,
        mime_type=mime_type,
        content=source[:MAX_TEXT_CHARS],
        truncated=bool(raw.get("truncated")) or len(source) > MAX_TEXT_CHARS,
        size=int(size) if size is not None else None,
    )


def _normalize_binary(raw: Dict[str, Any], name: str, mime_type: str) -> BinaryAttachment:
    size = _number(raw.get("size"))
    return BinaryAttachment(
        name=name,
        mime_type=mime_type,
        size=max(0, int(size)) if size is not None else 0,
    )


def normalize_attachments(value: Any) -> List[NormalizedAttachment]:
    """
    Validate raw attachment descriptors.

    Only the first MAX_ATTACHMENTS entries are considered. Entries that fail
    validation are dropped and logged; the caller is not told which.
    Already-normalized attachments pass through unchanged.

    Args:
        value: List of dicts (or attachment models) from the caller

    Returns:
        At most MAX_ATTACHMENTS normalized attachments, in input order
    """
    if not isinstance(value, list):
        return []

    if len(value) > MAX_ATTACHMENTS:
        logger.warning(
            f"Dropping {len(value) - MAX_ATTACHMENTS} attachment(s) beyond the limit of {MAX_ATTACHMENTS}"
        )

    normalized: List[NormalizedAttachment] = []
    for index, raw in enumerate(value[:MAX_ATTACHMENTS]):
        if isinstance(raw, BaseModel):
            raw = raw.model_dump(by_alias=True)
        if not isinstance(raw, dict):
            logger.warning(f"Dropping attachment {index}: not an object")
            continue

        kind = raw.get("kind")
        name = _label(raw.get("name"), DEFAULT_NAME)
        mime_type = _label(raw.get("mimeType"), DEFAULT_MIME_TYPE)

        if kind == "image":
            image = _normalize_image(raw, name, mime_type)
            if image is None:
                logger.warning(f"Dropping attachment {index} ({name}): invalid or oversized image data URL")
                continue
            normalized.append(image)
        elif kind == "text":
            normalized.append(_normalize_text(raw, name, mime_type))
        elif kind == "binary":
            normalized.append(_normalize_binary(raw, name, mime_type))
        else:
            logger.warning(f"Dropping attachment {index} ({name}): unknown kind {kind!r}")

    return normalized
