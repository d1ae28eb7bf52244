"""
Integration tests for attachment normalization.

Tests:
- Count limit and ordering
- Text truncation and oversize placeholders
- Image data URL validation
- Binary metadata
"""

from chat_gateway.models.attachments import (
    MAX_ATTACHMENTS,
    MAX_TEXT_CHARS,
    MAX_TEXT_FILE_BYTES,
    ImageAttachment,
    TextAttachment,
    BinaryAttachment,
    format_bytes,
    normalize_attachments,
)

PNG_DATA_URL = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUg=="


def text_attachment(name="notes.txt", content="hello", **extra):
    return {"kind": "text", "name": name, "mimeType": "text/plain", "content": content, **extra}


class TestAttachmentLimits:
    """Test count limits and input handling."""

    def test_more_than_limit_keeps_first_five(self):
        """Only the first five entries survive, in order."""
        raw = [text_attachment(name=f"file{i}.txt") for i in range(8)]
        result = normalize_attachments(raw)
        assert len(result) == MAX_ATTACHMENTS
        assert [a.name for a in result] == [f"file{i}.txt" for i in range(5)]

    def test_invalid_entries_dropped(self):
        """Unknown kinds and non-objects are dropped silently."""
        raw = [
            "not an object",
            {"kind": "video", "name": "clip.mp4"},
            text_attachment(),
        ]
        result = normalize_attachments(raw)
        assert len(result) == 1
        assert isinstance(result[0], TextAttachment)

    def test_non_list_input(self):
        """Anything but a list yields nothing."""
        assert normalize_attachments(None) == []
        assert normalize_attachments({"kind": "text"}) == []

    def test_normalization_is_idempotent(self):
        """Normalizing normalized attachments changes nothing."""
        raw = [
            text_attachment(),
            {"kind": "image", "name": "pic.png", "mimeType": "image/png", "dataUrl": PNG_DATA_URL},
            {"kind": "binary", "name": "blob.bin", "mimeType": "application/zip", "size": 2048},
        ]
        once = normalize_attachments(raw)
        twice = normalize_attachments(once)
        assert once == twice

    def test_name_and_mime_defaults(self):
        """Missing labels get defaults; long labels are capped."""
        result = normalize_attachments([{"kind": "binary", "name": "x" * 500}])
        assert len(result[0].name) == 200
        assert result[0].mime_type == "application/octet-stream"


class TestTextAttachments:
    """Test text attachment handling."""

    def test_long_text_truncated(self):
        """Content over the cap is cut to exactly the cap."""
        result = normalize_attachments([text_attachment(content="a" * (MAX_TEXT_CHARS + 10))])
        assert result[0].truncated is True
        assert len(result[0].content) == MAX_TEXT_CHARS

    def test_text_at_cap_unchanged(self):
        """Content at the cap is kept whole."""
        content = "b" * MAX_TEXT_CHARS
        result = normalize_attachments([text_attachment(content=content)])
        assert result[0].truncated is False
        assert result[0].content == content

    def test_caller_truncated_flag_kept(self):
        """A caller that already truncated stays marked truncated."""
        result = normalize_attachments([text_attachment(truncated=True)])
        assert result[0].truncated is True

    def test_oversized_file_replaced_by_placeholder(self):
        """Files over the size ceiling are described, not included."""
        result = normalize_attachments([text_attachment(content="ignored", size=MAX_TEXT_FILE_BYTES + 1)])
        attachment = result[0]
        assert attachment.truncated is True
        assert attachment.content.startswith("File is ")
        assert "exceeds the 512 KB limit" in attachment.content
        assert "ignored" not in attachment.content

    def test_missing_content_is_empty(self):
        """Non-string content becomes empty text."""
        result = normalize_attachments([{"kind": "text", "name": "a.txt", "content": 42}])
        assert result[0].content == ""


class TestImageAttachments:
    """Test image data URL validation."""

    def test_valid_image(self):
        """The base64 payload is split out of the data URL."""
        result = normalize_attachments([
            {"kind": "image", "name": "pic.png", "mimeType": "image/png", "dataUrl": PNG_DATA_URL},
        ])
        image = result[0]
        assert isinstance(image, ImageAttachment)
        assert image.base64 == "iVBORw0KGgoAAAANSUhEUg=="
        assert image.mime_type == "image/png"

    def test_non_image_data_url_dropped(self):
        """Data URLs of other media types are rejected."""
        result = normalize_attachments([
            {"kind": "image", "name": "doc", "dataUrl": "data:application/pdf;base64,JVBERi0="},
        ])
        assert result == []

    def test_malformed_data_url_dropped(self):
        """Anything but a base64 data URL is rejected."""
        result = normalize_attachments([
            {"kind": "image", "name": "pic", "dataUrl": "https://example.com/pic.png"},
            {"kind": "image", "name": "pic"},
        ])
        assert result == []

    def test_oversized_image_dropped(self):
        """Data URLs over the length cap are rejected."""
        data_url = "data:image/png;base64," + "A" * 5_000_000
        result = normalize_attachments([{"kind": "image", "name": "big.png", "dataUrl": data_url}])
        assert result == []


class TestBinaryAttachments:
    """Test binary attachment metadata."""

    def test_binary_size(self):
        """Size is kept as an integer."""
        result = normalize_attachments([{"kind": "binary", "name": "a.zip", "size": 1234.0}])
        assert isinstance(result[0], BinaryAttachment)
        assert result[0].size == 1234

    def test_binary_invalid_size(self):
        """Non-numeric and boolean sizes become zero."""
        result = normalize_attachments([
            {"kind": "binary", "name": "a.zip", "size": "big"},
            {"kind": "binary", "name": "b.zip", "size": True},
        ])
        assert [a.size for a in result] == [0, 0]


class TestFormatBytes:
    """Test human readable sizes."""

    def test_format_bytes(self):
        assert format_bytes(0) == "0 B"
        assert format_bytes(512) == "512 B"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(512 * 1024) == "512 KB"
        assert format_bytes(5 * 1024 * 1024) == "5.0 MB"
