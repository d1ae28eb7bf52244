"""
Chat gateway data models.
"""

from .backend import BackendName, ResolvedModel, PREFIXABLE_BACKENDS
from .request import ChatRequest, Message, CustomProviderConfig, PromptInput, RepoContext, RepoFile
from .attachments import (
    ImageAttachment,
    TextAttachment,
    BinaryAttachment,
    NormalizedAttachment,
    normalize_attachments,
)
from .events import (
    StreamEvent,
    TextEvent,
    RateLimitEvent,
    ErrorEvent,
    DoneEvent,
    RateLimitSnapshot,
    RateLimitWindow,
)

__all__ = [
    "BackendName",
    "ResolvedModel",
    "PREFIXABLE_BACKENDS",
    "ChatRequest",
    "Message",
    "CustomProviderConfig",
    "PromptInput",
    "RepoContext",
    "RepoFile",
    "ImageAttachment",
    "TextAttachment",
    "BinaryAttachment",
    "NormalizedAttachment",
    "normalize_attachments",
    "StreamEvent",
    "TextEvent",
    "RateLimitEvent",
    "ErrorEvent",
    "DoneEvent",
    "RateLimitSnapshot",
    "RateLimitWindow",
]
