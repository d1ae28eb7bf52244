"""
Caller-facing request models.
"""

from typing import Optional, List, Dict, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .attachments import NormalizedAttachment


class Message(BaseModel):
    """One conversation turn. Order in a conversation is significant."""
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"]
    content: str = ""


class CustomProviderConfig(BaseModel):
    """Caller-supplied OpenAI-compatible endpoint."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None


class RepoFile(BaseModel):
    path: str
    content: str = ""


class RepoContext(BaseModel):
    """Repository the conversation is about."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    repo_full_name: str
    structure: Optional[str] = None
    files: List[RepoFile] = Field(default_factory=list)


class ChatRequest(BaseModel):
    """
    Chat request accepted by the gateway.

    Attachments are kept as raw dicts; the attachment normalizer decides
    which of them survive.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    messages: List[Message] = Field(default_factory=list)
    model: str = ""
    provider: Optional[str] = None
    attachments: Optional[List[Any]] = None
    system_context: Optional[str] = None
    custom_config: Optional[CustomProviderConfig] = None
    repo_context: Optional[RepoContext] = None
    mode: Optional[str] = None
    skill_mode: bool = False


class PromptInput(BaseModel):
    """Everything a payload builder needs, after normalization."""
    model_config = ConfigDict(frozen=True)

    system_prompt: Optional[str] = None
    messages: List[Message] = Field(default_factory=list)
    attachments: List[NormalizedAttachment] = Field(default_factory=list)

    def without_images(self) -> "PromptInput":
        """Copy with image attachments removed."""
        return self.model_copy(update={
            "attachments": [a for a in self.attachments if a.kind != "image"],
        })

    def message_dicts(self) -> List[Dict[str, str]]:
        """Fresh role/content dicts so builders never touch the originals."""
        return [{"role": m.role, "content": m.content} for m in self.messages]
