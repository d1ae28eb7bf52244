"""
Normalized stream events.

Every backend stream, whatever its wire framing, is translated into these
four event types. A stream always ends with exactly one terminal event
(ErrorEvent or DoneEvent).
"""

from typing import Optional, Union, Literal, Annotated

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .backend import BackendName


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class RateLimitWindow(_WireModel):
    """Quota for one resource. None means the backend did not say."""
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_at: Optional[int] = None  # epoch ms


class RateLimitSnapshot(_WireModel):
    """Quota state disclosed by a backend at one point in time."""
    requests: RateLimitWindow = Field(default_factory=RateLimitWindow)
    tokens: RateLimitWindow = Field(default_factory=RateLimitWindow)
    observed_at: int = Field(..., alias="updatedAt")  # epoch ms
    source: str = ""

    @property
    def disclosed(self) -> bool:
        """True if at least one numeric field was reported."""
        return any(
            value is not None
            for window in (self.requests, self.tokens)
            for value in (window.limit, window.remaining, window.reset_at)
        )


class _Event(_WireModel):

    @property
    def is_terminal(self) -> bool:
        return False

    def to_record(self) -> str:
        """Serialize as one `data:` record of the caller-facing stream."""
        return f"data: {self.model_dump_json(by_alias=True)}\n\n"


class TextEvent(_Event):
    type: Literal["text"] = "text"
    content: str


class RateLimitEvent(_Event):
    type: Literal["rate_limit"] = "rate_limit"
    provider: BackendName
    rate_limit: RateLimitSnapshot


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    error: str

    @property
    def is_terminal(self) -> bool:
        return True


class DoneEvent(_Event):
    type: Literal["done"] = "done"

    @property
    def is_terminal(self) -> bool:
        return True


StreamEvent = Annotated[
    Union[TextEvent, RateLimitEvent, ErrorEvent, DoneEvent],
    Field(discriminator="type"),
]
