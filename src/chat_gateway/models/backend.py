"""
Backend identity models.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BackendName(str, Enum):
    """Closed set of upstream backends the gateway can talk to."""
    CLAUDE = "claude"
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"
    GROQ = "groq"
    GEMINI = "gemini"
    OPENCODEZEN = "opencodezen"
    FIREWORKS = "fireworks"
    ZAI = "zai"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["BackendName"]:
        """Return the matching backend or None for unknown values."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None


# Backends that may appear as "<backend>:<model>" in a model reference.
PREFIXABLE_BACKENDS = frozenset(b for b in BackendName if b is not BackendName.CUSTOM)


class ResolvedModel(BaseModel):
    """Concrete backend and backend model id for one request."""
    model_config = ConfigDict(frozen=True)

    backend: BackendName
    backend_model_id: str = Field(..., min_length=1)

    def __str__(self) -> str:
        return f"{self.backend.value}:{self.backend_model_id}"
