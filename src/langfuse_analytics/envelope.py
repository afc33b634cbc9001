"""The uniform response shape returned for every tool invocation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TextBlock:
    text: str
    type: str = "text"

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class Envelope:
    """``{content: [{type: "text", text}], isError}``; nothing else is ever returned."""

    content: tuple[TextBlock, ...] = field(default_factory=tuple)
    is_error: bool = False

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.content)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": [block.to_dict() for block in self.content],
            "isError": self.is_error,
        }


def render(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, indent=2, default=str)


def ok(payload: Any) -> Envelope:
    """Success envelope; non-string payloads are rendered as indented JSON."""
    return Envelope(content=(TextBlock(render(payload)),), is_error=False)


def err(message: str) -> Envelope:
    return Envelope(content=(TextBlock(f"Error: {message}"),), is_error=True)
