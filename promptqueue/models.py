from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

SCHEMA_VERSION = 1


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Role(Enum):
    USER = "user"
    MODEL = "model"
    ERROR = "error"


class PromptKind(Enum):
    SYSTEM = "system"
    USER_INPUT = "user-input"
    HISTORY = "history"
    MODEL_ROLE = "model-role"
    USER_ROLE = "user-role"
    MAIN = "main"
    PLAIN = "plain"

    @property
    def is_special(self) -> bool:
        return self is not PromptKind.PLAIN


# Boolean flags used by presets exported before the kind field existed
LEGACY_KIND_FLAGS = {
    "isSystem": PromptKind.SYSTEM,
    "isUserInput": PromptKind.USER_INPUT,
    "isHistory": PromptKind.HISTORY,
    "isModelRole": PromptKind.MODEL_ROLE,
    "isUserRole": PromptKind.USER_ROLE,
    "isMainPrompt": PromptKind.MAIN,
}


def _segments(raw) -> list[str]:
    """Normalize stored content into a list of text segments."""
    if raw is None:
        return [""]
    if isinstance(raw, str):
        return [raw]
    segments = []
    for part in raw:
        if isinstance(part, dict):
            segments.append(str(part.get("text", "")))
        else:
            segments.append(str(part))
    return segments or [""]


@dataclass
class PromptEntry:
    id: str
    name: str
    kind: PromptKind = PromptKind.PLAIN
    role: Role = Role.USER
    content: list[str] = field(default_factory=lambda: [""])
    enabled: bool = True
    queued: bool = True
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @property
    def text(self) -> str:
        return "".join(self.content)

    def copy(self, **changes) -> PromptEntry:
        changes.setdefault("content", list(self.content))
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "content": [{"text": segment} for segment in self.content],
            "kind": self.kind.value,
            "enabled": self.enabled,
            "queued": self.queued,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PromptEntry:
        if "kind" in data:
            kind = PromptKind(data["kind"])
        else:
            kind = next(
                (k for flag, k in LEGACY_KIND_FLAGS.items() if data.get(flag)),
                PromptKind.PLAIN,
            )

        content = data["content"] if "content" in data else data.get("parts")
        created = data.get("createdAt") or data.get("timestamp") or utc_now()

        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            kind=kind,
            role=Role(data.get("role", Role.USER.value)),
            content=_segments(content),
            enabled=bool(data.get("enabled", True)),
            queued=bool(data.get("queued", data.get("isInQueue", True))),
            created_at=created,
            updated_at=data.get("updatedAt") or created,
        )

    @classmethod
    def custom(cls, name: str, text: str, role: Role = Role.USER) -> PromptEntry:
        """Create a user-authored prompt with a generated id."""
        return cls(id=str(uuid4()), name=name, role=role, content=[text])


@dataclass
class Persona:
    """A selected model-side or user-side character."""

    name: str
    description: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict | None) -> Persona | None:
        if not data:
            return None
        return cls(name=data.get("name", ""), description=data.get("description", ""))


@dataclass
class Turn:
    """One prior conversation turn."""

    role: str
    text: str

    def to_dict(self) -> dict:
        return {"role": self.role, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> Turn:
        if "text" in data:
            text = str(data["text"])
        else:
            text = "".join(_segments(data.get("parts")))
        return cls(role=str(data.get("role", Role.USER.value)), text=text)


@dataclass
class Message:
    """A single formatted message handed to the model transport."""

    role: str
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class PromptPreset:
    name: str
    description: str = ""
    author: str = ""
    prompts: list[PromptEntry] = field(default_factory=list)
    prompts_list: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    schema_version: int = SCHEMA_VERSION

    def prompt(self, prompt_id: str) -> PromptEntry | None:
        return next((p for p in self.prompts if p.id == prompt_id), None)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "author": self.author,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "prompts": [p.to_dict() for p in self.prompts],
            "promptsList": list(self.prompts_list),
            "schemaVersion": self.schema_version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PromptPreset:
        return cls(
            id=data.get("id") or str(uuid4()),
            name=data.get("name", ""),
            description=data.get("description") or "",
            author=data.get("author") or "",
            created_at=data.get("createdAt") or utc_now(),
            updated_at=data.get("updatedAt") or data.get("createdAt") or utc_now(),
            prompts=[PromptEntry.from_dict(p) for p in data.get("prompts", [])],
            prompts_list=[str(i) for i in data.get("promptsList", [])],
            schema_version=int(data.get("schemaVersion", SCHEMA_VERSION)),
        )
