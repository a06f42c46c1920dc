"""Provider-neutral chat message value type."""

from dataclasses import dataclass
from typing import Dict

SYSTEM_ROLE = "system"
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
ROLES = (SYSTEM_ROLE, USER_ROLE, ASSISTANT_ROLE)


@dataclass(frozen=True)
class Message:
    """A single ``{role, content}`` entry of a conversation.

    Messages carry no identity beyond their position in the history, so two
    messages with the same role and content compare equal.
    """

    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}
