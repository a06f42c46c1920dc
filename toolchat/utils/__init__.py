from .ansi import (
    Ansi,
    USER_LABEL,
    ASSISTANT_LABEL,
    SYSTEM_LABEL,
    ERROR_LABEL,
    WARNING_LABEL,
    ROLE_LABELS,
    console,
)
from .spinner import Spinner

__all__ = [
    "Ansi",
    "USER_LABEL",
    "ASSISTANT_LABEL",
    "SYSTEM_LABEL",
    "ERROR_LABEL",
    "WARNING_LABEL",
    "ROLE_LABELS",
    "console",
    "Spinner",
]
