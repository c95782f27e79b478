"""
Domain layer package housing the value types shared by the services.
"""

from typing import Final

from .models import (
    ConflictedPart,
    FileInfo,
    FileInfoExtra,
    PartOutcome,
    Parts,
    ValidPart,
    WalkSignal,
)

# Separator used to infer a hierarchy from flat keys.
SEPARATOR: Final[str] = "/"

__all__ = [
    "SEPARATOR",
    "ConflictedPart",
    "FileInfo",
    "FileInfoExtra",
    "PartOutcome",
    "Parts",
    "ValidPart",
    "WalkSignal",
]
