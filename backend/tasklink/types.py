"""
Core immutable types for tasklink.

All types are frozen dataclasses to prevent accidental mutation.
A command is built once from CLI input and consumed once by the
controller, so equal commands always encode to equal frames.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union


TASK_ID_WIDTH = 8
TASK_ID_PAD = b" "
MAX_ADDRESS = 2 ** 64 - 1


# =============================================================================
# Task identifiers & addresses
# =============================================================================


def normalize_task_id(text: str) -> bytes:
    """
    Canonical 8-byte wire form of a task identifier.

    Truncated to 8 characters, then to 8 bytes if the UTF-8 encoding is
    wider, then right-padded with ASCII spaces.
    """
    raw = text[:TASK_ID_WIDTH].encode("utf-8")[:TASK_ID_WIDTH]
    return raw.ljust(TASK_ID_WIDTH, TASK_ID_PAD)


def validate_address(value: int) -> int:
    """Check that a symbol address fits an unsigned 64-bit field."""
    if not 0 <= value <= MAX_ADDRESS:
        raise ValueError(f"address 0x{value:X} does not fit in 64 bits")
    return value


# =============================================================================
# Program images
# =============================================================================


@dataclass(frozen=True)
class ProgramImage:
    """Raw executable bytes, carried verbatim in the Load frame."""
    path: Path
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ImageInfo:
    """ELF header summary, printed before a load."""
    elf_type: str
    machine: str
    entry: int
    elf_class: int
    little_endian: bool

    def to_dict(self) -> dict:
        return {
            "type": self.elf_type,
            "machine": self.machine,
            "entry": f"0x{self.entry:X}",
            "class": self.elf_class,
            "endian": "little" if self.little_endian else "big",
        }


# =============================================================================
# Commands
# =============================================================================


@dataclass(frozen=True)
class LoadCommand:
    """Load an executable image and start it under a task id."""
    image_path: Path
    symbol_name: str
    task_id: str

    kind = "load"

    def __post_init__(self):
        if not str(self.image_path):
            raise ValueError("LoadCommand requires an image path")
        if not self.symbol_name:
            raise ValueError("LoadCommand requires a symbol name")


@dataclass(frozen=True)
class KillCommand:
    """Stop a running task."""
    task_id: str

    kind = "kill"


@dataclass(frozen=True)
class RelaunchCommand:
    """Restart a previously loaded task."""
    task_id: str

    kind = "relaunch"


@dataclass(frozen=True)
class ListCommand:
    """Ask the supervisor to list its tasks."""

    kind = "list"


@dataclass(frozen=True)
class LogAttachCommand:
    """Produces no frame; only the drain runs."""

    kind = "log"


AnyCommand = Union[
    LoadCommand,
    KillCommand,
    RelaunchCommand,
    ListCommand,
    LogAttachCommand,
]
