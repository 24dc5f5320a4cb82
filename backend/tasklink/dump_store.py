"""
Dump Store - Single responsibility: persist the last frame for diagnostics
"""

from pathlib import Path
from typing import Optional, Protocol, Union

from .logger import log_ok, log_warn


DEFAULT_DUMP_PATH = Path("elf.dump")


class IDumpStore(Protocol):
    """Interface for diagnostic dump storage"""

    def save(self, data: bytes) -> bool: ...
    def load(self) -> bytes: ...


class DumpStore:
    """
    Writes the exact bytes of the most recent frame to a fixed file.

    Overwritten on every save, never appended. A failed save is logged
    and reported through the return value; it never stops delivery.
    """

    def __init__(self, file_path: Optional[Union[str, Path]] = None):
        self.file_path = Path(file_path) if file_path else DEFAULT_DUMP_PATH

    def save(self, data: bytes) -> bool:
        """Overwrite the dump with `data`"""
        try:
            with open(self.file_path, "wb") as f:
                f.write(data)
        except OSError as e:
            log_warn(f"Could not write dump {self.file_path}", {"error": str(e)})
            return False
        log_ok(f"Written {len(data)} bytes to {self.file_path}")
        return True

    def load(self) -> bytes:
        """Read the dump back"""
        return self.file_path.read_bytes()
