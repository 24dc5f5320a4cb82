"""
Structured logging for tasklink.

Prefixes:
  ⚡ CRITICAL - Fatal errors, aborted commands
  ⚠️  WARN     - Transient I/O failures, dump write failures
  ✓  OK       - Success confirmations
  ℹ  INFO     - General progress
  ⬡  SERIAL   - Port open/close and raw transfers
  ▣  FRAME    - Encoded frames
  ◈  ELF      - Image header and symbol resolution
"""

from enum import Enum
from typing import Optional
from datetime import datetime


class LogLevel(Enum):
    CRITICAL = "⚡ CRITICAL"
    WARN = "⚠️  WARN    "
    OK = "✓  OK      "
    INFO = "ℹ  INFO    "
    SERIAL = "⬡  SERIAL  "
    FRAME = "▣  FRAME   "
    ELF = "◈  ELF     "


def log(level: LogLevel, message: str, data: Optional[dict] = None):
    """Log a message with structured prefix."""
    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    prefix = level.value

    line = f"[{timestamp}] {prefix} | {message}"
    if data:
        line += f" | {data}"

    print(line, flush=True)


# Convenience functions
def log_critical(msg: str, data: Optional[dict] = None):
    log(LogLevel.CRITICAL, msg, data)

def log_warn(msg: str, data: Optional[dict] = None):
    log(LogLevel.WARN, msg, data)

def log_ok(msg: str, data: Optional[dict] = None):
    log(LogLevel.OK, msg, data)

def log_info(msg: str, data: Optional[dict] = None):
    log(LogLevel.INFO, msg, data)

def log_serial(direction: str, data: str):
    """Log serial events. direction is '>>>' (send), '<<<' (recv) or '---'"""
    log(LogLevel.SERIAL, f"{direction} {data}")

def log_frame(msg: str, data: Optional[dict] = None):
    log(LogLevel.FRAME, msg, data)

def log_elf(msg: str, data: Optional[dict] = None):
    log(LogLevel.ELF, msg, data)
