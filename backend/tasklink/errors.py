"""
Error taxonomy.

Fatal errors (ImageUnreadable, SymbolNotFound, DeviceOpenFailed) abort the
command before any byte reaches the device. TransientIoError is raised for
read/write failures on an already open port and is retried, then reported
through the transport's error channel.
"""


class TaskLinkError(Exception):
    """Base class for all tasklink errors."""


class ImageUnreadable(TaskLinkError):
    """The program image could not be read or parsed."""


class MalformedImage(ImageUnreadable):
    """The image bytes are not a parseable ELF executable."""


class SymbolNotFound(TaskLinkError):
    """No symbol table entry carries the requested name."""

    def __init__(self, name: str, reason: str = "not in symbol table"):
        self.name = name
        self.reason = reason
        super().__init__(f"symbol {name!r} {reason}")


class DeviceOpenFailed(TaskLinkError, ConnectionError):
    """The serial device could not be opened."""


class TransientIoError(TaskLinkError):
    """A single byte read or write failed on an open connection."""

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class FrameDecodeError(TaskLinkError, ValueError):
    """A byte sequence could not be decoded as a frame."""
