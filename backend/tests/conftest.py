"""Pytest configuration and shared fixtures."""

import struct
import sys
from pathlib import Path
from typing import Iterable, Tuple

import pytest

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from tasklink.serial_transport import RetryPolicy, SerialConfig, SerialTransport
from tasklink.transport import FakeSerialPort


ELF_HEADER = struct.Struct("<16sHHIQQQIHHHHHH")
SECTION_HEADER = struct.Struct("<IIQQQQIIQQ")
SYMBOL = struct.Struct("<IBBHQQ")

ET_EXEC = 2
EM_AARCH64 = 0xB7
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHN_ABS = 0xFFF1
GLOBAL_FUNC = (1 << 4) | 2


def build_elf(
    symbols: Iterable[Tuple[str, int]] = (),
    with_symtab: bool = True,
    entry: int = 0x20001000,
) -> bytes:
    """
    Minimal little-endian ELF64 executable.

    Sections: null, [.symtab, .strtab,] .shstrtab. Every symbol is an
    absolute global function so no other sections are needed.
    """
    if with_symtab:
        shstrtab = b"\0.symtab\0.strtab\0.shstrtab\0"
        strtab = bytearray(b"\0")
        symtab = bytearray(SYMBOL.size)  # null symbol
        for name, value in symbols:
            offset = len(strtab)
            strtab += name.encode() + b"\0"
            symtab += SYMBOL.pack(offset, GLOBAL_FUNC, 0, SHN_ABS, value, 0)
        blobs = [bytes(symtab), bytes(strtab), shstrtab]
    else:
        shstrtab = b"\0.shstrtab\0"
        blobs = [shstrtab]

    offsets = []
    cursor = ELF_HEADER.size
    for blob in blobs:
        offsets.append(cursor)
        cursor += len(blob)
    shoff = (cursor + 7) & ~7

    sections = [bytes(SECTION_HEADER.size)]
    if with_symtab:
        sections.append(SECTION_HEADER.pack(1, SHT_SYMTAB, 0, 0, offsets[0], len(blobs[0]), 2, 1, 8, SYMBOL.size))
        sections.append(SECTION_HEADER.pack(9, SHT_STRTAB, 0, 0, offsets[1], len(blobs[1]), 0, 0, 1, 0))
        sections.append(SECTION_HEADER.pack(17, SHT_STRTAB, 0, 0, offsets[2], len(blobs[2]), 0, 0, 1, 0))
    else:
        sections.append(SECTION_HEADER.pack(1, SHT_STRTAB, 0, 0, offsets[0], len(blobs[0]), 0, 0, 1, 0))

    ident = b"\x7fELF" + bytes((2, 1, 1, 0)) + bytes(8)
    header = ELF_HEADER.pack(
        ident, ET_EXEC, EM_AARCH64, 1, entry, 0, shoff, 0,
        ELF_HEADER.size, 0, 0, SECTION_HEADER.size, len(sections), len(sections) - 1,
    )
    body = header + b"".join(blobs)
    body += bytes(shoff - len(body))
    return body + b"".join(sections)


@pytest.fixture
def make_elf():
    """Factory for in-memory ELF images."""
    return build_elf


@pytest.fixture
def elf_file(tmp_path):
    """ELF image on disk exporting _start and main."""
    path = tmp_path / "prog.elf"
    path.write_bytes(build_elf([("_start", 0x20001000), ("main", 0x20001040)]))
    return path


@pytest.fixture
def fast_config() -> SerialConfig:
    """Serial config with no warm-up and tiny backoffs."""
    return SerialConfig(
        connect_delay=0,
        poll_interval=0.001,
        retry=RetryPolicy(max_attempts=3, initial_backoff=0.001, max_backoff=0.005),
    )


@pytest.fixture
def fake_port() -> FakeSerialPort:
    return FakeSerialPort()


@pytest.fixture
def connected_transport(fast_config, fake_port):
    """SerialTransport connected to the in-memory port."""
    transport = SerialTransport(fast_config, serial_factory=lambda *a, **kw: fake_port)
    transport.connect("fake")
    yield transport
    transport.disconnect()
