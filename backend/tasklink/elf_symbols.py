"""
Symbol Resolver - Single responsibility: map a symbol name to its load address

Parses a linked ELF executable with pyelftools and walks its `.symtab`
in table order. Names are compared exactly: no demangling, no prefix
matching. When several entries share a name (weak/local duplicates) the
first one in table order wins.
"""

import io
from pathlib import Path
from typing import Iterator, Tuple, Union

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import SymbolTableSection

from .errors import ImageUnreadable, MalformedImage, SymbolNotFound
from .logger import log_elf
from .types import ImageInfo, ProgramImage


SYMBOL_TABLE_SECTION = ".symtab"


def read_image(path: Union[str, Path]) -> ProgramImage:
    """Read an executable image from disk"""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ImageUnreadable(f"failed to read {path}: {e}") from e
    return ProgramImage(path=path, data=data)


def _open_elf(data: bytes) -> ELFFile:
    try:
        return ELFFile(io.BytesIO(data))
    except ELFError as e:
        raise MalformedImage(f"failed to parse ELF image: {e}") from e


def _symbol_table(elf: ELFFile, name: str) -> SymbolTableSection:
    try:
        section = elf.get_section_by_name(SYMBOL_TABLE_SECTION)
    except ELFError as e:
        raise MalformedImage(f"failed to read section headers: {e}") from e
    if not isinstance(section, SymbolTableSection):
        raise SymbolNotFound(name, "cannot be resolved: image has no symbol table")
    return section


def describe_image(data: bytes) -> ImageInfo:
    """Summarize the ELF header (type, machine, entry point)."""
    elf = _open_elf(data)
    header = elf.header
    return ImageInfo(
        elf_type=str(header["e_type"]),
        machine=str(header["e_machine"]),
        entry=header["e_entry"],
        elf_class=elf.elfclass,
        little_endian=elf.little_endian,
    )


def iter_symbols(data: bytes) -> Iterator[Tuple[str, int]]:
    """Yield (name, value) for every symbol table entry, in table order."""
    elf = _open_elf(data)
    table = _symbol_table(elf, "<any>")
    try:
        for symbol in table.iter_symbols():
            yield symbol.name, symbol["st_value"]
    except ELFError as e:
        raise MalformedImage(f"failed to read symbol table: {e}") from e


def resolve_symbol(data: bytes, name: str) -> int:
    """
    Return the load address of the first symbol named `name`.

    Raises:
        MalformedImage: the bytes are not a parseable ELF file.
        SymbolNotFound: there is no symbol table, or no entry matches.
    """
    elf = _open_elf(data)
    table = _symbol_table(elf, name)
    try:
        for symbol in table.iter_symbols():
            if symbol.name == name:
                address = symbol["st_value"]
                log_elf(f"symbol {name} at 0x{address:X}")
                return address
    except ELFError as e:
        raise MalformedImage(f"failed to read symbol table: {e}") from e
    raise SymbolNotFound(name)
