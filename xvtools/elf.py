"""Reading and writing 64-bit little-endian ELF file and program headers."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field
from typing import ClassVar, Iterator

ELF_MAGIC = 0x464C457F  # "\x7FELF" read as a little-endian word
ELF_PROG_LOAD = 1


class ElfFormatError(ValueError):
    """Raised when bytes do not hold a valid ELF structure."""


class ProgFlag(enum.IntFlag):
    """Permission bits of a program header."""

    EXEC = 1
    WRITE = 2
    READ = 4


_ELF_STRUCT = struct.Struct("<I12sHHIQQQIHHHHHH")
_PROG_STRUCT = struct.Struct("<IIQQQQQQ")


@dataclass
class ElfHeader:
    """The ELF file header."""

    SIZE: ClassVar[int] = _ELF_STRUCT.size

    magic: int = ELF_MAGIC
    elf: bytes = field(default=bytes(12))
    type: int = 0
    machine: int = 0
    version: int = 0
    entry: int = 0
    phoff: int = 0
    shoff: int = 0
    flags: int = 0
    ehsize: int = 0
    phentsize: int = 0
    phnum: int = 0
    shentsize: int = 0
    shnum: int = 0
    shstrndx: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "ElfHeader":
        """Parse a header from the start of ``data``."""
        if len(data) < cls.SIZE:
            raise ElfFormatError("truncated ELF header")
        header = cls(*_ELF_STRUCT.unpack_from(data, 0))
        if header.magic != ELF_MAGIC:
            raise ElfFormatError("bad ELF magic")
        return header

    def to_bytes(self) -> bytes:
        """Serialise the header."""
        if len(self.elf) > 12:
            raise ElfFormatError("ident field longer than 12 bytes")
        return _ELF_STRUCT.pack(
            self.magic,
            self.elf,
            self.type,
            self.machine,
            self.version,
            self.entry,
            self.phoff,
            self.shoff,
            self.flags,
            self.ehsize,
            self.phentsize,
            self.phnum,
            self.shentsize,
            self.shnum,
            self.shstrndx,
        )


@dataclass
class ProgramHeader:
    """One program (segment) header."""

    SIZE: ClassVar[int] = _PROG_STRUCT.size

    type: int = 0
    flags: ProgFlag = ProgFlag(0)
    off: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    align: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "ProgramHeader":
        """Parse a program header from the start of ``data``."""
        if len(data) < cls.SIZE:
            raise ElfFormatError("truncated program header")
        fields = list(_PROG_STRUCT.unpack_from(data, 0))
        fields[1] = ProgFlag(fields[1])
        return cls(*fields)

    def to_bytes(self) -> bytes:
        """Serialise the program header."""
        return _PROG_STRUCT.pack(
            self.type,
            int(self.flags),
            self.off,
            self.vaddr,
            self.paddr,
            self.filesz,
            self.memsz,
            self.align,
        )

    def is_loadable(self) -> bool:
        """True for segments that are to be loaded into memory."""
        return self.type == ELF_PROG_LOAD


def program_headers(data: bytes, header: ElfHeader) -> Iterator[ProgramHeader]:
    """Yield the program headers that ``header`` describes within ``data``."""
    view = memoryview(data)
    for index in range(header.phnum):
        start = header.phoff + index * ProgramHeader.SIZE
        chunk = view[start:start + ProgramHeader.SIZE]
        if len(chunk) < ProgramHeader.SIZE:
            raise ElfFormatError(f"program header {index} lies outside the file")
        yield ProgramHeader.from_bytes(bytes(chunk))