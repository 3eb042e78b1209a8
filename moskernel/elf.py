"""Reading 32-bit little-endian ELF images and loading their segments."""

import struct
from dataclasses import dataclass

EI_NIDENT = 16
ELFMAG = b"\x7fELF"

PT_NULL = 0
PT_LOAD = 1
PT_DYNAMIC = 2
PT_INTERP = 3
PT_NOTE = 4
PT_SHLIB = 5
PT_PHDR = 6
PT_NUM = 7
PT_LOOS = 0x60000000
PT_HIOS = 0x6FFFFFFF
PT_LOPROC = 0x70000000
PT_HIPROC = 0x7FFFFFFF

PF_X = 1 << 0
PF_W = 1 << 1
PF_R = 1 << 2
PF_MASKPROC = 0xF0000000

_EHDR = struct.Struct("<16sHHIIIIIHHHHHH")
_PHDR = struct.Struct("<8I")
_SHDR = struct.Struct("<10I")


class ElfFormatError(ValueError):
    """The data is not a well-formed ELF image."""


def _unpack(layout, binary, offset, what):
    if offset < 0 or offset + layout.size > len(binary):
        raise ElfFormatError(f"{what} at offset {offset} runs past the end of the image")
    return layout.unpack_from(binary, offset)


@dataclass(frozen=True)
class ElfHeader:
    ident: bytes
    type: int
    machine: int
    version: int
    entry: int
    phoff: int
    shoff: int
    flags: int
    ehsize: int
    phentsize: int
    phnum: int
    shentsize: int
    shnum: int
    shstrndx: int


@dataclass(frozen=True)
class ProgramHeader:
    type: int
    offset: int
    vaddr: int
    paddr: int
    filesz: int
    memsz: int
    flags: int
    align: int


@dataclass(frozen=True)
class SectionHeader:
    name: int
    type: int
    flags: int
    addr: int
    offset: int
    size: int
    link: int
    info: int
    addralign: int
    entsize: int


def is_elf_format(binary):
    """Tell whether ``binary`` starts with the ELF magic number."""
    return len(binary) >= 4 and bytes(binary[:4]) == ELFMAG


def parse_header(binary):
    """Decode the ELF file header."""
    if not is_elf_format(binary):
        raise ElfFormatError("not a standard elf format")
    return ElfHeader(*_unpack(_EHDR, binary, 0, "file header"))


def _table(binary, offset, count, stride, layout, cls, what):
    return [
        cls(*_unpack(layout, binary, offset + number * stride, what))
        for number in range(count)
    ]


def program_headers(binary):
    """Decode every entry of the program header table."""
    header = parse_header(binary)
    return _table(binary, header.phoff, header.phnum, header.phentsize,
                  _PHDR, ProgramHeader, "program header")


def section_headers(binary):
    """Decode every entry of the section header table."""
    header = parse_header(binary)
    return _table(binary, header.shoff, header.shnum, header.shentsize,
                  _SHDR, SectionHeader, "section header")


def load_elf(binary, mapper):
    """Hand each loadable segment to ``mapper(va, memsz, data)`` and return the entry point.

    Errors raised by ``mapper`` stop the load and propagate.
    """
    if len(binary) < 4 or not is_elf_format(binary):
        raise ElfFormatError("not a standard elf format")
    header = parse_header(binary)
    for segment in program_headers(binary):
        if segment.type != PT_LOAD:
            continue
        end = segment.offset + segment.filesz
        if end > len(binary):
            raise ElfFormatError(f"segment at {segment.vaddr:#x} runs past the end of the image")
        mapper(segment.vaddr, segment.memsz, bytes(binary[segment.offset:end]))
    return header.entry