"""List the address of every section in an ELF file."""

import sys

from .elf import ElfFormatError, is_elf_format, section_headers


def section_addresses(binary):
    """Return the address of each section header, in table order."""
    return [section.addr for section in section_headers(binary)]


def readelf(binary, out=None):
    """Write ``index:0xaddr`` for every section, or a notice if this is not ELF."""
    out = sys.stdout if out is None else out
    if len(binary) < 4 or not is_elf_format(binary):
        out.write("not a standard elf format\n")
        return
    for number, addr in enumerate(section_addresses(binary)):
        out.write(f"{number}:0x{addr:x}\n")


def main(argv=None):
    """Read the file named first on the command line and list its sections."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("Please input the filename.")
        return 0
    try:
        with open(args[0], "rb") as handle:
            binary = handle.read()
    except FileNotFoundError:
        print("File not found")
        return 0
    try:
        readelf(binary)
    except ElfFormatError as err:
        print(err, file=sys.stderr)
        return 1
    return 0