"""Teaching-kernel building blocks: page tables, ELF headers, printf and small file utilities."""

__version__ = "0.1.0"