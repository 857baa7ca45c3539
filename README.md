# xvtools

Building blocks of a small teaching kernel and its user programs, as plain
Python you can read, run and test:

- `xvtools.riscv` – Sv39 page-table arithmetic: `PteFlag`, `pg_round_up`,
  `pg_round_down`, `pa2pte`, `pte2pa`, `pte_flags`, `px`, `make_satp`, and
  the status and interrupt-enable register bit constants.
- `xvtools.memlayout` – the physical and virtual memory map of the qemu
  `virt` board: `UART0`, `VIRTIO0`, `PLIC`, `KERNBASE`, `PHYSTOP`,
  `TRAMPOLINE`, `TRAPFRAME`, `clint_mtimecmp`, the `plic_*` register
  helpers and `kstack`.
- `xvtools.elf` – `ElfHeader` and `ProgramHeader` with `from_bytes` /
  `to_bytes`, `ProgFlag`, and `program_headers` to list the segments of an
  executable. Malformed input raises `ElfFormatError`.
- `xvtools.vm` – a simulated physical memory (`PhysicalMemory`, with a free
  list and per-page reference counts) and three-level page tables
  (`PageTable`) with copy-on-write sharing (`copy_to`), growing and
  shrinking of user memory, and `copy_in` / `copy_out` / `copy_in_str`.
  Errors are raised as `KernelPanic`, `OutOfMemory` and `BadAddress`.
- `xvtools.uprintf` – a minimal formatter understanding `%d %l %x %p %s %c`
  and `%%`: `format_string`, `fprintf`, `printf`.
- `xvtools.ulib` – `atoi`, `strcmp` and `gets` with C semantics.
- `xvtools.prng` – the `ParkMiller` minimal-standard random generator.
- `xvtools.commands` – `cat`, `echo`, `count` (with `WordCount`),
  `format_name`, `ls`, and the command entry points.

## Installation

```
pip install xvtools
```

## Library use

```python
from xvtools.riscv import pg_round_up
from xvtools.uprintf import format_string
from xvtools.vm import PhysicalMemory, PageTable

assert pg_round_up(4097) == 8192
assert format_string("%d %x %s\n", -5, 255, "ok") == "-5 FF ok\n"

memory = PhysicalMemory(0x80000000, 64)
table = PageTable.create(memory)
size = table.grow(0, 3 * 4096)
table.copy_out(0x10, b"hello\0")
assert table.copy_in_str(0x10, 64) == b"hello"

child = PageTable.create(memory)
table.copy_to(child, size)      # pages are now shared copy-on-write
assert table.is_cow(0)
```

## Command-line tools

Each small utility is installed as a command:

```
xv-echo hello world
xv-cat notes.txt
xv-wc notes.txt
xv-ls .
xv-kill 1234
xv-ln old new
xv-mkdir newdir
xv-rm oldfile
```

`xv-wc` prints lines, words and bytes followed by the name. `xv-ls` prints
each name blank-padded to 14 columns, followed by the type (1 directory,
2 file, 3 device), the inode number and the size; a directory listing starts
with `.` and `..`. `xv-mkdir` and `xv-rm` stop at the first name that fails.
`xv-rm` also removes empty directories.

## What it does not do

There is no command interpreter, no pattern-search command and no heap
allocator here; the page tables run over simulated memory only and are not
tied to a process scheduler, file system or trap handling.

## Running the tests

```
pip install -e .[test]
pytest
```