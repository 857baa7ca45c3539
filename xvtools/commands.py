"""Small file utilities: cat, echo, wc, ls, kill, ln, mkdir and rm."""

from __future__ import annotations

import os
import re
import signal
import stat as _stat
import sys
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Sequence, TextIO

from xvtools.ulib import atoi
from xvtools.uprintf import format_string

DIRSIZ = 14
BUFSIZE = 512

T_DIR = 1
T_FILE = 2
T_DEVICE = 3

_WORD = re.compile(rb"[^ \r\t\n\v\0]+")
_SIGKILL = getattr(signal, "SIGKILL", signal.SIGTERM)


class _ReadError(OSError):
    pass


class _WriteError(OSError):
    pass


def _args(argv: Optional[Sequence[str]]) -> List[str]:
    return list(sys.argv[1:] if argv is None else argv)


@dataclass(frozen=True)
class WordCount:
    """Line, word and byte counts of some data."""

    lines: int = 0
    words: int = 0
    chars: int = 0

    def report(self, name: str) -> str:
        """The output line for ``name``."""
        return format_string("%d %d %d %s\n", self.lines, self.words, self.chars, name)


def cat(source: BinaryIO, out: BinaryIO) -> None:
    """Copy ``source`` to ``out``; raises OSError on a failed or short write."""
    while True:
        try:
            chunk = source.read(BUFSIZE)
        except OSError as exc:
            raise _ReadError("read error") from exc
        if not chunk:
            return
        try:
            written = out.write(chunk)
        except OSError as exc:
            raise _WriteError("write error") from exc
        if written is not None and written != len(chunk):
            raise _WriteError("write error")


def echo(args: Sequence[str]) -> str:
    """The arguments joined by blanks and ended by a newline; empty for none."""
    return " ".join(args) + "\n" if args else ""


def count(data: bytes) -> WordCount:
    """Count newlines, blank-separated words and bytes."""
    return WordCount(data.count(b"\n"), len(_WORD.findall(data)), len(data))


def format_name(path: str) -> str:
    """Last component of ``path``, blank-padded to DIRSIZ when shorter."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _file_type(mode: int) -> int:
    if _stat.S_ISDIR(mode):
        return T_DIR
    if _stat.S_ISCHR(mode) or _stat.S_ISBLK(mode):
        return T_DEVICE
    return T_FILE


def ls(path: str, out: TextIO) -> None:
    """List a file, or each entry of a directory, as ``name type ino size``."""
    try:
        st = os.stat(path)
    except OSError:
        sys.stderr.write(f"ls: cannot open {path}\n")
        return
    kind = _file_type(st.st_mode)
    if kind == T_FILE:
        out.write(format_string("%s %d %d %l\n", format_name(path), kind, st.st_ino, st.st_size))
    elif kind == T_DIR:
        if len(path) + 1 + DIRSIZ + 1 > BUFSIZE:
            out.write("ls: path too long\n")
            return
        try:
            names = sorted(os.listdir(path))
        except OSError:
            sys.stderr.write(f"ls: cannot open {path}\n")
            return
        for name in [".", ".."] + names:
            entry = f"{path}/{name[:DIRSIZ]}"
            try:
                est = os.stat(entry)
            except OSError:
                out.write(f"ls: cannot stat {entry}\n")
                continue
            out.write(
                format_string(
                    "%s %d %d %d\n",
                    format_name(entry),
                    _file_type(est.st_mode),
                    est.st_ino,
                    est.st_size,
                )
            )


def cat_main(argv: Optional[Sequence[str]] = None) -> int:
    """Concatenate the named files, or standard input, to standard output."""
    args = _args(argv)
    out = sys.stdout.buffer
    try:
        if not args:
            cat(sys.stdin.buffer, out)
            return 0
        for name in args:
            try:
                stream = open(name, "rb")
            except OSError:
                sys.stderr.write(f"cat: cannot open {name}\n")
                return 1
            with stream:
                cat(stream, out)
        return 0
    except _WriteError:
        sys.stderr.write("cat: write error\n")
        return 1
    except _ReadError:
        sys.stderr.write("cat: read error\n")
        return 1
    finally:
        out.flush()


def echo_main(argv: Optional[Sequence[str]] = None) -> int:
    """Print the arguments."""
    sys.stdout.write(echo(_args(argv)))
    return 0


def wc_main(argv: Optional[Sequence[str]] = None) -> int:
    """Count lines, words and bytes of the named files or standard input."""
    args = _args(argv)
    sources = [(None, "")] if not args else [(name, name) for name in args]
    for path, label in sources:
        try:
            if path is None:
                data = sys.stdin.buffer.read()
            else:
                try:
                    stream = open(path, "rb")
                except OSError:
                    sys.stdout.write(f"wc: cannot open {path}\n")
                    return 1
                with stream:
                    data = stream.read()
        except OSError:
            sys.stdout.write("wc: read error\n")
            return 1
        sys.stdout.write(count(data).report(label))
    return 0


def ls_main(argv: Optional[Sequence[str]] = None) -> int:
    """List the named paths, or the current directory."""
    args = _args(argv) or ["."]
    for path in args:
        ls(path, sys.stdout)
    return 0


def kill_main(argv: Optional[Sequence[str]] = None) -> int:
    """Terminate the processes whose ids are given."""
    args = _args(argv)
    if not args:
        sys.stderr.write("usage: kill pid...\n")
        return 1
    for arg in args:
        pid = atoi(arg)
        if pid <= 0:
            continue
        try:
            os.kill(pid, _SIGKILL)
        except OSError:
            pass
    return 0


def ln_main(argv: Optional[Sequence[str]] = None) -> int:
    """Create a hard link ``new`` to ``old``."""
    args = _args(argv)
    if len(args) != 2:
        sys.stderr.write("Usage: ln old new\n")
        return 1
    old, new = args
    try:
        os.link(old, new)
    except OSError:
        sys.stderr.write(f"link {old} {new}: failed\n")
    return 0


def mkdir_main(argv: Optional[Sequence[str]] = None) -> int:
    """Create directories, stopping at the first failure."""
    args = _args(argv)
    if not args:
        sys.stderr.write("Usage: mkdir files...\n")
        return 1
    for name in args:
        try:
            os.mkdir(name)
        except OSError:
            sys.stderr.write(f"mkdir: {name} failed to create\n")
            break
    return 0


def _unlink(name: str) -> None:
    if os.path.isdir(name) and not os.path.islink(name):
        os.rmdir(name)
    else:
        os.unlink(name)


def rm_main(argv: Optional[Sequence[str]] = None) -> int:
    """Remove files and empty directories, stopping at the first failure."""
    args = _args(argv)
    if not args:
        sys.stderr.write("Usage: rm files...\n")
        return 1
    for name in args:
        try:
            _unlink(name)
        except OSError:
            sys.stderr.write(f"rm: {name} failed to delete\n")
            break
    return 0