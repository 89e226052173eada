"""Small file utilities: wc, echo, cat, ls, kill, ln, mkdir and rm."""

from __future__ import annotations

import os
import signal
import stat as statmod
import sys
from typing import Callable, Iterable, TextIO

from .fmt import fprintf
from .ulib import atoi

DIRSIZ = 14
T_DIR = 1
T_FILE = 2
T_DEVICE = 3

_READ_SIZE = 512
_LS_BUF = 512
_WHITESPACE = frozenset(" \r\t\n\v\0")


def _count(chunks: Iterable[str]) -> tuple[int, int, int]:
    lines = words = chars = 0
    inword = False
    for chunk in chunks:
        for ch in chunk:
            chars += 1
            if ch == "\n":
                lines += 1
            if ch in _WHITESPACE:
                inword = False
            elif not inword:
                words += 1
                inword = True
    return lines, words, chars


def wc_counts(data: str) -> tuple[int, int, int]:
    """Return the (lines, words, characters) counts of ``data``."""
    return _count([data])


def wc(stream: TextIO, name: str, out: TextIO) -> None:
    """Count ``stream`` and write ``lines words chars name``."""
    lines, words, chars = _count(iter(lambda: stream.read(_READ_SIZE), ""))
    fprintf(out, "%d %d %d %s\n", lines, words, chars, name)


def fmtname(path: str) -> str:
    """Return the last path component, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _stat_type(st: os.stat_result) -> int:
    if statmod.S_ISDIR(st.st_mode):
        return T_DIR
    if statmod.S_ISREG(st.st_mode):
        return T_FILE
    return T_DEVICE


def ls(path: str, out: TextIO, err: TextIO) -> None:
    """List a file, or each entry of a directory, with type, inode and size."""
    try:
        st = os.stat(path)
    except OSError:
        fprintf(err, "ls: cannot open %s\n", path)
        return
    kind = _stat_type(st)
    if kind == T_FILE:
        fprintf(out, "%s %d %d %l\n", fmtname(path), kind, st.st_ino, st.st_size)
        return
    if kind != T_DIR:
        return
    if len(path) + 1 + DIRSIZ + 1 > _LS_BUF:
        fprintf(out, "ls: path too long\n")
        return
    try:
        names = sorted(os.listdir(path))
    except OSError:
        fprintf(err, "ls: cannot open %s\n", path)
        return
    for name in [".", "..", *names]:
        entry = f"{path}/{name[:DIRSIZ]}"
        try:
            est = os.stat(entry)
        except OSError:
            fprintf(out, "ls: cannot stat %s\n", entry)
            continue
        fprintf(
            out, "%s %d %d %d\n", fmtname(entry), _stat_type(est), est.st_ino, est.st_size
        )


def echo(args: list[str], out: TextIO) -> None:
    """Write the arguments separated by spaces and ended by a newline."""
    if args:
        out.write(" ".join(args) + "\n")


def cat(stream: TextIO, out: TextIO) -> None:
    """Copy ``stream`` to ``out``."""
    for chunk in iter(lambda: stream.read(_READ_SIZE), ""):
        out.write(chunk)


def _open(name: str) -> TextIO:
    return open(name, encoding="latin-1", newline="")


def _run_wc(args: list[str], stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    if not args:
        wc(stdin, "", stdout)
        return 0
    for name in args:
        try:
            stream = _open(name)
        except OSError:
            fprintf(stdout, "wc: cannot open %s\n", name)
            return 1
        with stream:
            wc(stream, name, stdout)
    return 0


def _run_echo(args: list[str], stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    echo(args, stdout)
    return 0


def _run_cat(args: list[str], stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    try:
        if not args:
            cat(stdin, stdout)
            return 1
        for name in args:
            try:
                stream = _open(name)
            except OSError:
                fprintf(stdout, "cat: cannot open %s\n", name)
                return 1
            with stream:
                cat(stream, stdout)
    except OSError:
        fprintf(stdout, "cat: read error\n")
        return 1
    return 0


def _run_ls(args: list[str], stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    for path in args or ["."]:
        ls(path, stdout, stderr)
    return 0


def _run_kill(args: list[str], stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    if not args:
        fprintf(stderr, "usage: kill pid...\n")
        return 1
    for arg in args:
        pid = atoi(arg)
        if pid <= 0:
            continue  # no such process
        try:
            os.kill(pid, signal.SIGTERM)
        except OSError:
            pass
    return 0


def _run_ln(args: list[str], stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    if len(args) != 2:
        fprintf(stderr, "Usage: ln old new\n")
        return 1
    try:
        os.link(args[0], args[1])
    except OSError:
        fprintf(stderr, "link %s %s: failed\n", args[0], args[1])
    return 0


def _run_mkdir(args: list[str], stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    if not args:
        fprintf(stderr, "Usage: mkdir files...\n")
        return 1
    for name in args:
        try:
            os.mkdir(name)
        except OSError:
            fprintf(stderr, "mkdir: %s failed to create\n", name)
            break
    return 0


def _unlink(name: str) -> None:
    if os.path.isdir(name) and not os.path.islink(name):
        os.rmdir(name)
    else:
        os.unlink(name)


def _run_rm(args: list[str], stdin: TextIO, stdout: TextIO, stderr: TextIO) -> int:
    if not args:
        fprintf(stderr, "Usage: rm files...\n")
        return 1
    for name in args:
        try:
            _unlink(name)
        except OSError:
            fprintf(stderr, "rm: %s failed to delete\n", name)
            break
    return 0


_TOOLS: dict[str, Callable[[list[str], TextIO, TextIO, TextIO], int]] = {
    "wc": _run_wc,
    "echo": _run_echo,
    "cat": _run_cat,
    "ls": _run_ls,
    "kill": _run_kill,
    "ln": _run_ln,
    "mkdir": _run_mkdir,
    "rm": _run_rm,
}


def run_tool(
    argv: list[str], stdin: TextIO, stdout: TextIO, stderr: TextIO
) -> int:
    """Run the tool named by ``argv[0]`` with the remaining arguments.

    Returns the tool's exit status.
    """
    if not argv:
        raise ValueError("no tool given")
    tool = _TOOLS.get(argv[0])
    if tool is None:
        raise ValueError(f"unknown tool: {argv[0]}")
    return tool(list(argv[1:]), stdin, stdout, stderr)


def main(argv: list[str] | None = None) -> int:
    """Run a tool from the command line: ``TOOL [ARGS...]``."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args or args[0] not in _TOOLS:
        sys.stderr.write(f"usage: TOOL [args...]; TOOL is one of {', '.join(_TOOLS)}\n")
        return 1
    return run_tool(args, sys.stdin, sys.stdout, sys.stderr)


if __name__ == "__main__":
    sys.exit(main())