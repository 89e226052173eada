"""A small command shell with pipes, lists, background jobs and redirection."""

from __future__ import annotations

import io
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, TextIO, Union

from .coreutils import run_tool
from .fmt import fprintf
from .grep import grep
from .ulib import gets

WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"
MAXARGS = 10
LINE_MAX = 100


class ShellSyntaxError(ValueError):
    """A command line that cannot be parsed."""

    def __init__(self, message: str, leftovers: str | None = None) -> None:
        super().__init__(message)
        self.leftovers = leftovers


class RedirMode(Enum):
    READ = "read"
    WRITE = "write"  # create if missing, never truncate


@dataclass
class ExecCmd:
    argv: list[str] = field(default_factory=list)


@dataclass
class RedirCmd:
    cmd: Command
    file: str
    mode: RedirMode
    fd: int


@dataclass
class PipeCmd:
    left: Command
    right: Command


@dataclass
class ListCmd:
    left: Command
    right: Command


@dataclass
class BackCmd:
    cmd: Command


Command = Union[ExecCmd, RedirCmd, PipeCmd, ListCmd, BackCmd]


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def skip(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in WHITESPACE:
            self.pos += 1

    def peek(self, toks: str) -> bool:
        self.skip()
        return self.pos < len(self.text) and self.text[self.pos] in toks

    def gettoken(self) -> tuple[str, str]:
        """Return (kind, text); kind is a symbol, '+' for '>>', 'a' for a word, '' at end."""
        self.skip()
        s = self.text
        start = pos = self.pos
        if start >= len(s):
            return "", ""
        c = s[start]
        if c in "|();&<":
            pos += 1
            tok = c
        elif c == ">":
            pos += 1
            tok = ">"
            if pos < len(s) and s[pos] == ">":
                tok = "+"
                pos += 1
        else:
            tok = "a"
            while pos < len(s) and s[pos] not in WHITESPACE and s[pos] not in SYMBOLS:
                pos += 1
        word = s[start:pos]
        self.pos = pos
        self.skip()
        return tok, word

    def parse_line(self) -> Command:
        cmd = self.parse_pipe()
        while self.peek("&"):
            self.gettoken()
            cmd = BackCmd(cmd)
        if self.peek(";"):
            self.gettoken()
            cmd = ListCmd(cmd, self.parse_line())
        return cmd

    def parse_pipe(self) -> Command:
        cmd = self.parse_exec()
        if self.peek("|"):
            self.gettoken()
            cmd = PipeCmd(cmd, self.parse_pipe())
        return cmd

    def parse_redirs(self, cmd: Command) -> Command:
        while self.peek("<>"):
            tok, _ = self.gettoken()
            kind, name = self.gettoken()
            if kind != "a":
                raise ShellSyntaxError("missing file for redirection")
            if tok == "<":
                cmd = RedirCmd(cmd, name, RedirMode.READ, 0)
            else:  # '>' and '>>' behave alike
                cmd = RedirCmd(cmd, name, RedirMode.WRITE, 1)
        return cmd

    def parse_block(self) -> Command:
        if not self.peek("("):
            raise ShellSyntaxError("parseblock")
        self.gettoken()
        cmd = self.parse_line()
        if not self.peek(")"):
            raise ShellSyntaxError("syntax - missing )")
        self.gettoken()
        return self.parse_redirs(cmd)

    def parse_exec(self) -> Command:
        if self.peek("("):
            return self.parse_block()
        ex = ExecCmd()
        ret = self.parse_redirs(ex)
        while not self.peek("|)&;"):
            tok, word = self.gettoken()
            if tok == "":
                break
            if tok != "a":
                raise ShellSyntaxError("syntax")
            ex.argv.append(word)
            if len(ex.argv) >= MAXARGS:
                raise ShellSyntaxError("too many args")
            ret = self.parse_redirs(ret)
        return ret


def parse_command(s: str) -> Command:
    """Parse one command line into a command tree."""
    parser = _Parser(s)
    cmd = parser.parse_line()
    parser.skip()
    if parser.pos != len(s):
        raise ShellSyntaxError("syntax", leftovers=s[parser.pos :])
    return cmd


_Program = Callable[["Shell", list, TextIO, TextIO], int]

_COREUTILS = ("wc", "echo", "cat", "ls", "kill", "ln", "mkdir", "rm")


def _run_coreutil(shell: Shell, argv: list[str], stdin: TextIO, stdout: TextIO) -> int:
    return run_tool(argv, stdin, stdout, shell.stderr)


def _run_grep(shell: Shell, argv: list[str], stdin: TextIO, stdout: TextIO) -> int:
    args = argv[1:]
    if not args:
        shell.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, files = args[0], args[1:]
    if not files:
        grep(pattern, stdin, stdout)
        return 0
    for name in files:
        try:
            stream = open(name, encoding="latin-1", newline="")
        except OSError:
            fprintf(stdout, "grep: cannot open %s\n", name)
            return 1
        with stream:
            grep(pattern, stream, stdout)
    return 0


def _run_sh(shell: Shell, argv: list[str], stdin: TextIO, stdout: TextIO) -> int:
    Shell(stdin, stdout, shell.stderr).repl(stdin)
    return 0


_PROGRAMS: dict[str, _Program] = {name: _run_coreutil for name in _COREUTILS}
_PROGRAMS["grep"] = _run_grep
_PROGRAMS["sh"] = _run_sh


def _open(path: str, mode: RedirMode) -> TextIO:
    if mode is RedirMode.READ:
        return open(path, encoding="latin-1", newline="")
    fd = os.open(path, os.O_WRONLY | os.O_CREAT, 0o666)
    return os.fdopen(fd, "w", encoding="latin-1", newline="")


class Shell:
    """Runs parsed commands against the built-in programs.

    Pipelines run their stages one after another through an in-memory
    buffer, and background jobs run to completion before returning.
    """

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.stdin = sys.stdin if stdin is None else stdin
        self.stdout = sys.stdout if stdout is None else stdout
        self.stderr = sys.stderr if stderr is None else stderr

    def _exec(self, argv: list[str], stdin: TextIO, stdout: TextIO) -> int:
        if not argv:
            return 1
        program = _PROGRAMS.get(argv[0])
        if program is None:
            fprintf(self.stderr, "exec %s failed\n", argv[0])
            return 0
        return program(self, list(argv), stdin, stdout)

    def run(
        self, cmd: Command, stdin: TextIO | None = None, stdout: TextIO | None = None
    ) -> int:
        """Execute ``cmd`` and return its exit status."""
        stdin = self.stdin if stdin is None else stdin
        stdout = self.stdout if stdout is None else stdout
        if isinstance(cmd, ExecCmd):
            return self._exec(cmd.argv, stdin, stdout)
        if isinstance(cmd, RedirCmd):
            if cmd.fd not in (0, 1):
                raise ValueError(f"cannot redirect descriptor {cmd.fd}")
            try:
                stream = _open(cmd.file, cmd.mode)
            except OSError:
                fprintf(self.stderr, "open %s failed\n", cmd.file)
                return 1
            with stream:
                if cmd.fd == 0:
                    return self.run(cmd.cmd, stream, stdout)
                return self.run(cmd.cmd, stdin, stream)
        if isinstance(cmd, ListCmd):
            self.run(cmd.left, stdin, stdout)
            return self.run(cmd.right, stdin, stdout)
        if isinstance(cmd, PipeCmd):
            buffer = io.StringIO()
            self.run(cmd.left, stdin, buffer)
            self.run(cmd.right, io.StringIO(buffer.getvalue()), stdout)
            return 0
        if isinstance(cmd, BackCmd):
            self.run(cmd.cmd, stdin, stdout)
            return 0
        raise TypeError("runcmd")

    def _run_line(self, line: str, stdin: TextIO) -> int:
        if line.startswith("cd "):
            path = line[3:]
            if path.endswith(("\n", "\r")):
                path = path[:-1]
            try:
                os.chdir(path)
            except OSError:
                fprintf(self.stderr, "cannot cd %s\n", path)
                return 1
            return 0
        try:
            cmd = parse_command(line)
        except ShellSyntaxError as exc:
            if exc.leftovers is not None:
                fprintf(self.stderr, "leftovers: %s\n", exc.leftovers)
            fprintf(self.stderr, "%s\n", str(exc))
            return 1
        return self.run(cmd, stdin, self.stdout)

    def run_line(self, line: str) -> int:
        """Run one input line, handling ``cd`` in the shell itself."""
        return self._run_line(line, self.stdin)

    def repl(self, stdin: TextIO | None = None) -> int:
        """Prompt for and run lines from ``stdin`` until end of input."""
        stdin = self.stdin if stdin is None else stdin
        while True:
            self.stderr.write("$ ")
            line = gets(stdin, LINE_MAX)
            if not line:
                return 0
            self._run_line(line, stdin)


def main(argv: list[str] | None = None) -> int:
    """Run an interactive shell on the standard streams."""
    return Shell().repl(sys.stdin)


if __name__ == "__main__":
    sys.exit(main())