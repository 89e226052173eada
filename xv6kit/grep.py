"""A simple grep supporting only the ^ . * $ regular-expression operators."""

from __future__ import annotations

import sys
from typing import TextIO

BUFSIZE = 1024


def match(re: str, text: str) -> bool:
    """Return True if ``re`` matches anywhere in ``text``."""
    if re.startswith("^"):
        return match_here(re[1:], text)
    # The empty suffix is tried too, so that patterns such as "$" can match.
    return any(match_here(re, text[start:]) for start in range(len(text) + 1))


def match_here(re: str, text: str) -> bool:
    """Return True if ``re`` matches at the beginning of ``text``."""
    if not re:
        return True
    if len(re) > 1 and re[1] == "*":
        return match_star(re[0], re[2:], text)
    if re == "$":
        return text == ""
    if text and (re[0] == "." or re[0] == text[0]):
        return match_here(re[1:], text[1:])
    return False


def match_star(c: str, re: str, text: str) -> bool:
    """Return True if ``c*`` followed by ``re`` matches at the start of ``text``."""
    while True:
        if match_here(re, text):
            return True
        if not text or not (text[0] == c or c == "."):
            return False
        text = text[1:]


def grep(pattern: str, stream: TextIO, out: TextIO) -> None:
    """Write every newline-terminated line of ``stream`` that matches ``pattern``.

    Input is consumed through a fixed buffer of BUFSIZE characters: a final
    line without a newline is never printed, and a line that fills the
    whole buffer ends the search.
    """
    pending = ""
    while True:
        chunk = stream.read(BUFSIZE - 1 - len(pending))
        if not chunk:
            break
        pending += chunk
        *lines, pending = pending.split("\n")
        for line in lines:
            if match(pattern, line):
                out.write(line + "\n")


def main(argv: list[str] | None = None) -> int:
    """Run grep with ``argv`` (pattern followed by files); return the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, files = args[0], args[1:]
    if not files:
        grep(pattern, sys.stdin, sys.stdout)
        return 0
    for name in files:
        try:
            stream = open(name, encoding="latin-1", newline="")
        except OSError:
            sys.stdout.write(f"grep: cannot open {name}\n")
            return 1
        with stream:
            grep(pattern, stream, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())