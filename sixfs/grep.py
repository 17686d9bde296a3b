"""A small grep supporting the ^ . * $ operators."""

from __future__ import annotations

import sys
from typing import BinaryIO, Iterator, Optional

_BUFSIZE = 1024


def _match_here(regex: str, text: str) -> bool:
    if not regex:
        return True
    if len(regex) > 1 and regex[1] == "*":
        return _match_star(regex[0], regex[2:], text)
    if regex == "$":
        return text == ""
    if text and (regex[0] == "." or regex[0] == text[0]):
        return _match_here(regex[1:], text[1:])
    return False


def _match_star(c: str, regex: str, text: str) -> bool:
    i = 0
    while True:
        if _match_here(regex, text[i:]):
            return True
        if i < len(text) and (text[i] == c or c == "."):
            i += 1
        else:
            return False


def match(regex: str, text: str) -> bool:
    """True when ``regex`` matches somewhere in ``text``."""
    if regex.startswith("^"):
        return _match_here(regex[1:], text)
    return any(_match_here(regex, text[i:]) for i in range(len(text) + 1))


def grep(pattern: str, stream: BinaryIO) -> Iterator[bytes]:
    """Yield each newline-terminated line of ``stream`` that matches ``pattern``.

    Text is read into a fixed buffer; a buffer full of text without a
    newline is dropped, and a final line without a newline is never yielded.
    """
    pending = b""
    while chunk := stream.read(_BUFSIZE - 1 - len(pending)):
        pending += chunk
        *lines, rest = pending.split(b"\n")
        for line in lines:
            if match(pattern, line.decode("latin-1")):
                yield line + b"\n"
        pending = rest if lines else b""


def main(argv: Optional[list[str]] = None) -> int:
    """Run grep over the named files, or standard input when none are given."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, paths = args[0], args[1:]
    sys.stdout.flush()
    out = sys.stdout.buffer
    if not paths:
        out.writelines(grep(pattern, sys.stdin.buffer))
        out.flush()
        return 0
    for path in paths:
        try:
            stream = open(path, "rb")
        except OSError:
            out.flush()
            sys.stdout.write(f"grep: cannot open {path}\n")
            sys.stdout.flush()
            return 1
        with stream:
            out.writelines(grep(pattern, stream))
        out.flush()
    return 0