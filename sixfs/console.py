"""Console line discipline: line editing of typed input and echo of output."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional, Union

INPUT_BUF = 128
BACKSPACE = 0x100


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


class Console:
    """Edits typed characters into lines and hands them to readers."""

    def __init__(
        self,
        sink: Optional[Callable[[str], None]] = None,
        procdump: Optional[Callable[[], None]] = None,
    ) -> None:
        self._sink = sink
        self._procdump = procdump
        self._screen: list[str] = []
        self._cond = threading.Condition()
        self._buf = ["\0"] * INPUT_BUF
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index
        self.killed = False

    @property
    def screen(self) -> str:
        """Everything echoed or written to the console so far."""
        return "".join(self._screen)

    def _putc(self, c: int) -> None:
        text = "\b \b" if c == BACKSPACE else chr(c)
        self._screen.append(text)
        if self._sink is not None:
            self._sink(text)

    def feed(self, chars: Iterable[Union[str, int]]) -> None:
        """Process typed characters: editing keys, echo and line completion."""
        dump = False
        with self._cond:
            for item in chars:
                c = ord(item) if isinstance(item, str) else int(item)
                if c == _ctrl("P"):
                    dump = True
                elif c == _ctrl("U"):
                    while self._e != self._w and self._buf[(self._e - 1) % INPUT_BUF] != "\n":
                        self._e -= 1
                        self._putc(BACKSPACE)
                elif c in (_ctrl("H"), 0x7F):
                    if self._e != self._w:
                        self._e -= 1
                        self._putc(BACKSPACE)
                elif c != 0 and self._e - self._r < INPUT_BUF:
                    if c == ord("\r"):
                        c = ord("\n")
                    self._buf[self._e % INPUT_BUF] = chr(c)
                    self._e += 1
                    self._putc(c)
                    if c in (ord("\n"), _ctrl("D")) or self._e == self._r + INPUT_BUF:
                        self._w = self._e
                        self._cond.notify_all()
        if dump and self._procdump is not None:
            self._procdump()

    def read(self, n: int) -> str:
        """Read up to ``n`` characters, stopping after a newline or at end of input."""
        target = n
        out: list[str] = []
        with self._cond:
            while n > 0:
                while self._r == self._w:
                    if self.killed:
                        raise InterruptedError("console read interrupted")
                    self._cond.wait()
                c = self._buf[self._r % INPUT_BUF]
                self._r += 1
                if ord(c) == _ctrl("D"):
                    if n < target:
                        # Keep ^D so the next read returns nothing.
                        self._r -= 1
                    break
                out.append(c)
                n -= 1
                if c == "\n":
                    break
        return "".join(out)

    def write(self, data: Union[str, bytes]) -> int:
        """Write ``data`` to the console; return its length."""
        text = data.decode("latin-1") if isinstance(data, (bytes, bytearray)) else data
        with self._cond:
            for ch in text:
                self._putc(ord(ch) & 0xFF)
        return len(text)

    def kill(self) -> None:
        """Interrupt readers waiting for input, now and later."""
        with self._cond:
            self.killed = True
            self._cond.notify_all()