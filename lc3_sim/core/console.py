# console.py: keyboard input and console output devices
import logging
import os
import select
import sys
from collections import deque
from contextlib import contextmanager
from typing import Iterable, List, Optional, Union

from .errors import InputClosed, QuitRequested

log = logging.getLogger(__name__)

QUIT_KEYS = (ord("q"), ord("Q"), 0x03)  # q, Q, Ctrl-C
QUIT_PROMPT = "Would you like to quit? [y/n] "


class TerminalInput:
    """
    Keyboard on a file descriptor (stdin by default).
    poll() never blocks; read() blocks for one byte. A quit key followed by a
    'y' confirmation raises QuitRequested instead of reaching the program.
    """

    def __init__(self, fd: Optional[int] = None, prompt_stream=None):
        self.fd = sys.stdin.fileno() if fd is None else fd
        self.prompt_stream = prompt_stream if prompt_stream is not None else sys.stderr
        self._raw = False

    def isatty(self) -> bool:
        return os.isatty(self.fd)

    @contextmanager
    def raw_mode(self):
        """Switch the terminal to raw mode for the duration of the block (TTY only)."""
        if not self.isatty():
            yield self
            return
        import termios, tty

        old_settings = termios.tcgetattr(self.fd)
        try:
            tty.setraw(self.fd)
            self._raw = True
            yield self
        finally:
            self._raw = False
            termios.tcsetattr(self.fd, termios.TCSADRAIN, old_settings)

    def _read_byte(self) -> Optional[int]:
        b = os.read(self.fd, 1)
        return b[0] if b else None

    def _filter(self, ch: int) -> int:
        if self._raw and ch == 0x0D:
            # raw mode drops ICRNL; programs expect Enter as x0A
            ch = 0x0A
        if self.requests_quit(ch) and self.confirm_quit():
            raise QuitRequested("quit confirmed by user")
        return ch

    def poll(self) -> Optional[int]:
        readable, _, _ = select.select([self.fd], [], [], 0)
        if not readable:
            return None
        ch = self._read_byte()
        if ch is None:
            return None
        return self._filter(ch)

    def read(self) -> int:
        ch = self._read_byte()
        if ch is None:
            raise InputClosed("end of input")
        return self._filter(ch)

    def requests_quit(self, ch: int) -> bool:
        return ch in QUIT_KEYS

    def confirm_quit(self) -> bool:
        self.prompt_stream.write(QUIT_PROMPT)
        self.prompt_stream.flush()
        answer = self._read_byte()
        if not self._raw:
            # line mode: skip the newline left after the quit key, take the
            # first key of the answer and drop the rest of its line
            while answer is not None and chr(answer).isspace():
                answer = self._read_byte()
            tail = answer
            while tail is not None and tail != 0x0A:
                tail = self._read_byte()
        if self._raw:
            self.prompt_stream.write("\r\n")
            self.prompt_stream.flush()
        if answer is None:
            return True
        return chr(answer).lower() == "y"


class ScriptedInput:
    """Deterministic keyboard fed from a string or a sequence of character codes."""

    def __init__(self, data: Union[str, bytes, Iterable[int]] = ""):
        self._queue = deque()
        self.feed(data)

    def feed(self, data: Union[str, bytes, Iterable[int]]):
        if isinstance(data, str):
            data = [ord(c) for c in data]
        self._queue.extend(int(c) & 0xFF for c in data)

    def pending(self) -> int:
        return len(self._queue)

    def poll(self) -> Optional[int]:
        return self._queue.popleft() if self._queue else None

    def read(self) -> int:
        if not self._queue:
            raise InputClosed("scripted input exhausted")
        return self._queue.popleft()

    def requests_quit(self, ch: int) -> bool:
        return False

    def confirm_quit(self) -> bool:
        return False


class ConsoleOutput:
    """Writes character codes to a text stream, or collects them in a list."""

    def __init__(self, stream=None, collector: Optional[List[int]] = None, crlf: bool = False):
        self.stream = stream
        self.collector = collector
        self.crlf = crlf

    def write(self, codes: Iterable[int]):
        codes = [c & 0xFF for c in codes]
        if not codes:
            return
        if self.collector is not None:
            self.collector.extend(codes)
        if self.stream is not None:
            text = "".join(chr(c) for c in codes)
            if self.crlf:
                # raw terminals do not return the carriage on LF
                text = text.replace("\n", "\r\n")
            self.stream.write(text)
            self.stream.flush()
        elif self.collector is None:
            log.debug("output dropped: %r", codes)

    def write_text(self, text: str):
        self.write(ord(c) for c in text)

    def text(self) -> str:
        return "".join(chr(c) for c in (self.collector or []))
