# memory.py: 64K-word address space with keyboard memory-mapped registers
import logging
from typing import Iterable, List, Optional

from .encoding import MEMORY_SIZE, WORD_MASK

log = logging.getLogger(__name__)

MR_KBSR = 0xFE00  # keyboard status (bit 15 = character ready)
MR_KBDR = 0xFE02  # keyboard data (low byte = character code)
KBSR_READY = 1 << 15


class Memory:
    def __init__(self, input_device=None):
        self._words: List[int] = [0] * MEMORY_SIZE
        # Anything with poll() -> Optional[int]; None means the keyboard never has a key
        self.input_device = input_device
        self.kbsr_polls = 0

    def reset(self):
        self._words = [0] * MEMORY_SIZE
        self.kbsr_polls = 0

    def _poll_keyboard(self):
        self.kbsr_polls += 1
        ch: Optional[int] = None
        if self.input_device is not None:
            ch = self.input_device.poll()
        if ch is not None:
            self._words[MR_KBSR] = KBSR_READY
            self._words[MR_KBDR] = ch & WORD_MASK
            log.debug("KBSR poll: key 0x%02X ready", ch & 0xFF)
        else:
            self._words[MR_KBSR] = 0

    def read(self, address: int) -> int:
        address &= WORD_MASK
        if address == MR_KBSR:
            self._poll_keyboard()
        return self._words[address]

    def peek(self, address: int) -> int:
        """Read without triggering memory-mapped side effects."""
        return self._words[address & WORD_MASK]

    def write(self, address: int, value: int):
        self._words[address & WORD_MASK] = value & WORD_MASK

    def load_words(self, origin: int, words: Iterable[int]) -> int:
        """Store 'words' contiguously from 'origin' (wrapping past 0xFFFF). Returns count."""
        count = 0
        for i, w in enumerate(words):
            self._words[(origin + i) & WORD_MASK] = w & WORD_MASK
            count += 1
        return count

    def dump(self, address: int, count: int) -> List[int]:
        return [self.peek(address + i) for i in range(count)]

    def __len__(self) -> int:
        return MEMORY_SIZE
