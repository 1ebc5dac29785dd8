# traps.py: TRAP vector dispatch to console I/O
import logging
from typing import List, Optional

from .encoding import WORD_MASK
from .errors import InputClosed
from .opcodes import Trap
from .registers import RegisterFile

log = logging.getLogger(__name__)

IN_PROMPT = "Enter a character: \n"
HALT_MESSAGE = "HALT\n"


class TrapDispatcher:
    """
    Services TRAP instructions on behalf of the CPU.
    dispatch() returns True when the trap halts the machine.
    """

    def __init__(self, registers: RegisterFile, memory, input_device=None, output_device=None):
        self.registers = registers
        self.memory = memory
        self.input_device = input_device
        self.output_device = output_device
        self._handlers = {
            Trap.GETC: self.getc,
            Trap.OUT: self.out,
            Trap.PUTS: self.puts,
            Trap.IN: self.in_,
            Trap.PUTSP: self.putsp,
            Trap.HALT: self.halt,
        }

    @staticmethod
    def trap_name(vector: int) -> Optional[str]:
        try:
            return Trap(vector).name
        except ValueError:
            return None

    def dispatch(self, vector: int) -> bool:
        vector &= 0xFF
        try:
            handler = self._handlers[Trap(vector)]
        except ValueError:
            log.warning("Unknown trap vector 0x%02X ignored", vector)
            return False
        return bool(handler())

    # ---- I/O plumbing ----
    def _emit(self, codes: List[int]):
        if self.output_device is not None:
            self.output_device.write(codes)

    def _read_char(self) -> int:
        if self.input_device is None:
            raise InputClosed("GETC/IN executed with no input device attached")
        return self.input_device.read()

    # ---- Vectors ----
    def getc(self):
        self.registers.set(0, self._read_char())

    def out(self):
        self._emit([self.registers.get(0) & 0xFF])

    def puts(self):
        # one char per word
        addr = self.registers.get(0)
        buf = []
        word = self.memory.peek(addr)
        while word != 0:
            buf.append(word & 0xFF)
            addr = (addr + 1) & WORD_MASK
            word = self.memory.peek(addr)
        self._emit(buf)

    def in_(self):
        self._emit([ord(c) for c in IN_PROMPT])
        self.getc()

    def putsp(self):
        # two chars per word, low byte first
        addr = self.registers.get(0)
        buf = []
        word = self.memory.peek(addr)
        while word != 0:
            lo, hi = word & 0xFF, word >> 8
            if lo == 0:
                break
            buf.append(lo)
            if hi == 0:
                break
            buf.append(hi)
            addr = (addr + 1) & WORD_MASK
            word = self.memory.peek(addr)
        self._emit(buf)

    def halt(self):
        self._emit([ord(c) for c in HALT_MESSAGE])
        return True
