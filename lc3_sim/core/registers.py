# registers.py: R0-R7, PC and the condition register
from enum import IntFlag
from typing import Dict, List

from .encoding import WORD_MASK, SIGN_BIT

PC_START = 0x3000
R7 = 7
NUM_GPR = 8


class CondFlag(IntFlag):
    POS = 1 << 0
    ZRO = 1 << 1
    NEG = 1 << 2


class RegisterFile:
    """
    Eight 16-bit general purpose registers plus PC and COND.
    Every write is masked to 16 bits, so arithmetic wraps modulo 65536.
    COND always holds exactly one of POS/ZRO/NEG.
    """

    def __init__(self, pc: int = PC_START):
        self._gpr: List[int] = [0] * NUM_GPR
        self._pc: int = pc & WORD_MASK
        self._cond: CondFlag = CondFlag.ZRO

    def reset(self, pc: int = PC_START):
        self._gpr = [0] * NUM_GPR
        self._pc = pc & WORD_MASK
        self._cond = CondFlag.ZRO

    def get(self, r: int) -> int:
        return self._gpr[r & 0x7]

    def set(self, r: int, value: int):
        self._gpr[r & 0x7] = value & WORD_MASK

    @property
    def pc(self) -> int:
        return self._pc

    @pc.setter
    def pc(self, value: int):
        self._pc = value & WORD_MASK

    @property
    def cond(self) -> CondFlag:
        return self._cond

    @cond.setter
    def cond(self, flag: CondFlag):
        flag = CondFlag(flag)
        if flag not in (CondFlag.POS, CondFlag.ZRO, CondFlag.NEG):
            raise ValueError(f"COND must hold exactly one flag, got {flag!r}")
        self._cond = flag

    def update_flags(self, r: int):
        val = self.get(r)
        if val == 0:
            self._cond = CondFlag.ZRO
        elif val & SIGN_BIT:
            # a 1 in the left-most bit indicates negative
            self._cond = CondFlag.NEG
        else:
            self._cond = CondFlag.POS

    def snapshot(self) -> Dict[str, int]:
        regs = {f"r{i}": v for i, v in enumerate(self._gpr)}
        regs["pc"] = self._pc
        regs["cond"] = int(self._cond)
        return regs

    @staticmethod
    def cond_name(flag: CondFlag) -> str:
        return {CondFlag.POS: "P", CondFlag.ZRO: "Z", CondFlag.NEG: "N"}[CondFlag(flag)]
