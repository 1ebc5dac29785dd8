# opcodes.py: LC-3 opcode/trap maps, field decoding and instruction encoding
from enum import IntEnum
from typing import Tuple

from .encoding import WORD_MASK, sign_extend

OPR_BITS = 12
OPR_MASK = (1 << OPR_BITS) - 1


class Opcode(IntEnum):
    BR   = 0x0
    ADD  = 0x1
    LD   = 0x2
    ST   = 0x3
    JSR  = 0x4
    AND  = 0x5
    LDR  = 0x6
    STR  = 0x7
    RTI  = 0x8  # unused, illegal
    NOT  = 0x9
    LDI  = 0xA
    STI  = 0xB
    JMP  = 0xC
    RES  = 0xD  # reserved, illegal
    LEA  = 0xE
    TRAP = 0xF


ILLEGAL_OPCODES = frozenset({Opcode.RTI, Opcode.RES})

# Opcodes whose execution rewrites COND from the destination register
FLAG_SETTING = frozenset({
    Opcode.ADD, Opcode.AND, Opcode.NOT,
    Opcode.LD, Opcode.LDI, Opcode.LDR, Opcode.LEA,
})


class Trap(IntEnum):
    GETC  = 0x20  # get char from keyboard, not echoed
    OUT   = 0x21  # output a character
    PUTS  = 0x22  # output a word string
    IN    = 0x23  # prompt, then get char from keyboard
    PUTSP = 0x24  # output a byte string
    HALT  = 0x25  # halt the program


# BR condition bits (instr[11:9])
BR_N = 0x4
BR_Z = 0x2
BR_P = 0x1


def decode_op(instr: int) -> Tuple[Opcode, int]:
    """Split an instruction word into (opcode, 12 operand bits). Never fails."""
    instr &= WORD_MASK
    return Opcode(instr >> OPR_BITS), instr & OPR_MASK


# ---- Field extraction ----
def dr(instr: int) -> int:
    return (instr >> 9) & 0x7


def sr1(instr: int) -> int:
    return (instr >> 6) & 0x7


base_r = sr1


def sr2(instr: int) -> int:
    return instr & 0x7


def imm_flag(instr: int) -> int:
    return (instr >> 5) & 0x1


def imm5(instr: int) -> int:
    return sign_extend(instr & 0x1F, 5)


def offset6(instr: int) -> int:
    return sign_extend(instr & 0x3F, 6)


def pc_offset9(instr: int) -> int:
    return sign_extend(instr & 0x1FF, 9)


def pc_offset11(instr: int) -> int:
    return sign_extend(instr & 0x7FF, 11)


def long_flag(instr: int) -> int:
    return (instr >> 11) & 0x1


cond_bits = dr


def trap_vector(instr: int) -> int:
    return instr & 0xFF


# ---- Encoding ----
def _op(opcode: Opcode, operand: int) -> int:
    return ((int(opcode) << OPR_BITS) | (operand & OPR_MASK)) & WORD_MASK


def encode_add(d: int, s1: int, s2: int = 0, imm=None) -> int:
    if imm is not None:
        return _op(Opcode.ADD, (d << 9) | (s1 << 6) | (1 << 5) | (imm & 0x1F))
    return _op(Opcode.ADD, (d << 9) | (s1 << 6) | (s2 & 0x7))


def encode_and(d: int, s1: int, s2: int = 0, imm=None) -> int:
    if imm is not None:
        return _op(Opcode.AND, (d << 9) | (s1 << 6) | (1 << 5) | (imm & 0x1F))
    return _op(Opcode.AND, (d << 9) | (s1 << 6) | (s2 & 0x7))


def encode_not(d: int, s: int) -> int:
    return _op(Opcode.NOT, (d << 9) | (s << 6) | 0x3F)


def encode_br(n: bool, z: bool, p: bool, offset: int) -> int:
    cond = (BR_N if n else 0) | (BR_Z if z else 0) | (BR_P if p else 0)
    return _op(Opcode.BR, (cond << 9) | (offset & 0x1FF))


def encode_jmp(base: int) -> int:
    return _op(Opcode.JMP, base << 6)


def encode_ret() -> int:
    return encode_jmp(7)


def encode_jsr(offset: int) -> int:
    return _op(Opcode.JSR, (1 << 11) | (offset & 0x7FF))


def encode_jsrr(base: int) -> int:
    return _op(Opcode.JSR, base << 6)


def _pc_rel(opcode: Opcode, r: int, offset: int) -> int:
    return _op(opcode, (r << 9) | (offset & 0x1FF))


def encode_ld(d: int, offset: int) -> int:
    return _pc_rel(Opcode.LD, d, offset)


def encode_ldi(d: int, offset: int) -> int:
    return _pc_rel(Opcode.LDI, d, offset)


def encode_lea(d: int, offset: int) -> int:
    return _pc_rel(Opcode.LEA, d, offset)


def encode_st(s: int, offset: int) -> int:
    return _pc_rel(Opcode.ST, s, offset)


def encode_sti(s: int, offset: int) -> int:
    return _pc_rel(Opcode.STI, s, offset)


def encode_ldr(d: int, base: int, offset: int) -> int:
    return _op(Opcode.LDR, (d << 9) | (base << 6) | (offset & 0x3F))


def encode_str(s: int, base: int, offset: int) -> int:
    return _op(Opcode.STR, (s << 9) | (base << 6) | (offset & 0x3F))


def encode_trap(vector: int) -> int:
    return _op(Opcode.TRAP, vector & 0xFF)
