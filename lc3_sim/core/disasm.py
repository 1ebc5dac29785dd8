# disasm.py: render LC-3 instruction words as assembly text
from typing import List, Optional

from .encoding import WORD_MASK, to_signed
from .opcodes import (
    Opcode, Trap, decode_op,
    dr, sr1, sr2, imm_flag, imm5, offset6, pc_offset9, pc_offset11, long_flag, trap_vector,
)


def _target(pc_next: Optional[int], offset: int) -> str:
    rel = f"#{to_signed(offset)}"
    if pc_next is None:
        return rel
    return f"{rel} (x{(pc_next + offset) & WORD_MASK:04X})"


def disassemble(instr: int, address: Optional[int] = None) -> str:
    """
    Return the assembly text for 'instr'. When 'address' (the location of the
    instruction) is known, PC-relative targets are resolved as well.
    """
    instr &= WORD_MASK
    op, _ = decode_op(instr)
    pc_next = None if address is None else (address + 1) & WORD_MASK

    if op in (Opcode.ADD, Opcode.AND):
        if imm_flag(instr):
            return f"{op.name} R{dr(instr)}, R{sr1(instr)}, #{to_signed(imm5(instr))}"
        return f"{op.name} R{dr(instr)}, R{sr1(instr)}, R{sr2(instr)}"
    if op == Opcode.NOT:
        return f"NOT R{dr(instr)}, R{sr1(instr)}"
    if op == Opcode.BR:
        cond = dr(instr)
        if cond == 0:
            return "NOP"
        flags = ("n" if cond & 4 else "") + ("z" if cond & 2 else "") + ("p" if cond & 1 else "")
        return f"BR{flags} {_target(pc_next, pc_offset9(instr))}"
    if op == Opcode.JMP:
        return "RET" if sr1(instr) == 7 else f"JMP R{sr1(instr)}"
    if op == Opcode.JSR:
        if long_flag(instr):
            return f"JSR {_target(pc_next, pc_offset11(instr))}"
        return f"JSRR R{sr1(instr)}"
    if op in (Opcode.LD, Opcode.LDI, Opcode.LEA, Opcode.ST, Opcode.STI):
        return f"{op.name} R{dr(instr)}, {_target(pc_next, pc_offset9(instr))}"
    if op in (Opcode.LDR, Opcode.STR):
        return f"{op.name} R{dr(instr)}, R{sr1(instr)}, #{to_signed(offset6(instr))}"
    if op == Opcode.TRAP:
        vec = trap_vector(instr)
        try:
            return Trap(vec).name
        except ValueError:
            return f"TRAP x{vec:02X}"
    # RTI / RES
    return f".ILLEGAL {op.name} (x{instr:04X})"


def disassemble_block(memory, start: int, count: int) -> List[str]:
    lines = []
    for i in range(count):
        addr = (start + i) & WORD_MASK
        word = memory.peek(addr)
        lines.append(f"x{addr:04X}: x{word:04X}  {disassemble(word, addr)}")
    return lines
