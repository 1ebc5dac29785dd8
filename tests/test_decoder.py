# tests/test_decoder.py
from lc3_sim.core import opcodes as op
from lc3_sim.core.disasm import disassemble, disassemble_block
from lc3_sim.core.memory import Memory
from lc3_sim.core.opcodes import Opcode, Trap, decode_op


def test_every_nibble_decodes():
    for n in range(16):
        code, operand = decode_op((n << 12) | 0xABC)
        assert int(code) == n
        assert operand == 0xABC
    assert decode_op(0x8000)[0] is Opcode.RTI
    assert decode_op(0xD000)[0] is Opcode.RES


def test_field_extraction():
    instr = op.encode_add(3, 5, imm=-2)
    assert decode_op(instr)[0] is Opcode.ADD
    assert op.dr(instr) == 3
    assert op.sr1(instr) == 5
    assert op.imm_flag(instr) == 1
    assert op.imm5(instr) == 0xFFFE

    instr = op.encode_add(1, 2, 4)
    assert op.imm_flag(instr) == 0 and op.sr2(instr) == 4

    instr = op.encode_ldr(2, 6, -32)
    assert op.base_r(instr) == 6 and op.offset6(instr) == 0xFFE0

    instr = op.encode_jsr(-1024)
    assert op.long_flag(instr) == 1 and op.pc_offset11(instr) == 0xFC00

    instr = op.encode_br(True, False, True, 255)
    assert op.cond_bits(instr) == op.BR_N | op.BR_P
    assert op.pc_offset9(instr) == 255

    assert op.trap_vector(op.encode_trap(Trap.HALT)) == 0x25


def test_known_encodings():
    assert op.encode_trap(Trap.HALT) == 0xF025
    assert op.encode_ret() == 0xC1C0
    assert op.encode_not(0, 1) == 0x907F
    assert op.encode_add(0, 0, imm=1) == 0x1021
    assert op.encode_br(True, True, True, -1) == 0x0FFF


def test_disassemble_forms():
    assert disassemble(0x1021) == "ADD R0, R0, #1"
    assert disassemble(op.encode_and(2, 3, 4)) == "AND R2, R3, R4"
    assert disassemble(0xC1C0) == "RET"
    assert disassemble(op.encode_jmp(2)) == "JMP R2"
    assert disassemble(op.encode_jsrr(4)) == "JSRR R4"
    assert disassemble(0xF025) == "HALT"
    assert disassemble(0xF0FF) == "TRAP xFF"
    assert disassemble(0x0000) == "NOP"
    assert disassemble(0xD000).startswith(".ILLEGAL RES")
    assert disassemble(0x0FFF, 0x3000) == "BRnzp #-1 (x3000)"
    assert disassemble(op.encode_lea(0, 2), 0x3000) == "LEA R0, #2 (x3003)"


def test_disassemble_block_uses_peek():
    mem = Memory()
    mem.load_words(0x3000, [0x1021, 0xF025])
    lines = disassemble_block(mem, 0x3000, 2)
    assert lines == ["x3000: x1021  ADD R0, R0, #1", "x3001: xF025  HALT"]
