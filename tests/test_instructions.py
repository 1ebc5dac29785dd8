# tests/test_instructions.py
import random

import pytest

from lc3_sim.core import opcodes as op
from lc3_sim.core.cpu import MachineState
from lc3_sim.core.registers import CondFlag

HALT = 0xF025


def run_one(machine, words, setup=None):
    m = machine(list(words) + [HALT])
    if setup:
        setup(m)
    m.cpu.step()
    return m


def test_add_register_and_immediate(machine):
    m = machine([op.encode_add(0, 1, 2), op.encode_add(3, 0, imm=-1), HALT])
    m.regs.set(1, 5)
    m.regs.set(2, 7)
    m.cpu.step()
    assert m.regs.get(0) == 12 and m.regs.cond == CondFlag.POS
    m.cpu.step()
    assert m.regs.get(3) == 11


def test_add_wraps_without_error(machine):
    rng = random.Random(7)
    for _ in range(100):
        a, b = rng.randrange(1 << 16), rng.randrange(1 << 16)
        m = machine([op.encode_add(0, 1, 2), op.encode_and(3, 1, 2)])
        m.regs.set(1, a)
        m.regs.set(2, b)
        m.cpu.step()
        m.cpu.step()
        assert m.regs.get(0) == (a + b) % 65536
        assert m.regs.get(3) == (a & b) % 65536


def test_add_overflow_sets_negative(machine):
    m = run_one(machine, [op.encode_add(0, 0, imm=1)], lambda m: m.regs.set(0, 0x7FFF))
    assert m.regs.get(0) == 0x8000
    assert m.regs.cond == CondFlag.NEG


def test_add_to_zero(machine):
    m = run_one(machine, [op.encode_add(0, 0, imm=1)], lambda m: m.regs.set(0, 0xFFFF))
    assert m.regs.get(0) == 0
    assert m.regs.cond == CondFlag.ZRO


def test_and_immediate_clears(machine):
    m = run_one(machine, [op.encode_and(4, 4, imm=0)], lambda m: m.regs.set(4, 0xBEEF))
    assert m.regs.get(4) == 0
    assert m.regs.cond == CondFlag.ZRO


def test_and_negative_immediate_is_sign_extended(machine):
    # imm5 = -16 -> 0xFFF0
    m = run_one(machine, [op.encode_and(1, 2, imm=-16)], lambda m: m.regs.set(2, 0x1234))
    assert m.regs.get(1) == 0x1230


def test_not(machine):
    m = run_one(machine, [op.encode_not(1, 2)], lambda m: m.regs.set(2, 0x00FF))
    assert m.regs.get(1) == 0xFF00
    assert m.regs.cond == CondFlag.NEG


@pytest.mark.parametrize("n,z,p,cond,taken", [
    (True, False, False, CondFlag.NEG, True),
    (True, False, False, CondFlag.POS, False),
    (False, True, False, CondFlag.ZRO, True),
    (False, False, True, CondFlag.ZRO, False),
    (True, True, True, CondFlag.POS, True),
    (False, False, False, CondFlag.ZRO, False),
])
def test_branch(machine, n, z, p, cond, taken):
    m = machine([op.encode_br(n, z, p, 5)])
    m.regs.cond = cond
    m.cpu.step()
    assert m.regs.pc == (0x3006 if taken else 0x3001)
    assert m.regs.cond == cond


def test_branch_backwards(machine):
    m = machine([op.encode_br(True, True, True, -1)])
    m.cpu.step()
    assert m.regs.pc == 0x3000


def test_jmp_and_ret(machine):
    m = machine([op.encode_jmp(3)])
    m.regs.set(3, 0x4000)
    m.cpu.step()
    assert m.regs.pc == 0x4000

    m = machine([op.encode_ret()])
    m.regs.set(7, 0x3050)
    m.cpu.step()
    assert m.regs.pc == 0x3050


def test_jsr_saves_following_address(machine):
    m = machine([op.encode_jsr(0x10)])
    m.cpu.step()
    assert m.regs.get(7) == 0x3001
    assert m.regs.pc == 0x3011


def test_jsrr_saves_following_address(machine):
    m = machine([op.encode_jsrr(2)])
    m.regs.set(2, 0x5000)
    m.cpu.step()
    assert m.regs.get(7) == 0x3001
    assert m.regs.pc == 0x5000


def test_jsrr_through_r7_jumps_to_saved_return(machine):
    m = machine([op.encode_jsrr(7)])
    m.regs.set(7, 0x6000)
    m.cpu.step()
    assert m.regs.pc == 0x3001
    assert m.regs.get(7) == 0x3001


def test_jsr_then_ret_round_trip(machine):
    # x3000 JSR sub ; x3001 HALT ; x3002 sub: ADD R0,R0,#5 ; RET
    m = machine([op.encode_jsr(1), HALT, op.encode_add(0, 0, imm=5), op.encode_ret()])
    assert m.cpu.run() is MachineState.HALTED
    assert m.regs.get(0) == 5
    assert m.regs.pc == 0x3002


def test_ld_uses_incremented_pc(machine):
    # x3000 LD R1, #1 -> reads x3002
    m = machine([op.encode_ld(1, 1), HALT, 0x8001])
    m.cpu.step()
    assert m.regs.get(1) == 0x8001
    assert m.regs.cond == CondFlag.NEG


def test_ldi(machine):
    m = machine([op.encode_ldi(2, 1), HALT, 0x4000])
    m.mem.write(0x4000, 42)
    m.cpu.step()
    assert m.regs.get(2) == 42
    assert m.regs.cond == CondFlag.POS


def test_ldr_negative_offset(machine):
    m = machine([op.encode_ldr(0, 1, -1)])
    m.regs.set(1, 0x4001)
    m.mem.write(0x4000, 0)
    m.regs.cond = CondFlag.POS
    m.cpu.step()
    assert m.regs.get(0) == 0
    assert m.regs.cond == CondFlag.ZRO


def test_lea(machine):
    m = machine([op.encode_lea(5, -2)])
    m.cpu.step()
    assert m.regs.get(5) == 0x2FFF
    assert m.regs.cond == CondFlag.POS


def test_st_does_not_touch_flags(machine):
    m = machine([op.encode_st(3, 4)])
    m.regs.set(3, 0xFFFF)
    m.cpu.step()
    assert m.mem.peek(0x3005) == 0xFFFF
    assert m.regs.cond == CondFlag.ZRO


def test_sti(machine):
    m = machine([op.encode_sti(0, 1), HALT, 0x4100])
    m.regs.set(0, 0xABCD)
    m.cpu.step()
    assert m.mem.peek(0x4100) == 0xABCD


def test_str(machine):
    m = machine([op.encode_str(6, 1, 31)])
    m.regs.set(6, 7)
    m.regs.set(1, 0x4000)
    m.cpu.step()
    assert m.mem.peek(0x401F) == 7


def test_pc_relative_wraps_around_address_space(machine):
    m = machine([op.encode_ld(0, -2)], origin=0x0000)
    m.regs.pc = 0x0000
    m.mem.write(0xFFFF, 0x0055)
    m.cpu.step()
    assert m.regs.get(0) == 0x0055


def test_ldi_through_kbsr_polls_keyboard(machine):
    m = machine([op.encode_ldi(0, 1), HALT, 0xFE00], keys="k")
    m.cpu.step()
    assert m.regs.get(0) == 0x8000
    assert m.mem.peek(0xFE02) == ord("k")
    assert m.regs.cond == CondFlag.NEG


@pytest.mark.parametrize("instr", [
    op.encode_add(0, 0, imm=-3),
    op.encode_and(0, 0, imm=0),
    op.encode_not(0, 0),
    op.encode_ld(0, 0),
    op.encode_ldi(0, 0),
    op.encode_ldr(0, 1, 0),
    op.encode_lea(0, 0),
])
def test_flag_invariant_for_flag_setting_instructions(machine, instr):
    for value in (0, 1, 0x7FFF, 0x8000, 0xFFFF):
        m = machine([instr, value])
        m.regs.set(0, value)
        m.regs.set(1, 0x3001)
        m.cpu.step()
        result = m.regs.get(0)
        expected = CondFlag.ZRO if result == 0 else CondFlag.NEG if result & 0x8000 else CondFlag.POS
        assert m.regs.cond == expected
