# cpu.py: LC-3 machine state, instruction semantics and the fetch-execute loop
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from .disasm import disassemble
from .encoding import WORD_MASK
from .errors import IllegalOpcode
from .loader import load_image
from .memory import Memory
from .observe import TraceSink, now_ts
from .opcodes import (
    Opcode, decode_op,
    dr, sr1, sr2, base_r, imm_flag, imm5, offset6, pc_offset9, pc_offset11,
    long_flag, cond_bits, trap_vector,
)
from .registers import PC_START, R7, RegisterFile
from .traps import TrapDispatcher

log = logging.getLogger(__name__)


class MachineState(Enum):
    RUNNING = "running"
    HALTED = "halted"    # TRAP HALT
    ABORTED = "aborted"  # illegal opcode


class CPU:
    """
    LC-3 machine: one RegisterFile and one Memory, owned together.
    Executes from PC until TRAP HALT (HALTED) or an illegal opcode (ABORTED).
    Input/output devices are injected; the CPU never exits the process itself.
    """

    def __init__(
        self,
        memory: Optional[Memory] = None,
        registers: Optional[RegisterFile] = None,
        input_device=None,
        output_device=None,
        verbose: bool = False,
    ):
        self.verbose = verbose
        self.memory = memory if memory is not None else Memory()
        if input_device is not None:
            self.memory.input_device = input_device
        self.registers = registers if registers is not None else RegisterFile()
        self.traps = TrapDispatcher(self.registers, self.memory, self.memory.input_device, output_device)

        self.state = MachineState.RUNNING
        self.fault: Optional[IllegalOpcode] = None

        # Observability
        self.trace_sink = None          # type: Optional[TraceSink]
        self.metrics = self._fresh_metrics()
        self._anomaly_rules: List[Callable] = []

    @staticmethod
    def _fresh_metrics() -> Dict:
        return {
            "instr_count": 0,
            "by_opcode": {},            # op_name -> count
            "by_trap": {},              # trap_name -> count
            "errors": 0,
            "kbsr_polls": 0,
        }

    # -----------------------------------------------------------------------
    # Setup
    # -----------------------------------------------------------------------
    def load(self, data: bytes) -> int:
        return load_image(self.memory, data)

    def reset(self, pc: int = PC_START):
        """Reset registers and run state; memory contents are kept."""
        self.registers.reset(pc)
        self.state = MachineState.RUNNING
        self.fault = None
        self.metrics = self._fresh_metrics()

    def set_trace_sink(self, sink):
        self.trace_sink = sink

    def add_anomaly_rule(self, rule_callable):
        """rule(event_dict) -> list[str] of triggered rule IDs"""
        self._anomaly_rules.append(rule_callable)

    # -----------------------------------------------------------------------
    # Dispatch loop
    # -----------------------------------------------------------------------
    def step(self) -> MachineState:
        if self.state is not MachineState.RUNNING:
            return self.state

        regs = self.registers
        addr = regs.pc
        polls_before = self.memory.kbsr_polls
        instr = self.memory.read(addr)
        regs.pc = addr + 1
        op, _ = decode_op(instr)

        if self.verbose:
            log.debug("x%04X: x%04X  %s", addr, instr, disassemble(instr, addr))

        try:
            result = self._HANDLERS[op](self, instr)
        except IllegalOpcode as e:
            self.fault = e
            self.state = MachineState.ABORTED
            self.metrics["errors"] += 1
            log.error("%s", e)
        else:
            if result is not None:
                self.state = result

        self._record(addr, instr, op, self.memory.kbsr_polls - polls_before)
        return self.state

    def run(self, max_steps: Optional[int] = None) -> MachineState:
        """Step until a terminal state, or until 'max_steps' instructions have run."""
        steps = 0
        while self.state is MachineState.RUNNING:
            if max_steps is not None and steps >= max_steps:
                break
            self.step()
            steps += 1
        return self.state

    # -----------------------------------------------------------------------
    # Instruction semantics
    # -----------------------------------------------------------------------
    def _op_add(self, instr: int):
        regs = self.registers
        d = dr(instr)
        operand = imm5(instr) if imm_flag(instr) else regs.get(sr2(instr))
        regs.set(d, regs.get(sr1(instr)) + operand)
        regs.update_flags(d)

    def _op_and(self, instr: int):
        regs = self.registers
        d = dr(instr)
        operand = imm5(instr) if imm_flag(instr) else regs.get(sr2(instr))
        regs.set(d, regs.get(sr1(instr)) & operand)
        regs.update_flags(d)

    def _op_not(self, instr: int):
        regs = self.registers
        d = dr(instr)
        regs.set(d, ~regs.get(sr1(instr)))
        regs.update_flags(d)

    def _op_br(self, instr: int):
        regs = self.registers
        if cond_bits(instr) & regs.cond:
            regs.pc = regs.pc + pc_offset9(instr)

    def _op_jmp(self, instr: int):
        # also RET (JMP R7)
        self.registers.pc = self.registers.get(base_r(instr))

    def _op_jsr(self, instr: int):
        regs = self.registers
        regs.set(R7, regs.pc)
        # R7 is written first, so JSRR R7 lands on the following instruction
        if long_flag(instr):
            regs.pc = regs.pc + pc_offset11(instr)    # JSR
        else:
            regs.pc = regs.get(base_r(instr))         # JSRR

    def _op_ld(self, instr: int):
        regs = self.registers
        d = dr(instr)
        regs.set(d, self.memory.read((regs.pc + pc_offset9(instr)) & WORD_MASK))
        regs.update_flags(d)

    def _op_ldi(self, instr: int):
        regs = self.registers
        d = dr(instr)
        pointer = self.memory.read((regs.pc + pc_offset9(instr)) & WORD_MASK)
        regs.set(d, self.memory.read(pointer))
        regs.update_flags(d)

    def _op_ldr(self, instr: int):
        regs = self.registers
        d = dr(instr)
        regs.set(d, self.memory.read((regs.get(base_r(instr)) + offset6(instr)) & WORD_MASK))
        regs.update_flags(d)

    def _op_lea(self, instr: int):
        regs = self.registers
        d = dr(instr)
        regs.set(d, regs.pc + pc_offset9(instr))
        regs.update_flags(d)

    def _op_st(self, instr: int):
        regs = self.registers
        self.memory.write(regs.pc + pc_offset9(instr), regs.get(dr(instr)))

    def _op_sti(self, instr: int):
        regs = self.registers
        pointer = self.memory.read((regs.pc + pc_offset9(instr)) & WORD_MASK)
        self.memory.write(pointer, regs.get(dr(instr)))

    def _op_str(self, instr: int):
        regs = self.registers
        self.memory.write(regs.get(base_r(instr)) + offset6(instr), regs.get(dr(instr)))

    def _op_trap(self, instr: int):
        if self.traps.dispatch(trap_vector(instr)):
            return MachineState.HALTED
        return None

    def _op_illegal(self, instr: int):
        op, _ = decode_op(instr)
        raise IllegalOpcode(int(op), (self.registers.pc - 1) & WORD_MASK, instr)

    _HANDLERS: Dict[Opcode, Callable] = {}

    # -----------------------------------------------------------------------
    # Observability
    # -----------------------------------------------------------------------
    def _record(self, addr: int, instr: int, op: Opcode, kbsr_polls: int):
        trap = self.traps.trap_name(trap_vector(instr)) if op == Opcode.TRAP else None

        self.metrics["instr_count"] += 1
        self.metrics["by_opcode"][op.name] = 1 + self.metrics["by_opcode"].get(op.name, 0)
        if trap:
            self.metrics["by_trap"][trap] = 1 + self.metrics["by_trap"].get(trap, 0)
        self.metrics["kbsr_polls"] += kbsr_polls

        if not self.trace_sink:
            return

        event = {
            "ts": now_ts(),
            "pc": addr,
            "instr": instr,
            "op_name": op.name,
            "asm": disassemble(instr, addr),
            "trap": trap,
            "kbsr_poll": bool(kbsr_polls),
            "state": self.state.value,
            "error": str(self.fault) if self.state is MachineState.ABORTED else None,
            "anomalies": [],
        }
        snap = self.registers.snapshot()
        event.update({f"r{i}": snap[f"r{i}"] for i in range(8)})
        event["pc_next"] = snap["pc"]
        event["cond"] = snap["cond"]

        # run anomaly rules
        for rule in self._anomaly_rules:
            try:
                hits = rule(event) or []
                event["anomalies"].extend(hits)
            except Exception:
                log.warning("Anomaly rule %r failed", rule, exc_info=True)

        self.trace_sink.emit(event)

    def format_registers(self) -> str:
        regs = self.registers
        gpr = " ".join(f"R{i}=x{regs.get(i):04X}" for i in range(8))
        return f"{gpr} PC=x{regs.pc:04X} COND={RegisterFile.cond_name(regs.cond)}"


CPU._HANDLERS = {
    Opcode.BR: CPU._op_br,
    Opcode.ADD: CPU._op_add,
    Opcode.LD: CPU._op_ld,
    Opcode.ST: CPU._op_st,
    Opcode.JSR: CPU._op_jsr,
    Opcode.AND: CPU._op_and,
    Opcode.LDR: CPU._op_ldr,
    Opcode.STR: CPU._op_str,
    Opcode.RTI: CPU._op_illegal,
    Opcode.NOT: CPU._op_not,
    Opcode.LDI: CPU._op_ldi,
    Opcode.STI: CPU._op_sti,
    Opcode.JMP: CPU._op_jmp,
    Opcode.RES: CPU._op_illegal,
    Opcode.LEA: CPU._op_lea,
    Opcode.TRAP: CPU._op_trap,
}

_unhandled = set(Opcode) - set(CPU._HANDLERS)
if _unhandled:
    raise RuntimeError(f"No handler for opcodes: {sorted(o.name for o in _unhandled)}")
