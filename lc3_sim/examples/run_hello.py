# run_hello.py: build a small image in memory -> run it -> show output and metrics
import sys
import os as _os
sys.path.append(_os.path.abspath(_os.path.join(_os.path.dirname(__file__), '..', '..')))

from lc3_sim.core.cpu import CPU
from lc3_sim.core.console import ConsoleOutput, ScriptedInput
from lc3_sim.core.loader import pack_image
from lc3_sim.core.observe import TraceSink
from lc3_sim.core.opcodes import (
    Trap, encode_lea, encode_trap, encode_add, encode_br, encode_and,
)

MESSAGE = "Hello, LC-3!\n"

# x3000: LEA R0, MSG ; PUTS ; GETC ; OUT ; AND R1,R1,#0 ; ADD R1,R1,#3
#        loop: ADD R1,R1,#-1 ; BRp loop ; HALT ; MSG .STRINGZ
program = [
    encode_lea(0, 8),
    encode_trap(Trap.PUTS),
    encode_trap(Trap.GETC),
    encode_trap(Trap.OUT),
    encode_and(1, 1, imm=0),
    encode_add(1, 1, imm=3),
    encode_add(1, 1, imm=-1),
    encode_br(False, False, True, -2),
    encode_trap(Trap.HALT),
]
program += [ord(c) for c in MESSAGE] + [0]

out = []
cpu = CPU(input_device=ScriptedInput("!"), output_device=ConsoleOutput(collector=out))
cpu.load(pack_image(0x3000, program))

events = []
cpu.set_trace_sink(TraceSink(collector=events))
state = cpu.run()

print({
    'state': state.value,
    'output': ''.join(chr(c) for c in out),
    'instructions': cpu.metrics['instr_count'],
    'by_trap': cpu.metrics['by_trap'],
    'last_asm': events[-1]['asm'],
})
