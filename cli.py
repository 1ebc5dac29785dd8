# cli.py: command line front end for the LC-3 simulator
# Provides commands to run .obj images, disassemble them, and monitor execution interactively.

import argparse
import logging
import sys
import shlex
import curses
import time
from collections import deque
from contextlib import nullcontext
from pathlib import Path
from typing import Optional, List


# Local module imports
from lc3_sim.core.cpu import CPU, MachineState
from lc3_sim.core.console import TerminalInput, ScriptedInput, ConsoleOutput
from lc3_sim.core.disasm import disassemble, disassemble_block
from lc3_sim.core.encoding import WORD_MASK
from lc3_sim.core.errors import ImageLoadError, InputClosed, QuitRequested
from lc3_sim.core.loader import load_image, parse_image, read_image_file
from lc3_sim.core.observe import TraceSink, write_metrics
from lc3_sim.core.registers import PC_START, RegisterFile
from lc3_sim.tools.anomaly_rules import rule_self_branch, rule_pc_outside_user_space, rule_kbsr_busy_poll

log = logging.getLogger("lc3sim")

EXIT_HALTED = 0
EXIT_ABORTED = 1
EXIT_LOAD_ERROR = 2
EXIT_QUIT = 0


# -----------------------------------------------------------------------------
# Utilities
# -----------------------------------------------------------------------------

def _bits_to_lamps(bits: int, width: int = 16) -> str:
    """Render 'width' lamps from the low bits of a word."""
    b = bits & ((1 << width) - 1)
    # '●' lit, '○' unlit
    return "".join("●" if (b >> (width - 1 - i)) & 1 else "○" for i in range(width))


def _int_arg(text: str) -> int:
    """Parse 0x3000, x3000, #12 or plain decimal."""
    text = text.strip()
    if text[:1] in ("x", "X"):
        return int(text[1:], 16)
    if text[:1] == "#":
        return int(text[1:], 10)
    return int(text, 0)


def configure_logging(verbosity: int):
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def exit_code(state: MachineState) -> int:
    if state is MachineState.ABORTED:
        return EXIT_ABORTED
    return EXIT_HALTED


def load_images(cpu: CPU, paths: List[str]) -> List[int]:
    """Load each image in order; later images overwrite earlier words."""
    return [load_image(cpu.memory, read_image_file(p)) for p in paths]


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def cmd_run(args: argparse.Namespace) -> int:
    scripted = args.input is not None
    input_dev = ScriptedInput(args.input) if scripted else TerminalInput()
    raw = not scripted and not args.no_raw and input_dev.isatty()
    output = ConsoleOutput(stream=sys.stdout, crlf=raw)

    cpu = CPU(input_device=input_dev, output_device=output, verbose=args.verbose >= 2)
    try:
        load_images(cpu, args.images)
    except ImageLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_LOAD_ERROR
    cpu.registers.pc = args.start
    log.info("Starting at x%04X (raw terminal: %s)", args.start, "yes" if raw else "no")

    # Trace configuration
    if args.trace_file:
        cpu.set_trace_sink(TraceSink(path=args.trace_file, truncate=True))
        print(f"Tracing to '{args.trace_file}'", file=sys.stderr)
        cpu.add_anomaly_rule(rule_self_branch)
        cpu.add_anomaly_rule(rule_pc_outside_user_space)
        cpu.add_anomaly_rule(rule_kbsr_busy_poll({}))

    rc = None
    try:
        with (input_dev.raw_mode() if raw else nullcontext()):
            state = cpu.run(max_steps=args.max_steps)
    except InputClosed:
        print("\nInput closed.", file=sys.stderr)
        state, rc = cpu.state, EXIT_QUIT
    except QuitRequested:
        print("\nQuit.", file=sys.stderr)
        state, rc = cpu.state, EXIT_QUIT

    if state is MachineState.ABORTED:
        print(f"Aborted: {cpu.fault}", file=sys.stderr)
    elif state is MachineState.RUNNING and rc is None:
        print(f"Stopped after {args.max_steps} steps.", file=sys.stderr)

    if args.status:
        print(f"REGS {cpu.format_registers()}", file=sys.stderr)
        print(f"State={state.value} instructions={cpu.metrics['instr_count']}", file=sys.stderr)

    # Dump metrics if requested
    if args.trace_metrics:
        write_metrics(args.trace_metrics, cpu.metrics)
        print(f"Metrics saved to '{args.trace_metrics}'", file=sys.stderr)

    return rc if rc is not None else exit_code(state)


def cmd_disasm(args: argparse.Namespace) -> int:
    try:
        origin, words = parse_image(read_image_file(args.image))
    except ImageLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_LOAD_ERROR
    count = len(words) if args.count is None else min(args.count, len(words))
    print(f".ORIG x{origin:04X}")
    for i, word in enumerate(words[:count]):
        addr = (origin + i) & WORD_MASK
        print(f"x{addr:04X}: x{word:04X}  {disassemble(word, addr)}")
    return 0


# -----------------------------------------------------------------------------
# Monitor (interactive)
# -----------------------------------------------------------------------------

class Monitor:
    """Interactive monitor: step/run, inspect registers/memory, set breakpoints."""

    def __init__(self, images: List[str], start: int = PC_START):
        self.input = ScriptedInput()
        self.output = ConsoleOutput(stream=sys.stdout)
        self.cpu = CPU(input_device=self.input, output_device=self.output)
        self.origins = load_images(self.cpu, images)
        self.cpu.registers.pc = start
        self.breakpoints = set()
        self.trace: bool = False

    def prompt(self):
        return f"lc3@x{self.cpu.registers.pc:04X}> "

    def print_regs(self):
        print(self.cpu.format_registers())

    def _report_stop(self):
        state = self.cpu.state
        if state is MachineState.HALTED:
            print("HALT encountered. Stopping.")
        elif state is MachineState.ABORTED:
            print(f"Aborted: {self.cpu.fault}")

    def _step_one(self) -> bool:
        """Execute one instruction; False when the machine can no longer run."""
        pc = self.cpu.registers.pc
        if self.trace:
            print(f"x{pc:04X}: {disassemble(self.cpu.memory.peek(pc), pc)}")
        try:
            state = self.cpu.step()
        except InputClosed:
            print("Program is waiting for input. Use 'input <text>'.")
            # rewind so the blocked instruction runs again once input exists
            self.cpu.registers.pc = pc
            return False
        return state is MachineState.RUNNING

    def do_step(self, args: List[str]):
        n = _int_arg(args[0]) if args else 1
        for _ in range(n):
            if not self._step_one():
                self._report_stop()
                break
        self.print_regs()

    def do_run(self, args: List[str]):
        max_steps = _int_arg(args[0]) if args else 1000000
        steps = 0
        while steps < max_steps:
            if not self._step_one():
                self._report_stop()
                break
            steps += 1
            if self.cpu.registers.pc in self.breakpoints:
                print(f"Breakpoint at x{self.cpu.registers.pc:04X}")
                break
        print(f"Run finished after {steps} steps. PC=x{self.cpu.registers.pc:04X}")

    def do_trace(self, args: List[str]):
        self.trace = not self.trace
        print(f"Trace {'ON' if self.trace else 'OFF'}")

    def do_regs(self, args: List[str]):
        self.print_regs()

    def do_mem(self, args: List[str]):
        if len(args) < 1:
            print("mem <addr> [count]")
            return
        addr = _int_arg(args[0])
        count = _int_arg(args[1]) if len(args) > 1 else 8
        for i, word in enumerate(self.cpu.memory.dump(addr, count)):
            print(f"x{(addr + i) & WORD_MASK:04X}: x{word:04X}  {word:6d}")

    def do_disasm(self, args: List[str]):
        addr = _int_arg(args[0]) if args else self.cpu.registers.pc
        count = _int_arg(args[1]) if len(args) > 1 else 8
        for line in disassemble_block(self.cpu.memory, addr, count):
            print(line)

    def do_write(self, args: List[str]):
        if len(args) < 2:
            print("write <addr> <value>")
            return
        addr = _int_arg(args[0])
        val = _int_arg(args[1])
        self.cpu.memory.write(addr, val)
        print(f"Wrote x{val & WORD_MASK:04X} at x{addr & WORD_MASK:04X}")

    def do_pc(self, args: List[str]):
        if len(args) < 1:
            print("pc <addr>")
            return
        self.cpu.registers.pc = _int_arg(args[0])
        print(f"PC set to x{self.cpu.registers.pc:04X}")

    def do_break(self, args: List[str]):
        if not args:
            print("Breakpoints:", " ".join(f"x{b:04X}" for b in sorted(self.breakpoints)) or "none")
            return
        addr = _int_arg(args[0]) & WORD_MASK
        self.breakpoints.add(addr)
        print(f"Breakpoint set at x{addr:04X}")

    def do_unbreak(self, args: List[str]):
        if not args:
            print("unbreak <addr>")
            return
        self.breakpoints.discard(_int_arg(args[0]) & WORD_MASK)

    def do_input(self, args: List[str]):
        newline = True
        if args and args[0] == "-n":
            newline, args = False, args[1:]
        text = " ".join(args)
        self.input.feed(text + "\n" if newline else text)
        print(f"{self.input.pending()} character(s) pending")

    def do_reset(self, args: List[str]):
        self.cpu.reset(PC_START)
        print(f"Registers reset; PC=x{PC_START:04X}")

    def lamps_line(self):
        regs = self.cpu.registers
        return "  ".join(f"[r{i}]{_bits_to_lamps(regs.get(i))}" for i in range(8))

    def do_lights(self, args):
        print(self.lamps_line())

    def execute_line(self, line: str) -> bool:
        """Run one monitor command. Returns False when the monitor should exit."""
        if not line.strip():
            return True
        parts = shlex.split(line)
        cmd, *args = parts
        if cmd in ("quit", "exit"):
            return False
        elif cmd == "help":
            print("""
Commands:
  step [n]                 Step n instructions.
  run [max_steps]          Run until HALT, an illegal opcode, a breakpoint or max steps.
  break [addr]             Set a breakpoint (no argument lists them).
  unbreak <addr>           Remove a breakpoint.
  pc <addr>                Set the program counter.
  trace                    Toggle per-instruction disassembly while stepping.
  regs                     Show registers.
  lights                   Show register lamps.
  mem <addr> [count]       Dump memory words.
  disasm [addr] [count]    Disassemble from addr (default PC).
  write <addr> <value>     Write a word to memory.
  input [-n] <text>        Queue keyboard input (-n: no trailing newline).
  reset                    Reset registers and state; memory is kept.
  help, exit, quit         Show help / exit.
            """)
        else:
            fn = getattr(self, f"do_{cmd}", None)
            if fn:
                try:
                    fn(args)
                except ValueError as e:
                    print(f"Error: {e}")
            else:
                print(f"Unknown command: {cmd}. Type 'help'.")
        return True

    def loop(self):
        print("Interactive monitor. Type 'help' for commands. Ctrl-D to exit.")
        while True:
            try:
                line = input(self.prompt())
            except EOFError:
                print()
                break
            if not self.execute_line(line):
                break


def _blinklights_loop(mon: Monitor):
    """Curses-based blinklights panel. Press 'q' to exit panel, 'space' to pause/resume.
    Any other key is queued as keyboard input for the program."""
    stdscr = curses.initscr()
    curses.noecho()
    curses.cbreak()
    stdscr.nodelay(True)
    out_buf: List[int] = []
    mon.output = ConsoleOutput(collector=out_buf)
    mon.cpu.traps.output_device = mon.output
    try:
        paused = False
        last_asm = ""
        rate_window = deque(maxlen=50)
        last_t = time.time()

        while True:
            ch = stdscr.getch()
            if ch == ord('q'):
                break
            elif ch == ord(' '):
                paused = not paused
            elif 0 <= ch < 256:
                mon.input.feed([ch])

            cpu = mon.cpu
            if not paused and cpu.state is MachineState.RUNNING:
                pc = cpu.registers.pc
                last_asm = disassemble(cpu.memory.peek(pc), pc)
                try:
                    cpu.step()
                except InputClosed:
                    # waiting for a key
                    cpu.registers.pc = pc
                now = time.time()
                rate_window.append(now - last_t)
                last_t = now

            regs = cpu.registers
            stdscr.erase()
            stdscr.addstr(0, 0, "LC-3 front panel  (space: pause, q: quit)")
            for i in range(8):
                stdscr.addstr(2 + i, 0, f"R{i} {_bits_to_lamps(regs.get(i))}  x{regs.get(i):04X}")
            stdscr.addstr(11, 0, f"PC {_bits_to_lamps(regs.pc)}  x{regs.pc:04X}")
            stdscr.addstr(12, 0, f"COND {RegisterFile.cond_name(regs.cond)}   last: {last_asm:<30}")
            if rate_window:
                avg = sum(rate_window) / len(rate_window)
                stdscr.addstr(13, 0, f"rate ~{(1.0 / avg) if avg else 0:.0f} instr/s")
            tail = "".join(chr(c) for c in out_buf[-400:]).splitlines()[-5:]
            for i, text in enumerate(tail):
                stdscr.addstr(15 + i, 0, text[:78])
            state = "PAUSED" if paused else cpu.state.value.upper()
            stdscr.addstr(21, 0, f"State={state}")
            stdscr.refresh()

            # modest sleep to avoid pegging CPU; adjust for smoothness
            time.sleep(0.01)

    finally:
        curses.nocbreak()
        curses.echo()
        curses.endwin()


def cmd_monitor(args: argparse.Namespace) -> int:
    try:
        mon = Monitor(args.images, start=args.start)
    except ImageLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_LOAD_ERROR

    # Trace configuration for monitor
    if getattr(args, "trace_file", None):
        mon.cpu.set_trace_sink(TraceSink(path=str(Path(args.trace_file)), truncate=True))
        print(f"Tracing to '{args.trace_file}'")

    if getattr(args, "blinklights", False):
        _blinklights_loop(mon)
    else:
        mon.loop()

    return exit_code(mon.cpu.state)

# -----------------------------------------------------------------------------
# Argument parsing
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="LC-3 Simulator CLI / Monitor")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-v info, -vv per-instruction debug)")
    sub = p.add_subparsers(dest="cmd", required=True)

    # run
    pr = sub.add_parser("run", help="Load .obj images and run until HALT")
    pr.add_argument("images", nargs="+", help="Program image(s), loaded in order")
    pr.add_argument("--start", type=_int_arg, default=PC_START, help="Start PC (default x3000)")
    pr.add_argument("--max-steps", type=int, help="Stop after this many instructions")
    pr.add_argument("--input", help="Scripted keyboard input instead of the terminal")
    pr.add_argument("--no-raw", action="store_true", help="Keep the terminal in line mode")
    pr.add_argument("--status", action="store_true", help="Print registers after run")
    pr.add_argument("--trace-file", help="Write JSONL trace to file")
    pr.add_argument("--trace-metrics", help="Write metrics JSON to file")

    # disasm
    pd = sub.add_parser("disasm", help="Disassemble an image")
    pd.add_argument("image", help="Program image")
    pd.add_argument("--count", type=int, help="Number of words to list")

    # monitor
    pm = sub.add_parser("monitor", help="Interactive monitor for stepping and inspecting")
    pm.add_argument("images", nargs="+", help="Program image(s), loaded in order")
    pm.add_argument("--start", type=_int_arg, default=PC_START, help="Start PC (default x3000)")
    pm.add_argument("--trace-file", help="Write JSONL trace to file")
    pm.add_argument("--blinklights", action="store_true", help="Show front-panel blinklights UI")

    return p


# -----------------------------------------------------------------------------
# Main
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.cmd == "run":
        return cmd_run(args)
    elif args.cmd == "disasm":
        return cmd_disasm(args)
    elif args.cmd == "monitor":
        return cmd_monitor(args)
    else:
        parser.error("Unknown command")
        return 2


if __name__ == "__main__":
    sys.exit(main())
