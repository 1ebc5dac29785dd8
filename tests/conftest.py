# tests/conftest.py
import sys, os
# Add project root to sys.path so both `lc3_sim` and `cli` are importable
ROOT = os.path.dirname(os.path.dirname(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import pytest

from lc3_sim.core.cpu import CPU
from lc3_sim.core.console import ConsoleOutput, ScriptedInput
from lc3_sim.core.loader import pack_image


class Machine:
    """A CPU wired to scripted input and a collecting output."""

    def __init__(self, words, origin=0x3000, keys=""):
        self.out = []
        self.keys = ScriptedInput(keys)
        self.cpu = CPU(input_device=self.keys, output_device=ConsoleOutput(collector=self.out))
        self.cpu.load(pack_image(origin, words))

    @property
    def regs(self):
        return self.cpu.registers

    @property
    def mem(self):
        return self.cpu.memory

    def output(self) -> str:
        return "".join(chr(c) for c in self.out)


@pytest.fixture
def machine():
    return Machine


@pytest.fixture
def write_image(tmp_path):
    def _write(name, origin, words):
        path = tmp_path / name
        path.write_bytes(pack_image(origin, words))
        return path
    return _write
