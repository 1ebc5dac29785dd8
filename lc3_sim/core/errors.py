# errors.py: exception hierarchy for the LC-3 simulator


class LC3Error(Exception):
    """Base class for every error raised by the simulator."""


class IllegalOpcode(LC3Error):
    """A reserved or unimplemented opcode (RTI, RES) was fetched."""

    def __init__(self, opcode: int, address: int, instr: int):
        self.opcode = opcode
        self.address = address
        self.instr = instr
        super().__init__(f"Illegal opcode 0x{opcode:X} at 0x{address:04X} (instr=0x{instr:04X})")


class ImageLoadError(LC3Error):
    """The program image is missing, unreadable or malformed."""


class QuitRequested(LC3Error):
    """The user confirmed a quit request through the input device."""


class InputClosed(QuitRequested):
    """The input device reached end of input on a blocking read."""
