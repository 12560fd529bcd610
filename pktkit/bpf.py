"""Classic BPF programs: instruction encoding, validation and interpretation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator

MEMWORDS = 16

_U8 = 0xFF
_U16 = 0xFFFF
_U32 = 0xFFFFFFFF


class Code(IntEnum):
    """Instruction classes."""

    LD = 0x00
    LDX = 0x01
    ST = 0x02
    STX = 0x03
    ALU = 0x04
    JMP = 0x05
    RET = 0x06
    MISC = 0x07


class Size(IntEnum):
    """Operand sizes for load instructions."""

    WORD = 0x00
    HALF = 0x08
    BYTE = 0x10


class Mode(IntEnum):
    """Addressing modes for load instructions."""

    IMM = 0x00
    ABS = 0x20
    IND = 0x40
    MEM = 0x60
    LEN = 0x80
    MSH = 0xA0


class Src(IntEnum):
    """Source operand selectors."""

    CONST = 0x00
    INDEX = 0x08
    ACC = 0x10


_ADD = 0x00
_SUB = 0x10
_MUL = 0x20
_DIV = 0x30
_OR = 0x40
_AND = 0x50
_LSH = 0x60
_RSH = 0x70
_NEG = 0x80
_MOD = 0x90
_XOR = 0xA0

_JA = 0x00
_JEQ = 0x10
_JGT = 0x20
_JGE = 0x30
_JSET = 0x40

_TAX = 0x00
_TXA = 0x80

_ALU_OPS = {_ADD, _SUB, _MUL, _DIV, _OR, _AND, _LSH, _RSH, _NEG, _MOD, _XOR}
_COND_JUMPS = {_JEQ, _JGT, _JGE, _JSET}
_WIDTHS = {Size.WORD: 4, Size.HALF: 2, Size.BYTE: 1}


def _check_range(name: str, value: int, limit: int) -> int:
    value = int(value)
    if not 0 <= value <= limit:
        raise ValueError(f"{name} out of range: {value}")
    return value


@dataclass
class Instruction:
    """A single BPF instruction."""

    code: int
    jt: int = 0
    jf: int = 0
    k: int = 0

    def __post_init__(self) -> None:
        self.code = _check_range("code", self.code, _U16)
        self.jt = _check_range("jt", self.jt, _U8)
        self.jf = _check_range("jf", self.jf, _U8)
        self.k = _check_range("k", self.k, _U32)

    def __str__(self) -> str:
        return f"{{ 0x{self.code:02x}, {self.jt:3d}, {self.jf:3d}, 0x{self.k:08x} }},"


class Filter:
    """A BPF program that can be validated and run against packet data."""

    def __init__(self, instructions: Iterable[Instruction | tuple] = ()) -> None:
        self._insns: list[Instruction] = [
            insn if isinstance(insn, Instruction) else Instruction(*insn)
            for insn in instructions
        ]

    def append(self, code: int, jt: int, jf: int, k: int) -> None:
        """Append a raw instruction to the program."""
        self._insns.append(Instruction(code, jt, jf, k))

    def match(self, buf: bytes) -> bool:
        """Return whether the program accepts the given buffer."""
        return self.filter(buf) > 0

    def filter(self, buf: bytes) -> int:
        """Run the program on the buffer and return its result."""
        data = bytes(buf)
        return self._execute(data, len(data))

    def validate(self) -> bool:
        """Check that all jumps are forward and in range, and that the
        program ends with a return instruction."""
        count = len(self._insns)
        if count < 1:
            return False

        for index, insn in enumerate(self._insns):
            code, k = insn.code, insn.k
            cls = code & 0x07
            if cls in (Code.LD, Code.LDX):
                mode = code & 0xE0
                if mode == Mode.MEM:
                    if k >= MEMWORDS:
                        return False
                elif mode not in (Mode.IMM, Mode.ABS, Mode.IND, Mode.MSH, Mode.LEN):
                    return False
            elif cls in (Code.ST, Code.STX):
                if k >= MEMWORDS:
                    return False
            elif cls == Code.ALU:
                op = code & 0xF0
                if op not in _ALU_OPS:
                    return False
                if op in (_DIV, _MOD) and (code & 0x08) == Src.CONST and k == 0:
                    return False
            elif cls == Code.JMP:
                following = index + 1
                op = code & 0xF0
                if op == _JA:
                    if following + k >= count:
                        return False
                elif op in _COND_JUMPS:
                    if following + insn.jt >= count or following + insn.jf >= count:
                        return False
                else:
                    return False

        return (self._insns[-1].code & 0x07) == Code.RET

    def cleanup(self) -> None:
        """Drop every instruction of the program."""
        self._insns.clear()

    def __len__(self) -> int:
        return len(self._insns)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self._insns)

    def __getitem__(self, index):
        return self._insns[index]

    def __str__(self) -> str:
        return "\n".join(str(insn) for insn in self._insns)

    def _execute(self, data: bytes, wirelen: int) -> int:
        insns = self._insns
        if not insns:
            return _U32

        buflen = len(data)
        acc = 0
        idx = 0
        mem = [0] * MEMWORDS
        pc = 0

        while pc < len(insns):
            insn = insns[pc]
            pc += 1
            code, k = insn.code, insn.k
            if code > 0xFF:
                return 0
            cls = code & 0x07

            if cls == Code.RET:
                rval = code & 0x18
                if code != Code.RET | rval:
                    return 0
                if rval == Src.CONST:
                    return k
                if rval == Src.ACC:
                    return acc
                return 0

            if cls == Code.LD:
                mode, size = code & 0xE0, code & 0x18
                if mode in (Mode.ABS, Mode.IND):
                    width = _WIDTHS.get(size)
                    if width is None:
                        return 0
                    offset = k if mode == Mode.ABS else idx + k
                    if offset + width > buflen:
                        return 0
                    acc = int.from_bytes(data[offset:offset + width], "big")
                elif size != Size.WORD:
                    return 0
                elif mode == Mode.IMM:
                    acc = k
                elif mode == Mode.LEN:
                    acc = wirelen
                elif mode == Mode.MEM:
                    if k >= MEMWORDS:
                        return 0
                    acc = mem[k]
                else:
                    return 0

            elif cls == Code.LDX:
                mode, size = code & 0xE0, code & 0x18
                if mode == Mode.MSH and size == Size.BYTE:
                    if k >= buflen:
                        return 0
                    idx = (data[k] & 0x0F) << 2
                elif size != Size.WORD:
                    return 0
                elif mode == Mode.IMM:
                    idx = k
                elif mode == Mode.LEN:
                    idx = wirelen
                elif mode == Mode.MEM:
                    if k >= MEMWORDS:
                        return 0
                    idx = mem[k]
                else:
                    return 0

            elif cls in (Code.ST, Code.STX):
                if code != cls or k >= MEMWORDS:
                    return 0
                mem[k] = acc if cls == Code.ST else idx

            elif cls == Code.ALU:
                op, src = code & 0xF0, code & 0x08
                operand = k if src == Src.CONST else idx
                if op == _ADD:
                    acc = (acc + operand) & _U32
                elif op == _SUB:
                    acc = (acc - operand) & _U32
                elif op == _MUL:
                    acc = (acc * operand) & _U32
                elif op == _DIV:
                    if operand == 0:
                        return 0
                    acc //= operand
                elif op == _MOD:
                    if operand == 0:
                        return 0
                    acc %= operand
                elif op == _OR:
                    acc |= operand
                elif op == _AND:
                    acc &= operand
                elif op == _XOR:
                    acc ^= operand
                elif op == _LSH:
                    acc = (acc << operand) & _U32 if operand < 32 else 0
                elif op == _RSH:
                    acc = acc >> operand if operand < 32 else 0
                elif op == _NEG:
                    if src != Src.CONST:
                        return 0
                    acc = (-acc) & _U32
                else:
                    return 0

            elif cls == Code.JMP:
                op, src = code & 0xF0, code & 0x08
                if op == _JA:
                    if src != Src.CONST:
                        return 0
                    pc += k
                    continue
                operand = k if src == Src.CONST else idx
                if op == _JEQ:
                    taken = acc == operand
                elif op == _JGT:
                    taken = acc > operand
                elif op == _JGE:
                    taken = acc >= operand
                elif op == _JSET:
                    taken = (acc & operand) != 0
                else:
                    return 0
                pc += insn.jt if taken else insn.jf

            else:
                miscop = code & 0xF8
                if miscop == _TAX:
                    idx = acc
                elif miscop == _TXA:
                    acc = idx
                else:
                    return 0

        return 0