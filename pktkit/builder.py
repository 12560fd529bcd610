"""Assemble BPF filters from individual instructions with symbolic labels."""

from __future__ import annotations

from .bpf import Code, Filter, Mode, Size, Src

_U8 = 0xFF
_U32 = 0xFFFFFFFF


class Builder:
    """Fluent assembler for BPF programs; jump targets are named labels."""

    def __init__(self) -> None:
        self._filter = Filter()
        self._labels: dict[str, int] = {}
        self._jumps_k: dict[int, str] = {}
        self._jumps_jt: dict[int, str] = {}
        self._jumps_jf: dict[int, str] = {}

    def build(self) -> Filter:
        """Resolve label references and return the filter."""
        for index, insn in enumerate(self._filter):
            label = self._jumps_k.get(index)
            if label is not None:
                addr = self._labels.get(label, 0)
                if addr != 0:
                    insn.k = (addr - index - 1) & _U32

            label = self._jumps_jt.get(index)
            if label is not None:
                addr = self._labels.get(label, 0)
                if addr != 0:
                    insn.jt = (addr - index - 1) & _U8

            label = self._jumps_jf.get(index)
            if label is not None:
                addr = self._labels.get(label, 0)
                if addr != 0:
                    insn.jf = (addr - index - 1) & _U8

        return self._filter

    def label(self, name: str) -> Builder:
        """Define a label at the next instruction position."""
        self._labels[name] = len(self._filter)
        return self

    def _emit(self, code: int, k: int = 0) -> Builder:
        self._filter.append(code, 0, 0, k)
        return self

    def _alu(self, src: Src, op: int, val: int) -> Builder:
        return self._emit(int(src) | op | Code.ALU, val)

    def _cond_jump(self, src: Src, op: int, jt: str, jf: str, cmp: int) -> Builder:
        position = len(self._filter)
        self._jumps_jt[position] = jt
        self._jumps_jf[position] = jf
        return self._emit(int(src) | op | Code.JMP, cmp)

    def ld(self, size: Size, mode: Mode, val: int) -> Builder:
        """Load a value into the accumulator."""
        return self._emit(int(size) | int(mode) | Code.LD, val)

    def ldx(self, size: Size, mode: Mode, val: int) -> Builder:
        """Load a value into the index register."""
        return self._emit(int(size) | int(mode) | Code.LDX, val)

    def st(self, off: int) -> Builder:
        """Store the accumulator in scratch memory."""
        return self._emit(Code.ST, off)

    def stx(self, off: int) -> Builder:
        """Store the index register in scratch memory."""
        return self._emit(Code.STX, off)

    def add(self, src: Src, val: int) -> Builder:
        return self._alu(src, 0x00, val)

    def sub(self, src: Src, val: int) -> Builder:
        return self._alu(src, 0x10, val)

    def mul(self, src: Src, val: int) -> Builder:
        return self._alu(src, 0x20, val)

    def div(self, src: Src, val: int) -> Builder:
        return self._alu(src, 0x30, val)

    def or_(self, src: Src, val: int) -> Builder:
        return self._alu(src, 0x40, val)

    def and_(self, src: Src, val: int) -> Builder:
        return self._alu(src, 0x50, val)

    def lsh(self, src: Src, val: int) -> Builder:
        return self._alu(src, 0x60, val)

    def rsh(self, src: Src, val: int) -> Builder:
        return self._alu(src, 0x70, val)

    def neg(self) -> Builder:
        return self._emit(0x80 | Code.ALU)

    def mod(self, src: Src, val: int) -> Builder:
        return self._alu(src, 0x90, val)

    def xor(self, src: Src, val: int) -> Builder:
        return self._alu(src, 0xA0, val)

    def ja(self, target: str) -> Builder:
        """Jump unconditionally to a label."""
        self._jumps_k[len(self._filter)] = target
        return self._emit(0x00 | Code.JMP)

    def jeq(self, src: Src, jt: str, jf: str, cmp: int) -> Builder:
        return self._cond_jump(src, 0x10, jt, jf, cmp)

    def jgt(self, src: Src, jt: str, jf: str, cmp: int) -> Builder:
        return self._cond_jump(src, 0x20, jt, jf, cmp)

    def jge(self, src: Src, jt: str, jf: str, cmp: int) -> Builder:
        return self._cond_jump(src, 0x30, jt, jf, cmp)

    def jset(self, src: Src, jt: str, jf: str, cmp: int) -> Builder:
        return self._cond_jump(src, 0x40, jt, jf, cmp)

    def ret(self, src: Src, value: int) -> Builder:
        """Terminate the program, accepting the given amount of the packet."""
        return self._emit(int(src) | Code.RET, value)

    def tax(self) -> Builder:
        """Copy the accumulator into the index register."""
        return self._emit(0x00 | Code.MISC)

    def txa(self) -> Builder:
        """Copy the index register into the accumulator."""
        return self._emit(0x80 | Code.MISC)

    def append_instruction(self, code: int, jt: int, jf: int, k: int) -> Builder:
        """Append a raw instruction."""
        self._filter.append(code, jt, jf, k)
        return self