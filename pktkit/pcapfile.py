"""Packet capture and injection on pcap dump files."""

from __future__ import annotations

import os
import struct
from typing import BinaryIO, NoReturn

from .bpf import Filter
from .capture import CaptureError, CaptureHandle

BIG_ENDIAN = b"\xa1\xb2\xc3\xd4"
LITTLE_ENDIAN = b"\xd4\xc3\xb2\xa1"

_DEFAULT_MTU = 0x7FFF
_DEFAULT_LINK = 1


def _create_file(file_name: str) -> BinaryIO:
    try:
        handle = open(file_name, "w+b")
    except OSError as err:
        raise CaptureError(f"Could not create file: {err}") from err
    handle.write(BIG_ENDIAN)
    handle.write(struct.pack(">HHIIII", 2, 4, 0, 0, _DEFAULT_MTU, _DEFAULT_LINK))
    handle.flush()
    return handle


def _open_file(file_name: str) -> BinaryIO:
    try:
        return open(file_name, "r+b")
    except OSError as err:
        raise CaptureError(f"Could not open file: {err}") from err


class FileHandle(CaptureHandle):
    """A capture handle backed by a pcap file, created if it does not exist."""

    def __init__(self, file_name: str) -> None:
        self.file = file_name
        if os.path.exists(file_name):
            reader = _open_file(file_name)
        else:
            reader = _create_file(file_name)

        reader.seek(0)
        magic = reader.read(4)
        if magic == BIG_ENDIAN:
            self._order = ">"
        elif magic == LITTLE_ENDIAN:
            self._order = "<"
        else:
            reader.close()
            raise CaptureError("Invalid file")

        header = reader.read(20)
        if len(header) == 20:
            _major, _minor, _, _, mtu, link = struct.unpack(
                self._order + "HHIIII", header
            )
        else:
            mtu, link = 0, 0

        self._reader = reader
        self._mtu = mtu
        self._link = link
        self._filter: Filter | None = None
        self._active = False

        # A separate handle for appending avoids seeking back and forth.
        self._writer = _open_file(file_name)
        self._writer.seek(0, os.SEEK_END)

    def _unsupported(self, setting: str, value: object) -> NoReturn:
        raise CaptureError(
            f"Unsupported: cannot set {setting} to {value!r} on file {self.file}"
        )

    def link_type(self) -> int:
        return self._link

    def set_mtu(self, mtu: int) -> None:
        self._unsupported("mtu", mtu)

    def set_promisc_mode(self, promisc: bool) -> None:
        self._unsupported("promiscuous mode", promisc)

    def set_monitor_mode(self, monitor: bool) -> None:
        self._unsupported("monitor mode", monitor)

    def set_buf_size(self, buf_size: int) -> None:
        self._unsupported("buffer size", buf_size)

    def apply_filter(self, flt: Filter) -> None:
        if not flt.validate():
            raise CaptureError("Invalid filter")
        self._filter = flt

    def activate(self) -> None:
        """Mark the handle active; files need no setup, so this never fails."""
        self._active = True

    def capture(self) -> bytes | None:
        record = struct.Struct(self._order + "IIII")
        while True:
            header = self._reader.read(record.size)
            if len(header) < record.size:
                return None
            _sec, _usec, caplen, _wirelen = record.unpack(header)
            if caplen == 0:
                return None

            try:
                buf = self._reader.read(caplen)
            except OSError as err:
                raise CaptureError(f"Could not capture: {err}") from err
            if not buf:
                return None

            if self._filter is not None and not self._filter.match(buf):
                continue
            return buf

    def inject(self, buf: bytes) -> None:
        data = bytes(buf)
        header = struct.pack(self._order + "IIII", 0, 0, len(data), len(data))
        try:
            self._writer.write(header)
            written = self._writer.write(data)
            self._writer.flush()
        except OSError as err:
            raise CaptureError(f"Could not write packet: {err}") from err
        if written < len(data):
            raise CaptureError("Could not write packet: short write")

    def close(self) -> None:
        self._reader.close()
        self._writer.close()