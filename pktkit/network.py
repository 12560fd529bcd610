"""Send and receive whole packet stacks through a capture handle."""

from __future__ import annotations

import time
from typing import Callable, Hashable, Mapping

from .capture import CaptureError, CaptureHandle
from .layers import LayerError, Packet, pack, unpack_all


class NetworkError(Exception):
    """Raised when sending or receiving packets fails."""


def send(handle: CaptureHandle, *pkts: Packet) -> None:
    """Pack the packets and inject them into the handle."""
    if not pkts:
        raise NetworkError("No packets to send")
    expected = handle.link_type()
    got = pkts[0].layer_type
    if got != expected:
        raise NetworkError(f"Expected packet type {expected}, got {got}")

    try:
        buf = pack(*pkts)
    except LayerError as err:
        raise NetworkError(f"Could not pack: {err}") from err

    try:
        handle.inject(buf)
    except CaptureError as err:
        raise NetworkError(f"Could not inject: {err}") from err


def recv(
    handle: CaptureHandle,
    decoders: Mapping[Hashable, Callable[[], Packet]] | None = None,
) -> Packet | None:
    """Capture one packet and decode it; None when the source is exhausted."""
    try:
        buf = handle.capture()
    except CaptureError as err:
        raise NetworkError(f"Could not capture: {err}") from err
    if buf is None:
        return None

    try:
        return unpack_all(buf, handle.link_type(), decoders)
    except LayerError as err:
        raise NetworkError(f"Could not unpack: {err}") from err


def send_recv(
    handle: CaptureHandle,
    timeout: float,
    decoders: Mapping[Hashable, Callable[[], Packet]] | None,
    *pkts: Packet,
) -> Packet | None:
    """Send the packets and return the first captured packet answering them.

    A positive timeout, in seconds, bounds the wait; zero waits forever.
    """
    send(handle, *pkts)
    start = time.monotonic()

    while True:
        pkt = recv(handle, decoders)
        if pkt is None:
            return None
        if pkt.answers(pkts[0]):
            return pkt
        if timeout > 0 and time.monotonic() - start > timeout:
            raise NetworkError("Timeout")