"""Stacking, encoding and decoding of protocol layers."""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from typing import Callable, ClassVar, Hashable, Mapping

RAW = "raw"


class LayerError(Exception):
    """Raised when packets cannot be composed, packed or unpacked."""


class Packet(ABC):
    """One protocol layer, optionally carrying the next layer as payload."""

    layer_type: ClassVar[Hashable] = None
    payload: Packet | None = None

    def set_payload(self, payload: Packet | None) -> None:
        """Attach the next layer; subclasses update dependent fields here."""
        self.payload = payload

    def length(self) -> int:
        """Return the encoded length of this layer and everything it carries."""
        return len(self._encode())

    @abstractmethod
    def pack(self, payload_bytes: bytes) -> bytes:
        """Return this layer encoded around the already encoded payload."""

    @abstractmethod
    def unpack(self, data: bytes) -> int:
        """Decode this layer from data and return the number of bytes used."""

    def guess_payload_type(self) -> Hashable:
        """Return the type of the next layer, or None if there is none.

        Without protocol knowledge the only hint is an attached payload.
        """
        if self.payload is None:
            return None
        return self.payload.layer_type

    def answers(self, other: Packet) -> bool:
        """Return whether this packet is a reply to the other one.

        By default a layer answers when its payload answers the other
        packet's payload.
        """
        if other is None or self.payload is None or other.payload is None:
            return False
        return self.payload.answers(other.payload)

    def _encode(self) -> bytes:
        inner = self.payload._encode() if self.payload is not None else b""
        return bytes(self.pack(inner))


class RawPacket(Packet):
    """Opaque bytes with no further structure."""

    layer_type: ClassVar[Hashable] = RAW

    def __init__(self, data: bytes = b"") -> None:
        self.data = bytes(data)

    def length(self) -> int:
        inner = self.payload.length() if self.payload is not None else 0
        return len(self.data) + inner

    def pack(self, payload_bytes: bytes) -> bytes:
        return self.data + bytes(payload_bytes)

    def unpack(self, data: bytes) -> int:
        self.data = bytes(data)
        self.payload = None
        return len(self.data)

    def guess_payload_type(self) -> Hashable:
        # Raw bytes carry nothing to decode further unless a layer was attached.
        return self.payload.layer_type if self.payload is not None else None

    def __repr__(self) -> str:
        return f"RawPacket(data={self.data!r})"


def compose(*pkts: Packet) -> Packet:
    """Chain the packets so that each carries the next one; return the first."""
    if not pkts:
        raise LayerError("No packets to compose")
    following: Packet | None = None
    for pkt in reversed(pkts):
        if following is not None:
            pkt.set_payload(following)
        following = pkt
    return pkts[0]


def pack(*pkts: Packet) -> bytes:
    """Compose the packets and return their binary form."""
    first = compose(*pkts)
    try:
        return first._encode()
    except LayerError:
        raise
    except (ValueError, OverflowError, struct.error) as err:
        raise LayerError(f"Could not pack: {err}") from err


def _decode(pkt: Packet, data: bytes) -> int:
    try:
        consumed = pkt.unpack(data)
    except LayerError:
        raise
    except (ValueError, IndexError, struct.error) as err:
        raise LayerError(f"Could not unpack {pkt.layer_type}: {err}") from err
    if not 0 <= consumed <= len(data):
        raise LayerError(f"Layer {pkt.layer_type} consumed {consumed} bytes")
    return consumed


def unpack(buf: bytes, *pkts: Packet) -> Packet:
    """Decode buf into the given packets in order, without checking that the
    types match the data. Return the first packet."""
    if not pkts:
        raise LayerError("No packets to unpack into")
    data = bytes(buf)
    offset = 0
    previous: Packet | None = None
    for pkt in pkts:
        if offset >= len(data):
            break
        offset += _decode(pkt, data[offset:])
        if previous is not None:
            previous.set_payload(pkt)
        if pkt.guess_payload_type() is None:
            break
        previous = pkt
    return pkts[0]


def unpack_all(
    buf: bytes,
    link_type: Hashable,
    decoders: Mapping[Hashable, Callable[[], Packet]] | None = None,
) -> Packet | None:
    """Decode buf recursively, starting with a layer of link_type.

    Each following layer type is guessed by the layer before it and built
    with the matching decoder; unknown types become RawPacket.
    """
    decoders = decoders or {}
    data = bytes(buf)
    offset = 0
    first: Packet | None = None
    previous: Packet | None = None

    while link_type is not None and offset < len(data):
        factory = decoders.get(link_type, RawPacket)
        pkt = factory()
        offset += _decode(pkt, data[offset:])
        if previous is None:
            first = pkt
        else:
            previous.set_payload(pkt)
        previous = pkt
        link_type = pkt.guess_payload_type()

    return first


def find_layer(pkt: Packet | None, layer_type: Hashable) -> Packet | None:
    """Return the first layer of the given type in the chain, or None."""
    while pkt is not None:
        if pkt.layer_type == layer_type:
            return pkt
        pkt = pkt.payload
    return None