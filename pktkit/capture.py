"""Common interface shared by every packet source and sink."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator

from .bpf import Filter


class CaptureError(Exception):
    """Raised when a capture handle cannot perform an operation."""


class CaptureHandle(ABC):
    """A packet source that can also inject packets."""

    @abstractmethod
    def link_type(self) -> int:
        """Return the link-layer type of the packets this source produces."""

    @abstractmethod
    def set_mtu(self, mtu: int) -> None:
        """Set the maximum number of bytes captured per packet."""

    @abstractmethod
    def set_promisc_mode(self, promisc: bool) -> None:
        """Enable or disable promiscuous mode."""

    @abstractmethod
    def set_monitor_mode(self, monitor: bool) -> None:
        """Enable or disable monitor mode."""

    @abstractmethod
    def set_buf_size(self, buf_size: int) -> None:
        """Set the size of the capture buffer."""

    @abstractmethod
    def apply_filter(self, flt: Filter) -> None:
        """Only capture packets accepted by the given filter."""

    @abstractmethod
    def activate(self) -> None:
        """Start the packet source."""

    @abstractmethod
    def capture(self) -> bytes | None:
        """Return the next packet, or None when the source is exhausted."""

    @abstractmethod
    def inject(self, buf: bytes) -> None:
        """Send a packet through the source."""

    @abstractmethod
    def close(self) -> None:
        """Release the packet source."""

    def __iter__(self) -> Iterator[bytes]:
        while True:
            buf = self.capture()
            if buf is None:
                return
            yield buf

    def __enter__(self) -> CaptureHandle:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()