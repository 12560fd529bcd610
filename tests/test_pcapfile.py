import struct

import pytest

from pktkit.bpf import Filter, Mode, Size, Src
from pktkit.builder import Builder
from pktkit.capture import CaptureError
from pktkit.pcapfile import BIG_ENDIAN, LITTLE_ENDIAN, FileHandle

ETH_ARP = bytes([
    0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0x02, 0x00, 0x00, 0x00, 0x00, 0x01,
    0x08, 0x06, 0x00, 0x01, 0x08, 0x00, 0x06, 0x04, 0x00, 0x01, 0x02, 0x00,
    0x00, 0x00, 0x00, 0x01, 0xc0, 0xa8, 0x01, 0x87, 0x00, 0x00, 0x00, 0x00,
    0x00, 0x00, 0xc1, 0x1b, 0xd0, 0x25,
])

ETH_IPV4_UDP = bytes([
    0x02, 0x00, 0x00, 0x00, 0x00, 0x02, 0x02, 0x00, 0x00, 0x00, 0x00, 0x01,
    0x08, 0x00, 0x45, 0x00, 0x00, 0x1c, 0x00, 0x01, 0x00, 0x00, 0x40, 0x11,
    0x27, 0x60, 0xc0, 0xa8, 0x01, 0x87, 0xc1, 0x1b, 0xd0, 0x25, 0xa2, 0x5a,
    0x20, 0x92, 0x00, 0x08, 0xe9, 0x80,
])


def arp_filter():
    return (
        Builder()
        .ld(Size.HALF, Mode.ABS, 12)
        .jeq(Src.CONST, "", "fail", 0x806)
        .ret(Src.CONST, 0x40000)
        .label("fail")
        .ret(Src.CONST, 0x0)
        .build()
    )


def test_new_file_header(tmp_path):
    path = tmp_path / "new.pcap"
    handle = FileHandle(str(path))
    handle.close()
    expected = BIG_ENDIAN + struct.pack(">HHIIII", 2, 4, 0, 0, 0x7FFF, 1)
    assert path.read_bytes() == expected


def test_new_file_link_type(tmp_path):
    with FileHandle(str(tmp_path / "new.pcap")) as handle:
        assert handle.link_type() == 1
        assert handle.capture() is None


def test_inject_then_capture_same_handle(tmp_path):
    with FileHandle(str(tmp_path / "dump.pcap")) as handle:
        handle.activate()
        handle.inject(ETH_ARP)
        handle.inject(ETH_IPV4_UDP)
        assert handle.capture() == ETH_ARP
        assert handle.capture() == ETH_IPV4_UDP
        assert handle.capture() is None


def test_reopen_reads_injected_packets(tmp_path):
    path = str(tmp_path / "dump.pcap")
    packets = [ETH_ARP, ETH_IPV4_UDP, b"random data"]
    with FileHandle(path) as dst:
        for pkt in packets:
            dst.inject(pkt)
    with FileHandle(path) as src:
        assert list(src) == packets


def test_record_layout(tmp_path):
    path = tmp_path / "dump.pcap"
    with FileHandle(str(path)) as dst:
        dst.inject(b"random data")
    data = path.read_bytes()
    record = data[24:]
    assert struct.unpack(">IIII", record[:16]) == (0, 0, 11, 11)
    assert record[16:] == b"random data"


def test_copy_between_files(tmp_path):
    src_path = str(tmp_path / "src.pcap")
    dst_path = str(tmp_path / "dst.pcap")
    packets = [ETH_ARP] * 3 + [ETH_IPV4_UDP] * 2
    with FileHandle(src_path) as src:
        for pkt in packets:
            src.inject(pkt)
    count = 0
    with FileHandle(src_path) as src, FileHandle(dst_path) as dst:
        for buf in src:
            dst.inject(buf)
            count += 1
    assert count == len(packets)
    with FileHandle(dst_path) as check:
        assert list(check) == packets


def test_little_endian_file(tmp_path):
    path = tmp_path / "le.pcap"
    body = LITTLE_ENDIAN + struct.pack("<HHIIII", 2, 4, 0, 0, 65535, 105)
    body += struct.pack("<IIII", 5, 6, 3, 3) + b"abc"
    path.write_bytes(body)
    with FileHandle(str(path)) as handle:
        assert handle.link_type() == 105
        assert handle.capture() == b"abc"
        assert handle.capture() is None
        handle.inject(b"xy")
    tail = path.read_bytes()[len(body):]
    assert struct.unpack("<IIII", tail[:16]) == (0, 0, 2, 2)
    assert tail[16:] == b"xy"


def test_filter_selects_arp(tmp_path):
    path = str(tmp_path / "dump.pcap")
    with FileHandle(path) as dst:
        for pkt in (ETH_IPV4_UDP, ETH_ARP, ETH_IPV4_UDP, ETH_ARP):
            dst.inject(pkt)
    with FileHandle(path) as src:
        src.apply_filter(arp_filter())
        assert list(src) == [ETH_ARP, ETH_ARP]


def test_invalid_filter_rejected(tmp_path):
    with FileHandle(str(tmp_path / "dump.pcap")) as handle:
        with pytest.raises(CaptureError, match="Invalid filter"):
            handle.apply_filter(Filter())


def test_invalid_magic(tmp_path):
    path = tmp_path / "bad.pcap"
    path.write_bytes(b"\x00\x01\x02\x03" + b"\x00" * 20)
    with pytest.raises(CaptureError, match="Invalid file"):
        FileHandle(str(path))


def test_empty_existing_file_is_invalid(tmp_path):
    path = tmp_path / "empty.pcap"
    path.write_bytes(b"")
    with pytest.raises(CaptureError, match="Invalid file"):
        FileHandle(str(path))


def test_truncated_record_ends_capture(tmp_path):
    path = tmp_path / "trunc.pcap"
    with FileHandle(str(path)) as dst:
        dst.inject(ETH_ARP)
    with open(path, "ab") as raw:
        raw.write(b"\x00\x00\x00")
    with FileHandle(str(path)) as src:
        assert list(src) == [ETH_ARP]


@pytest.mark.parametrize(
    "method, argument",
    [
        ("set_mtu", 1500),
        ("set_promisc_mode", True),
        ("set_monitor_mode", True),
        ("set_buf_size", 4096),
    ],
)
def test_unsupported_settings(tmp_path, method, argument):
    with FileHandle(str(tmp_path / "dump.pcap")) as handle:
        with pytest.raises(CaptureError) as excinfo:
            getattr(handle, method)(argument)
        assert "Unsupported" in str(excinfo.value)
        assert handle.link_type() == 1


def test_unopenable_path(tmp_path):
    missing_dir = tmp_path / "missing" / "dump.pcap"
    with pytest.raises(CaptureError, match="Could not create file"):
        FileHandle(str(missing_dir))