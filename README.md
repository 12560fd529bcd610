# pktkit

Tools for working with raw network packets, in pure Python with no
dependencies:

- **`pktkit.bpf`**: classic BPF programs (`Filter`, `Instruction`,
  and the `Code`, `Size`, `Mode` and `Src` enums). It has a built-in
  interpreter. `validate()` checks a program. `match()` and `filter()`
  run it against any byte string.
- **`pktkit.builder`**: a chainable `Builder` that assembles BPF
  programs from single instructions. Jump targets are named labels.
- **`pktkit.capture`**: the `CaptureHandle` interface shared by packet
  sources, and `CaptureError`. A handle works as a context manager that
  closes it. Iterating over a handle yields captured packets until the
  source is exhausted.
- **`pktkit.pcapfile`**: `FileHandle`, which reads and writes pcap dump
  files.
- **`pktkit.layers`**: the `Packet` base class for protocol layers and
  `RawPacket`. It also provides `compose`, `pack`, `unpack`,
  `unpack_all` and `find_layer`.
- **`pktkit.network`**: `send`, `recv` and `send_recv` on top of a
  capture handle, raising `NetworkError` on failure.
- **`pktkit.dump`**: the `pktkit-dump` command.

## Installation

```
pip install .
```

## Building a filter

```python
from pktkit.bpf import Mode, Size, Src
from pktkit.builder import Builder

# Accept ARP frames on Ethernet, drop everything else.
arp = (
    Builder()
    .ld(Size.HALF, Mode.ABS, 12)
    .jeq(Src.CONST, "", "fail", 0x806)
    .ret(Src.CONST, 0x40000)
    .label("fail")
    .ret(Src.CONST, 0)
    .build()
)

assert arp.validate()
print(arp)  # one "{ 0x28,   0,   0, 0x0000000c }," line per instruction

frame = bytes(12) + b"\x08\x06" + bytes(28)
arp.match(frame)   # True
arp.filter(frame)  # 262144, the program's return value
```

`build()` resolves jumps. A jump to a label that is never defined keeps
an offset of 0, so it falls through to the next instruction. An empty
name such as `""` works this way.

The builder has one method per instruction:

- loads: `ld`, `ldx`
- stores: `st`, `stx`
- arithmetic and logic: `add`, `sub`, `mul`, `div`, `mod`, `neg`,
  `or_`, `and_`, `xor`, `lsh`, `rsh`
- jumps: `ja`, `jeq`, `jgt`, `jge`, `jset`
- register transfers: `tax`, `txa`
- return: `ret`
- raw instructions: `append_instruction(code, jt, jf, k)`

You can also build a `Filter` directly from `Instruction` objects or
from `(code, jt, jf, k)` tuples. `len()`, iteration and indexing work on
a `Filter`. `cleanup()` removes every instruction.

## Reading and writing pcap files

```python
from pktkit.pcapfile import FileHandle

with FileHandle("in.pcap") as src, FileHandle("out.pcap") as dst:
    src.apply_filter(arp)
    for buf in src:
        dst.inject(buf)
```

`FileHandle` behaves as follows:

- **New files.** Opening a file that does not exist creates an empty
  big-endian dump with link type 1.
- **Byte order.** Existing files may be big- or little-endian. A file
  with any other magic number raises `CaptureError`.
- **Capturing.** `capture()` returns the next packet that the applied
  filter accepts. At the end of the file it returns `None`.
- **Injecting.** `inject()` always appends to the end of the file. It
  writes zero timestamps.
- **Filters.** `apply_filter()` raises `CaptureError` for a filter that
  does not validate.
- **Unsupported settings.** `set_mtu`, `set_promisc_mode`,
  `set_monitor_mode` and `set_buf_size` always raise `CaptureError`.
  `activate()` does nothing that can fail.

## Stacking packet layers

A layer subclasses `Packet` and implements three methods:

- `pack(payload_bytes)` returns the layer encoded around its payload.
- `unpack(data)` decodes the layer and returns the number of bytes it
  used.
- `guess_payload_type()` names the type of the next layer, or returns
  `None` when there is no next layer.

`unpack_all` builds each layer from a mapping of layer types to
factories. A type missing from the mapping becomes a `RawPacket`.

```python
from pktkit.layers import RAW, Packet, RawPacket, find_layer, pack, unpack_all

class Tag(Packet):
    layer_type = "tag"

    def __init__(self, value=0):
        self.value = value

    def pack(self, payload_bytes):
        return bytes([self.value]) + payload_bytes

    def unpack(self, data):
        self.value = data[0]
        return 1

    def guess_payload_type(self):
        return RAW

data = pack(Tag(7), RawPacket(b"hi"))        # b"\x07hi"
pkt = unpack_all(data, "tag", {"tag": Tag})  # Tag carrying RawPacket(b"hi")
find_layer(pkt, RAW).data                    # b"hi"
```

`unpack(buf, *pkts)` decodes into packets you supply, in order. It does
not check that their types match the data.

Errors while packing or unpacking raise `LayerError`.

By default, `Packet.answers(other)` asks whether the payload answers
the other packet's payload. Override it to recognise replies for
`network.send_recv`.

## Dumping a capture file

The `pktkit-dump` command prints the packets of a dump file, or copies
them to another one:

```
pktkit-dump -r in.pcap
pktkit-dump -r in.pcap -c 10
pktkit-dump -r in.pcap -w out.pcap
```

- `-r <file>` reads packets from a file.
- `-w <file>` writes them to another dump file instead of printing them.
- `-c <count>` stops after that many packets. It takes a non-negative
  decimal integer, and 0 means no limit.

Each printed packet is decoded with no protocol decoders, so it shows
up as a `RawPacket`. Errors go to standard error, and the exit status is
then 1. The same loop is available as
`pktkit.dump.run(source, sink, count, decoders, out)`.

## What the package does not do

- **No live capture.** There is no capture from network interfaces.
  `pktkit-dump -i <iface>` reports an error. Only `FileHandle`
  implements `CaptureHandle`.
- **No filter expressions.** There is no compiler for tcpdump-style
  filter expressions. Passing an expression to `pktkit-dump` reports an
  error. Filters must be built with `Builder` or from raw instructions.
- **No protocol layers.** No decoders are included for Ethernet, ARP,
  VLAN, IP, TCP, UDP, ICMP or other protocols. Only `RawPacket` is
  provided, and other layers are yours to write as `Packet` subclasses.

## Running the tests

```
pip install .[test]
pytest
```