"""Dump the packets of a capture source, tcpdump style."""

from __future__ import annotations

import argparse
import re
import sys
from contextlib import ExitStack
from typing import Callable, Hashable, Mapping, TextIO

from .capture import CaptureError, CaptureHandle
from .layers import LayerError, Packet, unpack_all
from .pcapfile import FileHandle

_MAX_COUNT = 2**64 - 1


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse the command line of the dump tool."""
    parser = argparse.ArgumentParser(
        prog="dump",
        description="Dump the traffic on the network (like tcpdump).",
    )
    parser.add_argument(
        "-c", dest="count", metavar="<count>",
        help="Exit after receiving count packets.",
    )
    parser.add_argument(
        "-i", dest="iface", metavar="<iface>", help="Listen on interface."
    )
    parser.add_argument(
        "-r", dest="read_file", metavar="<file>", help="Read packets from file."
    )
    parser.add_argument(
        "-w", dest="write_file", metavar="<file>",
        help="Write the raw packets to file.",
    )
    parser.add_argument("expression", nargs="?", metavar="<expression>")
    return parser.parse_args(argv)


def _parse_count(text: str) -> int:
    if not re.fullmatch(r"[0-9]+", text):
        raise ValueError(f"invalid syntax: {text!r}")
    value = int(text)
    if value > _MAX_COUNT:
        raise ValueError(f"value out of range: {text!r}")
    return value


def run(
    source: CaptureHandle,
    sink: CaptureHandle | None = None,
    count: int = 0,
    decoders: Mapping[Hashable, Callable[[], Packet]] | None = None,
    out: TextIO | None = None,
) -> int:
    """Copy packets from source to sink, or print them decoded when there is
    no sink. Stop after count packets when count is positive. Return the
    number of packets handled."""
    if out is None:
        out = sys.stdout

    seen = 0
    for buf in source:
        seen += 1
        if sink is None:
            try:
                pkt = unpack_all(buf, source.link_type(), decoders)
            except LayerError as err:
                print(f"Error: {err}", file=out)
                pkt = None
            print(pkt, file=out)
        else:
            sink.inject(buf)

        if count > 0 and seen >= count:
            break
    return seen


def _fatal(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    """Run the dump tool and return its exit status."""
    args = parse_args(argv)

    count = 0
    if args.count is not None:
        try:
            count = _parse_count(args.count)
        except ValueError as err:
            return _fatal(f"Error parsing count: {err}")

    if args.iface is not None:
        return _fatal(
            f"Error opening iface: live capture on {args.iface!r} is not available"
        )
    if args.read_file is None:
        return _fatal("Must select a source (either -i or -r)")

    with ExitStack() as stack:
        try:
            source = stack.enter_context(FileHandle(args.read_file))
        except CaptureError as err:
            return _fatal(f"Error opening file: {err}")

        sink = None
        if args.write_file is not None:
            try:
                sink = stack.enter_context(FileHandle(args.write_file))
            except CaptureError as err:
                return _fatal(f"Error opening file: {err}")

        try:
            source.activate()
        except CaptureError as err:
            return _fatal(f"Error activating source: {err}")

        if args.expression is not None:
            return _fatal(
                f"Error parsing filter: cannot compile expression {args.expression!r}"
            )

        try:
            run(source, sink, count, None, sys.stdout)
        except CaptureError as err:
            return _fatal(f"Error: {err}")

    return 0