"""BPF filter building and evaluation, pcap dump files and packet layer stacking."""

__version__ = "0.1.0"