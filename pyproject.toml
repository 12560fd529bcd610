[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pktkit"
version = "0.1.0"
description = "BPF filter building and evaluation, pcap dump files and packet layer stacking"
requires-python = ">=3.10"
dependencies = []
keywords = ["bpf", "pcap", "packet", "capture", "network", "filter"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pktkit-dump = "pktkit.dump:main"

[tool.hatch.build.targets.wheel]
packages = ["pktkit"]

[tool.pytest.ini_options]
addopts = "-ra"
