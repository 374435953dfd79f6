[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minikernel"
version = "0.1.0"
description = "Models of a small teaching kernel: read-only file-system image, system calls, scancode line editor, Ethernet/ARP/IPv4/UDP packets, and host-side user-program helpers."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "kernel",
    "operating-system",
    "filesystem",
    "system-call",
    "keyboard",
    "arp",
    "ipv4",
    "udp",
    "ethernet",
    "education",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System",
    "Topic :: Education",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["minikernel"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
