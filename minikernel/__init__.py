"""Models of a small teaching kernel: file-system image, system calls, line editing, networking and user-program helpers."""

__version__ = "0.1.0"