import io

import pytest

from minikernel.filesystem import FileType, build_image, FileSystemImage
from minikernel.syscall import (
    EXCEPTION_RETURN,
    FD_NUM,
    RAND_MAX,
    FileKind,
    Kernel,
    Process,
    RandomGenerator,
    SystemCallError,
    parse_command,
)

ENTRY = 0x08048094


def _elf(body=b""):
    return b"\x7fELF" + bytes(20) + ENTRY.to_bytes(4, "little") + bytes(12) + body


@pytest.fixture
def fs():
    return FileSystemImage(
        build_image(
            {
                ".": FileType.DIRECTORY,
                "rtc": FileType.RTC,
                "shell": _elf(b"shell body"),
                "cat": _elf(),
                "frame0.txt": b"hello world\nsecond line\n",
                "notes": b"plain text, not a program",
            }
        )
    )


@pytest.fixture
def proc(fs):
    return Process(fs, 0, None, "frame0.txt")


def test_parse_command_splits_name_and_args():
    assert parse_command("  cat   frame0.txt") == ("cat", "frame0.txt")
    assert parse_command("ls") == ("ls", "")
    assert parse_command(b"grep a b ") == ("grep", "a b ")


def test_parse_command_name_limit():
    assert parse_command("a" * 32)[0] == "a" * 32
    with pytest.raises(SystemCallError):
        parse_command("a" * 33)


def test_parse_command_args_limit():
    assert parse_command("cat " + "x" * 127)[1] == "x" * 127
    with pytest.raises(SystemCallError):
        parse_command("cat " + "x" * 128)


def test_parse_command_none():
    with pytest.raises(SystemCallError):
        parse_command(None)


def test_open_and_read_file(proc):
    fd = proc.open("frame0.txt")
    assert fd == 2
    assert proc.fds[fd].kind is FileKind.FILE
    assert proc.read(fd, 5) == b"hello"
    assert proc.read(fd, 7) == b" world\n"
    assert proc.read(fd, 100) == b"second line\n"
    assert proc.read(fd, 100) == b""


def test_open_missing_file(proc):
    with pytest.raises(SystemCallError):
        proc.open("missing")
    with pytest.raises(SystemCallError):
        proc.open(None)


def test_open_kinds_follow_name(proc):
    assert proc.fds[proc.open(".")].kind is FileKind.DIRECTORY
    assert proc.fds[proc.open("rtc")].kind is FileKind.RTC


def test_descriptor_table_exhausted(proc):
    fds = [proc.open("frame0.txt") for _ in range(FD_NUM - 2)]
    assert fds == list(range(2, FD_NUM))
    with pytest.raises(SystemCallError):
        proc.open("frame0.txt")


def test_close_frees_descriptor(proc):
    fd = proc.open("frame0.txt")
    proc.close(fd)
    assert proc.fds[fd] is None
    assert proc.open("notes") == fd


def test_close_errors(proc):
    with pytest.raises(SystemCallError):
        proc.close(3)
    with pytest.raises(SystemCallError):
        proc.close(FD_NUM)
    with pytest.raises(SystemCallError):
        proc.close(-1)


def test_read_closed_descriptor(proc):
    with pytest.raises(SystemCallError):
        proc.read(4, 10)
    with pytest.raises(SystemCallError):
        proc.write(4, b"x")


def test_directory_listing(proc, fs):
    fd = proc.open(".")
    names = []
    while True:
        name = proc.read(fd, 32)
        if not name:
            break
        names.append(name.decode())
    assert names == [d.name for d in fs.entries()]
    assert proc.read(fd, 32) == b""


def test_write_to_file_or_directory_fails(proc):
    with pytest.raises(SystemCallError):
        proc.write(proc.open("frame0.txt"), b"data")
    with pytest.raises(SystemCallError):
        proc.write(proc.open("."), b"data")


def test_console_streams(proc):
    proc.stdin = io.BytesIO(b"first\nsecond\n")
    assert proc.read(0, 128) == b"first\n"
    assert proc.write(1, b"out") == 3
    assert proc.stdout.getvalue() == b"out"


def test_console_wrong_direction(proc):
    with pytest.raises(SystemCallError):
        proc.write(0, b"x")
    with pytest.raises(SystemCallError):
        proc.read(1, 4)


def test_getargs(proc, fs):
    assert proc.getargs(128) == b"frame0.txt"
    assert proc.getargs(6) == b"frame0"
    with pytest.raises(SystemCallError):
        proc.getargs(0)
    with pytest.raises(SystemCallError):
        Process(fs, 1, 0, "").getargs(10)


def test_execute_loads_program(fs):
    kernel = Kernel(fs, 6)
    shell = kernel.execute("shell")
    assert shell.pid == 0
    assert shell.parent_pid is None
    assert shell.entry_point == ENTRY
    assert shell.image == _elf(b"shell body")
    child = kernel.execute("cat frame0.txt")
    assert child.pid == 1
    assert child.parent_pid == 0
    assert child.getargs(128) == b"frame0.txt"
    assert kernel.current_pid == 1


def test_execute_rejects_bad_programs(fs):
    kernel = Kernel(fs, 6)
    with pytest.raises(SystemCallError):
        kernel.execute("notes")
    with pytest.raises(SystemCallError):
        kernel.execute("nothing")
    assert kernel.processes == {}


def test_execute_process_limit(fs):
    kernel = Kernel(fs, 2)
    kernel.execute("shell")
    kernel.execute("shell")
    with pytest.raises(SystemCallError):
        kernel.execute("shell")


def test_halt_child_returns_to_parent(fs):
    kernel = Kernel(fs, 6)
    kernel.execute("shell")
    child = kernel.execute("cat")
    child.open("frame0.txt")
    assert kernel.halt(1, 1) == EXCEPTION_RETURN
    assert kernel.current_pid == 0
    assert 1 not in kernel.processes
    assert all(fd is None for fd in child.fds)
    assert kernel.execute("cat").pid == 1


def test_halt_normal_status_returns_zero(fs):
    kernel = Kernel(fs, 6)
    kernel.execute("shell")
    kernel.execute("cat")
    assert kernel.halt(1, 0) == 0


def test_halt_root_restarts_shell(fs):
    kernel = Kernel(fs, 6)
    first = kernel.execute("shell")
    assert kernel.halt(0, 0) == 0
    assert kernel.current_pid == 0
    assert kernel.processes[0] is not first
    assert kernel.processes[0].parent_pid is None


def test_halt_unknown_pid(fs):
    kernel = Kernel(fs, 6)
    with pytest.raises(SystemCallError):
        kernel.halt(3, 0)


def test_rand_is_deterministic():
    a = RandomGenerator(1234)
    b = RandomGenerator(1234)
    assert [a.rand() for _ in range(20)] == [b.rand() for _ in range(20)]


def test_rand_range():
    gen = RandomGenerator()
    values = [gen.rand() for _ in range(500)]
    assert all(0 <= v < RAND_MAX for v in values)


def test_rand_seed_one():
    assert RandomGenerator(1).rand() == 16806


def test_set_seed_special_values_select_default():
    default = RandomGenerator()
    expected = [default.rand() for _ in range(5)]
    for special in (0, RAND_MAX):
        gen = RandomGenerator(99)
        gen.set_seed(special)
        assert [gen.rand() for _ in range(5)] == expected