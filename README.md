# minikernel

`minikernel` models the parts of a small teaching operating system as plain
Python objects. With it you can build and inspect file-system images, run the
system-call layer against an image, replay keyboard scancodes through a line
editor, build and parse network packets, and use a few helpers that user
programs rely on. It needs no hardware and has no third-party dependencies.

## Modules

| Module | Contents |
| --- | --- |
| `minikernel.filesystem` | `FileSystemImage`, `Dentry`, `FileType`, `FileSystemError` and `build_image`. The image is a read-only block file system: a boot block with up to 63 directory entries, followed by 4 KiB inode blocks and 4 KiB data blocks. |
| `minikernel.syscall` | `Kernel`, `Process`, `FileDescriptor`, `FileKind`, `SystemCallError`, `parse_command` and `RandomGenerator`. |
| `minikernel.keyboard` | `LineEditor`, `KeyAction`, `translate_scancode` and `head_matches`. |
| `minikernel.ethernet` | `EthernetFrame`. |
| `minikernel.arp` | `ArpPacket`, `ArpTable`, `make_request` and `make_reply`. |
| `minikernel.ipv4` | `Ipv4Header`, `header_checksum` and `next_hop`. |
| `minikernel.udp` | `UdpDatagram` and `classify_ports`. |
| `minikernel.stack` | `NetworkStack`, which joins the layers and hands each finished frame to a transmit callable that you supply. |
| `minikernel.support` | `strcmp`, `strncmp` and `fdputs`. These treat strings the C way: a NUL byte ends the string. |
| `minikernel.emulate` | `SysNum`, `split_command`, `execute`, `getargs` and `DirectoryReader`. They provide the user-side calls on a host machine. |
| `minikernel.fish` | `BlinkCommand`, `BlinkEntry`, `BlinkPool` and `frame_entries`, used by the two-frame text animation. |

## File-system images

```python
from minikernel.filesystem import FileSystemImage, FileSystemError, build_image

fs = FileSystemImage(build_image({"frame0.txt": b"hello\n", "frame1.txt": b"world\n"}))

entry = fs.read_dentry_by_name("frame0.txt")
print(entry)                              # Dentry(name='frame0.txt', ...)
print(fs.read_data(entry.inode, 0, 64))   # b'hello\n'
print(fs.file_size(entry.inode))          # 6

for dentry in fs.entries():
    print(dentry)

try:
    fs.read_dentry_by_name("missing")
except FileSystemError as exc:
    print("not found:", exc)
```

In `build_image`, a `bytes` value makes a regular file. A `FileType` value,
such as `FileType.RTC` or `FileType.DIRECTORY`, makes a special entry.

Names can be at most 32 bytes long. A read never goes past the end of the
file. A read that starts at or beyond the end returns `b""`. An out-of-range
inode, directory index or data block raises `FileSystemError`.

## Processes and system calls

```python
from minikernel.syscall import Kernel, SystemCallError, parse_command

print(parse_command("  cat frame0.txt"))   # ('cat', 'frame0.txt')

kernel = Kernel(fs, 6)
```

`Kernel.execute(command)`:

- parses the command;
- checks that the named file begins with the ELF magic bytes;
- takes the lowest free process id;
- returns a `Process` that holds the file's bytes (`image`) and the entry point read from its header (`entry_point`).

`Kernel.halt(pid, status)` frees the process and returns 256 when `status` is
1, and 0 for any other status. When the halted process has no parent, `halt`
runs `execute("shell")` again.

Each `Process` has eight descriptors. Descriptor 0 reads lines from
`process.stdin` and descriptor 1 writes to `process.stdout`; both are in-memory
byte streams. The methods work as follows:

- `open(name)` gives a directory descriptor for `"."`, an RTC descriptor for `"rtc"`, and a file descriptor for any other name.
- `read` on a file moves forward through the file. `read` on a directory returns one entry name per call, then `b""`.
- `write` is accepted only on descriptor 1.
- `getargs(nbytes)` returns the argument string.

When a system call fails, it raises `SystemCallError`.

`RandomGenerator` is a multiplicative congruential generator: it multiplies by
16807 using 32-bit unsigned arithmetic. Its default seed is 56, so it always
produces the same sequence from a given seed.

## Line editing

```python
from minikernel.keyboard import LineEditor, KeyAction, translate_scancode

print(translate_scancode(0x1E, False, False))   # 'a'
print(translate_scancode(0x1E, True, False))    # 'A'

editor = LineEditor(["shell", "ls", "cat"], 8)
for code in (0x2E, 0x1E, 0x0F, 0x1C):           # c, a, Tab, Enter
    editor.feed(code)
print(editor.take_line())                       # 'cat\n'
```

`LineEditor.feed` keeps track of Shift, Caps Lock, Ctrl and Alt, and of the
line being typed. The line holds at most 127 characters. The editor also
handles:

- Backspace;
- Tab completion, which fills in a name only when exactly one name matches;
- the Up and Down arrows, which move through the history of entered lines.

What the keys put on screen is kept in `editor.screen`.

Control and Alt chords do not change the line. `feed` returns them as
`KeyAction` values, for example `KeyAction.INTERRUPT` for Ctrl+C or
`KeyAction.VIDEO_MODE_800X600` for Alt+F2, and the caller decides what to do
with them.

## Networking

```python
from minikernel.stack import NetworkStack

sent = []
stack = NetworkStack(
    bytes.fromhex("020000000001"),   # made-up, locally administered MAC
    bytes([10, 0, 2, 15]),
    sent.append,
)
stack.arp_request(bytes([10, 0, 2, 2]))
print(len(sent))                     # 1
```

`NetworkStack.receive_frame` handles an incoming frame according to its
EtherType:

- ARP replies are added to `stack.arp_table`.
- ARP requests for the stack's own address get a reply.
- IPv4 packets that carry UDP are returned as a `UdpDatagram`.

`NetworkStack.udp_send` wraps the payload in UDP, then IPv4, then Ethernet.
Destinations outside `10.0.x.x` are sent to the gateway `10.0.2.2`.

The next hop's MAC address comes from the ARP table. If the address is not
there, the stack broadcasts a request, up to ten times. When no reply has been
received, the frame is sent to the all-zero MAC address.

## Host-side helpers

`minikernel.emulate.execute(command)` runs `./<name>` from the current directory
with `subprocess` and returns the exit status. It returns -1 if the program was
killed by SIGKILL, and 256 if another signal ended it.

`split_command` and `getargs` split and join argument lists.

`DirectoryReader(path)` returns one directory entry name per `read` call. Each
name is NUL-padded, and the width is capped at 32 bytes.

`minikernel.fish.frame_entries(frame0, frame1)` lays two text frames over each
other. For every cell where either frame has a visible character, it yields a
`BlinkEntry` holding both characters.

## What it does not do

- It runs no guest code. `Kernel.execute` loads a program's bytes and reads its entry point, but it never executes them.
- It has no RTC device. Reading or writing an `"rtc"` descriptor raises `SystemCallError`.
- It includes no network card driver. Frames leave the stack only through the transmit callable you pass in.
- It does not answer DNS or DHCP traffic.
- It has no screen, scheduler, paging or interrupt handling, and no command-line program of its own.

## Running the tests

Install the `test` extra, then run `pytest` from the project directory.