# stanix

`stanix` models the core of a small hobby kernel in plain Python. Each part
can be used and tested by itself, with no hardware involved.

## What is in the package

- `stanix.vfs`: `Vfs` resolves paths, mounts filesystems, keeps a cache of
  directory entries with reference counts, and passes reads, writes, `ioctl`
  and readiness checks on to `VfsNode` objects. Failures raise `VfsError`,
  which carries an errno code.
- `stanix.tmpfs`: an in-memory filesystem; `new_tmpfs()` returns its root
  node, and `tmpfs_filesystem(vfs)` registers it as the `tmpfs` type.
- `stanix.tarfs`: `iter_entries` walks a ustar archive, and `mount_initrd`
  unpacks one into a fresh tmpfs root.
- `stanix.pipe`: `create_pipe` returns a read end and a write end that share
  a fixed-size `RingBuffer`.
- `stanix.devices`: `init_devices` mounts a tmpfs on `/dev` and adds
  `/dev/zero`, `/dev/null`, `/dev/console` and the `/dev/pts` directory.
- `stanix.tty`: `Tty` holds termios settings and applies canonical-mode line
  editing and output processing; `new_tty` wraps one in a device node and
  `new_pty` creates a master/slave pair mounted under `/dev/pts`.
- `stanix.framebuffer` and `stanix.terminal_emu`: a pixel framebuffer
  device mounted as `/dev/fbN`, and a text terminal that draws PSF1 fonts on
  it and understands basic ANSI colour escapes.
- x86_64 pieces: four-level page tables over simulated physical memory
  (`stanix.paging`), the CMOS real-time clock (`stanix.cmos`), GDT and TSS
  encoding (`stanix.gdt`), IDT gates and fault descriptions (`stanix.idt`),
  the 8259 interrupt controller and IRQ dispatch (`stanix.irq`), symbol
  lookup for stack traces (`stanix.symbols`) and the 16550 UART
  (`stanix.serial`). The clock, interrupt controller and UART talk to a
  simulated I/O bus, `PortBus` from `stanix.ports`, to which test devices
  can be attached.
- `stanix.bootinfo`: the memory map and other boot-time data, with the total
  usable memory and a log-style report.

## Installation

```
pip install .
```

## Example

```python
from stanix.tmpfs import new_tmpfs
from stanix.vfs import NodeFlag, OpenFlag, Vfs

vfs = Vfs()
vfs.chroot(new_tmpfs())
vfs.mkdir("/etc", 0o755)
vfs.create("/etc/motd", 0o644, NodeFlag.FILE)

node = vfs.open("/etc/motd", OpenFlag.WRITEONLY)
vfs.write(node, b"hello\n", 0)
print(vfs.read(node, 0, 6))  # b'hello\n'
vfs.close(node)
```

## What it does not do

The package is a library of parts, not a running system. It does not boot,
has no scheduler or processes, no system calls and no command to start it.
Nothing in it touches real hardware: devices, memory and the I/O bus are all
simulated objects supplied by the caller.

## Running the tests

```
pip install .[test]
pytest
```