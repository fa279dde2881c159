"""A simulated hobby kernel core: VFS, tmpfs, initrd, pipes, ttys and x86_64 tables."""

__version__ = "0.1.0"