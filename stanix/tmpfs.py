"""In-memory filesystem backed by a tree of inodes."""

from __future__ import annotations

import errno
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from stanix.vfs import Filesystem, NodeFlag, Vfs, VfsError, VfsNode

TMPFS_FLAGS_FILE = 0x01
TMPFS_FLAGS_DIR = 0x02

_NAME_MAX = 256


def _now() -> int:
    return int(time.time())


@dataclass(eq=False)
class TmpfsInode:
    """A file or directory stored in memory."""

    name: str
    flags: int
    parent: Optional[TmpfsInode] = field(default=None, repr=False)
    children: list[TmpfsInode] = field(default_factory=list, repr=False)
    buffer: bytearray = field(default_factory=bytearray, repr=False)
    perm: int = 0
    owner: int = 0
    group_owner: int = 0
    atime: int = field(default_factory=_now)
    ctime: int = field(default_factory=_now)
    mtime: int = field(default_factory=_now)

    @property
    def is_dir(self) -> bool:
        return bool(self.flags & TMPFS_FLAGS_DIR)

    @property
    def is_file(self) -> bool:
        return bool(self.flags & TMPFS_FLAGS_FILE)

    def find(self, name: str) -> Optional[TmpfsInode]:
        return next((child for child in self.children if child.name == name), None)


class TmpfsNode(VfsNode):
    """A VFS node giving access to one tmpfs inode."""

    def __init__(self, inode: TmpfsInode) -> None:
        flags = 0
        if inode.is_dir:
            flags |= NodeFlag.DIR
        if inode.is_file:
            flags |= NodeFlag.FILE
        super().__init__(flags)
        self.inode = inode
        self.size = len(inode.buffer)
        self.perm = inode.perm
        self.owner = inode.owner
        self.group_owner = inode.group_owner

    # directory operations

    def lookup(self, name: str) -> Optional[VfsNode]:
        if not self.inode.is_dir:
            return None
        if name == ".":
            return TmpfsNode(self.inode)
        if name == "..":
            return TmpfsNode(self.inode.parent or self.inode)
        child = self.inode.find(name)
        return TmpfsNode(child) if child is not None else None

    def readdir(self, index: int) -> Optional[str]:
        if not self.inode.is_dir:
            return None
        self.inode.atime = _now()
        if index == 0:
            return "."
        if index == 1:
            return ".."
        index -= 2
        if index >= len(self.inode.children):
            return None
        return self.inode.children[index].name

    def create(self, name: str, perm: int, flags: int) -> None:
        if not self.inode.is_dir:
            raise VfsError(errno.ENOTDIR)
        if len(name.encode()) >= _NAME_MAX:
            raise VfsError(errno.ENAMETOOLONG)
        inode_flags = 0
        if flags & NodeFlag.FILE:
            inode_flags |= TMPFS_FLAGS_FILE
        if flags & NodeFlag.DIR:
            inode_flags |= TMPFS_FLAGS_DIR
        child = TmpfsInode(name, inode_flags, parent=self.inode, perm=perm)
        # newest entries come first, as in a linked list pushed at its head
        self.inode.children.insert(0, child)

    def unlink(self, name: str) -> None:
        if not self.inode.is_dir:
            raise VfsError(errno.ENOTDIR)
        child = self.inode.find(name)
        if child is None:
            raise VfsError(errno.ENOENT)
        self.inode.children.remove(child)

    # file operations

    def read(self, offset: int, count: int) -> bytes:
        if not self.inode.is_file:
            raise self._unsupported_io()
        buffer = self.inode.buffer
        if offset >= len(buffer):
            return b""
        self.inode.atime = _now()
        return bytes(buffer[offset:offset + count])

    def write(self, data: bytes, offset: int) -> int:
        if not self.inode.is_file:
            raise self._unsupported_io()
        end = offset + len(data)
        if end > len(self.inode.buffer):
            self.truncate(end)
        self.inode.mtime = _now()
        self.inode.buffer[offset:end] = data
        return len(data)

    def truncate(self, size: int) -> None:
        if not self.inode.is_file:
            raise self._unsupported_io()
        buffer = self.inode.buffer
        if size < len(buffer):
            del buffer[size:]
        else:
            buffer.extend(bytes(size - len(buffer)))
        self.inode.mtime = _now()
        self.size = size

    # metadata

    def chmod(self, perm: int) -> None:
        self.inode.perm = perm

    def chown(self, owner: int, group_owner: int) -> None:
        self.inode.owner = owner
        self.inode.group_owner = group_owner

    def sync(self) -> None:
        self.size = len(self.inode.buffer)
        self.perm = self.inode.perm
        self.owner = self.inode.owner
        self.group_owner = self.inode.group_owner


def new_tmpfs() -> TmpfsNode:
    """Create an empty tmpfs and return its root directory node."""
    return TmpfsNode(TmpfsInode("root", TMPFS_FLAGS_DIR))


def tmpfs_filesystem(vfs: Vfs) -> Filesystem:
    """Register the tmpfs type with ``vfs`` and return it."""

    def mount(source: str, target: str, flags: int, data: Any) -> None:
        vfs.mount(target, new_tmpfs())

    fs = Filesystem("tmpfs", mount)
    vfs.register_fs(fs)
    return fs