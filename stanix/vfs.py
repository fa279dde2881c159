"""Virtual filesystem layer: node cache, path walking and mount points."""

from __future__ import annotations

import enum
import errno
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

PATH_MAX = 256


class VfsError(OSError):
    """A filesystem operation failed with the given errno code."""

    def __init__(self, code: int, message: Optional[str] = None) -> None:
        super().__init__(code, message or os.strerror(code))


class NodeFlag(enum.IntFlag):
    """Kind and state of a filesystem node."""

    FILE = 0x01
    DIR = 0x02
    LINK = 0x04
    DEV = 0x08
    MOUNT = 0x10
    CHAR = 0x20
    BLOCK = 0x40
    TTY = 0x80


class OpenFlag(enum.IntFlag):
    """Flags accepted by :meth:`Vfs.open`."""

    READONLY = 0x01
    WRITEONLY = 0x02
    READWRITE = 0x03
    PARENT = 0x04


class PollEvent(enum.IntFlag):
    """Readiness events reported by :meth:`Vfs.wait_check`."""

    IN = 0x001
    PRI = 0x002
    OUT = 0x004
    ERR = 0x008
    HUP = 0x010
    NVAL = 0x020


def _now() -> int:
    return int(time.time())


class VfsNode:
    """An open filesystem node.

    Filesystems and drivers subclass this and override the operations they
    support; the defaults report the operation as unsupported.
    """

    def __init__(self, flags: int = 0) -> None:
        self.flags = NodeFlag(flags)
        self.owner = 0
        self.group_owner = 0
        self.perm = 0
        self.size = 0
        self.ref_count = 0
        self.atime = 0
        self.ctime = 0
        self.mtime = 0
        self.name = ""
        self.parent: Optional[VfsNode] = None
        self.children: dict[str, VfsNode] = {}
        self.linked_node: Optional[VfsNode] = None

    @property
    def children_count(self) -> int:
        return len(self.children)

    def _unsupported_io(self) -> VfsError:
        if self.flags & NodeFlag.DIR:
            return VfsError(errno.EISDIR)
        return VfsError(errno.EBADF)

    def read(self, offset: int, count: int) -> bytes:
        raise self._unsupported_io()

    def write(self, data: bytes, offset: int) -> int:
        raise self._unsupported_io()

    def truncate(self, size: int) -> None:
        raise self._unsupported_io()

    def release(self) -> None:
        """Called when the last reference to the node goes away."""

    def lookup(self, name: str) -> Optional["VfsNode"]:
        return None

    def create(self, name: str, perm: int, flags: int) -> None:
        raise VfsError(errno.ENOTDIR)

    def unlink(self, name: str) -> None:
        raise VfsError(errno.ENOTDIR)

    def readdir(self, index: int) -> Optional[str]:
        return None

    def chmod(self, perm: int) -> None:
        raise VfsError(errno.EPERM)

    def chown(self, owner: int, group_owner: int) -> None:
        raise VfsError(errno.EPERM)

    def ioctl(self, request: int, arg: Any) -> Any:
        raise VfsError(errno.EINVAL)

    def sync(self) -> None:
        raise VfsError(errno.EIO)

    def wait_check(self, events: int) -> int:
        # nodes without readiness tracking, such as plain files, are always ready
        return events

    def wait(self, events: int) -> None:
        raise VfsError(errno.EINVAL)


@dataclass
class Filesystem:
    """A registered filesystem type that can be mounted by name."""

    name: str
    mount: Optional[Callable[[str, str, int, Any], Any]] = None


def _child_name(path: str) -> str:
    if path.endswith("/"):
        path = path[:-1]
    return path.rsplit("/", 1)[-1]


class Vfs:
    """The filesystem tree: root, working directory and registered types."""

    def __init__(self) -> None:
        self.root: Optional[VfsNode] = None
        self.cwd: Optional[VfsNode] = None
        self.fs_types: list[Filesystem] = []

    def register_fs(self, fs: Filesystem) -> None:
        self.fs_types.append(fs)

    def unregister_fs(self, fs: Filesystem) -> None:
        if fs in self.fs_types:
            self.fs_types.remove(fs)

    def auto_mount(self, source: str, target: str, fstype: str, flags: int, data: Any) -> Any:
        for fs in self.fs_types:
            if fs.name == fstype:
                if fs.mount is None:
                    raise VfsError(errno.ENODEV)
                return fs.mount(source, target, flags, data)
        raise VfsError(errno.ENODEV)

    def mount(self, path: str, local_root: VfsNode) -> None:
        """Mount ``local_root`` on ``path``, creating a directory if needed."""
        mount_point = self.open(path, OpenFlag.READWRITE)
        if mount_point is None:
            try:
                self.mkdir(path, 0x777)
            except VfsError as exc:
                raise VfsError(errno.ENOENT) from exc
            mount_point = self.open(path, OpenFlag.READWRITE)
            if mount_point is None:
                raise VfsError(errno.ENOENT)

        if mount_point.flags & NodeFlag.MOUNT:
            raise VfsError(errno.EBUSY)

        mount_point.linked_node = local_root
        # keep both alive for as long as the mount exists
        local_root.ref_count += 1
        mount_point.ref_count += 1
        mount_point.flags |= NodeFlag.MOUNT
        local_root.parent = mount_point.parent

    def unmount(self, path: str) -> None:
        parent = self.open(path, OpenFlag.PARENT)
        if parent is None:
            raise VfsError(errno.ENOENT)
        mount_point = self.lookup(parent, _child_name(path))
        self.close(parent)
        if mount_point is None:
            raise VfsError(errno.ENOENT)
        if not mount_point.flags & NodeFlag.MOUNT:
            self.close(mount_point)
            raise VfsError(errno.EINVAL)
        local_root = mount_point.linked_node
        mount_point.flags &= ~NodeFlag.MOUNT
        mount_point.linked_node = None
        if local_root is not None:
            self.close(local_root)
        self.close(mount_point)

    def chroot(self, new_root: VfsNode) -> None:
        self.root = new_root

    def open(self, path: str, flags: int) -> Optional[VfsNode]:
        """Open ``path``: absolute from the root, otherwise from the cwd."""
        if not path or path.startswith("/"):
            return self.openat(self.root, path, flags)
        return self.openat(self.cwd, path, flags)

    def openat(self, at: Optional[VfsNode], path: str, flags: int) -> Optional[VfsNode]:
        """Open ``path`` relative to ``at``; returns None if it cannot be reached."""
        if not flags:
            return None

        parts = [part for part in path.split("/") if part]
        if flags & OpenFlag.PARENT:
            if not parts:
                return None
            parts.pop()

        current = self.dup(at)
        for name in parts:
            if current is None:
                return None
            next_node = self.lookup(current, name)
            if next_node is not None and next_node.flags & NodeFlag.MOUNT:
                mount_point = next_node
                next_node = self.dup(mount_point.linked_node)
                self.close(mount_point)
            self.close(current)
            current = next_node

        if current is None:
            return None

        now = _now()
        if flags & (OpenFlag.WRITEONLY | OpenFlag.READWRITE):
            current.mtime = now
        if flags & (OpenFlag.READONLY | OpenFlag.READWRITE):
            current.atime = now
        return current

    def lookup(self, node: VfsNode, name: str) -> Optional[VfsNode]:
        """Find a child of ``node`` without following mount points."""
        if name == ".." and node.parent is not None:
            return self.dup(node.parent)
        if name == ".":
            return self.dup(node)

        cached = node.children.get(name)
        if cached is not None:
            cached.ref_count += 1
            return cached

        child = node.lookup(name)
        if child is None:
            return None
        child.ref_count = 1
        child.parent = node
        child.children = {}
        child.name = name
        node.children[name] = child
        return child

    def close(self, node: VfsNode) -> None:
        node.ref_count -= 1
        if node.ref_count > 0:
            return
        if node.flags & NodeFlag.MOUNT or node is self.root:
            return
        if node.children:
            return

        parent = node.parent
        if parent is node:
            parent = None
        if parent is not None and parent.children.get(node.name) is node:
            del parent.children[node.name]

        node.release()

        if parent is not None and not parent.children and parent.ref_count == 0:
            parent.ref_count += 1
            self.close(parent)

    def dup(self, node: Optional[VfsNode]) -> Optional[VfsNode]:
        if node is None:
            return None
        node.ref_count += 1
        return node

    def read(self, node: VfsNode, offset: int, count: int) -> bytes:
        return node.read(offset, count)

    def write(self, node: VfsNode, data: bytes, offset: int) -> int:
        return node.write(data, offset)

    def create(self, path: str, perm: int, flags: int) -> None:
        existing = self.open(path, OpenFlag.READONLY)
        if existing is not None:
            self.close(existing)
            raise VfsError(errno.EEXIST)

        parent = self.open(path, OpenFlag.WRITEONLY | OpenFlag.PARENT)
        if parent is None:
            raise VfsError(errno.ENOENT)
        try:
            parent.create(_child_name(path), perm, flags)
        finally:
            self.close(parent)

    def mkdir(self, path: str, perm: int) -> None:
        self.create(path, perm, NodeFlag.DIR)

    def unlink(self, path: str) -> None:
        node = self.open(path, OpenFlag.READONLY)
        if node is None:
            raise VfsError(errno.ENOENT)
        self.close(node)

        parent = self.open(path, OpenFlag.WRITEONLY | OpenFlag.PARENT)
        if parent is None:
            raise VfsError(errno.ENOENT)
        try:
            parent.unlink(_child_name(path))
        finally:
            self.close(parent)

    def readdir(self, node: VfsNode, index: int) -> Optional[str]:
        return node.readdir(index)

    def truncate(self, node: VfsNode, size: int) -> None:
        node.truncate(size)

    def chmod(self, node: VfsNode, perm: int) -> None:
        node.chmod(perm)
        node.perm = perm

    def chown(self, node: VfsNode, owner: int, group_owner: int) -> None:
        node.chown(owner, group_owner)
        node.owner = owner
        node.group_owner = group_owner

    def ioctl(self, node: VfsNode, request: int, arg: Any = None) -> Any:
        return node.ioctl(request, arg)

    def sync(self, node: VfsNode) -> None:
        node.sync()

    def wait_check(self, node: VfsNode, events: int) -> int:
        return node.wait_check(events)

    def wait(self, node: VfsNode, events: int) -> None:
        node.wait(events)