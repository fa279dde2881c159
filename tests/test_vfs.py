import errno

import pytest

from stanix.vfs import (
    Filesystem,
    NodeFlag,
    OpenFlag,
    PollEvent,
    Vfs,
    VfsError,
    VfsNode,
)


class MemFile(VfsNode):
    def __init__(self):
        super().__init__(NodeFlag.FILE)
        self.data = bytearray()
        self.released = 0

    def read(self, offset, count):
        return bytes(self.data[offset:offset + count])

    def write(self, data, offset):
        end = offset + len(data)
        if end > len(self.data):
            self.data.extend(b"\0" * (end - len(self.data)))
        self.data[offset:end] = data
        self.size = len(self.data)
        return len(data)

    def release(self):
        self.released += 1

    def chmod(self, perm):
        pass

    def chown(self, owner, group_owner):
        pass


class MemDir(VfsNode):
    def __init__(self):
        super().__init__(NodeFlag.DIR)
        self.entries = {}
        self.lookups = 0

    def lookup(self, name):
        self.lookups += 1
        return self.entries.get(name)

    def create(self, name, perm, flags):
        node = MemDir() if flags & NodeFlag.DIR else MemFile()
        node.perm = perm
        self.entries[name] = node

    def unlink(self, name):
        del self.entries[name]

    def readdir(self, index):
        names = [".", ".."] + list(self.entries)
        return names[index] if index < len(names) else None


@pytest.fixture
def vfs():
    v = Vfs()
    v.chroot(MemDir())
    return v


def test_open_root(vfs):
    assert vfs.open("/", OpenFlag.READONLY) is vfs.root


def test_open_without_flags_fails(vfs):
    assert vfs.open("/", 0) is None


def test_open_parent_of_root_fails(vfs):
    assert vfs.open("/", OpenFlag.READONLY | OpenFlag.PARENT) is None


def test_open_missing(vfs):
    assert vfs.open("/missing", OpenFlag.READONLY) is None


def test_create_and_round_trip(vfs):
    vfs.create("/file", 0o644, NodeFlag.FILE)
    node = vfs.open("/file", OpenFlag.READWRITE)
    assert vfs.write(node, b"hello", 0) == 5
    assert vfs.read(node, 0, 5) == b"hello"
    assert node.perm == 0o644


def test_create_existing_raises(vfs):
    vfs.create("/file", 0, NodeFlag.FILE)
    with pytest.raises(VfsError) as info:
        vfs.create("/file", 0, NodeFlag.FILE)
    assert info.value.errno == errno.EEXIST


def test_create_missing_parent_raises(vfs):
    with pytest.raises(VfsError) as info:
        vfs.create("/nope/file", 0, NodeFlag.FILE)
    assert info.value.errno == errno.ENOENT


def test_create_in_file_raises_enotdir(vfs):
    vfs.create("/file", 0, NodeFlag.FILE)
    with pytest.raises(VfsError) as info:
        vfs.create("/file/child", 0, NodeFlag.FILE)
    assert info.value.errno == errno.ENOTDIR


def test_nested_mkdir(vfs):
    vfs.mkdir("/a", 0)
    vfs.mkdir("/a/b", 0)
    node = vfs.open("/a/b", OpenFlag.READONLY)
    assert node.flags & NodeFlag.DIR
    assert node.name == "b"
    assert node.parent.name == "a"


def test_dot_and_dotdot(vfs):
    vfs.mkdir("/a", 0)
    vfs.mkdir("/a/b", 0)
    a = vfs.root.entries["a"]
    assert vfs.open("/a/b/..", OpenFlag.READONLY) is a
    assert vfs.open("/a/.", OpenFlag.READONLY) is a


def test_lookup_is_cached(vfs):
    vfs.mkdir("/a", 0)
    first = vfs.open("/a", OpenFlag.READONLY)
    count = vfs.root.lookups
    second = vfs.open("/a", OpenFlag.READONLY)
    assert first is second
    assert vfs.root.lookups == count
    assert second.ref_count == 2


def test_close_removes_from_cache_and_releases(vfs):
    vfs.create("/file", 0, NodeFlag.FILE)
    node = vfs.open("/file", OpenFlag.READONLY)
    assert "file" in vfs.root.children
    vfs.close(node)
    assert "file" not in vfs.root.children
    assert node.released == 1


def test_close_keeps_node_with_references(vfs):
    vfs.create("/file", 0, NodeFlag.FILE)
    node = vfs.open("/file", OpenFlag.READONLY)
    vfs.dup(node)
    vfs.close(node)
    assert vfs.root.children["file"] is node
    assert node.released == 0


def test_dup_none():
    assert Vfs().dup(None) is None


def test_relative_path_uses_cwd(vfs):
    vfs.mkdir("/home", 0)
    vfs.cwd = vfs.open("/home", OpenFlag.READONLY)
    vfs.create("notes", 0, NodeFlag.FILE)
    assert "notes" in vfs.root.entries["home"].entries
    assert vfs.open("notes", OpenFlag.READONLY) is vfs.root.entries["home"].entries["notes"]


def test_mount_follows_mount_point(vfs):
    mounted = MemDir()
    vfs.mount("/mnt", mounted)
    vfs.create("/mnt/file", 0, NodeFlag.FILE)
    assert "file" in mounted.entries
    assert "file" not in vfs.root.entries["mnt"].entries
    assert vfs.root.children["mnt"].flags & NodeFlag.MOUNT
    assert vfs.open("/mnt", OpenFlag.READONLY) is mounted


def test_mount_sets_mount_flag_bit(vfs):
    vfs.mount("/mnt", MemDir())
    assert (vfs.root.children["mnt"].flags & 0x10) == 0x10


def test_unmount(vfs):
    mounted = MemDir()
    vfs.mount("/mnt", mounted)
    vfs.create("/mnt/file", 0, NodeFlag.FILE)
    vfs.unmount("/mnt")
    assert vfs.open("/mnt/file", OpenFlag.READONLY) is None
    node = vfs.open("/mnt", OpenFlag.READONLY)
    assert node is vfs.root.entries["mnt"]
    assert not node.flags & NodeFlag.MOUNT


def test_unmount_non_mount_point(vfs):
    vfs.mkdir("/plain", 0)
    with pytest.raises(VfsError) as info:
        vfs.unmount("/plain")
    assert info.value.errno == errno.EINVAL


def test_unlink(vfs):
    vfs.create("/file", 0, NodeFlag.FILE)
    vfs.unlink("/file")
    assert "file" not in vfs.root.entries
    assert vfs.open("/file", OpenFlag.READONLY) is None


def test_unlink_missing(vfs):
    with pytest.raises(VfsError) as info:
        vfs.unlink("/missing")
    assert info.value.errno == errno.ENOENT


def test_read_directory_is_eisdir(vfs):
    with pytest.raises(VfsError) as info:
        vfs.read(vfs.root, 0, 1)
    assert info.value.errno == errno.EISDIR


def test_write_unsupported_is_ebadf():
    with pytest.raises(VfsError) as info:
        Vfs().write(VfsNode(NodeFlag.DEV), b"x", 0)
    assert info.value.errno == errno.EBADF


def test_truncate_directory_is_eisdir(vfs):
    with pytest.raises(VfsError) as info:
        vfs.truncate(vfs.root, 0)
    assert info.value.errno == errno.EISDIR


def test_chmod_and_chown_update_node(vfs):
    vfs.create("/file", 0, NodeFlag.FILE)
    node = vfs.open("/file", OpenFlag.READONLY)
    vfs.chmod(node, 0o600)
    vfs.chown(node, 7, 8)
    assert (node.perm, node.owner, node.group_owner) == (0o600, 7, 8)


def test_chmod_unsupported(vfs):
    with pytest.raises(VfsError):
        vfs.chmod(vfs.root, 0o600)
    assert vfs.root.perm == 0


def test_ioctl_and_sync_unsupported(vfs):
    with pytest.raises(VfsError) as info:
        vfs.ioctl(vfs.root, 1, None)
    assert info.value.errno == errno.EINVAL
    with pytest.raises(VfsError) as info:
        vfs.sync(vfs.root)
    assert info.value.errno == errno.EIO


def test_wait_defaults(vfs):
    events = PollEvent.IN | PollEvent.OUT
    assert vfs.wait_check(vfs.root, events) == events
    with pytest.raises(VfsError) as info:
        vfs.wait(vfs.root, events)
    assert info.value.errno == errno.EINVAL


def test_readdir(vfs):
    vfs.mkdir("/a", 0)
    assert vfs.readdir(vfs.root, 0) == "."
    assert vfs.readdir(vfs.root, 2) == "a"
    assert vfs.readdir(vfs.root, 3) is None
    assert vfs.readdir(VfsNode(NodeFlag.FILE), 0) is None


def test_auto_mount(vfs):
    calls = []

    def mount(source, target, flags, data):
        calls.append((source, target, flags, data))
        return "mounted"

    fs = Filesystem("memfs", mount)
    vfs.register_fs(fs)
    assert vfs.auto_mount("src", "/x", "memfs", 0, None) == "mounted"
    assert calls == [("src", "/x", 0, None)]
    vfs.unregister_fs(fs)
    with pytest.raises(VfsError) as info:
        vfs.auto_mount("src", "/x", "memfs", 0, None)
    assert info.value.errno == errno.ENODEV


def test_auto_mount_without_mount_function(vfs):
    vfs.register_fs(Filesystem("empty"))
    with pytest.raises(VfsError) as info:
        vfs.auto_mount("src", "/x", "empty", 0, None)
    assert info.value.errno == errno.ENODEV