"""Unpacking a ustar archive into a fresh tmpfs root."""

from __future__ import annotations

import errno
from dataclasses import dataclass
from typing import Iterator, Union

from stanix.tmpfs import new_tmpfs
from stanix.vfs import NodeFlag, OpenFlag, Vfs, VfsError

BLOCK_SIZE = 512

USTAR_REGTYPE = "0"
USTAR_AREGTYPE = "\0"
USTAR_LNKTYPE = "1"
USTAR_SYMTYPE = "2"
USTAR_CHRTYPE = "3"
USTAR_BLKTYPE = "4"
USTAR_DIRTYPE = "5"
USTAR_FIFOTYPE = "6"
USTAR_CONTTYPE = "7"


def _cstr(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="surrogateescape")


def octal_to_int(text: Union[str, bytes]) -> int:
    """Convert a NUL-terminated octal field to an integer."""
    if isinstance(text, bytes):
        text = _cstr(text)
    else:
        text = text.split("\0", 1)[0]
    text = text.strip()
    return int(text, 8) if text else 0


@dataclass(frozen=True)
class UstarHeader:
    """The fields of one 512-byte ustar header block."""

    name: str
    mode: int
    uid: int
    gid: int
    size: int
    mtime: int
    checksum: str
    typeflag: str
    linkname: str
    magic: str
    uname: str
    gname: str
    devmajor: str
    devminor: str
    prefix: str

    @classmethod
    def parse(cls, block: bytes) -> "UstarHeader":
        if len(block) < BLOCK_SIZE:
            raise ValueError("a ustar header needs 512 bytes")
        return cls(
            name=_cstr(block[0:100]),
            mode=octal_to_int(block[100:108]),
            uid=octal_to_int(block[108:116]),
            gid=octal_to_int(block[116:124]),
            size=octal_to_int(block[124:136]),
            mtime=octal_to_int(block[136:148]),
            checksum=_cstr(block[148:156]),
            typeflag=chr(block[156]),
            linkname=_cstr(block[157:257]),
            magic=_cstr(block[257:263]),
            uname=_cstr(block[265:297]),
            gname=_cstr(block[297:329]),
            devmajor=_cstr(block[329:337]),
            devminor=_cstr(block[337:345]),
            prefix=_cstr(block[345:500]),
        )


def iter_entries(data: bytes) -> Iterator[tuple[UstarHeader, bytes]]:
    """Yield each header and its content until a block lacks the ustar magic."""
    offset = 0
    while offset + BLOCK_SIZE <= len(data):
        block = data[offset:offset + BLOCK_SIZE]
        if block[257:262] != b"ustar":
            break
        header = UstarHeader.parse(block)
        start = offset + BLOCK_SIZE
        content = data[start:start + header.size]
        if len(content) < header.size:
            raise ValueError(f"archive truncated in {header.name!r}")
        yield header, content
        offset += (header.size + 2 * BLOCK_SIZE - 1) // BLOCK_SIZE * BLOCK_SIZE


def mount_initrd(vfs: Vfs, data: bytes) -> None:
    """Make a new tmpfs the root of ``vfs`` and fill it from a ustar archive."""
    vfs.chroot(new_tmpfs())

    for header, content in iter_entries(data):
        full_path = "/" + header.name
        if header.typeflag == USTAR_DIRTYPE:
            vfs.mkdir(full_path[:-1], 0x777)
        elif header.typeflag == USTAR_REGTYPE:
            vfs.create(full_path, 0x777, NodeFlag.FILE)
            node = vfs.open(full_path, OpenFlag.WRITEONLY)
            if node is None:
                raise VfsError(errno.ENOENT, f"cannot open {full_path}")
            try:
                vfs.chown(node, 0, 0)
                written = vfs.write(node, content, 0)
                if written != len(content):
                    raise VfsError(
                        errno.EIO,
                        f"wrote {written // 1024}KB/{len(content) // 1024}KB of {full_path}",
                    )
            finally:
                vfs.close(node)