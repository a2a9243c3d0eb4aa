"""Opening, reading, writing, truncating and permission changes of files."""

from __future__ import annotations

import errno
import math
import os
import stat
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from .disk import ROOT_INDEX, Block, BlockType, Disk, FileEntry, FsError, Inode

_READ_BITS = stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH


def _caller_uid() -> int:
    return os.getuid() if hasattr(os, "getuid") else 0


def _caller_gid() -> int:
    return os.getgid() if hasattr(os, "getgid") else 0


def _lookup(disk: Disk, path: str) -> int:
    index = disk.find(path)
    if index is None:
        raise FsError(errno.ENOENT, f"no such file or directory: {path!r}")
    return index


def _entry(disk: Disk, handle: int) -> FileEntry:
    """The file entry behind an open handle."""
    if (
        isinstance(handle, int)
        and 0 <= handle < len(disk.blocks)
        and disk.blocks[handle].tag is BlockType.FILE
    ):
        return disk.blocks[handle].content
    raise FsError(errno.ENOENT, f"no open file for handle {handle!r}")


def _regular_inode(disk: Disk, entry: FileEntry) -> Inode:
    if entry.is_directory():
        raise FsError(errno.EISDIR, f"is a directory: {entry.name!r}")
    return disk.blocks[entry.inode].as_inode()


def _data_capacity(disk: Disk) -> int:
    return Block(size=disk.block_size).make_data().capacity


@contextmanager
def _reading(inode: Inode) -> Iterator[None]:
    """Hold a read share of the inode; waits while a writer is active."""
    with inode.cond:
        inode.cond.wait_for(lambda: inode.writecount == 0)
        inode.readcount += 1
    try:
        yield
    finally:
        with inode.cond:
            inode.readcount -= 1
            inode.cond.notify_all()


@contextmanager
def _writing(inode: Inode) -> Iterator[None]:
    """Hold exclusive write access to the inode."""
    with inode.cond:
        inode.cond.wait_for(lambda: inode.readcount == 0 and inode.writecount == 0)
        inode.writecount += 1
    try:
        yield
    finally:
        with inode.cond:
            inode.writecount -= 1
            inode.cond.notify_all()


def _contents(disk: Disk, inode: Inode) -> bytearray:
    """Stored bytes of a file, zero-filled up to its recorded size."""
    content = bytearray()
    for index in inode.index_file:
        content += disk.blocks[index].as_data().data
    if len(content) < inode.size:
        content.extend(bytes(inode.size - len(content)))
    return content


def _store(disk: Disk, inode: Inode, content: bytes) -> None:
    """Lay ``content`` out over data blocks, reusing the inode's own first."""
    chunk = _data_capacity(disk)
    needed = math.ceil(len(content) / chunk)
    owned = list(inode.index_file)
    missing = needed - len(owned)
    extra: list[int] = []
    if missing > 0:
        if needed > inode.capacity:
            raise FsError(errno.EFBIG, "file needs more blocks than an inode can index")
        extra = disk.search(missing * disk.block_size)
        if len(extra) < missing:
            raise FsError(errno.ENOSPC, "no free blocks left")
    blocks = owned + extra
    for index in blocks[needed:]:
        disk.blocks[index].free()
    used = blocks[:needed]
    for position, index in enumerate(used):
        data = disk.blocks[index].make_data()
        data.data.extend(content[position * chunk:(position + 1) * chunk])
    inode.index_file[:] = used


def open_file(disk: Disk, path: str, uid: Optional[int] = None, gid: Optional[int] = None) -> int:
    """Open the entry at ``path`` and return its handle."""
    uid = _caller_uid() if uid is None else uid
    gid = _caller_gid() if gid is None else gid
    index = _lookup(disk, path)
    entry = disk.file(index)
    inode = disk.inode_of(index)
    if entry.is_directory() and not inode.check_permission(uid, gid):
        raise FsError(errno.EACCES, f"permission denied: {path!r}")
    if not entry.mode & _READ_BITS:
        raise FsError(errno.EACCES, f"permission denied: {path!r}")
    inode.usecount += 1
    return index


def read(disk: Disk, handle: int, size: int, offset: int = 0) -> bytes:
    """Read up to ``size`` bytes from ``offset`` of an open file."""
    if size < 0 or offset < 0:
        raise FsError(errno.EINVAL, "size and offset must not be negative")
    inode = _regular_inode(disk, _entry(disk, handle))
    with _reading(inode):
        content = _contents(disk, inode)
        inode.atime = time.time()
    return bytes(content[offset:offset + size])


def write(disk: Disk, handle: int, data: bytes, offset: int = 0) -> int:
    """Write ``data`` at ``offset`` of an open file; return the bytes written."""
    if offset < 0:
        raise FsError(errno.EINVAL, "offset must not be negative")
    inode = _regular_inode(disk, _entry(disk, handle))
    payload = bytes(data)
    with _writing(inode):
        content = _contents(disk, inode)
        if offset > len(content):
            content.extend(bytes(offset - len(content)))
        content[offset:offset + len(payload)] = payload
        _store(disk, inode, bytes(content))
        inode.size = len(content)
        inode.mtime = time.time()
    return len(payload)


def release(disk: Disk, handle: int) -> None:
    """Close a handle returned by ``open_file`` or ``create``."""
    if handle == ROOT_INDEX:
        raise FsError(errno.ENOENT, "no open file for the root handle")
    entry = _entry(disk, handle)
    inode = disk.blocks[entry.inode].as_inode()
    if inode.usecount > 0:
        inode.usecount -= 1


def truncate(disk: Disk, path: str, size: int) -> None:
    """Set the length of the file at ``path`` to ``size`` bytes."""
    if size < 0:
        raise FsError(errno.EINVAL, "size must not be negative")
    index = _lookup(disk, path)
    inode = _regular_inode(disk, disk.file(index))
    with _writing(inode):
        content = _contents(disk, inode)
        if size < len(content):
            _store(disk, inode, bytes(content[:size]))
        inode.size = size
        inode.mtime = time.time()


def chmod(disk: Disk, path: str, mode: int, uid: Optional[int] = None, gid: Optional[int] = None) -> None:
    """Change the permission bits of the entry at ``path``."""
    uid = _caller_uid() if uid is None else uid
    gid = _caller_gid() if gid is None else gid
    index = _lookup(disk, path)
    if not disk.inode_of(index).check_permission(uid, gid):
        raise FsError(errno.EACCES, f"permission denied: {path!r}")
    disk.file(index).mode = stat.S_IMODE(mode)


def chown(disk: Disk, path: str, uid: int, gid: int, caller_uid: Optional[int] = None) -> None:
    """Give the entry at ``path`` a new owner and group."""
    caller_uid = _caller_uid() if caller_uid is None else caller_uid
    index = _lookup(disk, path)
    inode = disk.inode_of(index)
    if caller_uid != inode.uid and caller_uid != 0:
        raise FsError(errno.EACCES, f"permission denied: {path!r}")
    inode.uid = uid
    inode.gid = gid