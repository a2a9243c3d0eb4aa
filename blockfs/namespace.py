"""Directory-tree operations: lookup, creation, linking, renaming and removal."""

from __future__ import annotations

import errno
import posixpath
import stat
from dataclasses import dataclass

from .disk import ROOT_INDEX, BlockType, Disk, FileType, FsError


@dataclass(frozen=True)
class FileStat:
    """Attributes of one directory entry, as reported by ``getattr``."""

    st_mode: int
    st_nlink: int
    st_size: int
    st_ctime: float
    st_atime: float
    st_mtime: float
    st_uid: int
    st_gid: int


def _split(path: str) -> tuple[str, str]:
    """Split a path into its directory part and its last name."""
    stripped = path.rstrip("/") or "/"
    return posixpath.dirname(stripped) or "/", posixpath.basename(stripped)


def _lookup(disk: Disk, path: str) -> int:
    index = disk.find(path)
    if index is None:
        raise FsError(errno.ENOENT, f"no such file or directory: {path!r}")
    return index


def _require_directory(disk: Disk, index: int, path: str) -> None:
    block = disk.blocks[index]
    if block.tag is not BlockType.FILE or not block.content.is_directory():
        raise FsError(errno.ENOTDIR, f"not a directory: {path!r}")


def _parent_of(disk: Disk, path: str) -> tuple[int, str]:
    parent_path, name = _split(path)
    parent = _lookup(disk, parent_path)
    _require_directory(disk, parent, parent_path)
    return parent, name


def _allocate(disk: Disk, count: int) -> list[int]:
    indices = disk.search(count * disk.block_size)
    if len(indices) < count:
        raise FsError(errno.ENOSPC, "no free blocks left")
    return indices


def _free_all(disk: Disk, indices) -> None:
    for index in indices:
        disk.blocks[index].free()


def _detach(disk: Disk, parent: int, child: int) -> None:
    siblings = disk.inode_of(parent).index_file
    if child in siblings:
        siblings.remove(child)


def _drop_file(disk: Disk, index: int) -> None:
    """Free a file entry, and its inode and data once no other link remains."""
    entry = disk.file(index)
    inode = disk.blocks[entry.inode].as_inode()
    if inode.link <= 1:
        _free_all(disk, inode.index_file)
        inode.index_file.clear()
        disk.blocks[entry.inode].free()
    else:
        inode.link -= 1
    disk.blocks[index].free()


def _drop_tree(disk: Disk, index: int) -> None:
    """Free a directory entry together with everything below it."""
    entry = disk.file(index)
    inode = disk.blocks[entry.inode].as_inode()
    for child in list(inode.index_file):
        block = disk.blocks[child]
        if block.tag is not BlockType.FILE:
            continue
        if block.content.is_directory():
            _drop_tree(disk, child)
        else:
            _drop_file(disk, child)
    inode.index_file.clear()
    disk.blocks[entry.inode].free()
    disk.blocks[index].free()


def getattr(disk: Disk, path: str) -> FileStat:
    """Return the attributes of the entry at ``path``."""
    index = _lookup(disk, path)
    entry = disk.file(index)
    inode = disk.inode_of(index)
    mode = (stat.S_IFDIR if entry.is_directory() else stat.S_IFREG) | entry.mode
    if entry.is_symlink():
        mode |= stat.S_IFLNK
    return FileStat(
        st_mode=mode,
        st_nlink=1,
        st_size=inode.size,
        st_ctime=inode.ctime,
        st_atime=inode.atime,
        st_mtime=inode.mtime,
        st_uid=inode.uid,
        st_gid=inode.gid,
    )


def _make_entry(disk: Disk, path: str, mode: int, file_type: FileType) -> tuple[int, int]:
    if disk.find(path) is not None:
        raise FsError(errno.EEXIST, f"file exists: {path!r}")
    parent, name = _parent_of(disk, path)
    entry_index, inode_index = _allocate(disk, 2)
    disk.blocks[entry_index].make_file(name, mode, file_type, inode_index, False)
    disk.blocks[inode_index].make_inode()
    try:
        disk.add(parent, entry_index)
    except FsError:
        _free_all(disk, (entry_index, inode_index))
        raise
    return entry_index, inode_index


def create(disk: Disk, path: str, mode: int) -> int:
    """Create a regular file and return its handle (its entry block index)."""
    entry_index, inode_index = _make_entry(disk, path, mode, FileType.F)
    disk.blocks[inode_index].as_inode().usecount += 1
    return entry_index


def mkdir(disk: Disk, path: str, mode: int) -> int:
    """Create a directory and return its entry block index."""
    entry_index, _ = _make_entry(disk, path, mode, FileType.D)
    return entry_index


def rmdir(disk: Disk, path: str) -> None:
    """Remove the directory at ``path`` together with its contents."""
    index = _lookup(disk, path)
    _require_directory(disk, index, path)
    if index == ROOT_INDEX:
        raise FsError(errno.EBUSY, "cannot remove the root directory")
    parent = _lookup(disk, _split(path)[0])
    _detach(disk, parent, index)
    _drop_tree(disk, index)


def unlink(disk: Disk, path: str) -> None:
    """Remove the file entry at ``path``."""
    index = _lookup(disk, path)
    if disk.file(index).is_directory():
        raise FsError(errno.EISDIR, f"is a directory: {path!r}")
    parent = _lookup(disk, _split(path)[0])
    _detach(disk, parent, index)
    _drop_file(disk, index)


def link(disk: Disk, oldpath: str, newpath: str) -> int:
    """Make ``newpath`` a hard link to the file at ``oldpath``."""
    old = _lookup(disk, oldpath)
    entry = disk.file(old)
    if entry.is_directory():
        raise FsError(errno.EPERM, f"cannot hard-link a directory: {oldpath!r}")
    if disk.find(newpath) is not None:
        raise FsError(errno.EEXIST, f"file exists: {newpath!r}")
    parent, name = _parent_of(disk, newpath)
    (index,) = _allocate(disk, 1)
    disk.blocks[index].make_file(name, entry.mode, FileType.F, entry.inode, False)
    try:
        disk.add(parent, index)
    except FsError:
        disk.blocks[index].free()
        raise
    disk.blocks[entry.inode].as_inode().link += 1
    return index


def symlink(disk: Disk, target: str, linkpath: str) -> int:
    """Create a symbolic link at ``linkpath`` whose content is ``target``."""
    if disk.find(linkpath) is not None:
        raise FsError(errno.EEXIST, f"file exists: {linkpath!r}")
    parent, name = _parent_of(disk, linkpath)
    encoded = target.encode()
    entry_index, inode_index, data_index = _allocate(disk, 3)
    disk.blocks[entry_index].make_file(name, 0o777, FileType.F, inode_index, True)
    disk.blocks[inode_index].make_inode()
    data = disk.blocks[data_index].make_data()
    if len(encoded) > data.capacity:
        _free_all(disk, (entry_index, inode_index, data_index))
        raise FsError(errno.ENAMETOOLONG, "symlink target is too long")
    data.data.extend(encoded)
    try:
        disk.add(entry_index, data_index)
        disk.add(parent, entry_index)
    except FsError:
        _free_all(disk, (entry_index, inode_index, data_index))
        raise
    return entry_index


def readlink(disk: Disk, path: str, size: int) -> bytes:
    """Return at most ``size`` bytes of the target of the symlink at ``path``."""
    index = _lookup(disk, path)
    if not disk.file(index).is_symlink():
        raise FsError(errno.EINVAL, f"not a symbolic link: {path!r}")
    inode = disk.inode_of(index)
    if not inode.index_file:
        return b""
    return bytes(disk.blocks[inode.index_file[0]].as_data().data[:size])


def rename(disk: Disk, path: str, newpath: str) -> None:
    """Move the entry at ``path`` to ``newpath``, which must not exist."""
    index = _lookup(disk, path)
    if index == ROOT_INDEX:
        raise FsError(errno.EBUSY, "cannot rename the root directory")
    if disk.find(newpath) is not None:
        raise FsError(errno.EEXIST, f"file exists: {newpath!r}")
    old_parent = _lookup(disk, _split(path)[0])
    new_parent_path, new_name = _split(newpath)
    new_parent = _lookup(disk, new_parent_path)
    _require_directory(disk, new_parent, new_parent_path)
    entry = disk.file(index)
    source = path.rstrip("/")
    if entry.is_directory() and (
        new_parent_path == source or new_parent_path.startswith(source + "/")
    ):
        raise FsError(errno.EINVAL, "cannot move a directory into itself")
    siblings = disk.inode_of(old_parent).index_file
    position = siblings.index(index)
    del siblings[position]
    try:
        disk.add(new_parent, index)
    except FsError:
        siblings.insert(position, index)
        raise
    entry.name = new_name


def readdir(disk: Disk, path: str) -> list[str]:
    """List the names in the directory at ``path``, starting with . and .."""
    index = _lookup(disk, path)
    _require_directory(disk, index, path)
    names = [".", ".."]
    for child in disk.inode_of(index).index_file:
        block = disk.blocks[child]
        if block.tag is BlockType.FILE:
            names.append(block.content.name)
    return names