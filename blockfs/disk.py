"""Typed blocks, the block array that forms a disk, and path lookup."""

from __future__ import annotations

import errno
import math
import os
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Union

BLOCK_SIZE = 512
NUM_BLOCKS = 100

ROOT_INDEX = 0
SUPERBLOCK_INDEX = 1
SPARE_INODE_INDEX = 2
ROOT_INODE_INDEX = 3

INODE_CAPACITY = 94
SUPERBLOCK_CAPACITY = 124
_DATA_OVERHEAD = 16


class FsError(OSError):
    """A filesystem operation failed; ``errno`` holds the reason."""

    def __init__(self, code: int, message: Optional[str] = None):
        super().__init__(code, message or os.strerror(code))


class BlockType(Enum):
    FREE = "free"
    DATA = "data"
    INODE = "inode"
    SUPERBLOCK = "superblock"
    FILE = "file"


class FileType(Enum):
    F = "file"
    D = "directory"


def _current_uid() -> int:
    return os.getuid() if hasattr(os, "getuid") else 0


def _current_gid() -> int:
    return os.getgid() if hasattr(os, "getgid") else 0


@dataclass(eq=False)
class Superblock:
    files: list[int] = field(default_factory=list)
    capacity: int = SUPERBLOCK_CAPACITY


@dataclass(eq=False)
class Inode:
    """Metadata of a file plus the indices of the blocks it owns."""

    index_file: list[int] = field(default_factory=list)
    size: int = 0
    usecount: int = 0
    ctime: float = field(default_factory=time.time)
    atime: Optional[float] = None
    mtime: Optional[float] = None
    uid: int = field(default_factory=_current_uid)
    gid: int = field(default_factory=_current_gid)
    readcount: int = 0
    writecount: int = 0
    link: int = 1
    capacity: int = INODE_CAPACITY
    cond: threading.Condition = field(
        default_factory=threading.Condition, repr=False
    )

    def __post_init__(self) -> None:
        if self.atime is None:
            self.atime = self.ctime
        if self.mtime is None:
            self.mtime = self.ctime

    def check_permission(self, uid: int, gid: int) -> bool:
        """Root may do anything; otherwise the owner and group must match."""
        return uid == 0 or (self.uid == uid and self.gid == gid)


@dataclass(eq=False)
class DataBlock:
    data: bytearray = field(default_factory=bytearray)
    capacity: int = BLOCK_SIZE - _DATA_OVERHEAD


@dataclass(eq=False)
class FileEntry:
    """A named directory entry pointing at an inode block."""

    name: str
    mode: int
    type: FileType
    inode: int
    symlink: bool = False
    cond: threading.Condition = field(
        default_factory=threading.Condition, repr=False
    )

    def is_directory(self) -> bool:
        return self.type is FileType.D

    def is_symlink(self) -> bool:
        return self.symlink


Content = Union[Superblock, Inode, DataBlock, FileEntry, None]


@dataclass(eq=False)
class Block:
    """One slot of the disk; its tag says what its content is."""

    size: int = BLOCK_SIZE
    tag: BlockType = BlockType.FREE
    content: Content = None

    def free(self) -> None:
        self.tag = BlockType.FREE
        self.content = None

    def _expect(self, tag: BlockType) -> Content:
        if self.tag is not tag:
            raise TypeError(f"block holds {self.tag.value}, not {tag.value}")
        return self.content

    def as_file(self) -> FileEntry:
        return self._expect(BlockType.FILE)

    def as_inode(self) -> Inode:
        return self._expect(BlockType.INODE)

    def as_data(self) -> DataBlock:
        return self._expect(BlockType.DATA)

    def as_superblock(self) -> Superblock:
        return self._expect(BlockType.SUPERBLOCK)

    def make_file(self, name, mode, file_type, inode, is_symlink=False) -> FileEntry:
        self.tag = BlockType.FILE
        self.content = FileEntry(name, mode, file_type, inode, is_symlink)
        return self.content

    def make_inode(self) -> Inode:
        self.tag = BlockType.INODE
        self.content = Inode()
        return self.content

    def make_data(self) -> DataBlock:
        self.tag = BlockType.DATA
        self.content = DataBlock(capacity=self.size - _DATA_OVERHEAD)
        return self.content

    def make_superblock(self) -> Superblock:
        self.tag = BlockType.SUPERBLOCK
        self.content = Superblock()
        return self.content


class Disk:
    """A fixed array of blocks with a root directory at block 0."""

    def __init__(self, num_blocks: int = NUM_BLOCKS, block_size: int = BLOCK_SIZE):
        if num_blocks <= ROOT_INODE_INDEX:
            raise ValueError(f"a disk needs more than {ROOT_INODE_INDEX} blocks")
        if block_size <= _DATA_OVERHEAD:
            raise ValueError(f"block size must exceed {_DATA_OVERHEAD} bytes")
        self.num_blocks = num_blocks
        self.block_size = block_size
        self.blocks = [Block(size=block_size) for _ in range(num_blocks)]
        self.superblock = self.blocks[SUPERBLOCK_INDEX].make_superblock()
        self.blocks[SPARE_INODE_INDEX].make_inode()
        self.blocks[ROOT_INODE_INDEX].make_inode()
        self.root = self.blocks[ROOT_INDEX].make_file(
            "/", 0o777, FileType.D, ROOT_INODE_INDEX, False
        )

    def search(self, total_size: int) -> list[int]:
        """Indices of free blocks enough to hold ``total_size`` bytes.

        Fewer indices are returned when the disk has too few free blocks.
        """
        needed = math.ceil(total_size / self.block_size)
        if needed <= 0:
            return []
        found: list[int] = []
        for index, block in enumerate(self.blocks):
            if block.tag is BlockType.FREE:
                found.append(index)
                if len(found) == needed:
                    break
        return found

    def find(self, path: str) -> Optional[int]:
        """Block index of the entry at an absolute path, or None."""
        if not path.startswith("/"):
            raise FsError(errno.EINVAL, f"not an absolute path: {path!r}")
        if path == "/":
            return ROOT_INDEX
        return self.find_parts(path.split("/")[1:], ROOT_INDEX)

    def find_parts(self, parts: Iterable[str], start: int = ROOT_INDEX) -> Optional[int]:
        """Walk the names in ``parts`` down from the directory at ``start``."""
        current = start
        for name in parts:
            block = self.blocks[current]
            if block.tag is not BlockType.FILE or not block.content.is_directory():
                return None
            directory = block.content
            for index in self.blocks[directory.inode].as_inode().index_file:
                child = self.blocks[index]
                if child.tag is BlockType.FILE and child.content.name == name:
                    current = index
                    break
            else:
                return None
        return current

    def add(self, file_index: int, *args: Union[int, Iterable[int]]) -> None:
        """Append block indices to the inode of the entry at ``file_index``."""
        inode = self.inode_of(file_index)
        indices: list[int] = []
        for arg in args:
            if isinstance(arg, int):
                indices.append(arg)
            else:
                indices.extend(arg)
        if len(inode.index_file) + len(indices) > inode.capacity:
            raise FsError(errno.ENOSPC, "inode index table is full")
        inode.index_file.extend(indices)

    def file(self, index: int) -> FileEntry:
        return self.blocks[index].as_file()

    def inode_of(self, index: int) -> Inode:
        return self.blocks[self.file(index).inode].as_inode()