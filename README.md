# blockfs

`blockfs` is a small filesystem that lives entirely in memory. It is built on a
fixed array of equally sized blocks. Each block is free or holds one of these:

- a superblock,
- an inode: size, owner, timestamps, link count, and the indices of its
  children (for a directory) or of its data blocks (for a file),
- a file entry: name, mode, type, symlink flag and the index of its inode,
- a chunk of file data.

Block 0 is the root directory and its inode is block 3. Block 1 holds the
superblock and block 2 holds a spare inode. By default a `Disk` has 100 blocks
of 512 bytes.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

Every operation takes a `Disk` as its first argument. An operation that fails
raises `FsError`, a subclass of `OSError` whose `errno` names the reason.

```python
import errno

from blockfs.disk import Disk, FsError
from blockfs import namespace, fileio

disk = Disk(100, 512)

namespace.mkdir(disk, "/docs", 0o755)
handle = namespace.create(disk, "/docs/notes.txt", 0o644)

fileio.write(disk, handle, b"hello", 0)
print(fileio.read(disk, handle, 5, 0))                      # b'hello'
fileio.release(disk, handle)

print(namespace.readdir(disk, "/docs"))                     # ['.', '..', 'notes.txt']
print(namespace.getattr(disk, "/docs/notes.txt").st_size)   # 5

namespace.link(disk, "/docs/notes.txt", "/docs/copy.txt")
namespace.symlink(disk, "/docs/notes.txt", "/shortcut")
print(namespace.readlink(disk, "/shortcut", 15))            # b'/docs/notes.txt'

try:
    namespace.getattr(disk, "/missing")
except FsError as exc:
    print(exc.errno == errno.ENOENT)                        # True
```

### Modules

- `blockfs.disk` holds the block model: `Disk`, `Block`, `Inode`,
  `FileEntry`, `DataBlock`, `Superblock`, the `BlockType` and `FileType`
  enumerations, and `FsError`. `Disk.find` resolves an absolute path to a
  block index (or `None`), and `Disk.search` returns free block indices for a
  given number of bytes.
- `blockfs.namespace` works on names: `getattr` (returns a `FileStat`),
  `create` (returns a handle), `mkdir`, `rmdir` (removes the directory and
  everything below it), `unlink`, `link`, `symlink`, `readlink`, `rename`
  and `readdir`.
- `blockfs.fileio` works on contents and attributes: `open_file` (returns a
  handle), `read`, `write`, `release`, `truncate`, `chmod` and `chown`.
  Readers and writers of one inode are kept apart: a read waits while a
  write is active, and a write or truncate waits for exclusive access.
  `open_file`, `chmod` and `chown` take the caller's ids as arguments and
  fall back to the ids of the current process.

Space is limited to the blocks of the disk and to the index table of an inode.
An operation that cannot get the blocks it needs raises `FsError` with
`ENOSPC` (or `EFBIG` when a file outgrows its inode).

## What it does not do

`blockfs` is a library only. It has no command line, and it does not mount
into the operating system. Everything is held in memory: a `Disk` is never
saved to or loaded from storage, and its contents are gone when the object is
dropped.