import errno
import stat

import pytest

from blockfs.disk import BlockType, Disk, FsError
from blockfs import namespace


@pytest.fixture
def disk():
    return Disk()


def free_blocks(d):
    return sum(1 for block in d.blocks if block.tag is BlockType.FREE)


def test_create_makes_regular_file(disk):
    handle = namespace.create(disk, "/test-create.file", 0o666)
    assert disk.find("/test-create.file") == handle
    attrs = namespace.getattr(disk, "/test-create.file")
    assert stat.S_ISREG(attrs.st_mode)
    assert stat.S_IMODE(attrs.st_mode) == 0o666
    assert attrs.st_size == 0
    assert disk.inode_of(handle).usecount == 1


def test_create_uses_two_blocks(disk):
    before = free_blocks(disk)
    namespace.create(disk, "/a", 0o644)
    assert free_blocks(disk) == before - 2


def test_create_existing_raises_eexist(disk):
    namespace.create(disk, "/test-open", 0o777)
    with pytest.raises(FsError) as exc:
        namespace.create(disk, "/test-open", 0o777)
    assert exc.value.errno == errno.EEXIST


def test_create_in_missing_directory_raises_enoent(disk):
    with pytest.raises(FsError) as exc:
        namespace.create(disk, "/non-existant-directory/test-open", 0o777)
    assert exc.value.errno == errno.ENOENT


def test_create_under_file_raises_enotdir(disk):
    namespace.create(disk, "/test-open", 0o777)
    with pytest.raises(FsError) as exc:
        namespace.create(disk, "/test-open/test-open2", 0o777)
    assert exc.value.errno == errno.ENOTDIR


def test_create_without_space_raises_enospc():
    small = Disk(num_blocks=6)
    namespace.create(small, "/one", 0o644)
    with pytest.raises(FsError) as exc:
        namespace.create(small, "/two", 0o644)
    assert exc.value.errno == errno.ENOSPC
    assert small.find("/two") is None


def test_mkdir_creates_directory(disk):
    namespace.mkdir(disk, "/test-mkdir", 0o777)
    attrs = namespace.getattr(disk, "/test-mkdir")
    assert stat.S_ISDIR(attrs.st_mode)
    with pytest.raises(FsError) as exc:
        namespace.mkdir(disk, "/test-mkdir", 0o777)
    assert exc.value.errno == errno.EEXIST


def test_mkdir_missing_parent_raises_enoent(disk):
    with pytest.raises(FsError) as exc:
        namespace.mkdir(disk, "/missing/child", 0o777)
    assert exc.value.errno == errno.ENOENT


def test_readdir_lists_entries(disk):
    namespace.mkdir(disk, "/test-readdir", 0o777)
    namespace.mkdir(disk, "/test-readdir/test-readdir", 0o777)
    namespace.create(disk, "/test-readdir/test-read.file", 0o777)
    assert namespace.readdir(disk, "/test-readdir") == [
        ".",
        "..",
        "test-readdir",
        "test-read.file",
    ]


def test_readdir_root(disk):
    assert namespace.readdir(disk, "/") == [".", ".."]


def test_readdir_on_file_fails(disk):
    namespace.mkdir(disk, "/test-readdir", 0o777)
    namespace.create(disk, "/test-readdir/test-read.file", 0o777)
    with pytest.raises(FsError) as exc:
        namespace.readdir(disk, "/test-readdir/test-read.file")
    assert exc.value.errno == errno.ENOTDIR


def test_readdir_missing_raises_enoent(disk):
    with pytest.raises(FsError) as exc:
        namespace.readdir(disk, "/nope")
    assert exc.value.errno == errno.ENOENT


def test_link_file(disk):
    original = namespace.create(disk, "/original.c", 0o777)
    linked = namespace.link(disk, "/original.c", "/link_to_orginal")
    assert disk.file(linked).inode == disk.file(original).inode
    assert disk.inode_of(original).link == 2
    assert "link_to_orginal" in namespace.readdir(disk, "/")


def test_link_folder_fails(disk):
    namespace.mkdir(disk, "/test-link", 0o777)
    with pytest.raises(FsError) as exc:
        namespace.link(disk, "/test-link", "/link_to_folder")
    assert exc.value.errno == errno.EPERM
    assert disk.find("/link_to_folder") is None


def test_link_newpath_exists_fails(disk):
    namespace.create(disk, "/test-old-path", 0o777)
    namespace.create(disk, "/test-newpath-exist", 0o777)
    with pytest.raises(FsError) as exc:
        namespace.link(disk, "/test-old-path", "/test-newpath-exist")
    assert exc.value.errno == errno.EEXIST


def test_link_missing_source_raises_enoent(disk):
    with pytest.raises(FsError) as exc:
        namespace.link(disk, "/missing", "/other")
    assert exc.value.errno == errno.ENOENT


def test_symlink_and_readlink(disk):
    namespace.create(disk, "/test-symlink.file", 0o777)
    namespace.symlink(disk, "/test-symlink.file", "/test-symlink-2.file")
    assert namespace.readlink(disk, "/test-symlink-2.file", 100) == b"/test-symlink.file"
    assert namespace.readlink(disk, "/test-symlink-2.file", 5) == b"/test"
    attrs = namespace.getattr(disk, "/test-symlink-2.file")
    assert stat.S_ISLNK(attrs.st_mode)


def test_symlink_existing_raises_eexist(disk):
    namespace.create(disk, "/f", 0o777)
    with pytest.raises(FsError) as exc:
        namespace.symlink(disk, "/x", "/f")
    assert exc.value.errno == errno.EEXIST


def test_readlink_on_regular_file_raises_einval(disk):
    namespace.create(disk, "/plain", 0o644)
    with pytest.raises(FsError) as exc:
        namespace.readlink(disk, "/plain", 10)
    assert exc.value.errno == errno.EINVAL


def test_rename_directory(disk):
    namespace.mkdir(disk, "/test-rename", 0o777)
    namespace.rename(disk, "/test-rename", "/test-rename2")
    assert disk.find("/test-rename") is None
    assert namespace.readdir(disk, "/") == [".", "..", "test-rename2"]


def test_rename_into_other_directory(disk):
    namespace.mkdir(disk, "/dir", 0o777)
    namespace.create(disk, "/file", 0o644)
    namespace.rename(disk, "/file", "/dir/moved")
    assert namespace.readdir(disk, "/dir") == [".", "..", "moved"]
    assert namespace.readdir(disk, "/") == [".", "..", "dir"]


def test_rename_missing_raises_enoent(disk):
    with pytest.raises(FsError) as exc:
        namespace.rename(disk, "/test-rename", "/test-rename2")
    assert exc.value.errno == errno.ENOENT


def test_rename_missing_inside_directory_fails(disk):
    namespace.mkdir(disk, "/test-dir", 0o777)
    with pytest.raises(FsError) as exc:
        namespace.rename(disk, "/test-dir/test-rename", "/test-dir/test-rename2")
    assert exc.value.errno == errno.ENOENT


def test_rename_empty_path_fails(disk):
    with pytest.raises(FsError):
        namespace.rename(disk, "", "/test-rename2")


def test_rename_onto_existing_raises_eexist(disk):
    namespace.mkdir(disk, "/test-dir", 0o777)
    namespace.mkdir(disk, "/test-dir/test-rename", 0o777)
    with pytest.raises(FsError) as exc:
        namespace.rename(disk, "/test-dir/test-rename", "/test-dir")
    assert exc.value.errno == errno.EEXIST


def test_rename_into_itself_raises_einval(disk):
    namespace.mkdir(disk, "/a", 0o777)
    with pytest.raises(FsError) as exc:
        namespace.rename(disk, "/a", "/a/b")
    assert exc.value.errno == errno.EINVAL
    assert disk.find("/a") is not None


def test_unlink_removes_file_and_frees_blocks(disk):
    before = free_blocks(disk)
    namespace.create(disk, "/test-unlink.file", 0o777)
    namespace.unlink(disk, "/test-unlink.file")
    assert disk.find("/test-unlink.file") is None
    assert free_blocks(disk) == before


def test_unlink_one_hard_link_keeps_other(disk):
    namespace.create(disk, "/a", 0o644)
    namespace.link(disk, "/a", "/b")
    namespace.unlink(disk, "/a")
    remaining = disk.find("/b")
    assert disk.inode_of(remaining).link == 1
    assert namespace.readdir(disk, "/") == [".", "..", "b"]


def test_unlink_directory_raises_eisdir(disk):
    namespace.mkdir(disk, "/d", 0o777)
    with pytest.raises(FsError) as exc:
        namespace.unlink(disk, "/d")
    assert exc.value.errno == errno.EISDIR


def test_unlink_missing_raises_enoent(disk):
    with pytest.raises(FsError) as exc:
        namespace.unlink(disk, "/test-read.file")
    assert exc.value.errno == errno.ENOENT


def test_getattr_reports_regular_file(disk):
    namespace.create(disk, "/test-unlink.file", 0o777)
    attrs = namespace.getattr(disk, "/test-unlink.file")
    assert stat.S_ISREG(attrs.st_mode)
    assert not stat.S_ISDIR(attrs.st_mode)
    assert attrs.st_nlink == 1


def test_getattr_root(disk):
    attrs = namespace.getattr(disk, "/")
    assert stat.S_ISDIR(attrs.st_mode)
    assert stat.S_IMODE(attrs.st_mode) == 0o777


def test_getattr_missing_raises_enoent(disk):
    with pytest.raises(FsError) as exc:
        namespace.getattr(disk, "/missing")
    assert exc.value.errno == errno.ENOENT


def test_rmdir_frees_directory_and_contents(disk):
    before = free_blocks(disk)
    namespace.mkdir(disk, "/d", 0o777)
    namespace.create(disk, "/d/f", 0o644)
    namespace.rmdir(disk, "/d")
    assert disk.find("/d") is None
    assert free_blocks(disk) == before


def test_rmdir_file_raises_enotdir(disk):
    namespace.create(disk, "/f", 0o644)
    with pytest.raises(FsError) as exc:
        namespace.rmdir(disk, "/f")
    assert exc.value.errno == errno.ENOTDIR


def test_rmdir_missing_raises_enoent(disk):
    with pytest.raises(FsError) as exc:
        namespace.rmdir(disk, "/missing")
    assert exc.value.errno == errno.ENOENT