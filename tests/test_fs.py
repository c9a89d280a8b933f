import pytest

from xvsim.bio import BufferCache
from xvsim.disk import MemDisk
from xvsim.fs import Device, FileSystem, FsError, skip_elem
from xvsim.layout import BSIZE, DIRSIZ, NDIRECT, ROOTINO
from xvsim.log import Log
from xvsim.mkfs import T_DEV, T_DIR, T_FILE, ImageBuilder


def open_fs(image, **kwargs):
    disk = MemDisk(image)
    cache = BufferCache(disk)
    log = Log(cache, disk.dev)
    return FileSystem(cache, log, disk.dev, **kwargs), log, disk


def make_fs(files=(), **kwargs):
    builder = ImageBuilder()
    for name, data in files:
        builder.add_file(name, data)
    return open_fs(builder.finish(), **kwargs)


def read_path(fs, path):
    ip = fs.namei(path)
    with fs.locked(ip):
        data = fs.readi(ip, 0, ip.size)
    fs.iput(ip)
    return data


def create(fs, log, name, data=b""):
    with log.transaction():
        root = fs.namei("/")
        ip = fs.ialloc(T_FILE)
        with fs.locked(ip):
            ip.nlink = 1
            fs.iupdate(ip)
            fs.writei(ip, data, 0)
        with fs.locked(root):
            fs.dirlink(root, name, ip.inum)
        fs.iput(root)
    return ip


@pytest.mark.parametrize(
    "path, expected",
    [
        ("a/bb/c", ("a", "bb/c")),
        ("///a//bb", ("a", "bb")),
        ("a", ("a", "")),
        ("", None),
        ("////", None),
    ],
)
def test_skip_elem_examples(path, expected):
    assert skip_elem(path) == expected


def test_skip_elem_truncates_long_names():
    name, rest = skip_elem("abcdefghijklmnopqrstuvwxyz/x")
    assert len(name) == DIRSIZ
    assert "abcdefghijklmnopqrstuvwxyz".startswith(name)
    assert rest == "x"


def test_root_is_directory():
    fs, _, _ = make_fs()
    root = fs.namei("/")
    assert root.inum == ROOTINO
    with fs.locked(root):
        assert fs.stati(root).type == T_DIR


def test_read_file_from_image():
    fs, _, _ = make_fs([("README", b"hello world\n")])
    assert read_path(fs, "/README") == b"hello world\n"


def test_read_large_file_uses_indirect_block():
    data = bytes(i % 251 for i in range(BSIZE * (NDIRECT + 3) + 17))
    fs, _, _ = make_fs([("big", data)])
    ip = fs.namei("/big")
    with fs.locked(ip):
        assert ip.addrs[NDIRECT] != 0
        assert fs.readi(ip, 0, len(data)) == data
    fs.iput(ip)


def test_readi_clamps_to_size():
    fs, _, _ = make_fs([("f", b"abcde")])
    ip = fs.namei("/f")
    with fs.locked(ip):
        assert fs.readi(ip, 2, 1000) == b"cde"
        assert fs.readi(ip, 5, 10) == b""


def test_readi_past_end_raises():
    fs, _, _ = make_fs([("f", b"abc")])
    ip = fs.namei("/f")
    with fs.locked(ip):
        with pytest.raises(FsError):
            fs.readi(ip, 4, 1)


def test_missing_path_returns_none():
    fs, _, _ = make_fs([("f", b"x")])
    assert fs.namei("/nothing") is None
    assert fs.namei("/f/x") is None


def test_relative_lookup_needs_cwd():
    fs, _, _ = make_fs([("f", b"xyz")])
    root = fs.namei("/")
    ip = fs.namei("f", root)
    with fs.locked(ip):
        assert fs.readi(ip, 0, 3) == b"xyz"
    with pytest.raises(ValueError):
        fs.namei("f")


def test_nameiparent():
    fs, _, _ = make_fs()
    parent, name = fs.nameiparent("/newfile")
    assert parent.inum == ROOTINO
    assert name == "newfile"
    assert fs.nameiparent("/") is None


def test_create_and_persist():
    fs, log, disk = make_fs()
    create(fs, log, "hello", b"some text")
    fs2, _, _ = open_fs(disk.image)
    assert read_path(fs2, "/hello") == b"some text"


def test_write_across_blocks_round_trip():
    fs, log, disk = make_fs()
    data = bytes(range(256)) * 3
    create(fs, log, "multi", data)
    fs2, _, _ = open_fs(disk.image)
    assert read_path(fs2, "/multi") == data


def test_incremental_writes_into_indirect_blocks():
    fs, log, disk = make_fs()
    ip = create(fs, log, "grow")
    chunks = [bytes([i]) * BSIZE for i in range(NDIRECT + 2)]
    for chunk in chunks:
        with log.transaction():
            with fs.locked(ip):
                fs.writei(ip, chunk, ip.size)
    fs2, _, _ = open_fs(disk.image)
    assert read_path(fs2, "/grow") == b"".join(chunks)


def test_writei_beyond_size_raises():
    fs, log, _ = make_fs()
    ip = create(fs, log, "f", b"ab")
    with log.transaction():
        with fs.locked(ip):
            with pytest.raises(FsError):
                fs.writei(ip, b"x", 3)


def test_dirlink_duplicate_raises():
    fs, log, _ = make_fs([("f", b"x")])
    root = fs.namei("/")
    with log.transaction():
        with fs.locked(root):
            with pytest.raises(FileExistsError):
                fs.dirlink(root, "f", 5)


def test_dirlookup_matches_truncated_name():
    fs, log, _ = make_fs()
    long_name = "a_rather_long_file_name"
    ip = create(fs, log, long_name, b"data")
    root = fs.namei("/")
    with fs.locked(root):
        found, off = fs.dirlookup(root, long_name)
    assert found is ip
    assert off % 16 == 0


def test_dirlookup_on_file_raises():
    fs, _, _ = make_fs([("f", b"x")])
    ip = fs.namei("/f")
    with fs.locked(ip):
        with pytest.raises(FsError):
            fs.dirlookup(ip, "x")


def test_stati_reports_size_and_type():
    fs, _, _ = make_fs([("f", b"12345")])
    ip = fs.namei("/f")
    with fs.locked(ip):
        st = fs.stati(ip)
    assert (st.ino, st.type, st.size) == (ip.inum, T_FILE, 5)


def test_iput_frees_unlinked_inode_and_blocks():
    fs, log, _ = make_fs()
    with log.transaction():
        ip = fs.ialloc(T_FILE)
        with fs.locked(ip):
            fs.writei(ip, b"payload", 0)
        inum, block = ip.inum, ip.addrs[0]
        fs.iput(ip)
    with log.transaction():
        again = fs.ialloc(T_FILE)
        with fs.locked(again):
            assert again.size == 0
            fs.writei(again, b"other", 0)
    assert again.inum == inum
    assert again.addrs[0] == block


def test_iget_shares_entries():
    fs, _, _ = make_fs()
    a = fs.iget(ROOTINO)
    b = fs.iget(ROOTINO)
    assert a is b
    assert a.ref == 2
    assert fs.idup(a).ref == 3


def test_iget_cache_exhausted():
    fs, _, _ = make_fs(ninode=2)
    fs.iget(1)
    fs.iget(2)
    with pytest.raises(FsError):
        fs.iget(3)


def test_lock_misuse_raises():
    fs, _, _ = make_fs()
    root = fs.namei("/")
    fs.ilock(root)
    with pytest.raises(FsError):
        fs.ilock(root)
    with pytest.raises(FsError):
        fs.iput(root)
    fs.iunlock(root)
    with pytest.raises(FsError):
        fs.iunlock(root)


def test_ilock_unallocated_inode_raises():
    fs, _, _ = make_fs()
    ip = fs.iget(150)
    with pytest.raises(FsError):
        fs.ilock(ip)
    assert ip.locked is False


def test_device_inode_dispatches():
    written = []
    device = Device(read=lambda ip, n: b"dev"[:n], write=lambda ip, d: written.append(d) or len(d))
    fs, log, _ = make_fs(devsw={1: device})
    with log.transaction():
        ip = fs.ialloc(T_DEV)
        with fs.locked(ip):
            ip.major = 1
            ip.nlink = 1
            fs.iupdate(ip)
            assert fs.readi(ip, 0, 2) == b"de"
            assert fs.writei(ip, b"out", 0) == 3
    assert written == [b"out"]


def test_device_without_handler_raises():
    fs, log, _ = make_fs()
    with log.transaction():
        ip = fs.ialloc(T_DEV)
        with fs.locked(ip):
            ip.major = 2
            ip.nlink = 1
            with pytest.raises(FsError):
                fs.readi(ip, 0, 1)