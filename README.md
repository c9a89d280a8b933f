# xvsim

`xvsim` simulates the core of a small teaching Unix in plain Python. It needs
no third-party libraries.

What it contains:

- `xvsim.layout`: the on-disk format. `Superblock`, `Dinode` and `Dirent`
  pack to and parse from bytes; `inode_block` and `bitmap_block` locate an
  inode and a free-map bit.
- `xvsim.disk.MemDisk`: a disk whose blocks live in a byte array.
- `xvsim.bio.BufferCache`: a fixed set of buffers kept in most-recently-used
  order, with `bread`, `bwrite` and `brelse`.
- `xvsim.log.Log`: a write-ahead redo log. `begin_op`/`end_op` bracket an
  operation, `log_write` records a changed buffer, and `transaction()` is a
  context manager around the pair. The log is replayed when a `Log` is created.
- `xvsim.fs.FileSystem`: the inode cache, block allocation, `readi`/`writei`,
  directories (`dirlookup`, `dirlink`) and path lookup (`namei`,
  `nameiparent`, with `skip_elem` splitting paths).
- `xvsim.file`: `Pipe`, open `File`s, the `FileTable` with reference counts,
  and `pipe_alloc`.
- `xvsim.proc.ProcessTable`: process slots with `alloc`, `fork`, `exit`,
  `wait`, `kill`, `setnice`, `getnice`, a `ps` listing and
  `schedule_round`, which runs every runnable process that has the lowest
  nice value.
- `xvsim.console.Console`: a line discipline with backspace, kill-line
  (Control-U) and end-of-file (Control-D); `xvsim.kbd.KeyboardDecoder` turns
  PC scancodes into characters, tracking Shift, Ctrl and Caps Lock.
- Small tools: `xvsim.fmt` (`format_user`, `format_kernel`), `xvsim.grep`,
  and in `xvsim.tools` `fmtname` (ls-style name padding), `echo_line` and
  `cat`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Command-line tools

### Building a file system image

```
xvsim-mkfs fs.img README cat echo
```

This writes `fs.img`: a 1000-block image with a 30-block log and 200 inodes,
whose root directory holds the files named on the command line. A leading `_`
in a file name is dropped when the file is stored, so `_cat` is stored as
`cat`. The tool prints the layout it chose (metadata, log, inode and bitmap
blocks) and how many blocks were allocated.

### Searching text

```
xvsim-grep 'ab*c$' notes.txt
```

The pattern language is small: `^` anchors at the start of a line, `$` at the
end, `.` matches any character and `*` repeats the element before it. With no
file names, standard input is searched. Matching lines are printed unchanged.
Only newline-terminated lines are examined; a final line without a newline is
ignored. If a file cannot be opened, the tool says so and stops.

## Library use

Matching and formatting:

```python
from xvsim.grep import match, grep_lines
from xvsim.fmt import format_user, format_kernel

match("^ab*c", "abbbc")                  # True
list(grep_lines("x$", ["ax", "xa"]))     # ['ax']
format_user("%d %x %s", -7, 255, "ok")   # '-7 FF ok'
format_kernel("%x", 255)                 # 'ff'
```

`format_user` understands `%d`, `%x`, `%p`, `%s`, `%c` and `%%`;
`format_kernel` uses lower-case hex digits and has no `%c`. Any other `%`
sequence is printed as it stands, and `None` for `%s` prints `(null)`.

Building an image and reading a file back through the layers:

```python
from xvsim.mkfs import ImageBuilder
from xvsim.disk import MemDisk
from xvsim.bio import BufferCache
from xvsim.log import Log
from xvsim.fs import FileSystem

builder = ImageBuilder()
builder.add_file("hello", b"hi\n")
image = builder.finish()

disk = MemDisk(image)
cache = BufferCache(disk)
log = Log(cache, disk.dev)
fs = FileSystem(cache, log)

with log.transaction():
    ip = fs.namei("/hello")
    with fs.locked(ip):
        data = fs.readi(ip, 0, 100)   # b'hi\n'
    fs.iput(ip)
```

`build_image(path, files)` does the whole image job for a path and a list of
files on the host. `MemDisk.image` returns the disk's current contents.

Conditions the kernel would treat as fatal, such as running out of buffers,
inodes or blocks, or a transaction too large for the log, are raised as
exceptions (`CacheError`, `FsError`, `LogError` and the like). Where the
kernel would put a process to sleep, these classes raise instead: reading an
empty pipe or console, or writing to a full pipe, raises `BlockingIOError`.

## What it does not do

There is no machine underneath: no running user programs, no system calls,
no `exec`, no shell and no interrupts. `ProcessTable` keeps the bookkeeping of
processes (states, parents, nice values, open files) but runs no code;
`schedule_round` only reports which processes would get the CPU. The only
storage is the in-memory `MemDisk`; an image is saved by writing
`MemDisk.image` or the output of `ImageBuilder.finish` to a file yourself.
Apart from `xvsim-mkfs` and `xvsim-grep`, the tools are library functions,
not commands.