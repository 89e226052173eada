"""Build a file-system image: boot block, superblock, log, inodes, bitmap, data."""

from __future__ import annotations

import os
import struct
import sys
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable

FSMAGIC = 0x10203040
ROOTINO = 1

T_DIR = 1
T_FILE = 2
T_DEVICE = 3

_SUPERBLOCK = struct.Struct("<8I")
_UINT = 4


@dataclass(frozen=True)
class Geometry:
    """Sizes that fix the on-disk layout of an image."""

    block_size: int = 1024
    fs_size: int = 1000
    ninodes: int = 200
    nlog: int = 30
    ndirect: int = 12
    dirsiz: int = 14

    def __post_init__(self) -> None:
        for name in ("block_size", "fs_size", "ninodes", "nlog", "ndirect", "dirsiz"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.block_size % self.dinode_size:
            raise ValueError("block size must hold a whole number of inodes")
        if self.block_size % self.dirent_size:
            raise ValueError("block size must hold a whole number of directory entries")
        if self.nmeta >= self.fs_size:
            raise ValueError("file system too small for its metadata")

    @property
    def dinode_size(self) -> int:
        """Bytes per on-disk inode: four shorts, a size and the block addresses."""
        return 2 * 4 + _UINT + _UINT * (self.ndirect + 1)

    @property
    def dirent_size(self) -> int:
        """Bytes per directory entry: an inode number and a fixed-size name."""
        return 2 + self.dirsiz

    @property
    def inodes_per_block(self) -> int:
        return self.block_size // self.dinode_size

    @property
    def nindirect(self) -> int:
        return self.block_size // _UINT

    @property
    def maxfile(self) -> int:
        """Largest file size, in blocks."""
        return self.ndirect + self.nindirect

    @property
    def nbitmap(self) -> int:
        return self.fs_size // (self.block_size * 8) + 1

    @property
    def ninodeblocks(self) -> int:
        return self.ninodes // self.inodes_per_block + 1

    @property
    def nmeta(self) -> int:
        """Blocks used by boot, superblock, log, inodes and bitmap."""
        return 2 + self.nlog + self.ninodeblocks + self.nbitmap

    @property
    def nblocks(self) -> int:
        """Number of data blocks."""
        return self.fs_size - self.nmeta

    @property
    def logstart(self) -> int:
        return 2

    @property
    def inodestart(self) -> int:
        return 2 + self.nlog

    @property
    def bmapstart(self) -> int:
        return 2 + self.nlog + self.ninodeblocks

    def iblock(self, inum: int) -> int:
        """Block holding inode ``inum``."""
        return inum // self.inodes_per_block + self.inodestart


@dataclass
class _DiskInode:
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=list)


class ImageBuilder:
    """Writes a zeroed image with a superblock and appends inodes and data."""

    def __init__(self, image: BinaryIO, geometry: Geometry | None = None) -> None:
        self.image = image
        self.geometry = g = geometry if geometry is not None else Geometry()
        self._inode = struct.Struct(f"<hhhhI{g.ndirect + 1}I")
        self._dirent = struct.Struct(f"<H{g.dirsiz}s")
        self._indirect = struct.Struct(f"<{g.nindirect}I")
        self.freeinode = 1
        self.freeblock = g.nmeta  # first block available for data

        zero = bytes(g.block_size)
        for sec in range(g.fs_size):
            self._wsect(sec, zero)
        sb = _SUPERBLOCK.pack(
            FSMAGIC,
            g.fs_size,
            g.nblocks,
            g.ninodes,
            g.nlog,
            g.logstart,
            g.inodestart,
            g.bmapstart,
        )
        self._wsect(1, sb.ljust(g.block_size, b"\0"))

    def _wsect(self, sec: int, data: bytes) -> None:
        bs = self.geometry.block_size
        if len(data) != bs:
            raise ValueError("sector data must be exactly one block")
        self.image.seek(sec * bs)
        if self.image.write(data) != bs:
            raise OSError(f"write: short write at sector {sec}")

    def _rsect(self, sec: int) -> bytes:
        bs = self.geometry.block_size
        self.image.seek(sec * bs)
        data = self.image.read(bs)
        if len(data) != bs:
            raise OSError(f"read: short read at sector {sec}")
        return data

    def _dirent_bytes(self, inum: int, name: str) -> bytes:
        return self._dirent.pack(inum, os.fsencode(name)[: self.geometry.dirsiz])

    def _alloc_block(self) -> int:
        block = self.freeblock
        self.freeblock += 1
        return block

    def read_inode(self, inum: int) -> _DiskInode:
        """Return a copy of on-disk inode ``inum``."""
        g = self.geometry
        buf = self._rsect(g.iblock(inum))
        fields = self._inode.unpack_from(buf, (inum % g.inodes_per_block) * g.dinode_size)
        return _DiskInode(*fields[:5], addrs=list(fields[5:]))

    def write_inode(self, inum: int, inode: _DiskInode) -> None:
        """Store ``inode`` as on-disk inode ``inum``."""
        g = self.geometry
        if len(inode.addrs) != g.ndirect + 1:
            raise ValueError("inode must have ndirect + 1 block addresses")
        bn = g.iblock(inum)
        buf = bytearray(self._rsect(bn))
        self._inode.pack_into(
            buf,
            (inum % g.inodes_per_block) * g.dinode_size,
            inode.type,
            inode.major,
            inode.minor,
            inode.nlink,
            inode.size,
            *inode.addrs,
        )
        self._wsect(bn, bytes(buf))

    def ialloc(self, type: int) -> int:
        """Allocate the next inode with the given type and one link."""
        inum = self.freeinode
        self.freeinode += 1
        self.write_inode(
            inum,
            _DiskInode(type=type, nlink=1, size=0, addrs=[0] * (self.geometry.ndirect + 1)),
        )
        return inum

    def iappend(self, inum: int, data: bytes) -> None:
        """Append ``data`` to the end of inode ``inum``, allocating blocks."""
        g = self.geometry
        bs = g.block_size
        din = self.read_inode(inum)
        off = din.size
        view = memoryview(bytes(data))
        while view:
            fbn = off // bs
            if fbn >= g.maxfile:
                raise ValueError(f"inode {inum}: file too large")
            if fbn < g.ndirect:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[g.ndirect] == 0:
                    din.addrs[g.ndirect] = self._alloc_block()
                ind_block = din.addrs[g.ndirect]
                indirect = list(self._indirect.unpack(self._rsect(ind_block)))
                slot = fbn - g.ndirect
                if indirect[slot] == 0:
                    indirect[slot] = self._alloc_block()
                    self._wsect(ind_block, self._indirect.pack(*indirect))
                x = indirect[slot]
            start = off - fbn * bs
            n1 = min(len(view), bs - start)
            buf = bytearray(self._rsect(x))
            buf[start : start + n1] = view[:n1]
            self._wsect(x, bytes(buf))
            view = view[n1:]
            off += n1
        din.size = off
        self.write_inode(inum, din)

    def balloc(self, used: int) -> None:
        """Mark the first ``used`` blocks as allocated in the bitmap."""
        bs = self.geometry.block_size
        if not 0 <= used < bs * 8:
            raise ValueError("balloc: more blocks used than one bitmap block covers")
        bitmap = bytearray(bs)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self._wsect(self.geometry.bmapstart, bytes(bitmap))


def _short_name(path: str) -> str:
    short = path[len("user/") :] if path.startswith("user/") else path
    if "/" in short:
        raise ValueError(f"{path}: file name must not contain a directory")
    # Build outputs carry a leading underscore so the host does not run them.
    return short[1:] if short.startswith("_") else short


def build_image(
    path: str, files: Iterable[str], geometry: Geometry | None = None
) -> int:
    """Create an image at ``path`` whose root directory holds ``files``.

    Returns the number of blocks in use.
    """
    g = geometry if geometry is not None else Geometry()
    entries = [(_short_name(name), name) for name in files]
    with open(path, "w+b") as image:
        builder = ImageBuilder(image, g)
        root = builder.ialloc(T_DIR)
        if root != ROOTINO:
            raise RuntimeError("root inode is not the first inode")
        builder.iappend(root, builder._dirent_bytes(root, "."))
        builder.iappend(root, builder._dirent_bytes(root, ".."))
        for short, source in entries:
            with open(source, "rb") as stream:
                inum = builder.ialloc(T_FILE)
                builder.iappend(root, builder._dirent_bytes(inum, short))
                for chunk in iter(lambda: stream.read(g.block_size), b""):
                    builder.iappend(inum, chunk)
        din = builder.read_inode(root)
        din.size = (din.size // g.block_size + 1) * g.block_size
        builder.write_inode(root, din)
        builder.balloc(builder.freeblock)
        return builder.freeblock


def main(argv: list[str] | None = None) -> int:
    """Command line: ``IMAGE FILES...``; returns the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("Usage: mkfs fs.img files...\n")
        return 1
    g = Geometry()
    print(
        f"nmeta {g.nmeta} (boot, super, log blocks {g.nlog} inode blocks "
        f"{g.ninodeblocks}, bitmap blocks {g.nbitmap}) blocks {g.nblocks} "
        f"total {g.fs_size}"
    )
    try:
        used = build_image(args[0], args[1:], g)
    except OSError as exc:
        sys.stderr.write(f"{exc.filename or args[0]}: {exc.strerror or exc}\n")
        return 1
    except ValueError as exc:
        sys.stderr.write(f"mkfs: {exc}\n")
        return 1
    print(f"balloc: first {used} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {g.bmapstart}")
    return 0


if __name__ == "__main__":
    sys.exit(main())