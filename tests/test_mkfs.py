import io
import struct

import pytest

from xv6kit.mkfs import (
    FSMAGIC,
    ROOTINO,
    T_DIR,
    T_FILE,
    Geometry,
    ImageBuilder,
    build_image,
    main,
)

SMALL = Geometry(block_size=128, fs_size=200, ninodes=10, nlog=4)


def _block(image: bytes, g: Geometry, n: int) -> bytes:
    return image[n * g.block_size : (n + 1) * g.block_size]


def _file_bytes(builder: ImageBuilder, image: bytes, inum: int) -> bytes:
    g = builder.geometry
    din = builder.read_inode(inum)
    blocks = list(din.addrs[: g.ndirect])
    if din.addrs[g.ndirect]:
        ind = _block(image, g, din.addrs[g.ndirect])
        blocks += list(struct.unpack(f"<{g.nindirect}I", ind))
    data = b"".join(_block(image, g, b) for b in blocks if b)
    return data[: din.size]


def _dir_entries(builder: ImageBuilder, image: bytes, inum: int) -> list[tuple[int, str]]:
    g = builder.geometry
    raw = _file_bytes(builder, image, inum)
    out = []
    for off in range(0, len(raw), g.dirent_size):
        num, name = struct.unpack_from(f"<H{g.dirsiz}s", raw, off)
        if num:
            out.append((num, name.rstrip(b"\0").decode()))
    return out


def test_geometry_layout_invariants():
    g = Geometry()
    assert g.nmeta == 2 + g.nlog + g.ninodeblocks + g.nbitmap
    assert g.nblocks + g.nmeta == g.fs_size
    assert g.inodestart == g.logstart + g.nlog
    assert g.bmapstart == g.inodestart + g.ninodeblocks
    assert g.block_size % g.dinode_size == 0
    assert g.maxfile == g.ndirect + g.nindirect


def test_geometry_rejects_unaligned_block_size():
    with pytest.raises(ValueError):
        Geometry(block_size=100)


def test_new_image_has_superblock_and_size():
    stream = io.BytesIO()
    ImageBuilder(stream, SMALL)
    image = stream.getvalue()
    assert len(image) == SMALL.fs_size * SMALL.block_size
    fields = struct.unpack_from("<8I", image, SMALL.block_size)
    assert fields == (
        FSMAGIC,
        SMALL.fs_size,
        SMALL.nblocks,
        SMALL.ninodes,
        SMALL.nlog,
        SMALL.logstart,
        SMALL.inodestart,
        SMALL.bmapstart,
    )


def test_ialloc_numbers_from_root():
    builder = ImageBuilder(io.BytesIO(), SMALL)
    first = builder.ialloc(T_DIR)
    second = builder.ialloc(T_FILE)
    assert first == ROOTINO
    assert second == first + 1
    din = builder.read_inode(second)
    assert (din.type, din.nlink, din.size) == (T_FILE, 1, 0)


def test_write_read_inode_round_trip():
    builder = ImageBuilder(io.BytesIO(), SMALL)
    inum = builder.ialloc(T_FILE)
    din = builder.read_inode(inum)
    din.size = 77
    din.addrs[0] = 42
    builder.write_inode(inum, din)
    again = builder.read_inode(inum)
    assert again.size == 77
    assert again.addrs[0] == 42


def test_iappend_round_trip_with_indirect_blocks():
    stream = io.BytesIO()
    builder = ImageBuilder(stream, SMALL)
    inum = builder.ialloc(T_FILE)
    data = bytes(range(256)) * ((SMALL.ndirect + 3) * SMALL.block_size // 256 + 1)
    builder.iappend(inum, data[:1000])
    builder.iappend(inum, data[1000:])
    din = builder.read_inode(inum)
    assert din.size == len(data)
    assert din.addrs[SMALL.ndirect] != 0
    assert _file_bytes(builder, stream.getvalue(), inum) == data


def test_iappend_allocates_blocks_after_metadata():
    builder = ImageBuilder(io.BytesIO(), SMALL)
    inum = builder.ialloc(T_FILE)
    assert builder.freeblock == SMALL.nmeta
    builder.iappend(inum, b"x" * (SMALL.block_size + 1))
    din = builder.read_inode(inum)
    assert din.addrs[:2] == [SMALL.nmeta, SMALL.nmeta + 1]
    assert builder.freeblock == SMALL.nmeta + 2


def test_iappend_file_too_large():
    builder = ImageBuilder(io.BytesIO(), SMALL)
    inum = builder.ialloc(T_FILE)
    with pytest.raises(ValueError):
        builder.iappend(inum, bytes((SMALL.maxfile + 1) * SMALL.block_size))


def test_balloc_sets_exactly_used_bits():
    stream = io.BytesIO()
    builder = ImageBuilder(stream, SMALL)
    builder.balloc(13)
    bitmap = _block(stream.getvalue(), SMALL, SMALL.bmapstart)
    bits = [(bitmap[i // 8] >> (i % 8)) & 1 for i in range(SMALL.block_size * 8)]
    assert bits == [1] * 13 + [0] * (len(bits) - 13)


def test_balloc_rejects_too_many_blocks():
    builder = ImageBuilder(io.BytesIO(), SMALL)
    with pytest.raises(ValueError):
        builder.balloc(SMALL.block_size * 8)


def test_build_image_rejects_nested_path(tmp_path):
    src = tmp_path / "file"
    src.write_bytes(b"data")
    with pytest.raises(ValueError):
        build_image(str(tmp_path / "fs.img"), [str(src)], SMALL)


def test_main_usage(capsys):
    assert main([]) == 1
    assert "Usage: mkfs fs.img files..." in capsys.readouterr().err


def test_main_builds_image(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "README").write_bytes(b"hello\n")
    assert main(["fs.img", "README"]) == 0
    out = capsys.readouterr().out
    assert "balloc: first" in out
    image = (tmp_path / "fs.img").read_bytes()
    g = Geometry()
    assert len(image) == g.fs_size * g.block_size
    assert struct.unpack_from("<I", image, g.block_size)[0] == FSMAGIC


def test_main_missing_file(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main(["fs.img", "nosuchfile"]) == 1
    assert "nosuchfile" in capsys.readouterr().err