# xv6kit

A small toolkit built around a teaching operating system. It models the
kernel's Sv39 virtual-memory code (with copy-on-write fork), and provides
the user-level library pieces, a first-fit memory allocator, a tiny grep,
a handful of core utilities, a command-line shell and a builder for
file-system images.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## What is inside

| Module | Purpose |
| --- | --- |
| `xv6kit.riscv` | Paging constants, `pg_round_up`/`pg_round_down`, PTE encoding (`pa2pte`, `pte2pa`, `pte_flags`), page-table indices (`px`), `make_satp` |
| `xv6kit.vm` | `PhysicalMemory` with per-page reference counts and `AddressSpace`: `walk`, `mappages`, `unmap`, `grow`, `shrink`, `free`, copy-on-write `copy_to`, `copyin`/`copyout`/`copyinstr`; errors are `VMError` and `KernelPanic` |
| `xv6kit.kdefs` | `Buf` and `RtcDate` records, a stack-like `ListHead`, `nelem` |
| `xv6kit.fmt` | The small printf dialect (`%d %l %x %p %s %c %%`) via `format_string` and `fprintf` |
| `xv6kit.ulib` | `atoi`, `strcmp`, `gets` |
| `xv6kit.umalloc` | A first-fit, coalescing free-list `Allocator` over a simulated heap; raises `OutOfMemory` when the heap limit is reached |
| `xv6kit.grep` | `match`, `match_here`, `match_star` (supporting `^ . * $`) and `grep` |
| `xv6kit.coreutils` | `wc`, `wc_counts`, `echo`, `cat`, `ls`, `fmtname`, and `run_tool` for `wc echo cat ls kill ln mkdir rm` |
| `xv6kit.shell` | `parse_command` producing `ExecCmd`, `RedirCmd`, `PipeCmd`, `ListCmd`, `BackCmd`; `Shell` to run them |
| `xv6kit.randgen` | The linear congruential `LcgRandom` (with `randstring`) and substring `find` |
| `xv6kit.mkfs` | `Geometry`, `ImageBuilder` and `build_image` for file-system images |

## Library use

```python
from xv6kit.fmt import format_string
from xv6kit.grep import match
from xv6kit.riscv import pg_round_up
from xv6kit.shell import parse_command

format_string("%d %x", 42, 255)   # '42 FF'
match("^ab*c$", "abbbc")           # True
pg_round_up(4097)                  # 8192
cmd = parse_command("cat < README | wc")
```

Virtual memory is modelled without real hardware:

```python
from xv6kit.vm import AddressSpace, PhysicalMemory

mem = PhysicalMemory(npages=64)
parent = AddressSpace(mem)
parent.grow(0, 4096)
parent.copyout(0, b"hello\0")

child = AddressSpace(mem)
parent.copy_to(child, 4096)        # pages now shared, marked copy-on-write
child.copyout(0, b"HELLO\0")       # child gets a private copy
parent.copyinstr(0, 16)            # b'hello'
```

## Commands

Search lines of files (or standard input) for a pattern:

```
xv6-grep 'ab*c' notes.txt
```

Run one of the core utilities by name (`wc`, `echo`, `cat`, `ls`, `kill`,
`ln`, `mkdir`, `rm`):

```
xv6-coreutils wc README.md
xv6-coreutils echo hello world
```

Start the interactive shell, which reads lines from standard input and
prompts with `$ ` on standard error:

```
xv6-sh
```

Build a file-system image from a list of files (a leading `user/` and a
leading `_` are stripped from the names stored in the root directory):

```
xv6-mkfs fs.img README.md notes.txt
```

## What it does not do

- The shell runs only its built-in programs: the core utilities, `grep`
  and `sh`. It never starts programs from the host system. The stages of
  a pipeline run one after another through an in-memory buffer, and a
  job started with `&` runs to completion before the shell continues.
  `>>` behaves like `>`: the file is created if missing and written from
  the start without being truncated.
- There is no process model, scheduler or user-level thread library; the
  virtual-memory code models page tables and physical pages only.
- The image builder writes images; the package has no code to mount or
  read them back as a file system.