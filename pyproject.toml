[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xv6kit"
version = "0.1.0"
description = "A teaching-OS toolkit: Sv39 page tables with copy-on-write, a small user library and allocator, a shell, core utilities and a file-system image builder."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "operating-system",
    "teaching",
    "page-table",
    "copy-on-write",
    "shell",
    "mkfs",
    "risc-v",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xv6-grep = "xv6kit.grep:main"
xv6-coreutils = "xv6kit.coreutils:main"
xv6-sh = "xv6kit.shell:main"
xv6-mkfs = "xv6kit.mkfs:main"

[tool.hatch.build.targets.wheel]
packages = ["xv6kit"]

[tool.pytest.ini_options]
addopts = "-ra"
