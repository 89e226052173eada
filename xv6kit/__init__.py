"""Teaching-OS toolkit: Sv39 virtual memory, user library, allocator, grep, core utilities, shell and mkfs."""

__version__ = "0.1.0"