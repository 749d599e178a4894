"""
L1 Domain — Download helpers (pure).

Size formatting for fetch logs.
No I/O, no subprocess.
"""

from __future__ import annotations


def fmt_size(n: int | float) -> str:
    """Format byte count to human-readable string."""
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"
