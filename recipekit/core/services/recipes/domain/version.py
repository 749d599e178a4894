"""
L1 Domain — Recipe version parsing and comparison (pure).

Versions are up to four dot-separated non-negative integers.
No I/O, no subprocess.
"""

from __future__ import annotations

from recipekit.core.services.recipes.domain.errors import InvalidVersion

MAX_COMPONENTS = 4


def parse_version(version: str) -> tuple[int, ...]:
    """Parse a dotted version string into an integer tuple.

    ``""`` parses to ``(0,)`` so unversioned recipes still have a
    comparable stored value.

    Raises:
        InvalidVersion: non-numeric or negative component, or more
            than four components.
    """
    if version == "":
        return (0,)

    parts = version.split(".")
    if len(parts) > MAX_COMPONENTS:
        raise InvalidVersion(
            f"invalid version {version!r}: more than {MAX_COMPONENTS} components"
        )

    out: list[int] = []
    for part in parts:
        # isdigit() rejects "", "-1", "+1" and " 1", all of which int() would take
        if not part.isascii() or not part.isdigit():
            raise InvalidVersion(f"invalid version {version!r}: bad component {part!r}")
        out.append(int(part))
    return tuple(out)


def is_greater(stored: tuple[int, ...], candidate: str) -> bool:
    """Whether ``candidate`` is strictly newer than the ``stored`` version.

    An empty candidate is never greater, not even against a stored
    ``(0,)``: unversioned recipes never trigger an update. An
    unparsable candidate is not greater either. Equal versions are
    not greater, so re-applying the same version is a no-op.
    """
    if candidate == "":
        return False
    try:
        cand = parse_version(candidate)
    except InvalidVersion:
        return False

    width = max(len(stored), len(cand))
    left = tuple(stored) + (0,) * (width - len(stored))
    right = cand + (0,) * (width - len(cand))

    for old, new in zip(left, right):
        if old != new:
            return new > old
    return False


def format_version(version: tuple[int, ...] | list[int]) -> str:
    """Render a parsed version back to its dotted form."""
    return ".".join(str(v) for v in version)
