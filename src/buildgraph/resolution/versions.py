"""Maven-style version ordering.

Versions are split into numeric and alphabetic items on ``.``, ``-`` and
digit/letter transitions. Numeric items compare numerically, qualifiers by
their well-known rank::

    alpha < beta < milestone < rc < snapshot < "" (release) < sp

Unknown qualifiers sort after ``sp``, alphabetically among themselves. A
numeric item is always greater than a qualifier in the same position, so
``1.0.1 > 1.0-sp``. Trailing zeros and release qualifiers are insignificant:
``1 == 1.0 == 1.0.0 == 1.0-final``.
"""

from __future__ import annotations

import functools
import re

_ITEM = re.compile(r"\d+|[a-z]+")

QUALIFIER_ALIASES = {
    "a": "alpha",
    "b": "beta",
    "m": "milestone",
    "cr": "rc",
    "ga": "",
    "final": "",
    "release": "",
}

QUALIFIER_RANKS = {
    "alpha": 0,
    "beta": 1,
    "milestone": 2,
    "rc": 3,
    "snapshot": 4,
    "": 5,
    "sp": 6,
}

_RELEASE_RANK = QUALIFIER_RANKS[""]
_UNKNOWN_RANK = len(QUALIFIER_RANKS)

Item = int | str


@functools.lru_cache(maxsize=4096)
def parse_version(version: str) -> tuple[Item, ...]:
    """Split a version string into normalized comparable items."""
    items: list[Item] = []
    for raw in _ITEM.findall(version.lower()):
        if raw.isdigit():
            items.append(int(raw))
            continue
        qualifier = QUALIFIER_ALIASES.get(raw, raw)
        # ``1.0-alpha`` and ``1-alpha`` are the same version
        while items and items[-1] == 0:
            items.pop()
        items.append(qualifier)

    while items and (items[-1] == 0 or items[-1] == ""):
        items.pop()
    return tuple(items)


def _item_key(item: Item) -> tuple[int, int, str]:
    if isinstance(item, int):
        return (1, item, "")
    rank = QUALIFIER_RANKS.get(item, _UNKNOWN_RANK)
    return (0, rank, item if rank == _UNKNOWN_RANK else "")


def _padding_for(item: Item) -> Item:
    return 0 if isinstance(item, int) else ""


def compare_versions(left: str, right: str) -> int:
    """Compare two version strings.

    Returns:
        Negative if ``left`` is older, zero if equal, positive if newer
    """
    left_items = parse_version(left)
    right_items = parse_version(right)

    for index in range(max(len(left_items), len(right_items))):
        if index < len(left_items) and index < len(right_items):
            a, b = left_items[index], right_items[index]
        elif index < len(left_items):
            a = left_items[index]
            b = _padding_for(a)
        else:
            b = right_items[index]
            a = _padding_for(b)

        key_a, key_b = _item_key(a), _item_key(b)
        if key_a != key_b:
            return -1 if key_a < key_b else 1

    return 0


version_key = functools.cmp_to_key(compare_versions)
"""Sort key for version strings: ``sorted(versions, key=version_key)``"""


def highest_version(versions: list[str] | set[str] | tuple[str, ...]) -> str:
    """Return the highest of the given versions.

    Ties between equivalent spellings (``1.0`` vs ``1``) resolve to the
    lexicographically smallest spelling so the result does not depend on
    iteration order.

    Raises:
        ValueError: If ``versions`` is empty
    """
    if not versions:
        raise ValueError("No versions to choose from")
    return max(sorted(versions), key=version_key)
