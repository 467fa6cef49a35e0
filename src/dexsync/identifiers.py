"""Resource identifier resolution.

PokeAPI addresses every resource by URL; the stable numeric identifier is the
last path segment. Pure functions, no I/O.
"""

from __future__ import annotations

import re
from typing import Literal

# Catalog entries: ".../pokemon/25/"
POKEMON_ID_PATTERN = re.compile(r"/pokemon/(\d+)/?$")
# Species and evolution-chain references: ".../pokemon-species/25/", ".../evolution-chain/10/"
GENERIC_ID_PATTERN = re.compile(r"/(\d+)/?$")

_ARTWORK_BASE = "https://raw.githubusercontent.com/PokeAPI/sprites/master/sprites/pokemon"


def resolve_id(ref: str | None, pattern: re.Pattern[str] = GENERIC_ID_PATTERN) -> int | None:
    """Extract the trailing numeric identifier from a resource reference.

    Returns ``None`` when the reference is empty, does not match ``pattern``,
    or carries the identifier ``0``. Never raises.
    """
    if not ref:
        return None
    match = pattern.search(ref)
    if match is None:
        return None
    value = int(match.group(1))
    return value or None


def artwork_url(pokemon_id: int, variant: Literal["official", "pixel"] = "official") -> str:
    """Return the sprite URL for a catalog entry."""
    if variant == "pixel":
        return f"{_ARTWORK_BASE}/versions/generation-v/black-white/{pokemon_id}.png"
    return f"{_ARTWORK_BASE}/other/official-artwork/{pokemon_id}.png"
