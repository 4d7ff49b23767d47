"""Collision-resistant identifiers for spaces, nodes, edges and blocks."""

from __future__ import annotations

import secrets

ALPHABET = "useandom-26T198340PX75pxJACKVERYMINDBUSHWOLF_GQZbfghjklqvwyzrict"
DEFAULT_SIZE = 21


def new_id(size: int = DEFAULT_SIZE) -> str:
    """Return a URL-safe random identifier (nanoid alphabet, ~126 bits at 21 chars)."""
    if size < 1:
        raise ValueError("Identifier size must be positive")
    return "".join(secrets.choice(ALPHABET) for _ in range(size))


__all__ = ["new_id", "ALPHABET", "DEFAULT_SIZE"]
