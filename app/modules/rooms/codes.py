"""Room join codes: 6 upper-case hex characters (24-bit space)."""

from __future__ import annotations

import re
import secrets
from typing import Awaitable, Callable

ROOM_CODE_LENGTH = 6
_CODE_RE = re.compile(r"^[A-Za-z0-9]{6}$")


def _sample() -> str:
    return secrets.token_hex(ROOM_CODE_LENGTH // 2).upper()


def normalize_room_code(code: str) -> str:
    return code.strip().upper()


def is_valid_room_code(code: str) -> bool:
    return bool(_CODE_RE.match(code.strip()))


def generate_room_code(exists: Callable[[str], bool]) -> str:
    """Sample codes until ``exists`` reports one as free."""
    code = _sample()
    while exists(code):
        code = _sample()
    return code


async def generate_unique_room_code(exists: Callable[[str], Awaitable[bool]]) -> str:
    """Async variant of :func:`generate_room_code` for storage-backed checks.

    The result can still collide with a concurrent writer; the unique index on
    the rooms table is the final guard.
    """
    code = _sample()
    while await exists(code):
        code = _sample()
    return code
