from __future__ import annotations

import re
from typing import Optional

_SYMBOLIC_RE = re.compile(r"^([ugoa]*)([-+=])([rwxst]*)$")

_WHO_SHIFT = {"u": 6, "g": 3, "o": 0}
_PERM_BITS = {"r": 4, "w": 2, "x": 1}
_SPECIAL_BITS = {("u", "s"): 0o4000, ("g", "s"): 0o2000, ("o", "t"): 0o1000}


def parse_mode(value: Optional[object], current: Optional[int] = None) -> Optional[int]:
    """Turn ``0644``, ``644``, ``0o644``, ``420`` or ``u+x,go-w`` into an int.

    Digit strings are always octal. Symbolic modes are applied on top of
    ``current`` (zero when the path does not exist yet).
    """

    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid mode {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    if text.lower().startswith("0o"):
        text = text[2:]
    if text.isdigit():
        try:
            return int(text, 8)
        except ValueError:
            raise ValueError(f"invalid octal mode '{value}'") from None
    return _apply_symbolic(text, current or 0)


def _apply_symbolic(text: str, mode: int) -> int:
    for clause in text.split(","):
        match = _SYMBOLIC_RE.match(clause.strip())
        if not match:
            raise ValueError(f"invalid symbolic mode '{text}'")
        who, op, perms = match.groups()
        targets = "ugo" if who in ("", "a") or "a" in who else who
        mask = 0
        for target in targets:
            for perm in perms:
                if perm in _PERM_BITS:
                    mask |= _PERM_BITS[perm] << _WHO_SHIFT[target]
                else:
                    mask |= _SPECIAL_BITS.get((target, perm), 0)
        if op == "+":
            mode |= mask
        elif op == "-":
            mode &= ~mask
        else:
            clear = 0
            for target in targets:
                clear |= 0o7 << _WHO_SHIFT[target]
            mode = (mode & ~clear) | mask
    return mode
