"""
Fingerprints — loadable semantics for the letters A-Z.

A fingerprint is named by up to four characters whose bytes, read
big-endian, form its 32-bit code (``BOOL`` is 0x424F4F4C). Loading one
pushes its handlers onto the IP's per-letter semantic stacks; unloading
pops them again, uncovering whatever was loaded before.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .instructions import Handler, remainder
from .stacks import to_cell


def fingerprint_code(name: str) -> int:
    code = 0
    for ch in name:
        code = ((code << 8) + ord(ch)) & 0xFFFFFFFF
    return code


@dataclass
class Fingerprint:
    name: str
    handlers: dict[str, Handler] = field(default_factory=dict)

    @property
    def code(self) -> int:
        return fingerprint_code(self.name)

    def load(self, ip):
        for letter in sorted(self.handlers):
            ip.semantics.setdefault(letter, []).append(self.handlers[letter])

    def unload(self, ip):
        """Pop one semantic from every letter this fingerprint defines."""
        for letter in sorted(self.handlers):
            stack = ip.semantics.get(letter)
            if stack:
                stack.pop()


REGISTRY: dict[int, Fingerprint] = {}


def register_fingerprint(fingerprint: Fingerprint) -> Fingerprint:
    """Make ``fingerprint`` loadable by every machine using the registry."""
    REGISTRY[fingerprint.code] = fingerprint
    return fingerprint


# ---------------------------------------------------------------------------
# NULL: every letter reflects
# ---------------------------------------------------------------------------

def _reflect(ip, m):
    ip.reflect()


register_fingerprint(Fingerprint(
    "NULL", {ch: _reflect for ch in "ABCDEFGHIJKLMNOPQRSTUVWXYZ"}))


# ---------------------------------------------------------------------------
# BOOL: bitwise logic
# ---------------------------------------------------------------------------

def _bitwise(op):
    def apply(ip, m):
        b = ip.pop()
        a = ip.pop()
        ip.push(to_cell(op(a, b)))
    return apply


def _bool_not(ip, m):
    ip.push(to_cell(~ip.pop()))


register_fingerprint(Fingerprint("BOOL", {
    "A": _bitwise(lambda a, b: a & b),
    "O": _bitwise(lambda a, b: a | b),
    "X": _bitwise(lambda a, b: a ^ b),
    "N": _bool_not,
}))


# ---------------------------------------------------------------------------
# ROMA: Roman numerals
# ---------------------------------------------------------------------------

def _numeral(value: int):
    def push_numeral(ip, m):
        ip.push(value)
    return push_numeral


register_fingerprint(Fingerprint("ROMA", {
    letter: _numeral(value) for letter, value in
    (("I", 1), ("V", 5), ("X", 10), ("L", 50),
     ("C", 100), ("D", 500), ("M", 1000))
}))


# ---------------------------------------------------------------------------
# MODU: modulo variants
# ---------------------------------------------------------------------------

def _floored(a: int, b: int) -> int:
    return to_cell(a % b) if b else 0


def _unsigned(a: int, b: int) -> int:
    return abs(remainder(a, b))


register_fingerprint(Fingerprint("MODU", {
    "M": _bitwise(_floored),
    "U": _bitwise(_unsigned),
    "R": _bitwise(remainder),
}))
