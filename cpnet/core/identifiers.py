"""Validated identifier newtypes: Cusip, Did.

Cusip is the identity key of a commercial paper. Network-issued CUSIPs are
free-form uppercase tokens (e.g. "CP001"); standard 9-character CUSIPs can
additionally be checked with the modulus-10 "double-add-double" digit.
Did is a public decentralized identifier restricted to did:sov.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import final

from cpnet.core.result import Err, Ok

_CUSIP_MAX_LEN = 32
_CUSIP_ALPHABET = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789*@#-")


def _cusip_char_value(c: str) -> int:
    if c.isdigit():
        return int(c)
    if c.isalpha():
        return ord(c) - ord("A") + 10
    return {"*": 36, "@": 37, "#": 38}[c]


def cusip_check_digit(base: str) -> int:
    """Check digit for the first 8 characters of a standard CUSIP."""
    total = 0
    for i, c in enumerate(base[:8]):
        v = _cusip_char_value(c)
        if i % 2 == 1:
            v *= 2
        total += v // 10 + v % 10
    return (10 - total % 10) % 10


@final
@dataclass(frozen=True, slots=True)
class Cusip:
    """Paper identity key: 1-32 chars of A-Z, 0-9, *, @, #, -."""

    value: str

    def __post_init__(self) -> None:
        if not self.value or len(self.value) > _CUSIP_MAX_LEN:
            raise TypeError(f"Cusip must be 1-{_CUSIP_MAX_LEN} characters, got {self.value!r}")

    @staticmethod
    def parse(raw: str) -> Ok[Cusip] | Err[str]:
        token = raw.strip().upper()
        if not token:
            return Err("CUSIP must be non-empty")
        if len(token) > _CUSIP_MAX_LEN:
            return Err(f"CUSIP must be at most {_CUSIP_MAX_LEN} characters, got {len(token)}")
        bad = sorted(set(token) - _CUSIP_ALPHABET)
        if bad:
            return Err(f"CUSIP contains invalid characters {''.join(bad)!r}: '{raw}'")
        return Ok(Cusip(value=token))

    def is_standard(self) -> bool:
        """True for a 9-character CUSIP whose check digit verifies."""
        v = self.value
        if len(v) != 9 or "-" in v or not v[8].isdigit():
            return False
        return cusip_check_digit(v) == int(v[8])

    def fits_unit_suffix(self, units: int) -> bool:
        """True if suffixes -001 .. -<units> keep the CUSIP within its length limit."""
        return len(self.value) + len(f"-{units:03d}") <= _CUSIP_MAX_LEN

    def with_unit_suffix(self, unit: int) -> Cusip:
        """Distinguish one unit of a multi-unit issue: CP001 -> CP001-002."""
        return Cusip(value=f"{self.value}-{unit:03d}")


_BASE58_ALPHABET = frozenset("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")


@final
@dataclass(frozen=True, slots=True)
class Did:
    """Public DID. Only scheme "did" with method "sov" is accepted."""

    scheme: str
    method: str
    identifier: str

    @staticmethod
    def create(scheme: str, method: str, identifier: str) -> Ok[Did] | Err[str]:
        if scheme != "did":
            return Err(f"DID scheme must be 'did', got '{scheme}'")
        if method != "sov":
            return Err(f"DID method must be 'sov', got '{method}'")
        if not 16 <= len(identifier) <= 44:
            return Err(f"DID identifier must be 16-44 characters, got {len(identifier)}")
        if not set(identifier) <= _BASE58_ALPHABET:
            return Err(f"DID identifier must be base58, got '{identifier}'")
        return Ok(Did(scheme=scheme, method=method, identifier=identifier))

    @staticmethod
    def parse(raw: str) -> Ok[Did] | Err[str]:
        """Parse the compact form 'did:sov:<identifier>'."""
        parts = raw.split(":")
        if len(parts) != 3:
            return Err(f"DID must be 'did:<method>:<identifier>', got '{raw}'")
        return Did.create(parts[0], parts[1], parts[2])

    @property
    def value(self) -> str:
        return f"{self.scheme}:{self.method}:{self.identifier}"
