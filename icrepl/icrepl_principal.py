"""
Principal identifiers: the opaque byte strings naming identities and canisters.

The textual form is the lowercase, unpadded base32 encoding of a big-endian
CRC32 checksum followed by the raw bytes, split into groups of five
characters joined with '-'.
"""
import base64
import hashlib
import zlib
from dataclasses import dataclass

SELF_AUTHENTICATING_TAG = 0x02
ANONYMOUS_TAG = 0x04
MAX_LENGTH = 29


@dataclass(frozen=True)
class Principal:
    raw: bytes = b""

    def __post_init__(self):
        if len(self.raw) > MAX_LENGTH:
            raise ValueError(f"principal is longer than {MAX_LENGTH} bytes")

    @classmethod
    def management_canister(cls) -> "Principal":
        return cls(b"")

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(bytes([ANONYMOUS_TAG]))

    @classmethod
    def self_authenticating(cls, public_key_der: bytes) -> "Principal":
        digest = hashlib.sha224(public_key_der).digest()
        return cls(digest + bytes([SELF_AUTHENTICATING_TAG]))

    @classmethod
    def from_text(cls, text: str) -> "Principal":
        normalized = text.strip()
        compact = normalized.replace("-", "").upper()
        if not compact:
            raise ValueError("empty principal text")
        padded = compact + "=" * (-len(compact) % 8)
        try:
            decoded = base64.b32decode(padded)
        except ValueError as e:
            raise ValueError(f"invalid principal text {text!r}") from e
        if len(decoded) < 4:
            raise ValueError(f"principal text {text!r} is too short")
        checksum, raw = decoded[:4], decoded[4:]
        if zlib.crc32(raw).to_bytes(4, "big") != checksum:
            raise ValueError(f"checksum mismatch in principal {text!r}")
        principal = cls(raw)
        # Reject texts that decode but are not grouped canonically
        if principal.to_text() != normalized.lower():
            raise ValueError(f"principal text {text!r} is not in canonical form")
        return principal

    def to_text(self) -> str:
        checksum = zlib.crc32(self.raw).to_bytes(4, "big")
        encoded = base64.b32encode(checksum + self.raw).decode("ascii").rstrip("=").lower()
        return "-".join(encoded[i:i + 5] for i in range(0, len(encoded), 5))

    def is_anonymous(self) -> bool:
        return self.raw == bytes([ANONYMOUS_TAG])

    def __str__(self):
        return self.to_text()
