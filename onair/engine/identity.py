"""
onair.engine.identity — Guest Names & the Identity Value Object
================================================================

Pure calculation — no database I/O.  A guest is never stored; their
display name is re-derived from the fingerprint on every call, so the
derivation must be deterministic and independent of call order.
"""

from __future__ import annotations

from dataclasses import dataclass

from onair.constants import GUEST_ADJECTIVES, GUEST_NOUNS

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def fingerprint_hash(fingerprint: str) -> int:
    """Non-negative 32-bit rolling hash (``h * 31 + unit``) of *fingerprint*.

    Iterates over UTF-16 code units and wraps to a signed 32-bit integer at
    every step, so names match those already shown on the web client.
    """
    h = 0
    data = fingerprint.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & _INT32_MASK
    if h & _INT32_SIGN:
        h -= 1 << 32
    return abs(h)


def guest_display_name(fingerprint: str) -> str:
    """Derive ``"<noun> <adjective> <emoji>"`` for a guest fingerprint.

    Two independent slices of the hash pick the adjective (low bits) and
    the noun (bits above the first byte).
    """
    h = fingerprint_hash(fingerprint)
    adjective = GUEST_ADJECTIVES[h % len(GUEST_ADJECTIVES)]
    noun, emoji = GUEST_NOUNS[(h >> 8) % len(GUEST_NOUNS)]
    return f"{noun} {adjective} {emoji}"


def guest_emoji(fingerprint: str) -> str:
    """The emoji half of the guest name, used as the guest avatar."""
    h = fingerprint_hash(fingerprint)
    return GUEST_NOUNS[(h >> 8) % len(GUEST_NOUNS)][1]


# ---------------------------------------------------------------------------
# Identity — what every write path attaches to a fact
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Identity:
    """A resolved caller: exactly one of registered listener or guest.

    ``identity_key`` is the listener's auth subject when registered, else
    the guest fingerprint.  It is the key used by the like ledger and the
    chat flood-control window.
    """

    identity_key: str
    display_name: str
    avatar_ref: str | None = None
    listener_id: int | None = None
    guest_fingerprint: str | None = None
    is_artist: bool = False
    is_admin: bool = False

    def __post_init__(self) -> None:
        if (self.listener_id is None) == (self.guest_fingerprint is None):
            raise ValueError(
                "Identity must be exactly one of registered listener or guest"
            )

    @property
    def is_registered(self) -> bool:
        return self.listener_id is not None

    def to_dict(self) -> dict:
        return {
            "identity_key": self.identity_key,
            "display_name": self.display_name,
            "avatar_ref": self.avatar_ref,
            "is_registered": self.is_registered,
            "is_artist": self.is_artist,
            "is_admin": self.is_admin,
        }


def guest_identity(fingerprint: str) -> Identity:
    """Build the guest variant for *fingerprint* (never artist or admin)."""
    return Identity(
        identity_key=fingerprint,
        display_name=guest_display_name(fingerprint),
        avatar_ref=guest_emoji(fingerprint),
        guest_fingerprint=fingerprint,
    )
