"""
onair.services.identity_service — Identity Resolution
======================================================

Turns "who is calling?" into an :class:`~onair.engine.identity.Identity`.

A verified session (JWT claims with ``sub``) that maps to a listener row
resolves to the registered variant.  Anything else falls back to the
guest fingerprint supplied by the client.  Role lookups are fail-safe:
if the artist or role tables can't be read, the caller is simply treated
as having neither capability.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from onair.database.models import Artist, Listener, ListenerRole
from onair.database.seed import ADMIN_ROLE
from onair.engine.identity import Identity, guest_identity
from onair.errors import ValidationError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

MAX_FINGERPRINT_LENGTH = 128


def normalize_fingerprint(fingerprint: str | None) -> str | None:
    """Strip *fingerprint*; empty means absent.

    Raises ValidationError if it is longer than the stored column allows.
    """
    if fingerprint is None:
        return None
    fingerprint = fingerprint.strip()
    if not fingerprint:
        return None
    if len(fingerprint) > MAX_FINGERPRINT_LENGTH:
        raise ValidationError(
            f"Fingerprint must be at most {MAX_FINGERPRINT_LENGTH} characters"
        )
    return fingerprint


def classify_roles(session: Session, user_id: str, email: str | None) -> tuple[bool, bool]:
    """Return ``(is_artist, is_admin)`` for a registered listener.

    Lookup failures degrade to ``(False, False)``.
    """
    try:
        is_artist = False
        if email:
            is_artist = session.scalar(
                select(Artist.id).where(
                    func.lower(Artist.email) == email.strip().lower(),
                    Artist.approved.is_(True),
                )
            ) is not None
        is_admin = session.scalar(
            select(ListenerRole.id).where(
                ListenerRole.user_id == user_id,
                ListenerRole.role == ADMIN_ROLE,
            )
        ) is not None
    except SQLAlchemyError:
        logger.warning("Role lookup failed for %s — treating as plain listener", user_id)
        return False, False
    return is_artist, is_admin


def _registered_identity(session: Session, listener: Listener) -> Identity:
    is_artist, is_admin = classify_roles(session, listener.user_id, listener.email)
    return Identity(
        identity_key=listener.user_id,
        display_name=listener.nickname,
        avatar_ref=listener.avatar_url,
        listener_id=listener.id,
        is_artist=is_artist,
        is_admin=is_admin,
    )


def resolve_identity(
    engine: Engine,
    claims: dict | None,
    fingerprint: str | None,
) -> Identity | None:
    """Resolve the caller.

    Priority: a session whose subject owns a listener row, then the guest
    fingerprint, then nothing.  A signed-in user without a profile yet is
    still a guest for attribution purposes.
    """
    fingerprint = normalize_fingerprint(fingerprint)
    subject = (claims or {}).get("sub")

    if subject:
        with Session(engine) as session:
            listener = session.scalar(
                select(Listener).where(Listener.user_id == subject)
            )
            if listener is not None:
                return _registered_identity(session, listener)

    if fingerprint is None:
        return None
    return guest_identity(fingerprint)


def require_identity(
    engine: Engine,
    claims: dict | None,
    fingerprint: str | None,
) -> Identity:
    """Like :func:`resolve_identity` but raises when nobody can be named."""
    identity = resolve_identity(engine, claims, fingerprint)
    if identity is None:
        raise ValidationError("A signed-in listener or a guest fingerprint is required")
    return identity
