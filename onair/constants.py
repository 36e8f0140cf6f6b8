"""
onair.constants — Shared Constants & Helpers
=============================================

Single source of truth for milestone thresholds, guest-name vocabularies,
the reaction emoji set, and the listener level formula.  Import from here
instead of duplicating in services, routes, and client helpers.
"""

from __future__ import annotations

import enum

# ---------------------------------------------------------------------------
# Milestone types
# ---------------------------------------------------------------------------
class MilestoneType(enum.StrEnum):
    """Closed set of milestone kinds that feed the activity stream."""
    LISTENING_HOURS = "listening_hours"
    FIRST_SIGNUP = "first_signup"
    TRACK_LIKED = "track_liked"
    TRACK_FIRST_LIKE = "track_first_like"
    TRACK_MILESTONE_LIKES = "track_milestone_likes"
    TRACK_RANK_ONE = "track_rank_one"
    TOTAL_LISTENERS = "total_listeners"


# ---------------------------------------------------------------------------
# Default thresholds (overridable through the ``settings`` table)
# ---------------------------------------------------------------------------
LISTENING_HOUR_THRESHOLDS: tuple[int, ...] = (1, 5, 10, 25, 50, 100, 250, 500)
TRACK_LIKE_THRESHOLDS: tuple[int, ...] = (5, 10, 25, 50)
TOTAL_LISTENER_THRESHOLDS: tuple[int, ...] = (10, 25, 50, 100, 250, 500, 1000)

SECONDS_PER_HOUR = 3600


# ---------------------------------------------------------------------------
# Guest name vocabularies
# ---------------------------------------------------------------------------
GUEST_ADJECTIVES: tuple[str, ...] = (
    "סגול", "ניאון", "קוסמי", "זוהר", "חשמלי", "פסיכדלי", "קסום", "לילי",
    "שמימי", "מיסתורי", "היפנוטי", "אנרגטי", "רוחני", "עמוק", "צבעוני", "זורם",
)

GUEST_NOUNS: tuple[tuple[str, str], ...] = (
    ("ינשוף", "\U0001f989"),   # 🦉
    ("זאב", "\U0001f43a"),     # 🐺
    ("שועל", "\U0001f98a"),    # 🦊
    ("נמר", "\U0001f42f"),     # 🐯
    ("אריה", "\U0001f981"),    # 🦁
    ("פרפר", "\U0001f98b"),    # 🦋
    ("גל", "\U0001f30a"),      # 🌊
    ("להבה", "\U0001f525"),    # 🔥
    ("ברק", "⚡"),         # ⚡
    ("ירח", "\U0001f319"),     # 🌙
    ("כוכב", "⭐"),        # ⭐
    ("עננה", "☁️"),  # ☁️
    ("צליל", "\U0001f3b5"),    # 🎵
    ("קצב", "\U0001f3a7"),     # 🎧
    ("הד", "\U0001f52e"),      # 🔮
    ("חלום", "\U0001f4ab"),    # 💫
)

GUEST_FALLBACK_NAME = "אורח"


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
REACTION_EMOJIS: frozenset[str] = frozenset({
    "❤️",  # ❤️
    "\U0001f525",    # 🔥
    "\U0001f680",    # 🚀
    "✨",        # ✨
    "\U0001f3b5",    # 🎵
    "\U0001f49c",    # 💜
    "\U0001f64c",    # 🙌
    "\U0001f60d",    # 😍
})

REACTION_LIFETIME_SECONDS = 2.0
MAX_CHAT_MESSAGE_LENGTH = 500
MAX_TRACK_FIELD_LENGTH = 200


# ---------------------------------------------------------------------------
# Listener level formula
# ---------------------------------------------------------------------------
LEVEL_BADGES: tuple[tuple[int, str, str], ...] = (
    (100, "\U0001f48e", "legend"),    # 💎
    (50, "\U0001f947", "superfan"),   # 🥇
    (10, "\U0001f948", "regular"),    # 🥈
    (0, "\U0001f949", "newcomer"),    # 🥉
)


def listening_hours(total_seconds: int) -> int:
    """Whole listening hours, floored."""
    return max(total_seconds, 0) // SECONDS_PER_HOUR


def listener_level(total_seconds: int) -> dict[str, str]:
    """Badge and title for a listener with *total_seconds* of listening."""
    hours = total_seconds / SECONDS_PER_HOUR
    for min_hours, badge, title in LEVEL_BADGES:
        if hours >= min_hours:
            return {"badge": badge, "title": title}
    return {"badge": LEVEL_BADGES[-1][1], "title": LEVEL_BADGES[-1][2]}
