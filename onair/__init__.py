"""
OnAir — Real-Time Listener Engagement for a Community Radio Station
=====================================================================
Identifies guest and registered listeners, carries the live chat and
reactions, records track likes, and turns threshold crossings into
once-only milestones that feed the activity stream and leaderboard.

Package layout::

    onair/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Thresholds, guest-name vocabularies, reactions
    ├── errors.py          # Error taxonomy shared by services and routes
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default settings + role bootstrap
    ├── engine/
    │   ├── identity.py    # Guest name derivation, Identity value object
    │   ├── milestones.py  # Pure milestone rules
    │   └── cache.py       # Settings cache + PG LISTEN/NOTIFY listener
    ├── services/
    │   ├── identity_service.py    # Identity resolution + role lookups
    │   ├── like_service.py        # Track-like ledger
    │   ├── milestone_service.py   # Exactly-once milestone persistence
    │   ├── listener_service.py    # Profiles + listening-time accrual
    │   ├── chat_service.py        # Chat persistence + publish
    │   ├── broadcast.py           # WebSocket subscriber hub
    │   ├── feed_service.py        # Activity feed reads
    │   ├── leaderboard_service.py # Listener + track rankings
    │   ├── now_playing.py         # Streaming server proxy
    │   └── sampler.py             # Periodic milestone sampling
    ├── client/
    │   ├── timeline.py    # Chat merge/dedupe, reaction overlay, mentions
    │   └── pollers.py     # Cancellable async pollers
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Dependency injection + session JWT
        ├── rate_limit.py  # Chat flood control
        └── routes/        # Public REST + WebSocket endpoints
"""

__version__ = "0.1.0"
