"""Session log persistence."""

from roundtrip.session.log import (
    SessionInfo,
    SessionLog,
    find_session,
    list_sessions,
    load_session,
    slugify_topic,
)

__all__ = [
    "SessionInfo",
    "SessionLog",
    "find_session",
    "list_sessions",
    "load_session",
    "slugify_topic",
]
