"""Session logs: one JSONL file per conversation.

Files are named ``YYYY-MM-DD-HH-MM-<topic>.jsonl`` and hold one
serialized :class:`Message` per line. The topic is a slug of the first
user message.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from roundtrip.core.errors import SessionError
from roundtrip.providers.base import Message

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M"
UNKNOWN_TOPIC = "unknown-topic"

_FILENAME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}-\d{2}-\d{2})-(.*)\.jsonl$")
_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify_topic(text: str | None, *, max_words: int = 5) -> str:
    """Lower-case, hyphen-separated slug of the first few words."""
    if not text:
        return UNKNOWN_TOPIC
    words = [w for w in _SLUG_RE.split(text.lower()) if w]
    return "-".join(words[:max_words]) or UNKNOWN_TOPIC


def _first_user_text(messages: Sequence[Message]) -> str | None:
    for message in messages:
        if message.role == "user" and message.content:
            return message.content
    return None


@dataclass(frozen=True, slots=True)
class SessionInfo:
    """A session file found in the log directory."""

    path: Path
    timestamp: str | None
    topic: str

    @property
    def filename(self) -> str:
        return self.path.name


def list_sessions(log_dir: Path) -> list[SessionInfo]:
    """Session files in ``log_dir``, newest first.

    A missing directory lists as empty.
    """
    if not log_dir.is_dir():
        return []

    sessions: list[SessionInfo] = []
    for path in sorted(log_dir.glob("*.jsonl"), reverse=True):
        match = _FILENAME_RE.match(path.name)
        if match:
            sessions.append(SessionInfo(path, match.group(1), match.group(2)))
        else:
            sessions.append(SessionInfo(path, None, path.stem))
    return sessions


def find_session(log_dir: Path, session_id: str) -> Path | None:
    """First session file (newest first) whose name contains ``session_id``."""
    for info in list_sessions(log_dir):
        if session_id in info.filename:
            return info.path
    return None


def load_session(path: Path) -> list[Message]:
    """Read a session file back into messages.

    Lines that are not valid JSON messages are skipped.

    Raises:
        SessionError: If the file cannot be read or holds no messages.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"Cannot read session file {path}: {e}"
        raise SessionError(msg) from e

    messages: list[Message] = []
    for lineno, line in enumerate(text.splitlines(), 1):
        if not line.strip():
            continue
        try:
            messages.append(Message.from_dict(json.loads(line)))
        except (ValueError, TypeError, AttributeError) as e:
            logger.debug("Skipping line %d of %s: %s", lineno, path, e)

    if not messages:
        msg = f"Session file is empty or invalid: {path.name}"
        raise SessionError(msg)
    return messages


class SessionLog:
    """Appends a growing conversation to its session file.

    :meth:`record` is given the full history each time and writes only
    the messages it has not seen. A history that shrinks or whose first
    message changes (a resumed session, say) starts a new file.
    """

    def __init__(
        self,
        log_dir: Path,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._log_dir = log_dir
        self._clock = clock
        self._path: Path | None = None
        self._logged = 0
        self._first: Message | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    def reset(self) -> None:
        self._path = None
        self._logged = 0
        self._first = None

    def record(self, messages: Sequence[Message]) -> Path | None:
        """Append unseen messages; returns the file written, if any.

        Raises:
            SessionError: If the log file cannot be written.
        """
        if not messages:
            return self._path

        if self._first is not None and self._first != messages[0]:
            self.reset()
        if len(messages) < self._logged:
            self.reset()
        self._first = messages[0]

        if len(messages) == self._logged:
            return self._path

        try:
            if self._path is None:
                self._log_dir.mkdir(parents=True, exist_ok=True)
                self._path = self._unused_path(messages)
                logger.debug("Starting session log %s", self._path)

            lines = [json.dumps(m.to_dict()) for m in messages[self._logged :]]
            with self._path.open("a", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")
        except OSError as e:
            msg = f"Cannot write session log: {e}"
            raise SessionError(msg) from e

        self._logged = len(messages)
        return self._path

    def _unused_path(self, messages: Sequence[Message]) -> Path:
        stamp = self._clock().strftime(TIMESTAMP_FORMAT)
        stem = f"{stamp}-{slugify_topic(_first_user_text(messages))}"
        path = self._log_dir / f"{stem}.jsonl"
        n = 2
        while path.exists():
            path = self._log_dir / f"{stem}-{n}.jsonl"
            n += 1
        return path
