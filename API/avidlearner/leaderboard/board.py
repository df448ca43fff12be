"""Server-validated leaderboard persisted as a JSON file."""
from __future__ import annotations

import asyncio
from datetime import timedelta
from pathlib import Path
from threading import Lock

from pydantic import TypeAdapter

from avidlearner.core.errors import InvalidRequest, RateLimited, ScoreRejected
from avidlearner.core.logging import DOMAIN_LEADERBOARD, get_domain_logger
from avidlearner.core.settings import Settings, settings
from avidlearner.engine.models import Session, utcnow
from avidlearner.engine.service import session_engine
from avidlearner.engine.store import SessionStore
from avidlearner.schemas.leaderboard import LeaderboardEntry, SubmitScoreRequest, SubmitScoreResponse, TypingScoreResponse

logger = get_domain_logger(__name__, DOMAIN_LEADERBOARD)

_entry_list = TypeAdapter(list[LeaderboardEntry])

MODES = ("quiz", "typing", "coding")
ANONYMOUS = "Anonymous"


def validated_score(session: Session, mode: str) -> int:
    if mode == "quiz":
        return session.quiz_score
    if mode == "typing":
        return session.typing_score
    if mode == "coding":
        return session.coding_score
    raise InvalidRequest(f"invalid mode '{mode}'", details={"modes": list(MODES)})


class Leaderboard:
    def __init__(self, store: SessionStore, *, path: str | Path | None = None, config: Settings = settings):
        self.store = store
        self.config = config
        self.path = Path(path or config.leaderboard_file)
        self._entries: list[LeaderboardEntry] = []
        self._lock = Lock()

    def load(self, path: str | Path | None = None) -> int:
        """Read entries from disk; a missing file means an empty board."""
        if path is not None:
            self.path = Path(path)
        if not self.path.exists():
            logger.info("No leaderboard at %s, starting fresh", self.path)
            entries: list[LeaderboardEntry] = []
        else:
            entries = _entry_list.validate_json(self.path.read_bytes())
        with self._lock:
            self._entries = entries
        logger.info("Loaded %d leaderboard entries", len(entries))
        return len(entries)

    def save(self) -> None:
        with self._lock:
            payload = _entry_list.dump_json(self._entries, by_alias=True, indent=2)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_bytes(payload)
        tmp.replace(self.path)

    def entries(self, mode: str = "", limit: int | None = None) -> list[LeaderboardEntry]:
        limit = self.config.leaderboard_default_limit if limit is None else limit
        limit = max(1, min(limit, self.config.leaderboard_max_entries))
        with self._lock:
            filtered = [entry for entry in self._entries if not mode or entry.mode == mode]
        filtered.sort(key=lambda entry: entry.score, reverse=True)
        return filtered[:limit]

    def rank(self, entry: LeaderboardEntry) -> int:
        with self._lock:
            return 1 + sum(1 for other in self._entries if other.mode == entry.mode and other.score > entry.score)

    def _add(self, entry: LeaderboardEntry) -> None:
        with self._lock:
            self._entries.append(entry)
            if len(self._entries) > self.config.leaderboard_max_entries:
                self._entries.sort(key=lambda item: item.score, reverse=True)
                del self._entries[self.config.leaderboard_max_entries :]

    async def submit(self, session_id: str, request: SubmitScoreRequest) -> SubmitScoreResponse:
        mode = (request.mode or "").strip()
        if not mode:
            raise InvalidRequest("mode is required")
        if request.score < 0:
            raise InvalidRequest("invalid score")

        async with self.store.transaction(session_id) as session:
            score = validated_score(session, mode)
            if request.score > score:
                logger.warning(
                    "Rejected %s score %d for session %s (validated %d)", mode, request.score, session_id, score
                )
                raise ScoreRejected("invalid score: server validation failed")
            now = utcnow()
            cooldown = timedelta(seconds=self.config.leaderboard_cooldown_seconds)
            if session.last_score_submit is not None and now - session.last_score_submit < cooldown:
                raise RateLimited("please wait before submitting another score")
            session.last_score_submit = now

        name = (request.name or "").strip() or ANONYMOUS
        entry = LeaderboardEntry(
            name=name[: self.config.leaderboard_name_max_length],
            score=score,
            mode=mode,
            category=request.category,
            date=now,
        )
        self._add(entry)
        try:
            await asyncio.to_thread(self.save)
        except OSError as exc:
            logger.error("Could not persist leaderboard to %s: %s", self.path, exc)
        rank = self.rank(entry)
        logger.info("Leaderboard %s entry %r score=%d rank=%d", mode, entry.name, score, rank)
        return SubmitScoreResponse(rank=rank, message="Score submitted successfully!")

    async def record_typing_score(self, session_id: str, score: int) -> TypingScoreResponse:
        if score < 0:
            raise InvalidRequest("invalid score")
        async with self.store.transaction(session_id) as session:
            session.typing_score = max(session.typing_score, score)
            return TypingScoreResponse(score=session.typing_score)


leaderboard = Leaderboard(session_engine.store)
