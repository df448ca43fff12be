"""Per-session bookkeeping: read-set, totals, rewards and streak.

Callers hold the session's store transaction; nothing here locks.
"""
from avidlearner.catalog.catalog import LessonCatalog
from avidlearner.core.logging import DOMAIN_SESSION, get_domain_logger
from avidlearner.engine.models import Session, Totals

logger = get_domain_logger(__name__, DOMAIN_SESSION)


def mark_read(session: Session, title: str, catalog: LessonCatalog) -> bool:
    """Add `title` to the read-set. Returns False for unknown titles, which are ignored."""
    if catalog.find_by_title(title) is None:
        logger.warning("mark_read ignored unknown title %r for session %s", title, session.session_id)
        return False
    session.read_titles.add(title)
    return True


def current_totals(session: Session) -> Totals:
    return Totals(coins=session.coins_total, xp=session.xp_total, streak=session.streak)


def apply_reward(session: Session, coins_delta: int = 0, xp_delta: int = 0) -> tuple[int, int]:
    """Credit or debit coins/XP; totals never drop below zero."""
    session.coins_total = max(0, session.coins_total + int(coins_delta))
    session.xp_total = max(0, session.xp_total + int(xp_delta))
    return session.coins_total, session.xp_total


def on_correct_answer(session: Session) -> int:
    session.streak += 1
    return session.streak


def on_wrong_answer(session: Session) -> int:
    session.streak = 0
    return 0


def remember_lesson(session: Session, title: str, window: int) -> None:
    """Track served titles so the next picks can avoid recent repeats."""
    session.recent_lessons.append(title)
    if window > 0 and len(session.recent_lessons) > window * 2:
        session.recent_lessons = session.recent_lessons[-window:]
