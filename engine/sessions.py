"""
In-memory session store with TTL-based eviction.
Sessions live only for the lifetime of the process.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from engine.models import (
    ChatMessage,
    Preferences,
    ProfileUpdate,
    Role,
    ScoredCard,
    Session,
    Step,
    utcnow,
)
from engine.state import is_profile_complete

logger = logging.getLogger(__name__)


DEFAULT_RETENTION = timedelta(hours=24)
ACTIVE_WINDOW = timedelta(hours=1)


def merge_spending(spending: dict[str, int], updates: dict[str, int]) -> None:
    """Overwrite only the categories present in `updates`."""
    for category, amount in updates.items():
        spending[category] = amount


def merge_preferences(preferences: Preferences, update: ProfileUpdate) -> None:
    """Overwrite only the preference fields the update carries."""
    if update.reward_type is not None:
        preferences.reward_type = update.reward_type
    if update.benefits is not None:
        preferences.benefits = list(update.benefits)
    if update.max_annual_fee is not None:
        preferences.max_annual_fee = update.max_annual_fee


class SessionStore:
    """
    Keyed, mutable conversation state.

    The map is guarded by a re-entrant lock; callers are expected to serialize
    messages for the same session id.

    Usage:
        store = SessionStore()
        session = store.create("abc")
        store.append_message("abc", Role.USER, "hi")
    """

    def __init__(
        self,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.retention = retention
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def create(self, session_id: str) -> Session:
        """Create a fresh session. An existing session with the same id is replaced."""
        now = self._clock()
        session = Session(id=session_id, created_at=now, updated_at=now)
        with self._lock:
            if session_id in self._sessions:
                logger.debug(f"Replacing existing session {session_id}")
            self._sessions[session_id] = session
        return session

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = self.create(session_id)
            return session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def update_profile(self, session_id: str, update: ProfileUpdate) -> Optional[Session]:
        """
        Merge a partial profile into the session.

        Scalars overwrite; spending and preferences merge field by field.
        Completeness is recomputed afterwards.
        """
        session = self.get(session_id)
        if session is None:
            return None

        profile = session.profile
        if update.monthly_income is not None:
            profile.monthly_income = update.monthly_income
        if update.credit_score is not None:
            profile.credit_score = update.credit_score
        if update.spending is not None:
            merge_spending(profile.spending_habits, update.spending)
        merge_preferences(profile.preferences, update)

        session.is_profile_complete = is_profile_complete(profile)
        self._touch(session)
        return session

    def append_message(self, session_id: str, role: Role, text: str) -> Optional[Session]:
        session = self.get(session_id)
        if session is None:
            return None
        now = self._clock()
        session.chat_history.append(ChatMessage(role=role, text=text, timestamp=now))
        session.updated_at = now
        return session

    def mark_question_asked(self, session_id: str, step: Step) -> Optional[Session]:
        session = self.get(session_id)
        if session is None:
            return None
        session.questions_asked.add(step.value)
        self._touch(session)
        return session

    def set_step(self, session_id: str, step: Step) -> Optional[Session]:
        session = self.get(session_id)
        if session is None:
            return None
        session.current_step = step
        self._touch(session)
        return session

    def set_recommendations(self, session_id: str, recommendations: list[ScoredCard]) -> Optional[Session]:
        session = self.get(session_id)
        if session is None:
            return None
        session.recommendations = list(recommendations)
        self._touch(session)
        return session

    def sweep_expired(self, retention: Optional[timedelta] = None) -> int:
        """
        Remove sessions whose last update is older than the retention window.

        Returns:
            Number of sessions evicted
        """
        cutoff = self._clock() - (retention or self.retention)
        with self._lock:
            expired = [sid for sid, session in self._sessions.items() if session.updated_at < cutoff]
            for session_id in expired:
                del self._sessions[session_id]
        if expired:
            logger.info(f"Evicted {len(expired)} expired sessions")
        return len(expired)

    def stats(self) -> dict[str, int]:
        now = self._clock()
        with self._lock:
            sessions = list(self._sessions.values())
        return {
            "totalSessions": len(sessions),
            "activeInLastHour": sum(1 for s in sessions if now - s.updated_at < ACTIVE_WINDOW),
            "completedProfiles": sum(1 for s in sessions if s.is_profile_complete),
        }

    def _touch(self, session: Session) -> None:
        session.updated_at = self._clock()


class SessionSweeper:
    """
    Periodically calls SessionStore.sweep_expired on a daemon timer.

    Usage:
        sweeper = SessionSweeper(store, interval_seconds=3600)
        sweeper.start()
        ...
        sweeper.stop()
    """

    def __init__(self, store: SessionStore, interval_seconds: float):
        self.store = store
        self.interval_seconds = interval_seconds
        self._timer: Optional[threading.Timer] = None
        self._stopped = threading.Event()

    def start(self) -> None:
        self._stopped.clear()
        self._schedule()

    def stop(self) -> None:
        self._stopped.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._stopped.is_set()

    def _schedule(self) -> None:
        if self._stopped.is_set():
            return
        self._timer = threading.Timer(self.interval_seconds, self._run)
        self._timer.daemon = True
        self._timer.start()

    def _run(self) -> None:
        try:
            self.store.sweep_expired()
        except Exception as exc:
            logger.error(f"Session sweep failed: {exc}")
        finally:
            self._schedule()
