"""
Tracker Stores

Performance trackers are the only mutable state in the engine: exactly one
exists per (learner, topic) and every answer must be folded into it with a
read-modify-write that cannot interleave with another answer for the same
key. This module provides stores that own that discipline:

- ``InMemoryTrackerStore`` serializes updates with one lock per key
- ``SqlTrackerStore`` persists trackers with SQLAlchemy and uses an
  optimistic compare-and-swap on a version column, retrying on conflict

Different keys never contend with each other in either store.
"""

import contextlib
import datetime
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, TypeVar

from sqlalchemy import Column, DateTime, Integer, JSON, MetaData, String, create_engine, select, update as sql_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from adaptive_practice.common.exceptions import ConcurrentUpdateError
from adaptive_practice.common.logger import app_logger
from adaptive_practice.engine.models import DifficultyLevel
from adaptive_practice.engine.tracker import PerformanceTracker, init_tracker

# Module logger
logger = app_logger.getChild("engine.store")

R = TypeVar('R')
TrackerKey = Tuple[str, str]
UpdateFn = Callable[[PerformanceTracker], Tuple[PerformanceTracker, R]]

DEFAULT_MAX_RETRIES = 5


class TrackerStore(ABC):
    """
    Keyed store of performance trackers with versioned writes.

    A tracker read from the store carries the version it was stored at
    (0 for a tracker that has never been stored). Writes succeed only if the
    stored version still matches, and bump the version by one.
    """

    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES):
        self.max_retries = max_retries

    @abstractmethod
    def get(self, learner_id: str, topic_id: str) -> Optional[PerformanceTracker]:
        """
        Retrieve a tracker.

        Args:
            learner_id: Learner identifier
            topic_id: Topic identifier

        Returns:
            Tracker or None if the learner has no history in the topic
        """
        pass

    @abstractmethod
    def compare_and_swap(self, tracker: PerformanceTracker, expected_version: int) -> bool:
        """
        Store a tracker if the stored version equals ``expected_version``.

        An expected version of 0 means "no tracker stored yet".

        Args:
            tracker: Tracker to store
            expected_version: Version the caller read

        Returns:
            Whether the write was applied
        """
        pass

    @abstractmethod
    def delete(self, learner_id: str, topic_id: str) -> bool:
        """
        Delete a tracker.

        Returns:
            Whether a tracker was deleted
        """
        pass

    def get_or_init(
        self,
        learner_id: str,
        topic_id: str,
        start_level: DifficultyLevel = DifficultyLevel.FOUNDATION
    ) -> PerformanceTracker:
        """Stored tracker, or an unsaved fresh one at ``start_level``."""
        tracker = self.get(learner_id, topic_id)
        if tracker is None:
            tracker = init_tracker(learner_id, topic_id, start_level)
        return tracker

    def save(self, tracker: PerformanceTracker) -> PerformanceTracker:
        """
        Store a tracker that was read at ``tracker.version``.

        Returns:
            The stored tracker with its new version

        Raises:
            ConcurrentUpdateError: If the tracker changed since it was read
        """
        expected = tracker.version
        if not self.compare_and_swap(tracker, expected):
            raise ConcurrentUpdateError(tracker.learner_id, tracker.topic_id, 1)
        return self._with_version(tracker, expected + 1)

    def update(
        self,
        learner_id: str,
        topic_id: str,
        fn: UpdateFn,
        start_level: DifficultyLevel = DifficultyLevel.FOUNDATION
    ) -> Tuple[PerformanceTracker, R]:
        """
        Atomically apply ``fn`` to the tracker for a key.

        ``fn`` receives the current tracker (a fresh one at ``start_level``
        if none is stored) and returns the new tracker plus any result. It
        may run more than once if another writer wins a race, so it must
        not have side effects.

        Returns:
            Tuple of (stored tracker, result of ``fn``)

        Raises:
            ConcurrentUpdateError: If every attempt lost a race
        """
        for attempt in range(1, self.max_retries + 1):
            current = self.get_or_init(learner_id, topic_id, start_level)
            updated, result = fn(current)
            if self.compare_and_swap(updated, current.version):
                return self._with_version(updated, current.version + 1), result

            logger.warning(
                f"Version conflict updating tracker ({learner_id}, {topic_id}) "
                f"at version {current.version}, attempt {attempt}/{self.max_retries}"
            )

        raise ConcurrentUpdateError(learner_id, topic_id, self.max_retries)

    @staticmethod
    def _with_version(tracker: PerformanceTracker, version: int) -> PerformanceTracker:
        stored = PerformanceTracker.from_dict(tracker.to_dict())
        stored.version = version
        return stored


class InMemoryTrackerStore(TrackerStore):
    """Process-local tracker store with one lock per (learner, topic)."""

    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES):
        super().__init__(max_retries)
        self._data: Dict[TrackerKey, Dict[str, Any]] = {}
        self._locks: Dict[TrackerKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: TrackerKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _read(self, key: TrackerKey) -> Optional[PerformanceTracker]:
        data = self._data.get(key)
        return PerformanceTracker.from_dict(data) if data is not None else None

    def _write(self, tracker: PerformanceTracker, version: int) -> None:
        data = tracker.to_dict()
        data["version"] = version
        self._data[tracker.key] = data

    def get(self, learner_id: str, topic_id: str) -> Optional[PerformanceTracker]:
        with self._lock_for((learner_id, topic_id)):
            return self._read((learner_id, topic_id))

    def compare_and_swap(self, tracker: PerformanceTracker, expected_version: int) -> bool:
        with self._lock_for(tracker.key):
            stored = self._read(tracker.key)
            stored_version = stored.version if stored is not None else 0
            if stored_version != expected_version:
                return False
            self._write(tracker, expected_version + 1)
            return True

    def delete(self, learner_id: str, topic_id: str) -> bool:
        with self._lock_for((learner_id, topic_id)):
            return self._data.pop((learner_id, topic_id), None) is not None

    def update(
        self,
        learner_id: str,
        topic_id: str,
        fn: UpdateFn,
        start_level: DifficultyLevel = DifficultyLevel.FOUNDATION
    ) -> Tuple[PerformanceTracker, R]:
        key = (learner_id, topic_id)
        with self._lock_for(key):
            current = self._read(key) or init_tracker(learner_id, topic_id, start_level)
            updated, result = fn(current)
            self._write(updated, current.version + 1)
            return self._read(key), result

    def __len__(self) -> int:
        return len(self._data)


# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "pk": "pk_%(table_name)s"
}

Base = declarative_base(metadata=MetaData(naming_convention=convention))


def _utcnow() -> datetime.datetime:
    """Current UTC time as a naive datetime, matching the DateTime columns."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class TrackerRow(Base):
    """Stored performance tracker."""
    __tablename__ = "performance_trackers"

    learner_id = Column(String(128), primary_key=True)
    topic_id = Column(String(128), primary_key=True)
    current_difficulty = Column(String(16), nullable=False, default=DifficultyLevel.FOUNDATION.value)
    rolling_window = Column(JSON, nullable=False, default=list)
    questions_since_last_adjustment = Column(Integer, nullable=False, default=0)
    total_questions_in_topic = Column(Integer, nullable=False, default=0)
    last_adjustment_at = Column(DateTime, nullable=True)
    adjustment_count = Column(Integer, nullable=False, default=0)
    total_correct = Column(Integer, nullable=False, default=0)
    total_incorrect = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    best_streak = Column(Integer, nullable=False, default=0)
    last_attempted_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)

    def to_tracker(self) -> PerformanceTracker:
        return PerformanceTracker(
            learner_id=self.learner_id,
            topic_id=self.topic_id,
            current_difficulty=DifficultyLevel(self.current_difficulty),
            rolling_window=[bool(outcome) for outcome in self.rolling_window or []],
            questions_since_last_adjustment=self.questions_since_last_adjustment,
            total_questions_in_topic=self.total_questions_in_topic,
            last_adjustment_at=self.last_adjustment_at,
            adjustment_count=self.adjustment_count,
            total_correct=self.total_correct,
            total_incorrect=self.total_incorrect,
            current_streak=self.current_streak,
            best_streak=self.best_streak,
            last_attempted_at=self.last_attempted_at,
            version=self.version
        )


def _row_values(tracker: PerformanceTracker) -> Dict[str, Any]:
    return {
        "current_difficulty": tracker.current_difficulty.value,
        "rolling_window": list(tracker.rolling_window),
        "questions_since_last_adjustment": tracker.questions_since_last_adjustment,
        "total_questions_in_topic": tracker.total_questions_in_topic,
        "last_adjustment_at": tracker.last_adjustment_at,
        "adjustment_count": tracker.adjustment_count,
        "total_correct": tracker.total_correct,
        "total_incorrect": tracker.total_incorrect,
        "current_streak": tracker.current_streak,
        "best_streak": tracker.best_streak,
        "last_attempted_at": tracker.last_attempted_at,
        "updated_at": _utcnow()
    }


class SqlTrackerStore(TrackerStore):
    """
    SQLAlchemy-backed tracker store.

    Concurrency control is optimistic: each write is an
    ``UPDATE ... WHERE version = :expected`` (or an INSERT for a new key,
    guarded by the primary key), so no locks are held between the read and
    the write.

    An in-memory SQLite database lives on a single connection shared by all
    threads (``StaticPool``). sqlite3 transactions are per connection, so
    sessions on that engine are run one at a time under a store-wide lock,
    and ``update`` holds the same lock across its read and write.
    """

    def __init__(
        self,
        database_url: str = "sqlite:///:memory:",
        max_retries: int = DEFAULT_MAX_RETRIES,
        create_tables: bool = True,
        engine=None
    ):
        """
        Initialize the store.

        Args:
            database_url: SQLAlchemy database URL (ignored if ``engine`` is given)
            max_retries: Attempts made by ``update`` before giving up
            create_tables: Whether to create the tracker table if missing
            engine: Optional pre-built SQLAlchemy engine
        """
        super().__init__(max_retries)
        if engine is None:
            kwargs: Dict[str, Any] = {}
            if database_url.startswith("sqlite") and ":memory:" in database_url:
                # One shared connection so every session sees the same in-memory database
                kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
            engine = create_engine(database_url, **kwargs)
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

        if isinstance(engine.pool, StaticPool):
            self._connection_lock = threading.RLock()
            logger.debug("Shared-connection engine: serializing tracker store sessions")
        else:
            self._connection_lock = None

        if create_tables:
            with self._guard():
                Base.metadata.create_all(engine)
            logger.info(f"Tracker table ready on {engine.url.drivername}")

    @classmethod
    def from_settings(cls, settings) -> 'SqlTrackerStore':
        """Build a store from ``EngineSettings``."""
        return cls(
            database_url=settings.store.database_url,
            max_retries=settings.store.max_retries
        )

    @property
    def serializes_sessions(self) -> bool:
        return self._connection_lock is not None

    def _guard(self):
        return self._connection_lock if self._connection_lock is not None else contextlib.nullcontext()

    @contextlib.contextmanager
    def _session(self, transactional: bool = False) -> Iterator[Session]:
        with self._guard():
            if transactional:
                with self._session_factory.begin() as session:
                    yield session
            else:
                with self._session_factory() as session:
                    yield session

    def update(
        self,
        learner_id: str,
        topic_id: str,
        fn: UpdateFn,
        start_level: DifficultyLevel = DifficultyLevel.FOUNDATION
    ) -> Tuple[PerformanceTracker, R]:
        with self._guard():
            return super().update(learner_id, topic_id, fn, start_level)

    def get(self, learner_id: str, topic_id: str) -> Optional[PerformanceTracker]:
        with self._session() as session:
            row = session.get(TrackerRow, (learner_id, topic_id))
            return row.to_tracker() if row is not None else None

    def compare_and_swap(self, tracker: PerformanceTracker, expected_version: int) -> bool:
        values = _row_values(tracker)

        if expected_version == 0:
            try:
                with self._session(transactional=True) as session:
                    session.add(TrackerRow(
                        learner_id=tracker.learner_id,
                        topic_id=tracker.topic_id,
                        version=1,
                        **values
                    ))
            except IntegrityError:
                return False
            return True

        with self._session(transactional=True) as session:
            result = session.execute(
                sql_update(TrackerRow)
                .where(
                    TrackerRow.learner_id == tracker.learner_id,
                    TrackerRow.topic_id == tracker.topic_id,
                    TrackerRow.version == expected_version
                )
                .values(version=expected_version + 1, **values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def delete(self, learner_id: str, topic_id: str) -> bool:
        with self._session(transactional=True) as session:
            row = session.get(TrackerRow, (learner_id, topic_id))
            if row is None:
                return False
            session.delete(row)
            return True

    def count(self) -> int:
        with self._session() as session:
            return len(session.execute(select(TrackerRow.learner_id)).all())
