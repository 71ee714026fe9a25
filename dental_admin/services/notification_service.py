"""Transient notices shown to the operator after each action."""

from collections import Counter, deque
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from dental_admin.schemas.notices import Notice, NoticeLevel

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

HISTORY_LIMIT = 50


def _utcnow() -> datetime:
    return datetime.now(UTC)


class NotificationService:
    """
    Collects auto-dismissing notices for one operator.

    At most ``history_limit`` notices are kept and expired ones are dropped
    whenever a new notice arrives, so a long-lived workspace stays small.
    Per-level counts survive the pruning.
    """

    def __init__(
        self,
        ttl_seconds: float = 4.0,
        clock: Clock = _utcnow,
        history_limit: int = HISTORY_LIMIT,
    ):
        """Initialize with the display time of each notice."""
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._notices: deque[Notice] = deque(maxlen=history_limit)
        self._counts: Counter[NoticeLevel] = Counter()

    @property
    def history(self) -> list[Notice]:
        """Retained notices, oldest first."""
        return list(self._notices)

    def _prune(self, now: datetime) -> None:
        while self._notices and self._notices[0].expires_at <= now:
            self._notices.popleft()

    def push(self, level: NoticeLevel, message: str) -> Notice:
        """
        Record a notice.

        Args:
            level: Notice level
            message: Text shown to the operator

        Returns:
            The recorded notice
        """
        now = self._clock()
        self._prune(now)
        notice = Notice(level=level, message=message, created_at=now, expires_at=now + self.ttl)
        self._notices.append(notice)
        self._counts[level] += 1
        logger.debug("notice_pushed", level=level.value, message=message)
        return notice

    def success(self, message: str) -> Notice:
        """Push a success notice."""
        return self.push(NoticeLevel.SUCCESS, message)

    def error(self, message: str) -> Notice:
        """Push an error notice."""
        return self.push(NoticeLevel.ERROR, message)

    def info(self, message: str) -> Notice:
        """Push an informational notice."""
        return self.push(NoticeLevel.INFO, message)

    def warning(self, message: str) -> Notice:
        """Push a warning notice."""
        return self.push(NoticeLevel.WARNING, message)

    def active(self) -> list[Notice]:
        """Notices still on screen."""
        now = self._clock()
        return [notice for notice in self._notices if notice.expires_at > now]

    def count(self, level: NoticeLevel) -> int:
        """Number of notices pushed at ``level`` since the last ``clear``."""
        return self._counts[level]

    def clear(self) -> None:
        """Drop every notice."""
        self._notices.clear()
        self._counts.clear()
