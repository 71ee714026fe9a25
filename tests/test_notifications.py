"""Tests for operator notices."""

from datetime import UTC, datetime, timedelta

from dental_admin.schemas.notices import NoticeLevel
from dental_admin.services.notification_service import NotificationService


class FakeClock:
    """Manually advanced clock."""

    def __init__(self) -> None:
        self.now = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def test_notices_expire_after_ttl() -> None:
    """Notices leave the active list once their time is up."""
    clock = FakeClock()
    notifications = NotificationService(ttl_seconds=4, clock=clock)

    notifications.success("Cita creada correctamente")
    clock.advance(3)
    notifications.error("Error al crear la cita")

    assert len(notifications.active()) == 2

    clock.advance(2)
    active = notifications.active()

    assert [n.message for n in active] == ["Error al crear la cita"]
    assert len(notifications.history) == 2


def test_levels_and_counts() -> None:
    """Each helper pushes its own level."""
    notifications = NotificationService()

    notifications.success("a")
    notifications.success("b")
    notifications.info("c")
    notifications.warning("d")

    assert notifications.count(NoticeLevel.SUCCESS) == 2
    assert notifications.count(NoticeLevel.INFO) == 1
    assert notifications.count(NoticeLevel.WARNING) == 1
    assert notifications.count(NoticeLevel.ERROR) == 0


def test_clear() -> None:
    """Clearing drops active and past notices."""
    notifications = NotificationService()
    notifications.error("x")

    notifications.clear()

    assert notifications.history == []
    assert notifications.active() == []


def test_expired_notices_are_dropped_on_push() -> None:
    """Only live notices are retained once time has passed."""
    clock = FakeClock()
    notifications = NotificationService(ttl_seconds=0, clock=clock)

    for i in range(1000):
        notifications.info(f"aviso {i}")
        clock.advance(1)
    notifications.success("último")

    assert [n.message for n in notifications.history] == ["último"]
    assert notifications.count(NoticeLevel.INFO) == 1000


def test_history_is_capped() -> None:
    """Live notices beyond the limit push out the oldest ones."""
    notifications = NotificationService(ttl_seconds=60, history_limit=3)

    for message in ("a", "b", "c", "d", "e"):
        notifications.error(message)

    assert [n.message for n in notifications.history] == ["c", "d", "e"]
    assert notifications.count(NoticeLevel.ERROR) == 5
