from datetime import datetime, timezone

import pytest

from hospital_ops.config import Settings
from hospital_ops.dashboard.service import DashboardService
from hospital_ops.notifications.channels import NotificationChannels
from hospital_ops.notifications.models import NotificationSettingsUpdate, QuietHours
from hospital_ops.notifications.service import NotificationService
from hospital_ops.resources.service import ResourceService

NOW = datetime(2025, 9, 2, 12, 0, tzinfo=timezone.utc)


class MemoryStore:
    """Dict-backed key-value store that records writes."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.writes: list[str] = []
        self.fail_writes = False

    async def get_item(self, key: str) -> str | None:
        return self.data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("storage quota exceeded")
        self.data[key] = value
        self.writes.append(key)


class RecordingChannels(NotificationChannels):
    """Channel sinks that record every send; channels in ``failing`` raise."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.sent: list[tuple[str, str]] = []
        self.digests: list[list[str]] = []
        self.failing: set[str] = set()

    async def send(self, notification, channel) -> None:
        if channel.value in self.failing:
            raise RuntimeError(f"{channel.value} transport down")
        self.sent.append((notification.id, channel.value))

    async def send_digest(self, notifications) -> None:
        self.digests.append([n.id for n in notifications])


class FixedClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        seed_demo_resources=False,
        scheduler_enabled=False,
        _env_file=None,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def channels(settings) -> RecordingChannels:
    return RecordingChannels(settings)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
async def notification_service(store, settings, channels, clock) -> NotificationService:
    service = NotificationService(store, settings, channels=channels, clock=clock)
    # Quiet hours depend on the machine's local time zone; keep them out of the way.
    await service.update_settings(
        NotificationSettingsUpdate(quiet_hours=QuietHours(enabled=False))
    )
    store.writes.clear()
    return service


@pytest.fixture
def resource_service(store, settings) -> ResourceService:
    return ResourceService(store, settings)


@pytest.fixture
def dashboard(notification_service, resource_service) -> DashboardService:
    return DashboardService(notification_service, resource_service)
