import json
from datetime import datetime, timedelta, timezone

from hospital_ops.notifications.models import (
    DeliveryChannel,
    EmailDigest,
    NotificationCategory,
    NotificationDraft,
    NotificationPriority,
    NotificationSettingsUpdate,
    NotificationType,
)
from hospital_ops.notifications.service import NotificationService

from conftest import NOW, FixedClock, MemoryStore, RecordingChannels


def make_draft(**overrides) -> NotificationDraft:
    fields = {
        "type": NotificationType.STAFF_UPDATE,
        "title": "Shift change",
        "message": "Night shift starts at 19:00",
        "priority": NotificationPriority.HIGH,
        "category": NotificationCategory.STAFF,
        "delivery_channels": [DeliveryChannel.IN_APP, DeliveryChannel.PUSH],
    }
    fields.update(overrides)
    return NotificationDraft(**fields)


def stored_notification(notification_id: str, timestamp: datetime, **overrides) -> dict:
    record = {
        "id": notification_id,
        "type": "system_alert",
        "title": "Stored",
        "message": "Stored message",
        "isRead": False,
        "priority": "medium",
        "category": "system",
        "deliveryChannels": ["in_app"],
        "timestamp": timestamp.isoformat(),
    }
    record.update(overrides)
    return record


# ---------------------------------------------------------------------------
# Creation and fan-out
# ---------------------------------------------------------------------------


async def test_create_broadcasts_before_persisting(notification_service, store):
    seen = []

    def listener(notifications):
        seen.append(([n.id for n in notifications], list(store.writes)))

    notification_service.subscribe(listener)
    created = await notification_service.create_notification(make_draft())

    assert len(seen) == 1
    ids, writes_at_broadcast = seen[0]
    assert ids[0] == created.id
    assert writes_at_broadcast == []
    assert store.writes == ["notifications"]


async def test_new_notifications_go_to_the_head_of_the_list(notification_service):
    first = await notification_service.create_notification(make_draft(title="first"))
    second = await notification_service.create_notification(make_draft(title="second"))

    assert [n.id for n in notification_service.get_notifications()] == [
        second.id,
        first.id,
    ]
    assert first.id != second.id


async def test_create_assigns_id_and_timestamp(notification_service):
    created = await notification_service.create_notification(make_draft())

    assert created.id
    assert created.timestamp == NOW
    assert created.is_read is False


async def test_notification_without_in_app_channel_is_not_listed(
    notification_service, store, channels
):
    calls = []
    notification_service.subscribe(calls.append)

    created = await notification_service.create_notification(
        make_draft(delivery_channels=[DeliveryChannel.PUSH])
    )
    await notification_service.drain()

    assert notification_service.get_notifications() == []
    assert calls == []
    assert store.writes == []
    assert channels.sent == [(created.id, "push")]


async def test_delivery_runs_after_create_returns(notification_service, channels):
    created = await notification_service.create_notification(make_draft())

    assert channels.sent == []

    await notification_service.drain()
    assert sorted(channels.sent) == [(created.id, "in_app"), (created.id, "push")]


async def test_delivery_skips_channels_disabled_in_settings(notification_service, channels):
    created = await notification_service.create_notification(
        make_draft(delivery_channels=[DeliveryChannel.IN_APP, DeliveryChannel.EMAIL])
    )
    await notification_service.drain()

    assert channels.sent == [(created.id, "in_app")]


async def test_channel_failure_does_not_affect_other_channels(
    notification_service, channels
):
    channels.failing.add("push")

    created = await notification_service.create_notification(make_draft())
    await notification_service.drain()

    assert channels.sent == [(created.id, "in_app")]
    assert notification_service.get_notifications()[0].id == created.id


async def test_filtered_notification_is_listed_but_not_delivered(
    notification_service, channels
):
    created = await notification_service.create_notification(
        make_draft(priority=NotificationPriority.LOW)
    )
    await notification_service.drain()

    assert notification_service.get_notifications()[0].id == created.id
    assert channels.sent == []


async def test_persistence_failure_is_not_raised(notification_service, store):
    store.fail_writes = True

    created = await notification_service.create_notification(make_draft())

    assert notification_service.get_notifications() == [created]
    assert "notifications" not in store.data


async def test_metadata_is_stored_as_camel_case_json(notification_service, store):
    await notification_service.create_notification(
        make_draft(metadata={"ward": "B2", "beds": 3, "escalated": True})
    )

    stored = json.loads(store.data["notifications"])
    assert stored[0]["isRead"] is False
    assert stored[0]["deliveryChannels"] == ["in_app", "push"]
    assert stored[0]["metadata"] == {"ward": "B2", "beds": 3, "escalated": True}


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


async def test_listeners_run_in_registration_order(notification_service):
    order = []
    notification_service.subscribe(lambda _: order.append("first"))
    notification_service.subscribe(lambda _: order.append("second"))

    await notification_service.create_notification(make_draft())

    assert order == ["first", "second"]


async def test_failing_listener_does_not_stop_fan_out(notification_service):
    calls = []

    def broken(_):
        raise RuntimeError("view crashed")

    notification_service.subscribe(broken)
    notification_service.subscribe(calls.append)

    await notification_service.create_notification(make_draft())

    assert len(calls) == 1


async def test_unsubscribe_stops_updates(notification_service):
    calls = []
    unsubscribe = notification_service.subscribe(calls.append)

    await notification_service.create_notification(make_draft())
    unsubscribe()
    await notification_service.create_notification(make_draft())

    assert len(calls) == 1


# ---------------------------------------------------------------------------
# Read state
# ---------------------------------------------------------------------------


async def test_mark_as_read_replaces_the_notification(notification_service):
    created = await notification_service.create_notification(make_draft())

    updated = await notification_service.mark_as_read(created.id)

    assert updated.is_read is True
    assert updated.id == created.id
    assert created.is_read is False
    assert notification_service.get_unread_count() == 0


async def test_mark_as_read_ignores_unknown_ids(notification_service, store):
    await notification_service.create_notification(make_draft())
    store.writes.clear()
    calls = []
    notification_service.subscribe(calls.append)

    assert await notification_service.mark_as_read("missing") is None
    assert calls == []
    assert store.writes == []


async def test_mark_all_as_read_broadcasts_once(notification_service):
    for _ in range(3):
        await notification_service.create_notification(make_draft())
    calls = []
    notification_service.subscribe(calls.append)

    count = await notification_service.mark_all_as_read()

    assert count == 3
    assert len(calls) == 1
    assert len(calls[0]) == 3
    assert all(n.is_read for n in calls[0])


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def test_default_settings(store, settings):
    service = NotificationService(store, settings)
    defaults = service.get_settings()

    assert defaults.user_id == "user-123"
    assert defaults.channels[DeliveryChannel.IN_APP] is True
    assert defaults.channels[DeliveryChannel.EMAIL] is False
    assert defaults.categories[NotificationCategory.ADMINISTRATIVE] is False
    assert defaults.priorities[NotificationPriority.LOW] is False
    assert defaults.quiet_hours.start == "22:00"
    assert defaults.quiet_hours.end == "07:00"
    assert defaults.email_digest.frequency == "daily"


async def test_update_settings_is_a_shallow_merge(notification_service, store):
    updated = await notification_service.update_settings(
        NotificationSettingsUpdate(channels={DeliveryChannel.EMAIL: True})
    )

    assert updated.channels == {DeliveryChannel.EMAIL: True}
    assert updated.quiet_hours.enabled is False
    assert updated.categories[NotificationCategory.STAFF] is True

    stored = json.loads(store.data["notificationSettings"])
    assert stored["channels"] == {"email": True}
    assert stored["quietHours"]["enabled"] is False
    assert stored["userId"] == "user-123"


async def test_load_settings_merges_over_defaults(store, settings):
    store.data["notificationSettings"] = json.dumps(
        {"emailDigest": {"enabled": False, "frequency": "weekly"}}
    )
    service = NotificationService(store, settings)

    await service.load_settings()

    assert service.get_settings().email_digest.enabled is False
    assert service.get_settings().email_digest.frequency == "weekly"
    assert service.get_settings().quiet_hours.start == "22:00"


async def test_malformed_settings_fall_back_to_defaults(store, settings):
    store.data["notificationSettings"] = "{not json"
    service = NotificationService(store, settings)

    await service.load_settings()

    assert service.get_settings() == service.default_settings()


# ---------------------------------------------------------------------------
# Loading and retention
# ---------------------------------------------------------------------------


async def test_load_prunes_expired_and_old_notifications(store, settings, clock):
    store.data["notifications"] = json.dumps(
        [
            stored_notification("fresh", NOW - timedelta(days=1)),
            stored_notification(
                "expired",
                NOW - timedelta(hours=2),
                expiresAt=(NOW - timedelta(hours=1)).isoformat(),
            ),
            stored_notification("stale", NOW - timedelta(days=31)),
            stored_notification(
                "not-yet-expired",
                NOW - timedelta(hours=2),
                expiresAt=(NOW + timedelta(hours=1)).isoformat(),
            ),
        ]
    )
    service = NotificationService(store, settings, clock=clock)
    calls = []
    service.subscribe(calls.append)

    await service.load()

    assert [n.id for n in service.get_notifications()] == ["fresh", "not-yet-expired"]
    assert len(calls) == 1
    persisted = json.loads(store.data["notifications"])
    assert [n["id"] for n in persisted] == ["fresh", "not-yet-expired"]


async def test_load_restores_timestamps_as_datetimes(store, settings, clock):
    stamp = NOW - timedelta(hours=3)
    store.data["notifications"] = json.dumps([stored_notification("a", stamp)])
    service = NotificationService(store, settings, clock=clock)

    await service.load()

    restored = service.get_notifications()[0]
    assert restored.timestamp == stamp
    assert store.writes == []


async def test_load_skips_malformed_entries(store, settings, clock):
    store.data["notifications"] = json.dumps(
        [stored_notification("ok", NOW), {"id": "broken"}]
    )
    service = NotificationService(store, settings, clock=clock)

    await service.load()

    assert [n.id for n in service.get_notifications()] == ["ok"]


async def test_load_tolerates_corrupt_json(store, settings):
    store.data["notifications"] = "[{oops"
    service = NotificationService(store, settings)

    await service.load()

    assert service.get_notifications() == []


async def test_clear_old_notifications(notification_service, clock):
    await notification_service.create_notification(make_draft(title="old"))
    clock.now = NOW + timedelta(days=10)
    recent = await notification_service.create_notification(make_draft(title="recent"))
    calls = []
    notification_service.subscribe(calls.append)

    removed = await notification_service.clear_old_notifications(days_to_keep=7)

    assert removed == 1
    assert notification_service.get_notifications() == [recent]
    assert len(calls) == 1


# ---------------------------------------------------------------------------
# Email digest
# ---------------------------------------------------------------------------


async def test_daily_digest_sends_unread_notifications(notification_service, channels):
    first = await notification_service.create_notification(make_draft())
    second = await notification_service.create_notification(make_draft())
    await notification_service.mark_as_read(first.id)

    assert await notification_service.send_email_digest() == 1
    assert channels.digests == [[second.id]]


async def test_weekly_digest_waits_for_monday(settings):
    channels = RecordingChannels(settings)
    clock = FixedClock(datetime(2025, 9, 2, 12, 0, tzinfo=timezone.utc))
    service = NotificationService(MemoryStore(), settings, channels=channels, clock=clock)
    await service.update_settings(
        NotificationSettingsUpdate(email_digest=EmailDigest(frequency="weekly"))
    )
    await service.create_notification(make_draft())

    assert await service.send_email_digest() == 0

    clock.now = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)
    assert await service.send_email_digest() == 1


async def test_disabled_digest_sends_nothing(notification_service, channels):
    await notification_service.create_notification(make_draft())
    await notification_service.update_settings(
        NotificationSettingsUpdate(email_digest=EmailDigest(enabled=False))
    )

    assert await notification_service.send_email_digest() == 0
    assert channels.digests == []


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


async def test_emergency_alert_template(notification_service):
    alert = await notification_service.create_emergency_alert(
        "Code blue in ward 4", location="Ward 4", severity="HIGH", alert_type="medical"
    )

    assert alert.type == NotificationType.EMERGENCY_CODE_BLUE
    assert alert.title == "🚨 Emergency Alert"
    assert alert.priority == NotificationPriority.HIGH
    assert alert.category == NotificationCategory.EMERGENCY
    assert alert.delivery_channels == [
        DeliveryChannel.IN_APP,
        DeliveryChannel.PUSH,
        DeliveryChannel.SMS,
    ]
    assert alert.metadata["location"] == "Ward 4"


async def test_emergency_alert_defaults_to_critical(notification_service):
    alert = await notification_service.create_emergency_alert("Fire", severity="apocalyptic")
    assert alert.priority == NotificationPriority.CRITICAL


async def test_resource_request_template(notification_service):
    request = await notification_service.create_resource_request(
        hospital="City General Hospital",
        resource_type="icu",
        quantity=2,
        priority="urgent",
        description="Two post-op patients",
    )

    assert request.title == "📋 New Resource Request"
    assert request.priority == NotificationPriority.URGENT
    assert request.message.splitlines() == [
        "New resource request from patient:",
        "",
        "Hospital: City General Hospital",
        "Resource: ICU Beds",
        "Quantity: 2",
        "Priority: URGENT",
        "Description: Two post-op patients",
    ]
    assert request.metadata["isRequest"] is True
    assert request.metadata["resourceLabel"] == "ICU Beds"


async def test_resource_alert_and_reminder_templates(notification_service):
    alert = await notification_service.create_resource_alert("Oxygen Tanks", "Running low")
    reminder = await notification_service.create_appointment_reminder(
        "Jane Doe", "14:30"
    )

    assert alert.message == "Oxygen Tanks: Running low"
    assert alert.priority == NotificationPriority.HIGH
    assert reminder.message == "Jane Doe has an appointment at 14:30"
    assert reminder.category == NotificationCategory.APPOINTMENTS


async def test_ai_insight_template(notification_service):
    insight = await notification_service.create_ai_insight("ICU surge expected", 87.5)

    assert insight.message == "ICU surge expected (Confidence: 87.5%)"
    assert insight.category == NotificationCategory.AI_INSIGHTS
    assert DeliveryChannel.EMAIL in insight.delivery_channels
