"""Resource inventory keyed by (hospital, resource label).

``add_or_update_resource`` is the single write path. A negative quantity
records a need (a request for that many units); zero or more records supply
added to the hospital's stock.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import re
import secrets
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable

from hospital_ops.config import Settings
from hospital_ops.core.broadcast import ListenerRegistry
from hospital_ops.core.constants import resource_label
from hospital_ops.resources.models import ResourceItem, ResourcePriority, ResourceStatus
from hospital_ops.storage.service import KeyValueStore, read_item, write_item

logger = logging.getLogger(__name__)

ResourceListener = Callable[[list[ResourceItem]], None]

_LEADING_INT = re.compile(r"\s*(\d+)")

DEMO_RESOURCES = [
    {"hospital": "City General Hospital", "resource": "ICU Beds", "status": "Available",
     "progress": 75, "total": "8/12", "created_date": "02-09-2025", "due_date": "2h left",
     "priority": "high"},
    {"hospital": "Metro Medical Center", "resource": "Oxygen Tanks", "status": "In Progress",
     "progress": 45, "total": "45/100", "created_date": "02-09-2025", "due_date": "4h left",
     "priority": "medium"},
    {"hospital": "Regional Hospital", "resource": "Ventilators", "status": "Urgent",
     "progress": 90, "total": "2/5", "created_date": "02-09-2025", "due_date": "1h left",
     "priority": "urgent"},
    {"hospital": "Community Health", "resource": "Staff Nurses", "status": "Available",
     "progress": 60, "total": "12/20", "created_date": "02-09-2025", "due_date": "6h left",
     "priority": "low"},
]


@dataclass(frozen=True)
class ResourceThresholds:
    # Display-tuned constants; see Settings.resource_* for overrides.
    urgent_at_or_below: int = 3
    low_stock_ratio: float = 0.5
    min_capacity: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> ResourceThresholds:
        return cls(
            urgent_at_or_below=settings.resource_urgent_threshold,
            low_stock_ratio=settings.resource_low_stock_ratio,
            min_capacity=settings.resource_min_capacity,
        )


def _leading_int(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def parse_total(total: str) -> tuple[int, int]:
    """Split a ``"available/capacity"`` display string into its two numbers.

    Anything after each number, such as ``"(Need: 5)"``, is ignored; a
    missing number reads as 0.
    """
    head, _, tail = total.partition("/")
    return _leading_int(head), _leading_int(tail)


def compute_progress(available: int, capacity: int) -> int:
    """Percentage of capacity on hand, rounded half up and clamped to 0-100."""
    ratio = available / (capacity or 1)
    return max(0, min(100, math.floor(ratio * 100 + 0.5)))


def classify_supply(
    available: int, capacity: int, thresholds: ResourceThresholds
) -> tuple[ResourceStatus, ResourcePriority]:
    if available <= thresholds.urgent_at_or_below:
        return ResourceStatus.URGENT, ResourcePriority.URGENT
    if available < capacity * thresholds.low_stock_ratio:
        return ResourceStatus.IN_PROGRESS, ResourcePriority.HIGH
    return ResourceStatus.AVAILABLE, ResourcePriority.MEDIUM


def classify_need(
    available: int, capacity: int, requested: int, thresholds: ResourceThresholds
) -> tuple[ResourceStatus, ResourcePriority]:
    if available < requested:
        return ResourceStatus.URGENT, ResourcePriority.URGENT
    if available < capacity * thresholds.low_stock_ratio:
        return ResourceStatus.IN_PROGRESS, ResourcePriority.HIGH
    return ResourceStatus.AVAILABLE, ResourcePriority.HIGH


def _generate_id() -> str:
    return f"{int(time.time() * 1000):x}{secrets.token_hex(5)}"


class ResourceService:
    """Owns the resource inventory and broadcasts it after every upsert."""

    def __init__(
        self,
        store: KeyValueStore,
        config: Settings,
        thresholds: ResourceThresholds | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._config = config
        self._thresholds = thresholds or ResourceThresholds.from_settings(config)
        self._today = today
        self._resources: list[ResourceItem] = []
        self._listeners: ListenerRegistry[list[ResourceItem]] = ListenerRegistry(
            "resources"
        )
        self._save_lock = asyncio.Lock()

    def subscribe(self, listener: ResourceListener) -> Callable[[], None]:
        return self._listeners.subscribe(listener)

    def get_resources(self) -> list[ResourceItem]:
        """The live inventory. Callers must write through add_or_update_resource."""
        return self._resources

    def find_resource(self, hospital: str, resource_type: str) -> ResourceItem | None:
        index = self._index_of(hospital, resource_label(resource_type))
        return self._resources[index] if index is not None else None

    def _index_of(self, hospital: str, label: str) -> int | None:
        for index, item in enumerate(self._resources):
            if item.hospital == hospital and item.resource == label:
                return index
        return None

    async def add_or_update_resource(
        self,
        hospital: str,
        resource_type: str,
        quantity: int,
        note: str | None = None,
    ) -> ResourceItem:
        """Merge a supply (quantity >= 0) or a need (quantity < 0) into the inventory."""
        label = resource_label(resource_type)
        index = self._index_of(hospital, label)

        if quantity < 0:
            item = self._apply_need(hospital, label, -quantity, index)
        else:
            item = self._apply_supply(hospital, label, quantity, index)

        if note is not None:
            item = item.model_copy(update={"note": note})

        if index is None:
            self._resources = [item, *self._resources]
        else:
            self._resources[index] = item

        logger.info(
            "Resource %s at %s is now %s (%s)", label, hospital, item.total, item.status.value
        )
        self._listeners.emit(self._resources)
        await self._save()
        return item

    def _apply_need(
        self, hospital: str, label: str, requested: int, index: int | None
    ) -> ResourceItem:
        if index is None:
            return self._new_item(
                hospital,
                label,
                total=f"0/{requested} (Requested)",
                progress=0,
                status=ResourceStatus.URGENT,
                priority=ResourcePriority.URGENT,
            )

        current = self._resources[index]
        available, capacity = parse_total(current.total)
        capacity = max(capacity, requested)
        status, priority = classify_need(available, capacity, requested, self._thresholds)
        return current.model_copy(
            update={
                "total": f"{available}/{capacity} (Need: {requested})",
                "progress": compute_progress(available, capacity),
                "status": status,
                "priority": priority,
            }
        )

    def _apply_supply(
        self, hospital: str, label: str, quantity: int, index: int | None
    ) -> ResourceItem:
        if index is None:
            available = quantity
            capacity = max(self._thresholds.min_capacity, quantity)
            status, priority = classify_supply(available, capacity, self._thresholds)
            return self._new_item(
                hospital,
                label,
                total=f"{available}/{capacity}",
                progress=compute_progress(available, capacity),
                status=status,
                priority=priority,
            )

        current = self._resources[index]
        available, capacity = parse_total(current.total)
        available = max(0, available + quantity)
        capacity = max(capacity, available)
        status, priority = classify_supply(available, capacity, self._thresholds)
        return current.model_copy(
            update={
                "total": f"{available}/{capacity}",
                "progress": compute_progress(available, capacity),
                "status": status,
                "priority": priority,
            }
        )

    def _new_item(self, hospital: str, label: str, **fields) -> ResourceItem:
        return ResourceItem(
            id=_generate_id(),
            hospital=hospital,
            resource=label,
            created_date=self._today().strftime("%d/%m/%Y"),
            due_date="—",
            **fields,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Restore the inventory, or seed the demo rows on first run."""
        stored = await read_item(self._store, self._config.resources_storage_key)
        if stored is None:
            if self._config.seed_demo_resources:
                self._resources = [
                    ResourceItem(id=_generate_id(), **row) for row in DEMO_RESOURCES
                ]
                logger.info("Seeded %d demo resources", len(self._resources))
                await self._save()
            self._listeners.emit(self._resources)
            return

        try:
            raw = json.loads(stored)
            if not isinstance(raw, list):
                raise ValueError("stored resources are not a JSON array")
            self._resources = [ResourceItem.model_validate(item) for item in raw]
        except ValueError:
            logger.exception("Failed to load resources")
            self._resources = []

        self._listeners.emit(self._resources)

    async def _save(self) -> None:
        async with self._save_lock:
            snapshot = list(self._resources)
            await write_item(
                self._store,
                self._config.resources_storage_key,
                lambda: json.dumps(
                    [item.model_dump(mode="json", by_alias=True) for item in snapshot]
                ),
            )
