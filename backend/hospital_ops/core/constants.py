"""Lookup tables shared by the notification and resource modules."""

# Resource type id -> display label. Unknown ids are used as their own label.
RESOURCE_LABELS: dict[str, str] = {
    "beds": "Hospital Beds",
    "icu": "ICU Beds",
    "oxygen": "Oxygen Tanks",
    "ventilators": "Ventilators",
    "staff": "Medical Staff",
}

EMERGENCY_SEVERITY_LABELS: dict[str, str] = {
    "low": "Low",
    "medium": "Medium",
    "high": "High",
    "critical": "Critical",
}

EMERGENCY_TYPE_LABELS: dict[str, str] = {
    "medical": "Medical Emergency",
    "equipment": "Equipment Failure",
    "staff": "Staff Shortage",
    "other": "Other Emergency",
}


def resource_label(resource_type: str) -> str:
    return RESOURCE_LABELS.get(resource_type, resource_type)
