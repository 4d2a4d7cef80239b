#!/usr/bin/env python3
"""Timeline service configuration

Settings for the timeline service itself: HTTP port, cascade defaults,
write fan-out and change-feed wiring.
"""
import os
from dataclasses import dataclass
from typing import Optional


def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    """Timeline service settings"""

    service_name: str = "timeline_service"
    service_host: str = "0.0.0.0"
    service_port: int = 8260

    # ===========================================
    # Cascade behaviour
    # ===========================================
    # Clamp children to the parent's new bounds when a request does not say
    default_clamp: bool = False

    # Upper bound on concurrent child writes during one cascade
    max_concurrent_writes: int = 10

    # ===========================================
    # Storage / change feed
    # ===========================================
    db_schema: str = "planner"
    change_channel: str = "planner_changes"

    # Organization whose change feed is followed from startup; snapshots for
    # it are then taken from the in-memory state
    sync_organization_id: Optional[str] = None

    # ===========================================
    # Events
    # ===========================================
    events_enabled: bool = True
    event_subject_prefix: str = "timeline"

    @classmethod
    def from_env(cls) -> 'ServiceConfig':
        """Load service configuration from environment variables"""
        return cls(
            service_name=os.getenv("SERVICE_NAME", "timeline_service"),
            service_host=os.getenv("HOST", "0.0.0.0"),
            service_port=_int(os.getenv("SERVICE_PORT", "8260"), 8260),
            default_clamp=_bool(os.getenv("TIMELINE_DEFAULT_CLAMP", "false")),
            max_concurrent_writes=max(1, _int(os.getenv("TIMELINE_MAX_CONCURRENT_WRITES", "10"), 10)),
            db_schema=os.getenv("TIMELINE_DB_SCHEMA", "planner"),
            change_channel=os.getenv("TIMELINE_CHANGE_CHANNEL", "planner_changes"),
            sync_organization_id=os.getenv("TIMELINE_SYNC_ORGANIZATION_ID") or None,
            events_enabled=_bool(os.getenv("TIMELINE_EVENTS_ENABLED", "true")),
            event_subject_prefix=os.getenv("TIMELINE_EVENT_PREFIX", "timeline"),
        )
