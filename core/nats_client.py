"""
NATS Client for Python Microservices
Provides event-driven communication between planner services

This module wraps the nats-py client. Events are published to JetStream
when a stream is available and fall back to core NATS publish otherwise.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

import nats
from nats.aio.client import Client as NATS
from nats.js import JetStreamContext

from core.config import InfraConfig

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """Custom JSON encoder that handles Decimal and datetime types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class ServiceSource(Enum):
    """Services that publish events"""
    TIMELINE_SERVICE = "timeline_service"
    PROJECT_SERVICE = "project_service"
    CAMPAIGN_SERVICE = "campaign_service"
    TASK_SERVICE = "task_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: Union[Enum, str],
        source: Union[ServiceSource, str],
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value if isinstance(event_type, Enum) else event_type
        self.source = source.value if isinstance(source, Enum) else source
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        event = cls.__new__(cls)
        event.id = data.get("id")
        event.type = data.get("type")
        event.source = data.get("source")
        event.subject = data.get("subject")
        event.timestamp = data.get("timestamp")
        event.data = data.get("data", {})
        event.metadata = data.get("metadata", {})
        event.version = data.get("version", "1.0.0")
        return event


class NATSEventBus:
    """
    NATS event bus built on nats-py.

    Stream names are derived from the first token of the event type
    (timeline.* -> timeline-stream).
    """

    def __init__(
        self,
        service_name: str,
        infra: Optional[InfraConfig] = None,
        use_jetstream: bool = True,
    ):
        infra = infra or InfraConfig.from_env()

        self.service_name = service_name
        self.servers = infra.nats_servers
        self.use_jetstream = use_jetstream

        self._nc: Optional[NATS] = None
        self._js: Optional[JetStreamContext] = None
        self._streams: Dict[str, bool] = {}

        logger.info(f"NATS EventBus initialized: {self.servers}")

    async def connect(self):
        """Connect to NATS"""
        try:
            self._nc = await nats.connect(servers=self.servers, name=self.service_name)
            if self.use_jetstream:
                self._js = self._nc.jetstream()
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS at {self.servers}: {e}")
            raise

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event using its type as the subject.

        Returns False instead of raising when the bus is unavailable.
        """
        if not self.is_connected:
            logger.error("Not connected to NATS")
            return False

        try:
            payload = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            subject = event.subject or event.type

            if self._js is not None and await self._ensure_stream(event.type):
                ack = await self._js.publish(subject, payload)
                logger.info(f"Published event {event.type} [{event.id}] to stream {ack.stream}, seq={ack.seq}")
            else:
                await self._nc.publish(subject, payload)
                logger.info(f"Published event {event.type} [{event.id}]")
            return True

        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    def _get_stream_name_for_event(self, event_type: str) -> str:
        """Map an event type to its stream name (timeline.* -> timeline-stream)"""
        prefix = event_type.split(".")[0]
        return f"{prefix}-stream"

    async def _ensure_stream(self, event_type: str) -> bool:
        stream_name = self._get_stream_name_for_event(event_type)
        if stream_name in self._streams:
            return self._streams[stream_name]

        prefix = event_type.split(".")[0]
        try:
            await self._js.add_stream(name=stream_name, subjects=[f"{prefix}.>"])
            self._streams[stream_name] = True
        except Exception as e:
            logger.warning(f"JetStream unavailable for {stream_name}, using core publish: {e}")
            self._streams[stream_name] = False
        return self._streams[stream_name]

    async def close(self):
        """Drain and close the connection"""
        if self._nc is not None:
            try:
                await self._nc.drain()
            except Exception as e:
                logger.debug(f"NATS drain note: {e}")
            self._nc = None
            self._js = None

        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._nc is not None and self._nc.is_connected


def create_event(
    event_type: Union[Enum, str],
    data: Dict[str, Any],
    source: Union[ServiceSource, str] = ServiceSource.TIMELINE_SERVICE,
    metadata: Optional[Dict[str, str]] = None,
) -> Event:
    """Convenience constructor used by publishers"""
    return Event(event_type=event_type, source=source, data=data, metadata=metadata)


__all__ = [
    "DecimalEncoder",
    "ServiceSource",
    "Event",
    "NATSEventBus",
    "create_event",
]
