# erlink/services/events.py
import json
import logging
from typing import List, Optional

import redis

from erlink.config import EVENTS_CHANNEL_PREFIX, REDIS_URL
from erlink.models.schemas import CaseRecord

logger = logging.getLogger(__name__)


class CaseEventPublisher:
    """Publishes case lifecycle events for external notifiers.

    Delivery is not part of the dispatch contract: a transition is already
    committed when its event goes out, so publish errors are logged only.
    """

    def __init__(self, client: "redis.Redis", prefix: str = EVENTS_CHANNEL_PREFIX):
        self.client = client
        self.prefix = prefix

    def channels_for(self, case: CaseRecord) -> List[str]:
        return [
            f"{self.prefix}:hospital:{case.assigned_hospital_id}",
            f"{self.prefix}:paramedic:{case.paramedic_id}",
        ]

    def publish(self, event_type: str, case: CaseRecord, **extra):
        message = json.dumps({"type": event_type, "case": case.model_dump(mode="json"), **extra})
        for channel in self.channels_for(case):
            try:
                self.client.publish(channel, message)
            except redis.RedisError as e:
                logger.warning(f"⚠️ Failed to publish {event_type} for case {case.id} on {channel}: {e}")


class NullEventPublisher:
    """Used when no Redis is configured."""

    def publish(self, event_type: str, case: CaseRecord, **extra):
        logger.debug(f"Event {event_type} for case {case.id} (no broker configured)")


_publisher = None


def get_event_publisher(url: Optional[str] = REDIS_URL):
    global _publisher
    if _publisher is None:
        if url:
            _publisher = CaseEventPublisher(redis.Redis.from_url(url, decode_responses=True))
            logger.info("📡 Case events will be published to Redis")
        else:
            _publisher = NullEventPublisher()
    return _publisher
