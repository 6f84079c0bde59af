# Outbox-backed notification emission. Never raises into the command that triggered it.
import asyncio
import logging
from typing import Any, Callable, List, Optional, Set
from motor.motor_asyncio import AsyncIOMotorDatabase

from agreement_case_service.app.config import settings
from agreement_case_service.app.models.case_db import CaseDB
from agreement_case_service.app.models.notification_outbox_db import NotificationOutboxDB
from agreement_case_service.app.observability import notifications_enqueued_counter
from agreement_case_service.app.service.events.models import EventMetaData, NotificationRequiredEvent
from agreement_case_service.app.service.strategies.notification_strategies import get_notification_strategy
from agreement_case_service.app.service.workflow.intents import NotificationIntent
from agreement_case_service.infrastructure.database import outbox_store
from agreement_case_service.infrastructure.kafka.producer import KafkaProducerService

logger = logging.getLogger(__name__)

# Outbox ids handed to the producer whose delivery report has not arrived yet
_in_flight: Set[str] = set()
_delivery_tasks: Set[asyncio.Task] = set()
_relay_task: Optional[asyncio.Task] = None


async def _build_outbox_entries(
    db: AsyncIOMotorDatabase,
    case: CaseDB,
    intents: List[NotificationIntent],
    causation_id: Optional[str],
) -> List[NotificationOutboxDB]:
    entries = []
    for intent in intents:
        try:
            payload = await get_notification_strategy(intent).prepare_notification(intent, case, db)
        except Exception as e:
            logger.error(f"Failed to prepare {intent.trigger} notification for case {case.id}: {e}", exc_info=True)
            continue
        if payload is None:
            continue
        event = NotificationRequiredEvent(
            aggregate_id=case.id,
            version=case.version,
            payload=payload,
            metadata=EventMetaData(causation_id=causation_id),
        )
        entries.append(NotificationOutboxDB(case_id=case.id, event=event))
    return entries


async def _record_delivery(db: AsyncIOMotorDatabase, entry: NotificationOutboxDB, err: Any) -> None:
    try:
        if err is None:
            await outbox_store.mark_published(db, entry.id)
            logger.info(f"Outbox entry {entry.id} for case {entry.case_id} delivered to Kafka.")
        else:
            logger.error(f"Kafka delivery failed for outbox entry {entry.id} (case {entry.case_id}): {err}")
            await outbox_store.record_failure(db, entry.id, str(err))
    except Exception as e:
        logger.error(f"Could not record delivery result on outbox entry {entry.id}: {e}", exc_info=True)
    finally:
        _in_flight.discard(entry.id)


def _delivery_callback(db: AsyncIOMotorDatabase, entry: NotificationOutboxDB) -> Callable[[Any, Any], None]:
    """Build the confluent-kafka delivery callback for one outbox entry.

    librdkafka calls it from `poll()`/`flush()`, which run on the event loop thread, so the
    outbox update is scheduled as a task there. The entry only becomes PUBLISHED once the
    broker acknowledged it; a failed delivery leaves it PENDING for the relay.
    """
    def on_delivery(err, msg):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop for delivery report of outbox entry {entry.id}; left pending.")
            _in_flight.discard(entry.id)
            return
        task = loop.create_task(_record_delivery(db, entry, err))
        _delivery_tasks.add(task)
        task.add_done_callback(_delivery_tasks.discard)
    return on_delivery


async def wait_for_deliveries() -> None:
    """Wait for outbox updates scheduled by delivery reports received so far."""
    if _delivery_tasks:
        await asyncio.gather(*list(_delivery_tasks), return_exceptions=True)


async def publish_outbox_entries(
    db: AsyncIOMotorDatabase,
    entries: List[NotificationOutboxDB],
    kafka_producer: Optional[KafkaProducerService],
) -> int:
    """Hand outbox entries to the Kafka producer. Returns how many were enqueued.

    Entries stay PENDING here; the per-entry delivery callback marks them PUBLISHED
    or records the failure once the broker answers. Entries still awaiting a
    delivery report are skipped so the relay never sends them twice.
    """
    if not entries:
        return 0
    if kafka_producer is None:
        logger.warning(f"Kafka producer unavailable; {len(entries)} notification(s) left pending in outbox.")
        return 0

    enqueued = 0
    for entry in entries:
        if entry.id in _in_flight:
            continue
        _in_flight.add(entry.id)
        try:
            kafka_producer.produce_message(
                topic=settings.NOTIFICATION_KAFKA_TOPIC,
                message=entry.event,
                key=entry.case_id,
                callback=_delivery_callback(db, entry),
            )
            enqueued += 1
        except Exception as e:
            _in_flight.discard(entry.id)
            logger.error(f"Failed to publish outbox entry {entry.id} for case {entry.case_id}: {e}", exc_info=True)
            try:
                await outbox_store.record_failure(db, entry.id, str(e))
            except Exception as record_error:
                logger.error(f"Could not record failure on outbox entry {entry.id}: {record_error}")
    return enqueued


async def dispatch_notifications(
    db: AsyncIOMotorDatabase,
    case: CaseDB,
    intents: List[NotificationIntent],
    kafka_producer: Optional[KafkaProducerService],
    causation_id: Optional[str] = None,
) -> List[NotificationOutboxDB]:
    """Store the notifications a committed case change asked for, then try to publish them.

    Failures are logged and swallowed: the case write is already the record of truth and
    anything left PENDING is picked up by relay_pending_notifications.
    """
    if not intents:
        return []

    entries = await _build_outbox_entries(db, case, intents, causation_id)
    if not entries:
        return []
    try:
        await outbox_store.add_outbox_entries(db, entries)
    except Exception as e:
        logger.error(f"Failed to write {len(entries)} notification(s) to outbox for case {case.id}: {e}", exc_info=True)
        return []

    for entry in entries:
        notifications_enqueued_counter.add(1, {"trigger": entry.event.payload.trigger})

    await publish_outbox_entries(db, entries, kafka_producer)
    return entries


async def relay_pending_notifications(
    db: AsyncIOMotorDatabase,
    kafka_producer: Optional[KafkaProducerService],
    limit: int = 100,
) -> int:
    pending = [entry for entry in await outbox_store.list_pending(db, limit=limit) if entry.id not in _in_flight]
    if pending:
        logger.info(f"Relaying {len(pending)} pending notification(s) from outbox.")
    return await publish_outbox_entries(db, pending, kafka_producer)


async def _relay_loop(db: AsyncIOMotorDatabase, kafka_producer: KafkaProducerService, interval: float):
    while True:
        await asyncio.sleep(interval)
        try:
            await relay_pending_notifications(db, kafka_producer)
        except Exception as e:
            logger.error(f"Outbox relay pass failed: {e}", exc_info=True)


def start_outbox_relay(
    db: AsyncIOMotorDatabase,
    kafka_producer: KafkaProducerService,
    interval: Optional[float] = None,
) -> None:
    global _relay_task
    if _relay_task is None or _relay_task.done():
        interval = interval if interval is not None else settings.OUTBOX_RELAY_INTERVAL_SECONDS
        _relay_task = asyncio.create_task(_relay_loop(db, kafka_producer, interval))
        logger.info(f"Outbox relay started (every {interval}s).")


async def stop_outbox_relay() -> None:
    global _relay_task
    if _relay_task is None:
        return
    _relay_task.cancel()
    try:
        await _relay_task
    except asyncio.CancelledError:
        pass
    _relay_task = None
    logger.info("Outbox relay stopped.")
