# Kafka producer for outgoing notification events
import asyncio
import logging
from confluent_kafka import Producer
from pydantic import BaseModel
from typing import Optional, Callable, Any

from agreement_case_service.app.config import settings
from agreement_case_service.app.service.exceptions import ConfigurationError, KafkaProducerError

logger = logging.getLogger(__name__)

class KafkaProducerService:
    def __init__(self, bootstrap_servers: str, client_id: Optional[str] = None):
        self.producer_config = {
            'bootstrap.servers': bootstrap_servers,
            'client.id': client_id or settings.SERVICE_NAME_API,
        }
        self.producer = Producer(self.producer_config)
        self._cancelled = False
        self._poll_loop_task: Optional[asyncio.Task] = None
        logger.info(f"KafkaProducer initialized with servers: {bootstrap_servers}")

    def _delivery_report(self, err, msg):
        """ Called once for each message produced to indicate delivery result. """
        if err is not None:
            logger.error(f'Message delivery failed: Topic {msg.topic()} Key {msg.key()}: {err}')
        else:
            logger.info(f'Message delivered: Topic {msg.topic()} Key {msg.key()} Partition [{msg.partition()}] @ Offset {msg.offset()}')

    async def _poll_loop(self):
        while not self._cancelled:
            self.producer.poll(0.1)
            await asyncio.sleep(0.1)
        logger.info("KafkaProducer poll loop stopped.")

    def produce_message(
        self,
        topic: str,
        message: BaseModel,
        key: Optional[str] = None,
        callback: Optional[Callable[[Any, Any], None]] = None
    ):
        """Serialise a pydantic model to JSON and enqueue it on `topic`.

        Raises KafkaProducerError when the message could not be enqueued; delivery
        itself is reported asynchronously through `callback`.
        """
        if self._cancelled:
            raise KafkaProducerError(f"Producer is stopped, message to {topic} not produced.")

        value_json = message.model_dump_json()
        try:
            self.producer.produce(
                topic,
                value=value_json.encode('utf-8'),
                key=key.encode('utf-8') if key else None,
                callback=callback if callback else self._delivery_report
            )
        except BufferError as e:
            logger.error(f"Kafka producer queue full. Message to {topic} not produced. Error: {e}")
            raise KafkaProducerError(f"Kafka producer queue full for topic {topic}") from e
        except Exception as e:
            logger.error(f"Error producing message to Kafka topic {topic}: {e}", exc_info=True)
            raise KafkaProducerError(f"Failed to produce message to {topic}: {e}") from e
        logger.debug(f"Message enqueued to topic {topic} (key: {key})")

    async def start_polling(self):
        if self._poll_loop_task is None or self._poll_loop_task.done():
            self._cancelled = False
            self._poll_loop_task = asyncio.create_task(self._poll_loop())
            logger.info("KafkaProducer polling started.")

    async def stop_polling(self):
        if self._poll_loop_task and not self._cancelled:
            self._cancelled = True
            try:
                await asyncio.wait_for(self._poll_loop_task, timeout=5.0)
            except asyncio.TimeoutError:
                logger.warning("KafkaProducer poll loop did not stop in time.")
            self._poll_loop_task = None

    def flush(self, timeout: float = 10.0) -> int:
        remaining = self.producer.flush(timeout)
        if remaining > 0:
            logger.warning(f"{remaining} messages still in Kafka producer queue after flush timeout.")
        else:
            logger.info("All Kafka messages flushed successfully.")
        return remaining

_kafka_producer_instance: Optional[KafkaProducerService] = None

def get_kafka_producer() -> KafkaProducerService:
    global _kafka_producer_instance
    if _kafka_producer_instance is None:
        if not settings.KAFKA_BOOTSTRAP_SERVERS:
            logger.error("KAFKA_BOOTSTRAP_SERVERS not configured in settings. KafkaProducer cannot be initialized.")
            raise ConfigurationError("KAFKA_BOOTSTRAP_SERVERS not configured.")
        _kafka_producer_instance = KafkaProducerService(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS
        )
    return _kafka_producer_instance

async def startup_kafka_producer():
    producer = get_kafka_producer()
    await producer.start_polling()

async def shutdown_kafka_producer():
    if _kafka_producer_instance:
        logger.info("Flushing Kafka producer before shutdown...")
        _kafka_producer_instance.flush()
        await _kafka_producer_instance.stop_polling()
        logger.info("Kafka producer shutdown complete.")
    else:
        logger.info("Kafka producer was not initialized, skipping shutdown steps.")
