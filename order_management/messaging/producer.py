import json
import logging
import threading
import time
from functools import lru_cache

import pika

from ..config import EVENTS_ENABLED, EVENTS_EXCHANGE, RABBITMQ_HOST

logger = logging.getLogger(__name__)


class RabbitMQProducer:
    """
    Publishes order and stock events to a topic exchange.

    Connects lazily and reconnects when the connection was dropped. Events
    are sent after the database commit, so a broker outage is logged and
    never undoes the work that produced the event.
    """

    def __init__(self, host=RABBITMQ_HOST, exchange_name=EVENTS_EXCHANGE, exchange_type="topic",
                 connect_attempts=3, retry_delay=2.0):
        self.host = host
        self.exchange_name = exchange_name
        self.exchange_type = exchange_type
        self.connect_attempts = connect_attempts
        self.retry_delay = retry_delay
        self.connection = None
        self.channel = None
        # BlockingConnection is not thread-safe and requests run in a threadpool.
        self._lock = threading.Lock()

    def connect(self):
        """Establishes a connection to RabbitMQ with retry logic."""
        for attempt in range(1, self.connect_attempts + 1):
            try:
                credentials = pika.PlainCredentials('guest', 'guest')
                parameters = pika.ConnectionParameters(
                    host=self.host,
                    credentials=credentials,
                    heartbeat=600,
                    blocked_connection_timeout=300,
                )
                self.connection = pika.BlockingConnection(parameters)
                self.channel = self.connection.channel()

                # Declare the exchange (durable ensures it survives restarts)
                self.channel.exchange_declare(
                    exchange=self.exchange_name,
                    exchange_type=self.exchange_type,
                    durable=True,
                )
                logger.info("Connected to RabbitMQ exchange %s on %s", self.exchange_name, self.host)
                return
            except pika.exceptions.AMQPConnectionError:
                logger.warning(
                    "RabbitMQ not ready (attempt %s/%s), retrying in %ss",
                    attempt, self.connect_attempts, self.retry_delay,
                )
                if attempt < self.connect_attempts:
                    time.sleep(self.retry_delay)
        raise pika.exceptions.AMQPConnectionError(f"Could not connect to RabbitMQ at {self.host}")

    def publish(self, routing_key, message):
        """
        Publishes a message to the exchange with a specific routing key.

        Args:
            routing_key (str): The topic key (e.g., 'order.created', 'stock.low').
            message (dict): The data payload to send.
        """
        try:
            with self._lock:
                # Reconnect if the connection was lost
                if not self.connection or self.connection.is_closed:
                    self.connect()
                self.channel.basic_publish(
                    exchange=self.exchange_name,
                    routing_key=routing_key,
                    body=json.dumps(message, default=str),
                    properties=pika.BasicProperties(
                        delivery_mode=2,  # Make message persistent
                        content_type="application/json",
                    ),
                )
            logger.info("Sent event '%s': %s", routing_key, message)
        except pika.exceptions.AMQPError:
            logger.exception("Failed to publish event '%s'", routing_key)

    def close(self):
        """Closes the connection cleanly."""
        if self.connection and not self.connection.is_closed:
            self.connection.close()


class NullPublisher:
    """Used when events are switched off; only logs what would have been sent."""

    def publish(self, routing_key, message):
        logger.debug("Events disabled, dropping '%s': %s", routing_key, message)

    def close(self):
        pass


@lru_cache(maxsize=1)
def get_publisher():
    """FastAPI dependency returning the process-wide event publisher."""
    if EVENTS_ENABLED:
        return RabbitMQProducer()
    return NullPublisher()
