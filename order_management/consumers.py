import json
import logging
import threading
import time

import pika

from .audit import AuditContext
from .config import EVENTS_EXCHANGE, RABBITMQ_HOST
from .database import SessionLocal
from .exceptions import OrderManagementError
from .messaging.producer import get_publisher
from .models import PaymentStatus
from .services import orders

logger = logging.getLogger(__name__)

QUEUE_NAME = "order_management.payments"

# Payment outcome published by the payment service -> payment status of the order.
PAYMENT_EVENTS = {
    "payment.succeeded": PaymentStatus.PAID,
    "payment.partial": PaymentStatus.PARTIAL,
    "payment.refunded": PaymentStatus.REFUNDED,
    "payment.failed": PaymentStatus.UNPAID,
}


def handle_payment_event(db, routing_key, event, publisher=None):
    """
    Applies one payment event to its order. Returns the updated order, or
    None when the event is not one we track or carries no order id.
    """
    payment_status = PAYMENT_EVENTS.get(routing_key)
    order_id = event.get("order_id")
    if payment_status is None or order_id is None:
        logger.warning("Ignoring payment event %s: %s", routing_key, event)
        return None

    return orders.update_payment_status(
        db, int(order_id), payment_status, AuditContext(), publisher=publisher,
    )


class PaymentConsumer:
    """Listens for payment outcomes and records them on the orders."""

    def __init__(self, host=RABBITMQ_HOST, exchange_name=EVENTS_EXCHANGE):
        self.host = host
        self.exchange_name = exchange_name
        self.connection = None
        self.channel = None

    def connect(self):
        """Connects to RabbitMQ and binds the payment queue, retrying until the broker is up."""
        while True:
            try:
                credentials = pika.PlainCredentials('guest', 'guest')
                parameters = pika.ConnectionParameters(
                    self.host, credentials=credentials, heartbeat=600, blocked_connection_timeout=300,
                )
                self.connection = pika.BlockingConnection(parameters)
                self.channel = self.connection.channel()
                self.channel.exchange_declare(exchange=self.exchange_name, exchange_type='topic', durable=True)

                self.channel.queue_declare(queue=QUEUE_NAME, durable=True)
                for routing_key in PAYMENT_EVENTS:
                    self.channel.queue_bind(exchange=self.exchange_name, queue=QUEUE_NAME, routing_key=routing_key)

                logger.info("Payment consumer connected to RabbitMQ")
                break
            except pika.exceptions.AMQPConnectionError:
                logger.warning("RabbitMQ not ready, retrying in 5 seconds...")
                time.sleep(5)

    def callback(self, ch, method, properties, body):
        db = SessionLocal()
        try:
            event = json.loads(body)
            logger.info("Received %s -> %s", method.routing_key, event)
            handle_payment_event(db, method.routing_key, event, publisher=get_publisher())
        except (ValueError, OrderManagementError) as e:
            # Malformed payloads and unknown orders can never succeed; drop them.
            logger.warning("Discarding payment event %s: %s", method.routing_key, e)
        except Exception:
            logger.exception("Error processing payment event %s", method.routing_key)
        finally:
            db.close()
            # Acknowledge the message so RabbitMQ removes it from queue
            ch.basic_ack(delivery_tag=method.delivery_tag)

    def start_listening(self):
        """Starts the consuming loop."""
        if not self.connection:
            self.connect()

        self.channel.basic_consume(queue=QUEUE_NAME, on_message_callback=self.callback)
        logger.info("Payment consumer waiting for events...")
        self.channel.start_consuming()


def start_consumer_thread():
    """Helper to run consumer in a background thread."""
    consumer = PaymentConsumer()
    thread = threading.Thread(target=consumer.start_listening, daemon=True)
    thread.start()
    return thread
