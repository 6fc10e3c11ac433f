"""RabbitMQ consumer lifecycle states."""
from enum import Enum


class ConsumerState(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    READY = "READY"
    CONSUMING = "CONSUMING"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
