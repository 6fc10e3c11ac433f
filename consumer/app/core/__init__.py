"""Shared consumer-service primitives."""
from __future__ import annotations

SERVICE_NAME = "order-consumer"
