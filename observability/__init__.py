"""Observability utilities for the interview orchestration stack."""
from .logger import configure_logging, log_event
from .metrics import MetricsSink, MetricsSnapshot

__all__ = ["configure_logging", "log_event", "MetricsSink", "MetricsSnapshot"]
