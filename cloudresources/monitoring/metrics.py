"""Labelled gauges registered on first use, with a periodic reset of every known gauge."""

from collections.abc import Mapping
import logging
import threading
import time

from prometheus_client import CollectorRegistry, Gauge

from cloudresources.errors import MetricsError

logger = logging.getLogger(__name__)

REDIS_INFO_METRIC = "cro_aws_elasticache_info"
REDIS_AVAILABLE_METRIC = "cro_aws_elasticache_available"
REDIS_MAINTENANCE_METRIC = "cro_aws_elasticache_service_maintenance"

DEFAULT_RESET_INTERVAL = 3600


class MetricsRegistry:
    """Owns a CollectorRegistry and one Gauge per metric name.

    The label names of a gauge are fixed by the first set_metric call for that
    name. Build one at process start and share it with every provider.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self._gauges: dict[str, Gauge] = {}
        self._lock = threading.Lock()

    def _gauge(self, name: str, label_names: list[str]) -> Gauge:
        with self._lock:
            gauge = self._gauges.get(name)
            if gauge is None:
                try:
                    gauge = Gauge(name, name, label_names, registry=self.registry)
                except ValueError as e:
                    raise MetricsError(f"failed to register gauge {name}: {e}") from e
                self._gauges[name] = gauge
            return gauge

    def set_metric(self, name: str, labels: Mapping[str, str], value: float) -> None:
        """Set the labelled gauge `name` to value, registering the gauge if new."""
        gauge = self._gauge(name, sorted(labels))
        try:
            gauge.labels(**labels).set(value)
        except ValueError as e:
            raise MetricsError(f"failed to set gauge {name}: {e}") from e

    def set_metric_current_time(self, name: str, labels: Mapping[str, str]) -> None:
        """Set the gauge to the current unix time in seconds."""
        self.set_metric(name, labels, time.time())

    def get_value(self, name: str, labels: Mapping[str, str]) -> float | None:
        """Current value of one labelled series, or None if it is not set."""
        return self.registry.get_sample_value(name, dict(labels))

    def reset(self) -> None:
        """Drop every labelled series from every known gauge."""
        logger.info("resetting all elasticache gauge vectors")
        with self._lock:
            for gauge in self._gauges.values():
                gauge.clear()

    def start_reset_schedule(self, interval: float = DEFAULT_RESET_INTERVAL) -> threading.Event:
        """Call reset() every `interval` seconds on a daemon thread; set the returned event to stop."""
        stop = threading.Event()

        def _loop() -> None:
            while not stop.wait(interval):
                self.reset()

        threading.Thread(target=_loop, name="metrics-reset", daemon=True).start()
        return stop
