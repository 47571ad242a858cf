"""
Prometheus metrics collection and HTTP exposition.

Defines module-level metric objects shared by every component of the
bridge. [BaseService.run_forever()][nostrbridge.core.base_service.BaseService.run_forever]
records status-cycle counts and durations; the bridge adds its own
counters and gauges through ``set_gauge()`` and ``inc_counter()``.

The ``MetricsServer`` provides an async HTTP endpoint (via aiohttp) for
Prometheus scraping. It is configured through ``MetricsConfig`` embedded
in the bridge YAML and is disabled by default.

Architecture:
    SERVICE_INFO:               Static metadata set once at startup.
    SERVICE_GAUGE:              Point-in-time values (relays connected, events in flight).
    SERVICE_COUNTER:            Cumulative totals (events received, replies published).
    CYCLE_DURATION_SECONDS:     Status cycle duration histogram.
    EVENT_DURATION_SECONDS:     Per-event pipeline latency (p50/p95/p99).
    RELAY_CONNECTED:            Connection state per relay URL (1 or 0).
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    The endpoint is only started when ``enabled`` is True. Use
    ``host="0.0.0.0"`` inside containers.
    """

    enabled: bool = Field(default=False, description="Enable metrics collection")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Service Metrics
# ---------------------------------------------------------------------------

SERVICE_INFO = Info(
    "service",
    "Service information and metadata",
)

CYCLE_DURATION_SECONDS = Histogram(
    "cycle_duration_seconds",
    "Duration of service status cycle in seconds",
    ["service"],
    buckets=(0.001, 0.01, 0.1, 0.5, 1, 5, 10, 30),
)

# Inbound event latency, from delivery to reply published (or drop)
EVENT_DURATION_SECONDS = Histogram(
    "event_duration_seconds",
    "Duration of inbound event handling in seconds",
    ["service", "kind"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120),
)


# ---------------------------------------------------------------------------
# Generic Label-Based Metrics (used via set_gauge/inc_counter)
#
# Automatic labels (BaseService.run_forever):
#   gauge:   consecutive_failures, last_cycle_timestamp
#   counter: cycles_success, cycles_failed, errors_{type}
#
# Bridge labels:
#   gauge:   relays_connected, relays_total, events_in_flight
#   counter: events_received, events_rejected_signature, events_replayed,
#            dm_denied, decrypt_failed, inference_failed, publish_failed,
#            replies_published
# ---------------------------------------------------------------------------

SERVICE_GAUGE = Gauge(
    "service_gauge",
    "Service gauge values (point-in-time state)",
    ["service", "name"],
)

SERVICE_COUNTER = Counter(
    "service_counter",
    "Service counter values (cumulative totals)",
    ["service", "name"],
)

RELAY_CONNECTED = Gauge(
    "relay_connected",
    "Whether the relay endpoint is currently connected (1) or not (0)",
    ["service", "relay"],
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible /metrics endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... bridge runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Start listening for Prometheus scrape requests.

        No-op if metrics are disabled in the configuration.

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()

        site = web.TCPSite(
            self._runner,
            self._config.host,
            self._config.port,
        )
        await site.start()

    async def stop(self) -> None:
        """Stop the HTTP server. Idempotent."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        output = generate_latest()
        return web.Response(
            body=output,
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(
    config: MetricsConfig | None = None,
) -> MetricsServer:
    """Create and start a metrics server.

    Args:
        config: Metrics configuration. Uses defaults (disabled) if not provided.

    Returns:
        A MetricsServer instance. Call ``stop()`` during shutdown to release
        the bound port.
    """
    config = config or MetricsConfig()
    server = MetricsServer(config)
    await server.start()
    return server
