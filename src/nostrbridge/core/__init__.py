"""Core layer providing the foundation for the bridge service.

Depends only on ``nostrbridge.models`` and is depended upon by
``nostrbridge.services``.

Attributes:
    BaseService: Abstract generic base class with lifecycle management
        ([run()][nostrbridge.core.base_service.BaseService.run] /
        [run_forever()][nostrbridge.core.base_service.BaseService.run_forever] /
        shutdown), factory methods and Prometheus metrics integration.
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][nostrbridge.core.logger.Logger].
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
        See [MetricsServer][nostrbridge.core.metrics.MetricsServer].
    YAML: Safe YAML loading. See [load_yaml()][nostrbridge.core.yaml.load_yaml].
"""

from .base_service import (
    BaseService,
    BaseServiceConfig,
    ConfigT,
)
from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    CryptoError,
    InferenceError,
    NostrBridgeError,
    ProtocolError,
    PublishingError,
    RelayTimeoutError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    EVENT_DURATION_SECONDS,
    RELAY_CONNECTED,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "EVENT_DURATION_SECONDS",
    "RELAY_CONNECTED",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "ConfigT",
    "ConfigurationError",
    "ConnectivityError",
    "CryptoError",
    "InferenceError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "NostrBridgeError",
    "ProtocolError",
    "PublishingError",
    "RelayTimeoutError",
    "StructuredFormatter",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
