"""pulsekit: client-side telemetry through an interceptor-chain pipeline.

Events recorded with ``track``/``identify``/``screen``/``group``/``alias``
run through source middleware, wait in a batching dispatch queue, and on
flush are replayed through per-destination middleware before delivery.
Destinations report readiness through an integration readiness registry.
"""

__version__ = "0.1.0"
__description__ = "Client-side telemetry with source and destination middleware chains"

from pulsekit.core.chain import Chain, ChainReuseError, Middleware
from pulsekit.core.client import Analytics, ClientShutdownError, configure
from pulsekit.models.options import AnalyticsOptions, CallOptions, ConfigurationError, LogLevel
from pulsekit.models.payloads import PayloadType, ValidationError, build

__all__ = [
    "Analytics",
    "AnalyticsOptions",
    "CallOptions",
    "Chain",
    "ChainReuseError",
    "ClientShutdownError",
    "ConfigurationError",
    "LogLevel",
    "Middleware",
    "PayloadType",
    "ValidationError",
    "build",
    "configure",
    "__version__",
]
