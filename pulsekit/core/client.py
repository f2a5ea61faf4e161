"""Analytics client — the public entry point.

``configure()`` validates options and wires the pipeline together:

    event call -> source middleware -> DispatchQueue
               -> (flush) DestinationRouter -> destination middleware
               -> Destination.deliver -> IntegrationReadinessRegistry

There is no global instance.  Callers hold on to the ``Analytics`` object
that ``configure()`` returns and pass it wherever it is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from pydantic import ValidationError as PydanticValidationError

from pulsekit.bridge.context import ContextProvider, DefaultContextProvider
from pulsekit.bridge.transport import InMemoryTransport, Transport
from pulsekit.core.chain import ChainOutcome, Interceptor, run_chain
from pulsekit.core.codec import payload_to_wire, to_json
from pulsekit.core.dispatch_queue import (
    DispatchQueue,
    ExponentialBackoff,
    FlushReport,
    QueueClosedError,
    RetryPolicy,
)
from pulsekit.core.identity import IdentityStore
from pulsekit.core.middleware import MiddlewareRegistry
from pulsekit.core.readiness import IntegrationReadinessRegistry, ReadyCallback
from pulsekit.core.stats import StatsRecorder
from pulsekit.models.options import AnalyticsOptions, CallOptions, ConfigurationError
from pulsekit.models.payloads import BasePayload, PayloadBuilder, PayloadType
from pulsekit.models.project import COLLECTOR_DESTINATION, ProjectSettings
from pulsekit.models.stats import StatsSnapshot
from pulsekit.routing.destinations import Destination
from pulsekit.routing.destinations.transport import TransportDestination
from pulsekit.routing.router import DestinationRouter

logger = logging.getLogger(__name__)

_LIBRARY_LOGGER = "pulsekit"

INSTALL_ATTRIBUTED_EVENT = "Install Attributed"
DEEP_LINK_OPENED_EVENT = "Deep Link Opened"


class ClientShutdownError(RuntimeError):
    """Raised when a shut-down client is asked to record or flush events."""

    def __init__(self) -> None:
        super().__init__("Cannot enqueue messages after client is shutdown.")


def _coerce_options(options: AnalyticsOptions | dict[str, Any] | None) -> AnalyticsOptions:
    if options is None:
        return AnalyticsOptions()
    if isinstance(options, AnalyticsOptions):
        return options
    try:
        return AnalyticsOptions.model_validate(options)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid analytics options: {exc}") from exc


class Analytics:
    """A configured telemetry client.

    Parameters
    ----------
    write_key:
        Project write key.  Must not be blank.
    options:
        ``AnalyticsOptions`` or a plain mapping of option values.
    transport:
        Where the collector destination sends serialized payloads.
        Defaults to an ``InMemoryTransport``.
    context_provider:
        Supplies the device context for each payload.  Defaults to
        ``DefaultContextProvider``.
    destinations:
        Extra destinations registered after the collector, in order.
    retry_policy:
        Overrides the ``ExponentialBackoff`` built from ``max_retries``.

    Raises
    ------
    ConfigurationError
        If the write key is blank or the options do not validate.
    """

    def __init__(
        self,
        write_key: str,
        options: AnalyticsOptions | dict[str, Any] | None = None,
        *,
        transport: Transport | None = None,
        context_provider: ContextProvider | None = None,
        destinations: Iterable[Destination] = (),
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        if not write_key or not write_key.strip():
            raise ConfigurationError("writeKey must not be null or empty.")
        self._write_key = write_key
        self._options = _coerce_options(options)

        logging.getLogger(_LIBRARY_LOGGER).setLevel(self._options.log_level.python_level)

        try:
            self._project_settings = ProjectSettings.create(
                write_key, self._options.default_integration_settings
            )
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid default integration settings: {exc}") from exc

        self._context_provider: ContextProvider = context_provider or DefaultContextProvider()
        self._identity = IdentityStore()
        self._middleware = MiddlewareRegistry()
        self._readiness = IntegrationReadinessRegistry()
        self._stats = StatsRecorder()
        self._router = DestinationRouter(
            self._middleware,
            readiness=self._readiness,
            stats=self._stats,
            plan=self._project_settings.plan,
        )
        self._queue = DispatchQueue(
            self._router,
            flush_queue_size=self._options.flush_queue_size,
            flush_interval=self._options.flush_interval,
            flush_async=self._options.flush_async,
            retry_policy=retry_policy or ExponentialBackoff(max_retries=self._options.max_retries),
            stats=self._stats,
        )
        self._opted_out = False
        self._shutdown = False
        self._installed_build: str | None = None

        self.add_destination(
            TransportDestination(
                COLLECTOR_DESTINATION,
                transport or InMemoryTransport(),
                nanoseconds=self._options.experimental_nanosecond_timestamps,
                required_settings=("apiKey",),
            )
        )
        for destination in destinations:
            self.add_destination(destination)

        self._queue.start()
        logger.info(
            "Analytics configured%s (flush_queue_size=%d, flush_interval=%.1fs)",
            f" [{self._options.tag}]" if self._options.tag else "",
            self._options.flush_queue_size,
            self._options.flush_interval,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def write_key(self) -> str:
        return self._write_key

    @property
    def options(self) -> AnalyticsOptions:
        return self._options

    @property
    def default_options(self) -> CallOptions:
        """Per-call options applied under every event's own options."""
        return self._options.default_options

    @property
    def project_settings(self) -> ProjectSettings:
        return self._project_settings

    @property
    def anonymous_id(self) -> str:
        return self._identity.anonymous_id

    @property
    def user_id(self) -> str:
        return self._identity.user_id

    @property
    def traits(self) -> dict[str, Any]:
        return self._identity.traits

    @property
    def readiness(self) -> IntegrationReadinessRegistry:
        return self._readiness

    @property
    def is_opted_out(self) -> bool:
        return self._opted_out

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_source_middleware(self, interceptor: Interceptor) -> Analytics:
        """Run *interceptor* for every payload before it is queued."""
        self._middleware.add_source(interceptor)
        return self

    def add_destination_middleware(self, destination: str, interceptor: Interceptor) -> Analytics:
        """Run *interceptor* only when delivering to *destination*."""
        self._middleware.add_destination(destination, interceptor)
        return self

    def add_destination(self, destination: Destination) -> Analytics:
        """Register and initialize *destination*.

        Destinations with an ``initialize(settings)`` hook are initialized
        right away with their project settings; one that raises is marked
        failed and never receives payloads.  Destinations without the hook
        become ready on their first successful delivery.
        """
        self._router.register_destination(destination)
        key = destination.key
        initialize = getattr(destination, "initialize", None)
        if not callable(initialize):
            return self

        self._readiness.mark_initializing(key)
        try:
            initialize(self._project_settings.settings_for(key))
        except Exception as exc:  # noqa: BLE001
            logger.error("Destination %s failed to initialize: %s", key, exc)
            self._readiness.mark_failed(key, str(exc))
            return self
        self._readiness.mark_ready(key, destination)
        return self

    def on_integration_ready(self, destination: str, callback: ReadyCallback) -> None:
        """Call *callback* with the destination once it is ready.

        Fires immediately if the destination is already ready.
        """
        self._readiness.on_ready(destination, callback)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def track(
        self,
        event: str,
        properties: dict[str, Any] | None = None,
        options: CallOptions | None = None,
    ) -> None:
        """Record that the user performed *event*."""
        self._ensure_open()
        builder = PayloadBuilder(PayloadType.TRACK).event(event)
        builder.set("properties", properties or {})
        self._emit(builder, options)

    def identify(
        self,
        user_id: str | None = None,
        traits: dict[str, Any] | None = None,
        options: CallOptions | None = None,
    ) -> None:
        """Tie the current user to *user_id* and merge *traits* into theirs."""
        self._ensure_open()
        builder = PayloadBuilder(PayloadType.IDENTIFY).set("traits", traits or {})
        if user_id:
            builder.user_id(user_id)
        builder.build()

        merged = self._identity.identify(user_id, traits)
        builder.set("traits", merged)
        self._emit(builder, options)

    def screen(
        self,
        category: str | None = None,
        name: str | None = None,
        properties: dict[str, Any] | None = None,
        options: CallOptions | None = None,
    ) -> None:
        """Record a screen view.  At least one of *category*/*name* is required."""
        self._ensure_open()
        builder = PayloadBuilder(PayloadType.SCREEN)
        builder.set("category", category or "").set("name", name or "")
        builder.set("properties", properties or {})
        self._emit(builder, options)

    def group(
        self,
        group_id: str,
        traits: dict[str, Any] | None = None,
        options: CallOptions | None = None,
    ) -> None:
        """Associate the current user with *group_id*."""
        self._ensure_open()
        builder = PayloadBuilder(PayloadType.GROUP).set("group_id", group_id)
        builder.set("traits", traits or {})
        self._emit(builder, options)

    def alias(self, new_id: str, options: CallOptions | None = None) -> None:
        """Merge the current identity into *new_id*."""
        self._ensure_open()
        builder = PayloadBuilder(PayloadType.ALIAS).user_id(new_id)
        builder.build()

        previous = self._identity.alias(new_id)
        builder.set("previous_id", previous)
        self._emit(builder, options)

    def _emit(self, builder: PayloadBuilder, options: CallOptions | None) -> None:
        options = self._options.default_options.merged_with(options)
        context = self._context_provider.context()
        context.update(options.context)
        builder.set("context", context)
        builder.set("integrations", options.integrations)
        builder.anonymous_id(self._identity.anonymous_id)
        if not builder.get("user_id"):
            builder.user_id(self._identity.user_id)
        if options.timestamp_ns is not None:
            builder.timestamp_ns(options.timestamp_ns)
        payload = builder.build()

        if self._opted_out:
            logger.debug("Opted out; not recording %s payload", payload.type.value)
            return

        try:
            result = run_chain(
                payload, self._middleware.source(), self._enqueue, label="source"
            )
        except QueueClosedError as exc:
            raise ClientShutdownError() from exc
        if result.outcome != ChainOutcome.DELIVERED:
            self._stats.record_source_dropped()

    def _enqueue(self, payload: BasePayload) -> None:
        if self._options.log_level.log_payloads():
            logger.debug("Enqueueing payload: %s", to_json(payload_to_wire(payload), pretty=True))
        self._queue.enqueue(payload)

    # ------------------------------------------------------------------
    # Automatic events
    # ------------------------------------------------------------------

    def record_screen_view(self, name: str, options: CallOptions | None = None) -> None:
        """Record a screen view for *name* if ``record_screen_views`` is on."""
        if not self._options.record_screen_views:
            return
        self.screen(name=name, options=options)

    def application_started(
        self,
        version: str,
        build: str | int,
        *,
        previous_version: str | None = None,
        previous_build: str | int | None = None,
    ) -> None:
        """Emit ``Application Installed`` or ``Application Updated``.

        The first call with no *previous_build* counts as an install;
        later calls compare against the last build seen by this client.
        Nothing is sent unless ``track_application_lifecycle_events`` is on.
        """
        if not self._options.track_application_lifecycle_events:
            return
        build = str(build)
        known = str(previous_build) if previous_build is not None else self._installed_build

        if known is None:
            self.track("Application Installed", {"version": version, "build": build})
        elif known != build:
            self.track(
                "Application Updated",
                {
                    "previous_version": previous_version or "",
                    "previous_build": known,
                    "version": version,
                    "build": build,
                },
            )
        self._installed_build = build

    def application_opened(
        self, version: str, build: str | int, *, from_background: bool = False
    ) -> None:
        if not self._options.track_application_lifecycle_events:
            return
        properties: dict[str, Any] = {"from_background": from_background}
        if not from_background:
            properties.update(version=version, build=str(build))
        self.track("Application Opened", properties)

    def application_backgrounded(self) -> None:
        if not self._options.track_application_lifecycle_events:
            return
        self.track("Application Backgrounded")

    def track_attribution(self, data: dict[str, Any]) -> None:
        """Emit ``Install Attributed`` if ``track_attribution_information`` is on."""
        if not self._options.track_attribution_information:
            return
        self.track(INSTALL_ATTRIBUTED_EVENT, data)

    def track_deep_link(self, url: str | None) -> None:
        """Emit ``Deep Link Opened`` for *url* if ``track_deep_links`` is on.

        Non-blank query parameters become properties next to ``url``.
        Nothing is sent for a missing or empty *url*.
        """
        if not self._options.track_deep_links or not url:
            return
        properties: dict[str, Any] = {
            name: value
            for name, value in parse_qsl(urlsplit(url).query)
            if value.strip()
        }
        properties["url"] = url
        self.track(DEEP_LINK_OPENED_EVENT, properties)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def flush(self) -> FlushReport:
        """Deliver everything queued now, regardless of batch size."""
        self._ensure_open()
        return self._queue.flush()

    def reset(self) -> None:
        """Forget the current user and reset destinations that support it."""
        self._identity.reset()
        self._router.reset_destinations()
        logger.info("Identity reset")

    def logout(self) -> None:
        self.reset()

    def opt_out(self, opt_out: bool = True) -> None:
        """Stop (or resume) recording events.  Queued events still flush."""
        self._opted_out = opt_out
        logger.info("Opt-out %s", "enabled" if opt_out else "disabled")

    def snapshot(self) -> StatsSnapshot:
        """Return a frozen view of the pipeline counters."""
        return self._stats.snapshot(
            self._readiness.get_all_states(),
            pending=self._queue.pending,
            retry_pending=self._queue.retry_pending,
        )

    def shutdown(self) -> None:
        """Drain the queue and stop accepting events.  Idempotent."""
        if self._shutdown:
            return
        self._shutdown = True
        self._queue.shutdown()
        logger.info("Analytics shut down")

    def _ensure_open(self) -> None:
        if self._shutdown:
            raise ClientShutdownError()

    def __enter__(self) -> Analytics:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return (
            f"Analytics(tag={self._options.tag!r}, "
            f"destinations={[d.key for d in self._router.registered_destinations]})"
        )


def configure(
    write_key: str,
    options: AnalyticsOptions | dict[str, Any] | None = None,
    *,
    transport: Transport | None = None,
    context_provider: ContextProvider | None = None,
    destinations: Iterable[Destination] = (),
    retry_policy: RetryPolicy | None = None,
) -> Analytics:
    """Build a configured ``Analytics`` client.

    Usage
    -----
    >>> analytics = configure("write-key", {"flush_queue_size": 1})
    >>> analytics.track("Button A Clicked")
    """
    return Analytics(
        write_key,
        options,
        transport=transport,
        context_provider=context_provider,
        destinations=destinations,
        retry_policy=retry_policy,
    )
