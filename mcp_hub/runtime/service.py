"""Hub runtime service: lifecycle management with a state machine.

HubService owns the ClientManager and builds the rest of the hub on top of
it: provider registry, tool catalog, tool bridge, sandbox runtime and the
MetaServer facade. Any change in backend topology invalidates the catalog.
"""

import logging
from typing import Any, Dict, Optional

from mcp_hub.bridge.catalog import ToolCatalog
from mcp_hub.bridge.client_manager import ClientManager
from mcp_hub.bridge.provider_registry import SessionProviderRegistry
from mcp_hub.bridge.tool_bridge import ToolBridge
from mcp_hub.config.loader import backends_to_conf
from mcp_hub.config.schema import HubConfig
from mcp_hub.errors import BackendServerError
from mcp_hub.runtime.models import ServiceState, is_valid_transition
from mcp_hub.sandbox.runtime import SandboxRuntime
from mcp_hub.server.meta_server import MetaServer

logger = logging.getLogger(__name__)


class _InvalidStateTransition(Exception):
    """Raised internally when an illegal state transition is attempted."""

    def __init__(self, current: ServiceState, target: ServiceState) -> None:
        super().__init__(f"Invalid state transition: {current.value} → {target.value}")
        self.current = current
        self.target = target


class HubService:
    """Manages the full lifecycle of the hub.

    State machine::

        PENDING ─► STARTING ─► RUNNING ─► STOPPING ─► STOPPED
                       │                     ▲
                       └──────► ERROR ───────┘

    Usage::

        service = HubService()
        await service.start(load_hub_config("config.yaml"))
        result = await service.meta_server.handle("discover", {})
        await service.stop()
    """

    def __init__(self, manager: Optional[ClientManager] = None) -> None:
        self._state: ServiceState = ServiceState.PENDING
        self._error_message: Optional[str] = None
        self._config: Optional[HubConfig] = None
        self._backend_conf: Dict[str, Dict[str, Any]] = {}

        self._manager: ClientManager = manager if manager is not None else ClientManager()
        self._manager.add_listener(self._on_topology_change)
        self._registry: Optional[SessionProviderRegistry] = None
        self._catalog: Optional[ToolCatalog] = None
        self._meta_server: Optional[MetaServer] = None

        logger.info("HubService initialized (state=%s).", self._state.value)

    # ── Properties ───────────────────────────────────────────────────

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def manager(self) -> ClientManager:
        return self._manager

    @property
    def catalog(self) -> Optional[ToolCatalog]:
        return self._catalog

    @property
    def meta_server(self) -> Optional[MetaServer]:
        """The MetaServer facade (``None`` until the service has started)."""
        return self._meta_server

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def backends_total(self) -> int:
        return len(self._backend_conf)

    @property
    def backends_connected(self) -> int:
        return len(self._manager.get_all_sessions())

    @property
    def is_running(self) -> bool:
        return self._state == ServiceState.RUNNING

    def _transition(self, target: ServiceState) -> None:
        if not is_valid_transition(self._state, target):
            raise _InvalidStateTransition(self._state, target)
        prev = self._state
        self._state = target
        logger.info("Service state: %s → %s", prev.value, target.value)

    def _on_topology_change(self, event: str, backend: str) -> None:
        logger.info("Backend '%s' %s; invalidating tool catalog.", backend, event)
        if self._catalog is not None:
            self._catalog.invalidate()

    def _build_components(self, config: HubConfig) -> None:
        settings = config.hub
        self._registry = SessionProviderRegistry(self._manager, call_timeout=settings.call_timeout)
        self._catalog = ToolCatalog(self._registry, ttl=settings.catalog_ttl)
        bridge = ToolBridge(self._catalog, self._registry)
        runtime = SandboxRuntime(
            bridge,
            self._registry.abort,
            default_deadline_ms=settings.exec_timeout_ms,
            max_logs=settings.max_logs,
        )
        self._meta_server = MetaServer(self._catalog, bridge, runtime)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self, config: HubConfig) -> None:
        """Connect the configured backends and build the hub.

        Raises:
            BackendServerError: If backends are configured but none connect.
        """
        self._transition(ServiceState.STARTING)
        self._error_message = None
        self._config = config

        try:
            self._backend_conf = backends_to_conf(config)
            self._build_components(config)

            logger.info("Connecting %d backend service(s)...", self.backends_total)
            await self._manager.start_all(self._backend_conf)

            if self.backends_connected == 0 and self.backends_total > 0:
                raise BackendServerError(
                    f"Unable to connect to any backend server "
                    f"({self.backends_total} configured). Hub cannot start."
                )
            logger.info(
                "Backend connections: %d/%d active.",
                self.backends_connected,
                self.backends_total,
            )

            self._transition(ServiceState.RUNNING)
            logger.info("HubService is RUNNING.")

        except Exception as exc:
            self._error_message = f"{type(exc).__name__}: {exc}"
            self._transition(ServiceState.ERROR)
            raise

    async def stop(self) -> None:
        """Close every backend connection.

        Safe to call after a failed start; cleanup is still attempted.
        """
        if self._state in (ServiceState.RUNNING, ServiceState.ERROR):
            self._transition(ServiceState.STOPPING)
        elif self._state == ServiceState.STARTING:
            self._state = ServiceState.ERROR
            logger.warning("Stop requested while still STARTING; forcing ERROR state.")
            self._transition(ServiceState.STOPPING)
        else:
            logger.info("Stop requested but service is %s; nothing to do.", self._state.value)
            return

        try:
            await self._manager.stop_all()
            self._transition(ServiceState.STOPPED)
        except Exception as exc:
            self._error_message = f"Shutdown error: {type(exc).__name__}: {exc}"
            logger.exception("Error during shutdown: %s", exc)
            self._transition(ServiceState.ERROR)
