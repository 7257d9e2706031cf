"""Lifecycle state for the hub service."""

from enum import Enum
from typing import Dict


class ServiceState(str, Enum):
    """Lifecycle states for the hub service.

    Valid transitions:
        PENDING  → STARTING
        STARTING → RUNNING | ERROR
        RUNNING  → STOPPING
        STOPPING → STOPPED | ERROR
        ERROR    → STARTING | STOPPING
    """

    PENDING = "pending"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


_VALID_TRANSITIONS: Dict[ServiceState, frozenset] = {
    ServiceState.PENDING: frozenset({ServiceState.STARTING}),
    ServiceState.STARTING: frozenset({ServiceState.RUNNING, ServiceState.ERROR}),
    ServiceState.RUNNING: frozenset({ServiceState.STOPPING}),
    ServiceState.STOPPING: frozenset({ServiceState.STOPPED, ServiceState.ERROR}),
    ServiceState.STOPPED: frozenset(),
    ServiceState.ERROR: frozenset({ServiceState.STARTING, ServiceState.STOPPING}),
}


def is_valid_transition(current: ServiceState, target: ServiceState) -> bool:
    return target in _VALID_TRANSITIONS.get(current, frozenset())
