"""Constants and enums for the flow runner."""

from enum import Enum


class RunState(str, Enum):
    """Lifecycle state of a run."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_RUN_STATES = frozenset({RunState.COMPLETED, RunState.FAILED})

# Allowed predecessor states for every target state. Terminal states are sinks.
RUN_STATE_PREDECESSORS: dict[RunState, frozenset] = {
    RunState.QUEUED: frozenset(),
    RunState.RUNNING: frozenset({RunState.QUEUED}),
    RunState.COMPLETED: frozenset({RunState.RUNNING}),
    RunState.FAILED: frozenset({RunState.RUNNING}),
}


class NodeType(str, Enum):
    """Built-in node types."""

    HTTP_REQUEST = "http_request"
    DELAY = "delay"
    LOG = "log"


class NodeStatus(str, Enum):
    """Outcome status of a single executed node."""

    OK = "ok"
    ERROR = "error"


DEFAULT_HTTP_METHOD = "GET"
DEFAULT_DELAY_MS = 1000
DEFAULT_RUN_QUEUE_KEY = "runs_queue"
