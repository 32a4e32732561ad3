"""
Node Handler Registry: maps each built-in node type to its handler.
"""

from typing import Dict, Optional

import httpx

from tasks.base_task import BaseNodeHandler
from tasks.implementations.delay_task import DelayHandler
from tasks.implementations.http_task import HttpRequestHandler
from tasks.implementations.log_task import LogHandler


class NodeHandlerRegistry:
    """Registry of handler instances, keyed by node type string."""

    def __init__(self, http_client: httpx.AsyncClient):
        self._handlers: Dict[str, BaseNodeHandler] = {}
        self._register_builtin_handlers(http_client)

    def _register_builtin_handlers(self, http_client: httpx.AsyncClient):
        self.register(HttpRequestHandler(http_client))
        self.register(DelayHandler())
        self.register(LogHandler())

    def register(self, handler: BaseNodeHandler):
        self._handlers[handler.node_type] = handler

    def get(self, node_type: Optional[str]) -> Optional[BaseNodeHandler]:
        """Get the handler for a node type, or None for unknown types."""
        if node_type is None:
            return None
        return self._handlers.get(node_type)
