"""HTTP request node handler.

Calls the node's URL with its method, sending the run payload as the JSON
request body. Any 2xx response is a success; everything else (transport
error, timeout, non-2xx status) fails the node.
"""

from typing import Optional

import httpx
import structlog

from core.constants import NodeType
from tasks.base_task import BaseNodeHandler, NodeContext, NodeOutcome
from workflow.nodes import HttpRequestNode

logger = structlog.get_logger(__name__)


class HttpRequestHandler(BaseNodeHandler):
    """Execute ``http_request`` nodes on a shared ``httpx.AsyncClient``.

    The client is created once per process (see ``app.resources``) and
    its timeout bounds every call.
    """

    node_type = NodeType.HTTP_REQUEST.value

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def execute(self, node: HttpRequestNode, context: NodeContext) -> NodeOutcome:
        try:
            response = await self.client.request(
                node.method,
                node.url,
                json=context.payload,
            )
        except httpx.TimeoutException as e:
            return NodeOutcome.failure(f"Request timed out: {e}" if str(e) else "Request timed out")
        except httpx.HTTPError as e:
            return NodeOutcome.failure(str(e) or e.__class__.__name__)
        except httpx.InvalidURL as e:
            return NodeOutcome.failure(f"Invalid URL: {e}")

        if not 200 <= response.status_code < 300:
            return NodeOutcome.failure(f"Request failed with status code {response.status_code}")

        return NodeOutcome.ok(data=self._parse_body(response))

    @staticmethod
    def _parse_body(response: httpx.Response) -> Optional[object]:
        """Decode a JSON body, falling back to text. An empty body is ``None``."""
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

