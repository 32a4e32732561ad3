"""Node definitions: the closed set of step types a flow can contain.

A flow's ``nodes`` column is a JSON list such as::

    [
        {"id": "n1", "type": "http_request", "method": "POST", "url": "https://example.com/hook"},
        {"id": "n2", "type": "delay", "ms": 250},
        {"id": "n3", "type": "log", "message": "posted"}
    ]

The list is decoded once, when the flow is loaded, into one of the typed
variants below. Anything malformed raises ``core.exceptions.ValidationError``
at that point instead of surfacing halfway through a run.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from core.constants import DEFAULT_DELAY_MS, DEFAULT_HTTP_METHOD, NodeType
from core.exceptions import ValidationError


class HttpRequestNode(BaseModel):
    """Call ``url`` with ``method``, sending the run payload as the JSON body."""

    id: str = Field(min_length=1)
    type: Literal["http_request"] = NodeType.HTTP_REQUEST.value
    method: str = DEFAULT_HTTP_METHOD
    url: str = Field(min_length=1)

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> Any:
        if not value:
            return DEFAULT_HTTP_METHOD
        return value.upper() if isinstance(value, str) else value


class DelayNode(BaseModel):
    """Sleep for ``ms`` milliseconds."""

    id: str = Field(min_length=1)
    type: Literal["delay"] = NodeType.DELAY.value
    ms: int = Field(default=DEFAULT_DELAY_MS, ge=0)

    @field_validator("ms", mode="before")
    @classmethod
    def _default_duration(cls, value: Any) -> Any:
        return DEFAULT_DELAY_MS if value is None else value


class LogNode(BaseModel):
    """Write ``message`` (or the serialized payload) to the operational log."""

    id: str = Field(min_length=1)
    type: Literal["log"] = NodeType.LOG.value
    message: Optional[str] = None


class UnknownNode(BaseModel):
    """A stored node whose type is not one of the built-ins."""

    id: Optional[str] = None
    type: Optional[str] = None


KnownNode = Annotated[
    Union[HttpRequestNode, DelayNode, LogNode],
    Field(discriminator="type"),
]
NodeDefinition = Union[HttpRequestNode, DelayNode, LogNode, UnknownNode]

_known_node_adapter = TypeAdapter(KnownNode)
_KNOWN_TYPES = {t.value for t in NodeType}


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in _KNOWN_TYPES)
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def decode_nodes(raw: Any, strict: bool = False) -> list[NodeDefinition]:
    """Decode a stored node list into typed node definitions.

    Args:
        raw: The JSON list as stored on the flow (``None`` means empty)
        strict: Reject unknown node types instead of decoding them to
            ``UnknownNode``. Used when a flow is created or edited.

    Raises:
        ValidationError: If the list or any node in it is malformed
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("Flow nodes must be a list")

    nodes: list[NodeDefinition] = []
    seen_ids: set[str] = set()
    for position, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationError(f"Node at position {position} must be an object")

        node_type = item.get("type")
        if node_type is not None and not isinstance(node_type, str):
            raise ValidationError(
                f"Node at position {position} has a non-string type {node_type!r}"
            )
        if node_type not in _KNOWN_TYPES:
            if strict:
                raise ValidationError(
                    f"Node at position {position} has unknown type {node_type!r}"
                )
            node = UnknownNode(
                id=str(item["id"]) if item.get("id") is not None else None,
                type=str(node_type) if node_type is not None else None,
            )
            nodes.append(node)
            continue

        try:
            node = _known_node_adapter.validate_python(item)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid {node_type} node at position {position}: {_describe(e)}"
            ) from e

        if node.id in seen_ids:
            raise ValidationError(f"Duplicate node id {node.id!r}")
        seen_ids.add(node.id)
        nodes.append(node)

    return nodes


def encode_nodes(nodes: list[NodeDefinition]) -> list[dict]:
    """Serialize decoded nodes back to the stored JSON shape."""
    return [node.model_dump() for node in nodes]


@dataclass
class FlowDefinition:
    """A flow as the run engine sees it: identity, version and decoded nodes."""

    id: str
    name: str
    version: int
    nodes: list[NodeDefinition] = field(default_factory=list)
