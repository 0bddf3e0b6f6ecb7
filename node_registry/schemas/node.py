from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ValidationError

# (attribute name, JSON field name) for every field required on write
REQUIRED_FIELDS = (
    ("node_id", "nodeID"),
    ("node_ip", "nodeIP"),
    ("node_kernel", "nodeKernel"),
    ("node_os", "nodeOS"),
    ("node_px_version", "nodePxVersion"),
)


class Node(BaseModel):
    """Wire representation of a node. Serialized with the camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    node_id: str = Field(..., alias="nodeID")
    node_ip: str = Field(..., alias="nodeIP")
    node_kernel: str = Field(..., alias="nodeKernel")
    node_os: str = Field(..., alias="nodeOS")
    node_px_version: str = Field(..., alias="nodePxVersion")


def validate_node(payload: Any) -> Node:
    """
    Check a decoded JSON payload and build a Node from it.
    Every required field must be present as a non-empty string.
    Raises ValidationError naming the first field that fails.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON")

    values = {}
    for attr, field in REQUIRED_FIELDS:
        value = payload.get(field)
        if not isinstance(value, str) or value == "":
            raise ValidationError(f"Missing or invalid fields: {field} is required", field=field)
        values[attr] = value
    return Node(**values)


def check_node(node: Node) -> Node:
    """Same check as validate_node for an already-built Node."""
    return validate_node(node.model_dump(by_alias=True))
