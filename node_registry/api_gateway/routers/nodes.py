from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from ...errors import ValidationError
from ...registry.service import NodeRegistry
from ...schemas.node import Node, validate_node

router = APIRouter(tags=["Nodes"])


def get_registry(request: Request) -> NodeRegistry:
    return request.app.state.registry


@router.post("/node", status_code=201, response_class=PlainTextResponse)
async def save_node(request: Request, registry: NodeRegistry = Depends(get_registry)):
    """
    Create or fully replace a node. All five fields are required.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON")

    await registry.upsert(validate_node(payload))
    return "Node saved"


@router.get("/node", response_model=Node)
async def get_node(
    node_id: Optional[str] = Query(default=None, alias="id"),
    registry: NodeRegistry = Depends(get_registry),
):
    return await registry.get(node_id or "")


@router.delete("/node", response_class=PlainTextResponse)
async def delete_node(
    node_id: Optional[str] = Query(default=None, alias="id"),
    registry: NodeRegistry = Depends(get_registry),
):
    await registry.delete(node_id or "")
    return "Node deleted successfully"


@router.get("/nodes", response_model=List[Node])
async def list_nodes(registry: NodeRegistry = Depends(get_registry)):
    """Return every registered node. Order is not guaranteed."""
    return await registry.list()
