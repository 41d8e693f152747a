from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from core.exceptions import LockedNodeError, MalformedNodeIdError, NodeNotFoundError
from core.mandala_engine import engine as mandala_engine
from core.mandala_engine.engine import MandalaEngine

router = APIRouter()


class TitleUpdateRequest(BaseModel):
    title: str = ""
    metric_binding: Optional[str] = None


class LeafCheckRequest(BaseModel):
    checked: bool = True


class MetricPercentRequest(BaseModel):
    percent: float = Field(ge=0)


def get_engine() -> MandalaEngine:
    return mandala_engine.get_engine()


def _node_error(e: Exception) -> HTTPException:
    if isinstance(e, LockedNodeError):
        return HTTPException(status_code=409, detail=e.get_user_message())
    if isinstance(e, MalformedNodeIdError):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, NodeNotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    return HTTPException(status_code=400, detail=str(e))


def _events(events) -> List[Dict[str, Any]]:
    return [event.to_dict() for event in events]


@router.get("")
async def get_mandala():
    return get_engine().snapshot()


@router.get("/nodes/{node_id}")
async def get_node(node_id: str):
    try:
        return get_engine().get_node(node_id).to_dict()
    except (NodeNotFoundError, MalformedNodeIdError) as e:
        raise _node_error(e)


@router.put("/nodes/{node_id}/title")
async def update_title(node_id: str, req: TitleUpdateRequest):
    engine = get_engine()
    try:
        events = engine.set_node_title(node_id, req.title, req.metric_binding)
        node = engine.get_node(node_id)
    except (NodeNotFoundError, MalformedNodeIdError) as e:
        raise _node_error(e)
    return {"node": node.to_dict(), "celebrations": _events(events)}


@router.put("/nodes/{node_id}/metric")
async def update_metric_percent(node_id: str, req: MetricPercentRequest):
    engine = get_engine()
    try:
        events = engine.set_metric_percent(node_id, req.percent)
        node = engine.get_node(node_id)
    except (NodeNotFoundError, MalformedNodeIdError, ValueError) as e:
        raise _node_error(e)
    if events is None:
        raise HTTPException(status_code=422, detail=f"Rejected metric percent {req.percent!r}")
    return {"node": node.to_dict(), "celebrations": _events(events)}


@router.post("/leaves/{leaf_id}/check")
async def check_leaf(leaf_id: str, req: LeafCheckRequest):
    engine = get_engine()
    try:
        events = engine.set_leaf_check(leaf_id, req.checked)
        leaf = engine.get_node(leaf_id)
    except (NodeNotFoundError, MalformedNodeIdError, LockedNodeError) as e:
        raise _node_error(e)
    return {"node": leaf.to_dict(), "celebrations": _events(events)}


@router.post("/leaves/{leaf_id}/confirm")
async def confirm_leaf(leaf_id: str):
    try:
        saved = get_engine().confirm_leaf(leaf_id)
    except (NodeNotFoundError, MalformedNodeIdError) as e:
        raise _node_error(e)
    return {"id": leaf_id, "saved": saved}


@router.get("/celebrations")
async def drain_celebrations():
    """Pending celebration events; each one is handed out once."""
    return {"celebrations": _events(get_engine().drain_celebrations())}
