from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from core.mandala_engine import engine as mandala_engine
from core.mandala_engine.engine import MandalaEngine
from core.pl_ledger import validate_actuals

router = APIRouter()


class ActualUpdateRequest(BaseModel):
    revenue_actual: Optional[float] = None
    gross_profit_actual: Optional[float] = None
    operating_profit_actual: Optional[float] = None
    net_worth_actual: Optional[float] = None


def get_engine() -> MandalaEngine:
    return mandala_engine.get_engine()


@router.get("/plan")
async def get_plan():
    plan = get_engine().current_plan()
    if plan is None:
        return {"yearly": [], "final_net_worth_target": 0}
    return plan.to_dict()


@router.get("/actual")
async def get_actuals():
    engine = get_engine()
    return {"yearly": [a.to_dict() for a in engine.ledger.load_actual_yearly_metrics()]}


@router.put("/actual/{year}")
async def update_actuals(year: int, req: ActualUpdateRequest):
    engine = get_engine()
    if not 1 <= year <= engine.config.PLAN_YEARS:
        raise HTTPException(status_code=404, detail=f"Year {year} is outside the plan")

    values = req.model_dump(exclude_none=True)
    _, rejected = validate_actuals(values)
    if rejected:
        raise HTTPException(status_code=422, detail={"rejected": rejected})

    updated = engine.on_yearly_actual_metrics_changed(year, values)
    actual = engine.ledger.actual_for_year(year)
    return {
        "year": year,
        "updated": updated,
        "actual": actual.to_dict() if actual else None,
    }
