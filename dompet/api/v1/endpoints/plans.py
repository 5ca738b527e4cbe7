"""Plan catalog endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from dompet.api import deps
from dompet.schemas.billing import PlanResponse
from dompet.services.plan_catalog import PlanCatalog

router = APIRouter()


@router.get("/", response_model=list[PlanResponse])
def list_plans(db: Session = Depends(deps.get_db)):
    """List all active plans, lowest tier first."""
    return PlanCatalog(db).active_plans()


@router.get("/{slug}", response_model=PlanResponse)
def get_plan(slug: str, db: Session = Depends(deps.get_db)):
    plan = PlanCatalog(db).get_plan(slug)
    if not plan or not plan.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")
    return plan
