"""
Administrative endpoints.  Every route requires an admin requester.

- GET   /admin/investments                    — List any investments
- POST  /admin/investments                    — Create an active investment
- POST  /admin/investments/bulk-activate      — Approve all pending investments
- POST  /admin/investments/{id}/approve       — pending → active
- POST  /admin/investments/{id}/reject        — pending → rejected (refund)
- POST  /admin/investments/{id}/suspend       — active → suspended
- POST  /admin/investments/{id}/resume        — suspended → active
- POST  /admin/investments/{id}/renew         — completed → active
- PUT   /admin/investments/{id}/status        — Force any status
- POST  /admin/maturity-sweep                 — Run the maturity sweep now
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from unitvest.api.deps import get_admin, get_investment_service, get_notification_service
from unitvest.db.session import AsyncSessionLocal
from unitvest.models.investment import InvestmentStatus
from unitvest.schemas.common import ErrorResponse, ValidationErrorResponse
from unitvest.schemas.investment import (
    AdminInvestmentCreate,
    BulkActivateResult,
    InvestmentResponse,
    StatusOverride,
    StatusOverrideResult,
)
from unitvest.schemas.sweep import SweepResult
from unitvest.services.investment_service import InvestmentService
from unitvest.services.notification_service import NotificationService
from unitvest.services.sweeper import MaturitySweeper

router = APIRouter(dependencies=[Depends(get_admin)])

_LIFECYCLE_ERRORS = {
    404: {"model": ErrorResponse, "description": "Investment not found"},
    409: {"model": ErrorResponse, "description": "Transition not allowed from current status"},
}


def _get_sweeper(
    notifier: NotificationService = Depends(get_notification_service),
) -> MaturitySweeper:
    return MaturitySweeper(AsyncSessionLocal, notifier)


@router.get(
    "/investments",
    response_model=List[InvestmentResponse],
    summary="List investments (any owner)",
)
async def list_investments(
    owner_id: Optional[UUID] = Query(None),
    status: Optional[InvestmentStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    service: InvestmentService = Depends(get_investment_service),
) -> List[InvestmentResponse]:
    return await service.list_investments(owner_id=owner_id, status=status, skip=skip, limit=limit)


@router.post(
    "/investments",
    response_model=InvestmentResponse,
    status_code=201,
    summary="Create an active investment",
    responses={
        404: {"model": ErrorResponse, "description": "Owner profile not found"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def create_investment(
    data: AdminInvestmentCreate,
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.create_active_investment(data)


@router.post(
    "/investments/bulk-activate",
    response_model=BulkActivateResult,
    summary="Approve every pending investment",
)
async def bulk_activate(
    service: InvestmentService = Depends(get_investment_service),
) -> BulkActivateResult:
    return BulkActivateResult(activated=await service.bulk_activate_pending())


@router.post(
    "/investments/{investment_id}/approve",
    response_model=InvestmentResponse,
    summary="Approve a pending investment",
    responses=_LIFECYCLE_ERRORS,
)
async def approve_investment(
    investment_id: UUID,
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.approve_investment(investment_id)


@router.post(
    "/investments/{investment_id}/reject",
    response_model=InvestmentResponse,
    summary="Reject a pending investment",
    responses=_LIFECYCLE_ERRORS,
)
async def reject_investment(
    investment_id: UUID,
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.reject_investment(investment_id)


@router.post(
    "/investments/{investment_id}/suspend",
    response_model=InvestmentResponse,
    summary="Pause an active investment",
    responses=_LIFECYCLE_ERRORS,
)
async def suspend_investment(
    investment_id: UUID,
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.suspend_investment(investment_id)


@router.post(
    "/investments/{investment_id}/resume",
    response_model=InvestmentResponse,
    summary="Resume a suspended investment",
    responses=_LIFECYCLE_ERRORS,
)
async def resume_investment(
    investment_id: UUID,
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.resume_investment(investment_id)


@router.post(
    "/investments/{investment_id}/renew",
    response_model=InvestmentResponse,
    summary="Re-activate a completed investment for a new cycle",
    responses=_LIFECYCLE_ERRORS,
)
async def renew_investment(
    investment_id: UUID,
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.renew_investment(investment_id)


@router.put(
    "/investments/{investment_id}/status",
    response_model=StatusOverrideResult,
    summary="Force an investment status",
    description=(
        "Bypasses the lifecycle rules.  When forcing *completed*, an optional "
        "``override_amount`` is credited to the owner's balance as given."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Investment not found"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def force_status(
    investment_id: UUID,
    body: StatusOverride,
    service: InvestmentService = Depends(get_investment_service),
) -> StatusOverrideResult:
    investment = await service.force_status(investment_id, body.status, body.override_amount)
    return StatusOverrideResult(investment=InvestmentResponse.model_validate(investment))


@router.post(
    "/maturity-sweep",
    response_model=SweepResult,
    summary="Run the maturity sweep",
    description=(
        "Credits and renews every active investment whose cycle has ended. "
        "Per-investment failures are reported in ``errors`` without aborting the run."
    ),
)
async def run_maturity_sweep(
    sweeper: MaturitySweeper = Depends(_get_sweeper),
) -> SweepResult:
    return await sweeper.run_maturity_sweep()
