"""
Investment API endpoints (account holder).

- GET   /investments                     — List the caller's investments
- POST  /investments                     — Purchase units from the balance
- GET   /investments/{id}                — Retrieve one investment
- GET   /investments/{id}/accruals       — Ledger of credits for one investment
- POST  /investments/{id}/complete       — Cash the investment out

Admins may call the read and complete routes on any investment.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from unitvest.api.deps import get_investment_service, get_requester
from unitvest.models.investment import InvestmentStatus
from unitvest.models.profile import Profile
from unitvest.schemas.common import ErrorResponse, ValidationErrorResponse
from unitvest.schemas.investment import (
    AccrualEventResponse,
    CompletionResult,
    InvestmentPurchase,
    InvestmentResponse,
)
from unitvest.services.investment_service import InvestmentService

router = APIRouter()


@router.get(
    "",
    response_model=List[InvestmentResponse],
    summary="List my investments",
    description="Newest first.  Filter with ``status``; page with ``skip`` / ``limit``.",
)
async def list_my_investments(
    status: Optional[InvestmentStatus] = Query(None, description="Only this status"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    requester: Profile = Depends(get_requester),
    service: InvestmentService = Depends(get_investment_service),
) -> List[InvestmentResponse]:
    return await service.list_investments(
        owner_id=requester.id, status=status, skip=skip, limit=limit
    )


@router.post(
    "",
    response_model=InvestmentResponse,
    status_code=201,
    summary="Purchase an investment",
    description=(
        "Debits ``principal`` from the caller's balance and creates a "
        "*pending* investment that starts accruing once approved."
    ),
    responses={
        422: {
            "model": ValidationErrorResponse,
            "description": "Validation error or insufficient balance",
        },
    },
)
async def purchase_investment(
    purchase: InvestmentPurchase,
    requester: Profile = Depends(get_requester),
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.purchase_investment(requester.id, purchase)


@router.get(
    "/{investment_id}",
    response_model=InvestmentResponse,
    summary="Get an investment",
    responses={
        403: {"model": ErrorResponse, "description": "Not the owner"},
        404: {"model": ErrorResponse, "description": "Investment not found"},
    },
)
async def get_investment(
    investment_id: UUID,
    requester: Profile = Depends(get_requester),
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.get_investment(investment_id, requester.id, requester.is_admin)


@router.get(
    "/{investment_id}/accruals",
    response_model=List[AccrualEventResponse],
    summary="List accruals credited for an investment",
    responses={
        403: {"model": ErrorResponse, "description": "Not the owner"},
        404: {"model": ErrorResponse, "description": "Investment not found"},
    },
)
async def list_accruals(
    investment_id: UUID,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    requester: Profile = Depends(get_requester),
    service: InvestmentService = Depends(get_investment_service),
) -> List[AccrualEventResponse]:
    return await service.list_accruals(
        investment_id, requester.id, requester.is_admin, skip=skip, limit=limit
    )


@router.post(
    "/{investment_id}/complete",
    response_model=CompletionResult,
    summary="Complete an investment",
    description=(
        "Ends an *active* or *suspended* investment: the principal plus one "
        "cycle's return is credited to the balance and the investment becomes "
        "*completed*."
    ),
    responses={
        403: {"model": ErrorResponse, "description": "Not the owner"},
        404: {"model": ErrorResponse, "description": "Investment not found"},
        409: {"model": ErrorResponse, "description": "Investment not active or suspended"},
    },
)
async def complete_investment(
    investment_id: UUID,
    requester: Profile = Depends(get_requester),
    service: InvestmentService = Depends(get_investment_service),
) -> CompletionResult:
    return await service.complete_investment(investment_id, requester.id, requester.is_admin)
