"""
Account endpoints.

- GET /profiles/me  — Balance, lifetime return and default rate of the caller
"""

from fastapi import APIRouter, Depends

from unitvest.api.deps import get_requester
from unitvest.models.profile import Profile
from unitvest.schemas.profile import ProfileResponse

router = APIRouter()


@router.get("/me", response_model=ProfileResponse, summary="Get my account")
async def get_my_profile(requester: Profile = Depends(get_requester)) -> ProfileResponse:
    return requester
