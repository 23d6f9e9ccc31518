from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from cabin_booking.deps import (
    CurrentUser,
    get_legend_service,
    get_optional_user,
    require_admin,
    require_owner_or_admin,
)
from cabin_booking.legends import LegendService
from cabin_booking.schemas import LegendCreate, LegendResponse

router = APIRouter(prefix="/legends", tags=["legends"])


@router.get("", response_model=list[LegendResponse])
async def list_legends(
    company_slug: str | None = Query(default=None),
    active_only: bool = Query(default=True),
    current_user: CurrentUser | None = Depends(get_optional_user),
    legends: LegendService = Depends(get_legend_service),
):
    """Default legends plus those of ``company_slug`` (or the caller's company)."""
    if company_slug is None and current_user is not None:
        company_slug = current_user.company_slug
    found = await legends.list_for_company(company_slug, active_only=active_only)
    return [LegendResponse.model_validate(legend) for legend in found]


@router.post("", response_model=LegendResponse, status_code=status.HTTP_201_CREATED)
async def create_legend(
    payload: LegendCreate,
    current_user: CurrentUser = Depends(require_owner_or_admin),
    legends: LegendService = Depends(get_legend_service),
):
    return LegendResponse.model_validate(await legends.create(payload, current_user))


@router.post("/defaults", response_model=list[LegendResponse])
async def ensure_default_legends(
    _: CurrentUser = Depends(require_admin),
    legends: LegendService = Depends(get_legend_service),
):
    return [LegendResponse.model_validate(legend) for legend in await legends.ensure_defaults()]


@router.get("/{legend_id}", response_model=LegendResponse)
async def get_legend(
    legend_id: UUID,
    legends: LegendService = Depends(get_legend_service),
):
    return LegendResponse.model_validate(await legends.get(legend_id))
