from fastapi import APIRouter, Depends, Query

from cabin_booking.cache import invalidate_calendar_cache
from cabin_booking.deps import CurrentUser, get_cabin, get_current_user, get_notes_service
from cabin_booking.notes import NotesService
from cabin_booking.schemas import (
    LegendApply,
    LegendApplyResult,
    NotesUpsert,
    NotesUpsertResult,
    NoteView,
)

router = APIRouter(prefix="/cabins/{slug}", tags=["notes"])


@router.get("/notes", response_model=list[NoteView])
async def list_notes(
    year: int | None = Query(default=None, ge=1970, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    cabin: dict = Depends(get_cabin),
    notes: NotesService = Depends(get_notes_service),
):
    """All notes of the cabin, or one month when both ``year`` and ``month`` are given."""
    if year is not None and month is not None:
        by_day = await notes.get_notes_for_month(cabin["id"], year, month)
        return [NoteView(date=day, **value) for day, value in sorted(by_day.items())]
    return [NoteView(**n) for n in await notes.get_all_notes_for_cabin(cabin["id"])]


@router.put("/notes", response_model=NotesUpsertResult)
async def upsert_notes(
    payload: NotesUpsert,
    cabin: dict = Depends(get_cabin),
    current_user: CurrentUser = Depends(get_current_user),
    notes: NotesService = Depends(get_notes_service),
):
    result = await notes.upsert_notes(cabin, payload.notes, current_user)
    await invalidate_calendar_cache(cabin["id"])
    return result


@router.post("/legend-assignments", response_model=LegendApplyResult)
async def apply_legend(
    payload: LegendApply,
    cabin: dict = Depends(get_cabin),
    current_user: CurrentUser = Depends(get_current_user),
    notes: NotesService = Depends(get_notes_service),
):
    result = await notes.apply_legend_to_dates(cabin, payload, current_user)
    await invalidate_calendar_cache(cabin["id"])
    return result
