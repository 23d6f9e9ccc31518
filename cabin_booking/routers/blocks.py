from uuid import UUID

from fastapi import APIRouter, Depends, status

from cabin_booking.blocks import BlockManager
from cabin_booking.cache import invalidate_calendar_cache
from cabin_booking.deps import CurrentUser, get_block_manager, get_cabin, get_current_user
from cabin_booking.schemas import (
    BlockCreate,
    BlockResponse,
    BlockTargets,
    BlockUpdate,
    UnblockResult,
)

router = APIRouter(prefix="/cabins/{slug}/blocks", tags=["blocks"])


@router.get("", response_model=list[BlockResponse])
async def list_blocks(
    cabin: dict = Depends(get_cabin),
    current_user: CurrentUser = Depends(get_current_user),
    blocks: BlockManager = Depends(get_block_manager),
):
    return [BlockResponse.model_validate(b) for b in await blocks.list_blocks(cabin, current_user)]


@router.post("", response_model=list[BlockResponse], status_code=status.HTTP_201_CREATED)
async def block_dates(
    payload: BlockCreate,
    cabin: dict = Depends(get_cabin),
    current_user: CurrentUser = Depends(get_current_user),
    blocks: BlockManager = Depends(get_block_manager),
):
    created = await blocks.block_dates(cabin, payload, current_user)
    await invalidate_calendar_cache(cabin["id"])
    return [BlockResponse.model_validate(b) for b in created]


@router.post("/unblock", response_model=UnblockResult)
async def unblock_dates(
    payload: BlockTargets,
    cabin: dict = Depends(get_cabin),
    current_user: CurrentUser = Depends(get_current_user),
    blocks: BlockManager = Depends(get_block_manager),
):
    removed = await blocks.unblock_dates(cabin, payload, current_user)
    if removed:
        await invalidate_calendar_cache(cabin["id"])
    return UnblockResult(
        message=f"Removed {len(removed)} block(s)",
        removed_blocks=[BlockResponse.model_validate(b) for b in removed],
    )


@router.patch("/{block_id}", response_model=BlockResponse)
async def update_block(
    block_id: UUID,
    payload: BlockUpdate,
    cabin: dict = Depends(get_cabin),
    current_user: CurrentUser = Depends(get_current_user),
    blocks: BlockManager = Depends(get_block_manager),
):
    block = await blocks.update_block(
        cabin, block_id, payload.model_dump(exclude_unset=True), current_user
    )
    await invalidate_calendar_cache(cabin["id"])
    return BlockResponse.model_validate(block)


@router.delete("/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_block(
    block_id: UUID,
    cabin: dict = Depends(get_cabin),
    current_user: CurrentUser = Depends(get_current_user),
    blocks: BlockManager = Depends(get_block_manager),
):
    await blocks.remove_block(cabin, block_id, current_user)
    await invalidate_calendar_cache(cabin["id"])
