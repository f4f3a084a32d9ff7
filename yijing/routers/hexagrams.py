from fastapi import APIRouter, Depends, HTTPException, Path, Query

from yijing.routers.deps import get_state
from yijing.schemas.api import ApiResponse

router = APIRouter()


@router.get("", response_model=ApiResponse, summary="卦象列表")
async def list_hexagrams(state=Depends(get_state)):
    return ApiResponse(data=[h.summary() for h in state.reference_store.find_all()])


@router.get("/search", response_model=ApiResponse, summary="按卦名或拼音搜索")
async def search_hexagrams(q: str = Query(..., min_length=1), state=Depends(get_state)):
    return ApiResponse(data=[h.summary() for h in state.reference_store.search_by_name(q)])


@router.get("/{sequence}", response_model=ApiResponse, summary="卦象详情")
async def get_hexagram(sequence: int = Path(..., ge=1, le=64), state=Depends(get_state)):
    hexagram = state.reference_store.find_by_sequence(sequence)
    if hexagram is None:
        raise HTTPException(status_code=404, detail="卦象不存在")
    return ApiResponse(data=hexagram)
