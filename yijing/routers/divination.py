from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from yijing.core.errors import NoReferenceDataError
from yijing.routers.deps import get_state, get_user_id, require_owner_id, require_user_id
from yijing.schemas.api import (
    AIInterpretationData,
    AIInterpretationRequest,
    ApiResponse,
    CastData,
    CastRequest,
    DetailedData,
    HistoryData,
)
from yijing.schemas.interpretation import PreciseInfo
from yijing.services.interpretation import basic_interpretation

router = APIRouter()


@router.post("/cast", response_model=ApiResponse, summary="金钱课起卦")
async def cast(
    body: Optional[CastRequest] = Body(None),
    user_id: Optional[str] = Depends(get_user_id),
    state=Depends(get_state),
):
    device_id = body.device_id if body else None
    if not user_id:
        if not device_id:
            raise HTTPException(status_code=400, detail="游客起卦需要提供 device_id")
        await state.guest_rate_limiter.hit(device_id)

    record = await state.workflow.cast_and_record(user_id=user_id, guest_id=device_id)
    primary = state.reference_store.find_by_sequence(record.hexagram.primary.sequence)
    if primary is None:
        raise NoReferenceDataError()
    data = CastData(
        record_id=record.id,
        hexagram=record.hexagram,
        interpretation=basic_interpretation(primary),
    )
    return ApiResponse(data=data, message="起卦成功")


@router.get("/history", response_model=ApiResponse, summary="卜卦历史")
async def history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    owner_id: str = Depends(require_owner_id),
    state=Depends(get_state),
):
    records, total = await state.workflow.history(owner_id, page=page, limit=limit)
    data = HistoryData(records=records, total=total, page=page, limit=limit)
    return ApiResponse(data=data, message="获取历史记录成功")


@router.get("/record/{record_id}", response_model=ApiResponse, summary="卜卦记录详情")
async def get_record(record_id: str, owner_id: str = Depends(require_owner_id), state=Depends(get_state)):
    record = await state.workflow.get_record(record_id, owner_id)
    return ApiResponse(data=record, message="获取记录成功")


@router.get("/record/{record_id}/detailed", response_model=ApiResponse, summary="详细解卦")
async def get_detailed(record_id: str, owner_id: str = Depends(require_owner_id), state=Depends(get_state)):
    record, detailed = await state.workflow.detailed_analysis(record_id, owner_id)
    data = DetailedData(record_id=record.id, hexagram=record.hexagram, detailed=detailed)
    return ApiResponse(data=data, message="获取详细解卦成功")


@router.post("/record/{record_id}/ai-interpretation", response_model=ApiResponse, summary="AI 解卦")
async def ai_interpretation(
    record_id: str,
    body: Optional[AIInterpretationRequest] = Body(None),
    user_id: str = Depends(require_user_id),
    state=Depends(get_state),
):
    question = body.question if body else None
    interpretation = await state.ai_service.generate_ai_interpretation(record_id, user_id, question)
    data = AIInterpretationData(
        record_id=record_id,
        ai_interpretation=interpretation,
        cached=interpretation.served_from_cache,
    )
    return ApiResponse(data=data, message="AI 解卦成功")


@router.put("/record/{record_id}/precise-info", response_model=ApiResponse, summary="保存精准信息")
async def save_precise_info(
    record_id: str,
    info: PreciseInfo,
    user_id: str = Depends(require_user_id),
    state=Depends(get_state),
):
    record = await state.precise_service.save_precise_info(record_id, user_id, info)
    return ApiResponse(data={"record_id": record.id, "precise_info": record.precise_info}, message="精准信息保存成功")


@router.get("/record/{record_id}/precise", response_model=ApiResponse, summary="精准解卦")
async def get_precise(record_id: str, user_id: str = Depends(require_user_id), state=Depends(get_state)):
    result = await state.precise_service.generate_for_record(record_id, user_id)
    return ApiResponse(data={"record_id": record_id, **result.model_dump()}, message="获取精准解卦成功")
