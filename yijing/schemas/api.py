import time
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from yijing.schemas.hexagram import DivinationResult
from yijing.schemas.interpretation import AIInterpretation, BasicInterpretation, DetailedAnalysis


class CastRequest(BaseModel):
    device_id: Optional[str] = Field(None, description="游客设备ID，未登录时必填")


class AIInterpretationRequest(BaseModel):
    question: Optional[str] = Field(None, max_length=500, description="占问事项，可选")


class ApiResponse(BaseModel):
    success: bool = True
    data: Optional[Any] = None
    message: str = ""
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))


class CastData(BaseModel):
    record_id: str
    hexagram: DivinationResult
    interpretation: BasicInterpretation


class DetailedData(BaseModel):
    record_id: str
    hexagram: DivinationResult
    detailed: DetailedAnalysis


class AIInterpretationData(BaseModel):
    record_id: str
    ai_interpretation: AIInterpretation
    cached: bool


class HistoryData(BaseModel):
    records: List[Any]
    total: int
    page: int
    limit: int
