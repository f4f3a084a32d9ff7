from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class BasicInterpretation(BaseModel):
    overall: str
    career: str
    relationships: str
    health: str
    wealth: str


class DetailedAnalysis(BaseModel):
    changing_analysis: str  # 变卦分析
    mutual_analysis: str    # 互卦分析
    timing_analysis: str    # 应期分析
    advice: str             # 综合建议


class AIInterpretation(BaseModel):
    summary: str
    detailed_analysis: str
    advice: str
    model_id: str
    prompt_digest: Optional[str] = None
    created_at: datetime
    served_from_cache: bool = False


class PreciseInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    gender: Literal["male", "female"]
    birth_date: date
    question: str = Field(..., min_length=1, max_length=500)


class PreciseInterpretation(BaseModel):
    precise: str
    personalized_advice: str
