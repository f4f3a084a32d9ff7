from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from yijing.schemas.hexagram import DivinationResult
from yijing.schemas.interpretation import AIInterpretation, DetailedAnalysis, PreciseInfo


class LineReading(BaseModel):
    position: int
    original: str
    translation: str


class BasicReading(BaseModel):
    """基础解卦（随记录保存的卦辞、爻辞原文）"""

    hexagram_name: str
    guaci: str
    guaci_translation: str
    yaoci: List[LineReading] = Field(default_factory=list)


class RecordInterpretation(BaseModel):
    basic: BasicReading
    detailed: Optional[DetailedAnalysis] = None


class DivinationRecord(BaseModel):
    id: str
    user_id: Optional[str] = None
    guest_id: Optional[str] = None
    hexagram: DivinationResult
    interpretation: RecordInterpretation
    ai_interpretation: Optional[AIInterpretation] = None
    precise_info: Optional[PreciseInfo] = None
    created_at: datetime
