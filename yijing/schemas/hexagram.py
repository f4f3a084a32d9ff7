from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class YinYang(str, Enum):
    YIN = "yin"
    YANG = "yang"

    def flipped(self) -> "YinYang":
        return YinYang.YIN if self is YinYang.YANG else YinYang.YANG


class FiveElement(str, Enum):
    METAL = "金"
    WOOD = "木"
    WATER = "水"
    FIRE = "火"
    EARTH = "土"


class Quality(str, Enum):
    LUCKY = "lucky"
    UNLUCKY = "unlucky"
    NEUTRAL = "neutral"


class Trigram(str, Enum):
    QIAN = "乾"
    DUI = "兑"
    LI = "离"
    ZHEN = "震"
    KUN = "坤"
    GEN = "艮"
    KAN = "坎"
    XUN = "巽"


class TextBlock(BaseModel):
    """卦辞 / 彖辞 / 象辞 / 用辞"""

    original: str
    translation: str = ""
    annotation: Optional[str] = None


class LineText(BaseModel):
    """爻辞"""

    position: int = Field(..., ge=1, le=6)
    name: str
    yin_yang: YinYang
    original: str
    translation: str = ""
    xiang: str = ""
    annotation: Optional[str] = None


class HexagramSummary(BaseModel):
    name: str
    symbol: str
    pinyin: str
    sequence: int = Field(..., ge=1, le=64)


class HexagramRef(BaseModel):
    """One entry of the read-only hexagram reference catalogue."""

    sequence: int = Field(..., ge=1, le=64)
    symbol: str
    name: str
    pinyin: str
    guaci: TextBlock
    tuanci: TextBlock
    xiangci: TextBlock
    yaoci: List[LineText]
    yonggua: Optional[TextBlock] = None
    element: FiveElement
    nature: str = ""
    body: str = ""
    upper: Trigram
    lower: Trigram
    quality: Quality = Quality.NEUTRAL
    tags: List[str] = Field(default_factory=list)

    @field_validator("yaoci")
    @classmethod
    def validate_six_lines(cls, v: List[LineText]) -> List[LineText]:
        ordered = sorted(v, key=lambda line: line.position)
        if [line.position for line in ordered] != [1, 2, 3, 4, 5, 6]:
            raise ValueError("yaoci 必须恰好包含 1-6 六个爻位")
        return ordered

    def line(self, position: int) -> Optional[LineText]:
        for line_text in self.yaoci:
            if line_text.position == position:
                return line_text
        return None

    def summary(self) -> HexagramSummary:
        return HexagramSummary(name=self.name, symbol=self.symbol, pinyin=self.pinyin, sequence=self.sequence)


class Line(BaseModel):
    """A cast line; position counts from the bottom (1) to the top (6)."""

    position: int = Field(..., ge=1, le=6)
    yin_yang: YinYang
    changing: bool = False


class DivinationResult(BaseModel):
    primary: HexagramSummary
    changed: HexagramSummary
    mutual: HexagramSummary
    lines: List[Line]
    changing_lines: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_lines(self) -> "DivinationResult":
        if [line.position for line in self.lines] != [1, 2, 3, 4, 5, 6]:
            raise ValueError("lines 必须按 1-6 爻位排列")
        expected = [line.position for line in self.lines if line.changing]
        if self.changing_lines != expected:
            raise ValueError("changing_lines 与变爻不一致")
        return self
