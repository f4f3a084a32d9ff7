import asyncio
import random
from typing import List, Optional

import pytest

from yijing.core.config import DATA_DIR
from yijing.schemas.hexagram import FiveElement, HexagramRef, LineText, Quality, TextBlock
from yijing.shared.trigrams import TRIGRAMS, TrigramInfo, trigram_to_lines
from yijing.stores.reference import HexagramReferenceStore

ELEMENTS = list(FiveElement)


def make_hexagram(sequence: int, upper: TrigramInfo, lower: TrigramInfo, **overrides) -> HexagramRef:
    polarities = trigram_to_lines(lower.binary) + trigram_to_lines(upper.binary)
    fields = dict(
        sequence=sequence,
        symbol=chr(0x4DC0 + sequence - 1),
        name=f"上{upper.nature}下{lower.nature}",
        pinyin=f"{upper.pinyin} {lower.pinyin}",
        guaci=TextBlock(original=f"卦{sequence}卦辞", translation=f"卦{sequence}卦辞白话"),
        tuanci=TextBlock(original=f"卦{sequence}彖辞", translation=f"卦{sequence}彖辞白话"),
        xiangci=TextBlock(original=f"卦{sequence}象辞", translation=f"卦{sequence}象辞白话"),
        yaoci=[
            LineText(
                position=i,
                name=f"第{i}爻",
                yin_yang=p,
                original=f"卦{sequence}爻{i}原文",
                translation=f"卦{sequence}爻{i}白话",
            )
            for i, p in enumerate(polarities, start=1)
        ],
        element=ELEMENTS[sequence % len(ELEMENTS)],
        nature=f"德{sequence}",
        body="心",
        upper=upper.trigram,
        lower=lower.trigram,
        quality=Quality.NEUTRAL,
    )
    fields.update(overrides)
    return HexagramRef(**fields)


def build_full_catalogue() -> List[HexagramRef]:
    hexagrams = []
    sequence = 1
    for upper in TRIGRAMS.values():
        for lower in TRIGRAMS.values():
            hexagrams.append(make_hexagram(sequence, upper, lower))
            sequence += 1
    return hexagrams


class ScriptedRandom(random.Random):
    """random() 按给定序列返回，用于控制掷钱结果"""

    def __init__(self, values):
        super().__init__(0)
        self._values = iter(values)

    def random(self):
        return next(self._values)


class FakeClock:
    def __init__(self, now: float = 3600 * 1000 + 100):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLLMClient:
    def __init__(self, response: str = "", error: Optional[Exception] = None, delay: float = 0.0):
        self.response = response
        self.error = error
        self.delay = delay
        self.calls = 0
        self.prompts: List[str] = []

    async def complete(self, prompt: str, request_id: Optional[str] = None) -> str:
        self.calls += 1
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def full_store() -> HexagramReferenceStore:
    return HexagramReferenceStore(build_full_catalogue())


@pytest.fixture
def bundled_store() -> HexagramReferenceStore:
    return HexagramReferenceStore.from_csv(DATA_DIR / "hexagrams.csv", DATA_DIR / "hexagram_lines.csv")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
