"""金钱课起卦

Three coins are tossed six times, from the bottom line up. The line pattern
is split into an upper and a lower trigram and looked up in the reference
catalogue to get the primary, changed and mutual hexagrams.

When a trigram pair is missing from the catalogue the primary and mutual
hexagrams fall back to a uniformly random entry (a WARNING is logged). With
an incomplete catalogue this yields a reading that does not match the cast
lines; integrators shipping a partial dataset should be aware of it.
"""

import logging
import random
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from yijing.core.errors import NoReferenceDataError, RecordNotFoundError
from yijing.schemas.hexagram import DivinationResult, HexagramRef, Line, YinYang
from yijing.schemas.interpretation import DetailedAnalysis
from yijing.schemas.record import BasicReading, DivinationRecord, LineReading, RecordInterpretation
from yijing.services.analysis import DetailedAnalysisGenerator
from yijing.shared.trigrams import flip_changing, lines_to_trigrams, mutual_trigrams, trigram_for
from yijing.stores.records import DivinationRecordStore, make_record
from yijing.stores.reference import HexagramReferenceStore

logger = logging.getLogger(__name__)

COINS_PER_TOSS = 3

# 字（正面）个数 -> (阴阳, 是否变爻)
# 1字2背 少阳，2字1背 少阴，3字 老阳（变阴），3背 老阴（变阳）
_HEADS_TO_LINE = {
    1: (YinYang.YANG, False),
    2: (YinYang.YIN, False),
    3: (YinYang.YANG, True),
    0: (YinYang.YIN, True),
}


def line_from_heads(position: int, heads: int) -> Line:
    try:
        yin_yang, changing = _HEADS_TO_LINE[heads]
    except KeyError:
        raise ValueError(f"Invalid coin toss result: {heads} heads") from None
    return Line(position=position, yin_yang=yin_yang, changing=changing)


class HexagramGenerator:
    def __init__(self, reference_store: HexagramReferenceStore, rng: Optional[random.Random] = None):
        self.reference_store = reference_store
        self.rng = rng or random.Random()

    def toss_coins(self) -> int:
        """掷三枚铜钱，返回正面（字）个数"""
        return sum(1 for _ in range(COINS_PER_TOSS) if self.rng.random() < 0.5)

    def cast(self) -> DivinationResult:
        if self.reference_store.count() == 0:
            raise NoReferenceDataError()
        lines = [line_from_heads(position, self.toss_coins()) for position in range(1, 7)]
        return self.build_result(lines)

    def build_result(self, lines: Sequence[Line]) -> DivinationResult:
        """由六爻（从下到上）推导本卦、变卦、互卦"""
        lines = list(lines)
        if [line.position for line in lines] != [1, 2, 3, 4, 5, 6]:
            raise ValueError("lines must be positions 1..6 in order")
        if self.reference_store.count() == 0:
            raise NoReferenceDataError()

        primary = self._find_or_random(*lines_to_trigrams(lines))

        changing_lines = [line.position for line in lines if line.changing]
        changed = primary
        if changing_lines:
            found = self._find(*lines_to_trigrams(flip_changing(lines)))
            if found is None:
                logger.warning(f"变卦未找到，使用本卦: {primary.name}")
            else:
                changed = found

        mutual = self._find_or_random(*mutual_trigrams(lines))

        return DivinationResult(
            primary=primary.summary(),
            changed=changed.summary(),
            mutual=mutual.summary(),
            lines=lines,
            changing_lines=changing_lines,
        )

    def _find(self, upper_binary: str, lower_binary: str) -> Optional[HexagramRef]:
        upper, lower = trigram_for(upper_binary), trigram_for(lower_binary)
        return self.reference_store.find_by_trigrams(upper.trigram, lower.trigram)

    def _find_or_random(self, upper_binary: str, lower_binary: str) -> HexagramRef:
        hexagram = self._find(upper_binary, lower_binary)
        if hexagram is not None:
            return hexagram

        upper, lower = trigram_for(upper_binary), trigram_for(lower_binary)
        logger.warning(f"No hexagram found for upper={upper.name}, lower={lower.name}")
        hexagram = self.reference_store.random_choice(self.rng)
        if hexagram is None:
            raise NoReferenceDataError()
        logger.warning(f"Using random hexagram: {hexagram.name} (sequence: {hexagram.sequence})")
        return hexagram


def build_basic_reading(hexagram: HexagramRef) -> BasicReading:
    return BasicReading(
        hexagram_name=hexagram.name,
        guaci=hexagram.guaci.original,
        guaci_translation=hexagram.guaci.translation,
        yaoci=[
            LineReading(position=line.position, original=line.original, translation=line.translation)
            for line in hexagram.yaoci
        ],
    )


class DivinationWorkflow:
    """起卦并保存记录，以及记录的查询。"""

    def __init__(
        self,
        generator: HexagramGenerator,
        record_store: DivinationRecordStore,
        reference_store: HexagramReferenceStore,
        analysis: Optional[DetailedAnalysisGenerator] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.generator = generator
        self.record_store = record_store
        self.reference_store = reference_store
        self.analysis = analysis or DetailedAnalysisGenerator(reference_store)
        self._clock = clock

    async def cast_and_record(self, user_id: Optional[str] = None, guest_id: Optional[str] = None) -> DivinationRecord:
        if not user_id and not guest_id:
            raise ValueError("user_id 和 guest_id 至少需要一个")

        result = self.generator.cast()
        primary = self.reference_store.find_by_sequence(result.primary.sequence)
        if primary is None:
            raise NoReferenceDataError(f"卦象数据不存在: {result.primary.sequence}")

        record = make_record(
            hexagram=result,
            interpretation=RecordInterpretation(basic=build_basic_reading(primary)),
            user_id=user_id,
            guest_id=None if user_id else guest_id,
            created_at=self._clock(),
        )
        await self.record_store.create(record)
        logger.info(
            f"起卦成功 record={record.id} 本卦={result.primary.name} 变卦={result.changed.name} "
            f"变爻={result.changing_lines}"
        )
        return record

    async def get_record(self, record_id: str, owner_id: str) -> DivinationRecord:
        record = await self.record_store.find_by_id(record_id, owner_id)
        if record is None:
            raise RecordNotFoundError()
        return record

    async def history(self, owner_id: str, page: int = 1, limit: int = 20) -> Tuple[List[DivinationRecord], int]:
        return await self.record_store.list_by_owner(owner_id, page=page, limit=limit)

    async def detailed_analysis(self, record_id: str, owner_id: str) -> Tuple[DivinationRecord, DetailedAnalysis]:
        """生成详细解卦并写回记录"""
        record = await self.get_record(record_id, owner_id)
        detailed = self.analysis.detailed_analysis(record.hexagram)
        interpretation = record.interpretation.model_copy(update={"detailed": detailed})
        updated = await self.record_store.update(record.id, {"interpretation": interpretation})
        return updated or record, detailed
