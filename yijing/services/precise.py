import logging
from datetime import date
from typing import Optional

from yijing.core.errors import RecordNotFoundError
from yijing.schemas.hexagram import DivinationResult
from yijing.schemas.interpretation import PreciseInfo, PreciseInterpretation
from yijing.schemas.record import DivinationRecord
from yijing.stores.records import DivinationRecordStore

logger = logging.getLogger(__name__)

DISCLAIMER = "温馨提示：卦象仅供参考，最终决策还需结合实际情况。"


def calculate_age(birth_date: date, today: date) -> int:
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def personalized_interpretation(info: PreciseInfo, age: int, hexagram: DivinationResult) -> str:
    name = hexagram.primary.name
    text = f"【精准解卦 - 为{info.name}{'先生' if info.gender == 'male' else '女士'}量身定制】\n\n"
    text += f"占问事项：{info.question}\n\n"
    text += f"所得卦象：{name}（{hexagram.primary.symbol}）\n\n"

    if age < 30:
        text += f"您正值青春年华，{name}之卦提示您"
    elif age < 50:
        text += f"您处于人生黄金时期，{name}之卦预示"
    else:
        text += f"您阅历丰富，{name}之卦为您揭示"

    # 前三十二卦为阳卦
    if hexagram.primary.sequence <= 32:
        text += "事业发展较为顺利，宜积极进取。"
    else:
        text += "宜守不宜攻，稳中求进。"

    text += f'\n\n针对您所问"{info.question}"一事，'
    if hexagram.changing_lines:
        text += f"卦中有{len(hexagram.changing_lines)}个变爻，说明事情处于变化之中，需要把握时机。"
    else:
        text += "卦象稳定，建议按既定计划稳步推进。"
    return text


def personalized_advice(info: PreciseInfo, hexagram: DivinationResult) -> str:
    advice = f"【致{info.name}的建议】\n\n"
    advice += f'关于"{info.question}"这个问题，根据卦象分析：\n\n'

    sequence = hexagram.primary.sequence
    if sequence <= 8:
        advice += "当前卦象属于先天八卦之一，能量较为纯粹。建议您保持初心，坚持方向。"
    elif sequence <= 32:
        advice += "卦象显示事物发展较为顺利，但需要注意细节。建议您谨慎行事，把握机会。"
    else:
        advice += "卦象提示需要更多耐心和智慧。建议您冷静分析，等待时机成熟。"

    return advice + "\n\n" + DISCLAIMER


class PreciseInterpretationService:
    def __init__(self, record_store: DivinationRecordStore):
        self.record_store = record_store

    async def save_precise_info(self, record_id: str, user_id: str, info: PreciseInfo) -> DivinationRecord:
        record = await self.record_store.find_by_id(record_id, user_id)
        if record is None:
            raise RecordNotFoundError()
        updated = await self.record_store.update(record.id, {"precise_info": info})
        if updated is None:
            raise RecordNotFoundError()
        logger.info(f"精准信息已保存 record={record_id}")
        return updated

    def generate(self, record: DivinationRecord, today: Optional[date] = None) -> PreciseInterpretation:
        if record.precise_info is None:
            raise RecordNotFoundError("请先完善个人信息")
        info = record.precise_info
        age = calculate_age(info.birth_date, today or date.today())
        return PreciseInterpretation(
            precise=personalized_interpretation(info, age, record.hexagram),
            personalized_advice=personalized_advice(info, record.hexagram),
        )

    async def generate_for_record(self, record_id: str, user_id: str, today: Optional[date] = None) -> PreciseInterpretation:
        record = await self.record_store.find_by_id(record_id, user_id)
        if record is None:
            raise RecordNotFoundError()
        return self.generate(record, today)
