"""变卦、互卦、应期分析

Texts for the three derived hexagrams come from the reference catalogue. A
hexagram missing from the catalogue only drops its quoted commentary; the
analysis itself never fails.
"""

import logging
from typing import List, Optional

from yijing.schemas.hexagram import DivinationResult, FiveElement, HexagramRef
from yijing.schemas.interpretation import DetailedAnalysis
from yijing.stores.reference import HexagramReferenceStore

logger = logging.getLogger(__name__)

LINE_NAMES = {1: "初爻", 2: "二爻", 3: "三爻", 4: "四爻", 5: "五爻", 6: "上爻"}

SEASONS = {
    FiveElement.METAL: "秋季（七、八月）",
    FiveElement.WOOD: "春季（一、二月）",
    FiveElement.WATER: "冬季（十、十一月）",
    FiveElement.FIRE: "夏季（四、五月）",
    FiveElement.EARTH: "四季月（三、六、九、十二月）",
}

TIMING_WINDOWS = {
    1: "初爻发动，应期较近，约七日内",
    2: "二爻发动，应期半月内",
    3: "三爻发动，应期一个月内",
    4: "四爻发动，应期两个月内",
    5: "五爻发动，应期三个月内",
    6: "上爻发动，应期较远，半年以上",
}

ADVICE_TEMPLATE = (
    "【综合建议】\n\n"
    "根据卦象分析，建议如下：\n\n"
    "1. 心态方面：保持冷静和客观，避免盲目决策。\n"
    "2. 行动方面：根据卦象启示，把握时机，顺势而为。\n"
    "3. 注意事项：关注变爻所提示的关键节点。\n"
    "4. 时间安排：参考应期分析，合理安排计划。\n\n"
    "温馨提示：卦象仅供参考，最终决定还需结合实际情况和个人判断。"
)


def line_names(positions: List[int]) -> str:
    return "、".join(LINE_NAMES[p] for p in positions)


class DetailedAnalysisGenerator:
    def __init__(self, reference_store: HexagramReferenceStore):
        self.reference_store = reference_store

    def detailed_analysis(self, result: DivinationResult) -> DetailedAnalysis:
        primary = self.reference_store.find_by_sequence(result.primary.sequence)
        if primary is None:
            logger.warning(f"Primary hexagram not found: {result.primary.sequence}")
        mutual = self.reference_store.find_by_sequence(result.mutual.sequence)

        return DetailedAnalysis(
            changing_analysis=self.analyze_changing(result, primary),
            mutual_analysis=self.analyze_mutual(result, mutual),
            timing_analysis=self.analyze_timing(result, primary),
            advice=ADVICE_TEMPLATE,
        )

    @staticmethod
    def analyze_changing(result: DivinationResult, primary: Optional[HexagramRef]) -> str:
        lines = result.changing_lines
        primary_name, changed_name = result.primary.name, result.changed.name

        if not lines:
            commentary = primary.tuanci.translation if primary else ""
            return f"本卦{primary_name}无变爻，卦象稳定。{commentary}"

        analysis = f"本卦{primary_name}有{len(lines)}个变爻（{line_names(lines)}），变卦为{changed_name}。\n\n"

        if len(lines) == 1:
            line = primary.line(lines[0]) if primary else None
            analysis += f"爻辞：{line.original if line else ''}\n"
            analysis += f"白话：{line.translation if line else ''}\n\n"
            analysis += f"单爻变动，卦象由{primary_name}变为{changed_name}，表示事物处于转折点，应把握时机，顺势而为。"
        elif len(lines) == 2:
            analysis += "两爻变动，情况较为复杂。需要综合考虑两个变爻的影响。建议以本卦为主，变卦为辅，审慎行事。"
        elif len(lines) == 3:
            analysis += f"三爻变动，处于过渡阶段。本卦与变卦力量相当，应参考互卦{result.mutual.name}来综合判断。"
        else:
            analysis += (
                f"{len(lines)}个爻变动，说明事物处于大变动时期。"
                f"应以变卦{changed_name}为主，本卦为辅，顺应大势，灵活应变。"
            )
        return analysis

    @staticmethod
    def analyze_mutual(result: DivinationResult, mutual: Optional[HexagramRef]) -> str:
        analysis = f"互卦为{result.mutual.name}，由本卦的二三四爻和三四五爻组成。\n\n"
        analysis += "互卦揭示事物发展的中间过程和内在本质。"
        analysis += f"{mutual.tuanci.translation if mutual else ''}\n\n"
        if mutual and mutual.nature:
            analysis += f"互卦之德为{mutual.nature}，提示在处理事情时应保持{mutual.nature}的态度。"
        return analysis

    @staticmethod
    def analyze_timing(result: DivinationResult, primary: Optional[HexagramRef]) -> str:
        analysis = "应期分析：\n\n"
        if primary is not None:
            analysis += f"卦象五行属{primary.element.value}，应期可能在{SEASONS[primary.element]}。\n"

        lines = result.changing_lines
        if not lines:
            return analysis + "本卦无变爻，事情发展平稳，无需急于求成。"

        earliest = min(lines)
        if len(lines) > 1:
            analysis += f"多个变爻，应期取最早的{LINE_NAMES[earliest]}对应的参考时间：\n"
        return analysis + TIMING_WINDOWS[earliest]
