from typing import Optional, Sequence

from yijing.schemas.hexagram import HexagramRef, Quality
from yijing.schemas.interpretation import BasicInterpretation

CAREER_KEYWORDS = ("事业", "官", "进")
RELATIONSHIP_KEYWORDS = ("婚", "娶", "配")
WEALTH_KEYWORDS = ("财", "利", "得")


def _first_matching_line(hexagram: HexagramRef, keywords: Sequence[str]) -> Optional[str]:
    """爻辞原文命中关键词时，优先使用真实的爻辞白话"""
    for line in hexagram.yaoci:
        if any(keyword in line.original for keyword in keywords):
            return line.translation or line.original
    return None


def _is_lucky(hexagram: HexagramRef) -> bool:
    return hexagram.quality is Quality.LUCKY


def overall_text(hexagram: HexagramRef) -> str:
    overview = hexagram.guaci.translation or hexagram.guaci.original
    if hexagram.tuanci.translation:
        overview += " " + hexagram.tuanci.translation
    return overview


def career_text(hexagram: HexagramRef) -> str:
    matched = _first_matching_line(hexagram, CAREER_KEYWORDS)
    if matched:
        return matched
    return f"{hexagram.name}之象，事业运势{'亨通' if _is_lucky(hexagram) else '需谨慎'}。"


def relationships_text(hexagram: HexagramRef) -> str:
    matched = _first_matching_line(hexagram, RELATIONSHIP_KEYWORDS)
    if matched:
        return matched
    return f"{hexagram.name}之象，感情运势{'顺利' if _is_lucky(hexagram) else '需经营'}。"


def health_text(hexagram: HexagramRef) -> str:
    return f"{hexagram.name}之象，应注意{hexagram.body or '整体'}健康，保持平和心态。"


def wealth_text(hexagram: HexagramRef) -> str:
    matched = _first_matching_line(hexagram, WEALTH_KEYWORDS)
    if matched:
        return matched
    return f"{hexagram.name}之象，财运运势{'亨通' if _is_lucky(hexagram) else '需谨慎'}。"


def basic_interpretation(hexagram: HexagramRef) -> BasicInterpretation:
    """基础解读：概述、事业、感情、健康、财运"""
    return BasicInterpretation(
        overall=overall_text(hexagram),
        career=career_text(hexagram),
        relationships=relationships_text(hexagram),
        health=health_text(hexagram),
        wealth=wealth_text(hexagram),
    )
