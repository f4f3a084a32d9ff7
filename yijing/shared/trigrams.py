"""八卦表与爻 <-> 二进制转换"""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from yijing.schemas.hexagram import Line, Trigram, YinYang


@dataclass(frozen=True)
class TrigramInfo:
    binary: str  # 3位二进制（从上到下），1 为阳爻
    trigram: Trigram
    symbol: str
    pinyin: str
    nature: str

    @property
    def name(self) -> str:
        return self.trigram.value


TRIGRAMS: Dict[str, TrigramInfo] = {
    "111": TrigramInfo("111", Trigram.QIAN, "☰", "qián", "天"),
    "011": TrigramInfo("011", Trigram.DUI, "☱", "duì", "泽"),
    "101": TrigramInfo("101", Trigram.LI, "☲", "lí", "火"),
    "001": TrigramInfo("001", Trigram.ZHEN, "☳", "zhèn", "雷"),
    "000": TrigramInfo("000", Trigram.KUN, "☷", "kūn", "地"),
    "100": TrigramInfo("100", Trigram.GEN, "☶", "gèn", "山"),
    "010": TrigramInfo("010", Trigram.KAN, "☵", "kǎn", "水"),
    "110": TrigramInfo("110", Trigram.XUN, "☴", "xùn", "风"),
}

TRIGRAMS_BY_NAME: Dict[Trigram, TrigramInfo] = {info.trigram: info for info in TRIGRAMS.values()}


def lines_to_binary(lines: Sequence[Line]) -> str:
    """Three lines listed bottom-up -> binary string read top-down."""
    if len(lines) != 3:
        raise ValueError(f"a trigram needs exactly 3 lines, got {len(lines)}")
    return "".join("1" if line.yin_yang is YinYang.YANG else "0" for line in reversed(lines))


def lines_to_trigrams(lines: Sequence[Line]) -> Tuple[str, str]:
    """六爻（从下到上） -> (上卦二进制, 下卦二进制)"""
    return lines_to_binary(lines[3:6]), lines_to_binary(lines[0:3])


def mutual_trigrams(lines: Sequence[Line]) -> Tuple[str, str]:
    """互卦：三四五爻为上卦，二三四爻为下卦"""
    return lines_to_binary(lines[2:5]), lines_to_binary(lines[1:4])


def trigram_for(binary: str) -> TrigramInfo:
    return TRIGRAMS[binary]


def trigram_to_lines(binary: str) -> List[YinYang]:
    """Binary read top-down -> polarities listed bottom-up."""
    return [YinYang.YANG if bit == "1" else YinYang.YIN for bit in reversed(binary)]


def flip_changing(lines: Sequence[Line]) -> List[Line]:
    """将变爻取反，得到变卦的六爻"""
    return [
        Line(
            position=line.position,
            yin_yang=line.yin_yang.flipped() if line.changing else line.yin_yang,
            changing=False,
        )
        for line in lines
    ]
