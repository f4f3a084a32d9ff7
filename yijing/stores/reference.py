"""Read-only hexagram reference catalogue.

The catalogue is loaded once at startup from two CSV files: one row per
hexagram and one row per line text. Every row is validated into a
:class:`HexagramRef` before it is served, so a bad trigram, element, quality
or line set fails the load rather than a later cast.
"""

import logging
import random
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd
from pydantic import ValidationError

from yijing.schemas.hexagram import HexagramRef, LineText, TextBlock, Trigram, YinYang
from yijing.shared.trigrams import TRIGRAMS_BY_NAME, trigram_to_lines

logger = logging.getLogger(__name__)

HEXAGRAM_COLUMNS = [
    "sequence", "symbol", "name", "pinyin",
    "guaci_original", "guaci_translation", "guaci_annotation",
    "tuanci_original", "tuanci_translation",
    "xiangci_original", "xiangci_translation",
    "yonggua_original", "yonggua_translation", "yonggua_annotation",
    "element", "nature", "body", "upper", "lower", "quality", "tags",
]
LINE_COLUMNS = ["sequence", "position", "name", "yin_yang", "original", "translation", "xiang", "annotation"]


class ReferenceDataError(ValueError):
    """卦象数据文件格式错误"""


def _clean(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def _text_block(row: pd.Series, prefix: str) -> Optional[TextBlock]:
    original = _clean(row.get(f"{prefix}_original"))
    if original is None:
        return None
    return TextBlock(
        original=original,
        translation=_clean(row.get(f"{prefix}_translation")) or "",
        annotation=_clean(row.get(f"{prefix}_annotation")),
    )


def _check_lines_match_trigrams(hexagram: HexagramRef) -> None:
    expected = trigram_to_lines(TRIGRAMS_BY_NAME[hexagram.lower].binary) + trigram_to_lines(
        TRIGRAMS_BY_NAME[hexagram.upper].binary
    )
    actual = [line.yin_yang for line in hexagram.yaoci]
    if actual != expected:
        raise ReferenceDataError(
            f"卦 {hexagram.sequence}({hexagram.name}) 的爻与上下卦 {hexagram.upper.value}/{hexagram.lower.value} 不一致"
        )


class HexagramReferenceStore:
    def __init__(self, hexagrams: Iterable[HexagramRef] = ()):
        self._by_sequence: Dict[int, HexagramRef] = {}
        self._by_trigrams: Dict[Tuple[Trigram, Trigram], HexagramRef] = {}
        self._by_symbol: Dict[str, HexagramRef] = {}
        for hexagram in hexagrams:
            self._add(hexagram)

    def _add(self, hexagram: HexagramRef) -> None:
        if hexagram.sequence in self._by_sequence:
            raise ReferenceDataError(f"卦序重复: {hexagram.sequence}")
        if hexagram.symbol in self._by_symbol:
            raise ReferenceDataError(f"卦符重复: {hexagram.symbol}")
        key = (hexagram.upper, hexagram.lower)
        if key in self._by_trigrams:
            raise ReferenceDataError(f"上下卦组合重复: {hexagram.upper.value}/{hexagram.lower.value}")
        _check_lines_match_trigrams(hexagram)
        self._by_sequence[hexagram.sequence] = hexagram
        self._by_trigrams[key] = hexagram
        self._by_symbol[hexagram.symbol] = hexagram

    @classmethod
    def from_csv(
        cls,
        hexagrams_path: Union[str, Path],
        lines_path: Union[str, Path],
        encoding: str = "utf-8",
    ) -> "HexagramReferenceStore":
        hexagrams_df = pd.read_csv(hexagrams_path, encoding=encoding, dtype=str, keep_default_na=False)
        lines_df = pd.read_csv(lines_path, encoding=encoding, dtype=str, keep_default_na=False)
        store = cls.from_dataframes(hexagrams_df, lines_df)
        logger.info(f"卦象数据加载成功: {store.count()} 卦 ({hexagrams_path})")
        return store

    @classmethod
    def from_dataframes(cls, hexagrams_df: pd.DataFrame, lines_df: pd.DataFrame) -> "HexagramReferenceStore":
        missing = [c for c in HEXAGRAM_COLUMNS if c not in hexagrams_df.columns]
        if missing:
            raise ReferenceDataError(f"卦象数据缺少列: {missing}")
        missing = [c for c in LINE_COLUMNS if c not in lines_df.columns]
        if missing:
            raise ReferenceDataError(f"爻辞数据缺少列: {missing}")

        lines_df = lines_df.assign(sequence=lines_df["sequence"].astype(int), position=lines_df["position"].astype(int))
        lines_by_sequence = {seq: group for seq, group in lines_df.groupby("sequence")}

        hexagrams = []
        for _, row in hexagrams_df.iterrows():
            sequence = int(row["sequence"])
            group = lines_by_sequence.get(sequence)
            try:
                yaoci = []
                if group is not None:
                    for _, line_row in group.sort_values("position").iterrows():
                        yaoci.append(
                            LineText(
                                position=int(line_row["position"]),
                                name=_clean(line_row["name"]) or "",
                                yin_yang=YinYang(_clean(line_row["yin_yang"])),
                                original=_clean(line_row["original"]) or "",
                                translation=_clean(line_row["translation"]) or "",
                                xiang=_clean(line_row["xiang"]) or "",
                                annotation=_clean(line_row["annotation"]),
                            )
                        )
                hexagrams.append(
                    HexagramRef(
                        sequence=sequence,
                        symbol=_clean(row["symbol"]),
                        name=_clean(row["name"]),
                        pinyin=_clean(row["pinyin"]) or "",
                        guaci=_text_block(row, "guaci"),
                        tuanci=_text_block(row, "tuanci"),
                        xiangci=_text_block(row, "xiangci"),
                        yaoci=yaoci,
                        yonggua=_text_block(row, "yonggua"),
                        element=_clean(row["element"]),
                        nature=_clean(row["nature"]) or "",
                        body=_clean(row["body"]) or "",
                        upper=_clean(row["upper"]),
                        lower=_clean(row["lower"]),
                        quality=_clean(row["quality"]) or "neutral",
                        tags=[t for t in (_clean(row["tags"]) or "").split("|") if t],
                    )
                )
            except (ValidationError, ValueError) as e:
                raise ReferenceDataError(f"卦 {sequence} 数据校验失败: {e}") from e
        return cls(hexagrams)

    def find_by_sequence(self, sequence: int) -> Optional[HexagramRef]:
        return self._by_sequence.get(sequence)

    def find_by_trigrams(self, upper: Trigram, lower: Trigram) -> Optional[HexagramRef]:
        return self._by_trigrams.get((Trigram(upper), Trigram(lower)))

    def find_by_symbol(self, symbol: str) -> Optional[HexagramRef]:
        return self._by_symbol.get(symbol)

    def find_all(self) -> List[HexagramRef]:
        return [self._by_sequence[seq] for seq in sorted(self._by_sequence)]

    def count(self) -> int:
        return len(self._by_sequence)

    def search_by_name(self, keyword: str) -> List[HexagramRef]:
        """按卦名或拼音模糊搜索"""
        keyword = keyword.strip()
        if not keyword:
            return []
        return [h for h in self.find_all() if keyword in h.name or keyword in h.pinyin]

    def random_choice(self, rng: Optional[random.Random] = None) -> Optional[HexagramRef]:
        if not self._by_sequence:
            return None
        return (rng or random).choice(self.find_all())
