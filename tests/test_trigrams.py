import pytest

from yijing.schemas.hexagram import Line, Trigram, YinYang
from yijing.shared.trigrams import (
    TRIGRAMS,
    flip_changing,
    lines_to_binary,
    lines_to_trigrams,
    mutual_trigrams,
    trigram_to_lines,
)

Y, N = YinYang.YANG, YinYang.YIN


def make_lines(polarities, changing=()):
    return [Line(position=i, yin_yang=p, changing=i in changing) for i, p in enumerate(polarities, start=1)]


def test_table_has_eight_unique_trigrams():
    assert len(TRIGRAMS) == 8
    assert {info.trigram for info in TRIGRAMS.values()} == set(Trigram)
    assert all(binary == info.binary for binary, info in TRIGRAMS.items())


@pytest.mark.parametrize(
    "binary,name",
    [("111", "乾"), ("000", "坤"), ("001", "震"), ("100", "艮"), ("010", "坎"), ("110", "巽"), ("011", "兑"), ("101", "离")],
)
def test_traditional_trigram_names(binary, name):
    assert TRIGRAMS[binary].name == name


def test_lines_are_read_top_down():
    # 震：初爻为阳，二三爻为阴
    lines = make_lines([Y, N, N])
    assert lines_to_binary(lines) == "001"
    assert trigram_to_lines("001") == [Y, N, N]


def test_lines_to_binary_needs_three_lines():
    with pytest.raises(ValueError):
        lines_to_binary(make_lines([Y, N]))


def test_upper_and_lower_split():
    # 水雷屯：上坎下震
    lines = make_lines([Y, N, N, N, Y, N])
    assert lines_to_trigrams(lines) == ("010", "001")


def test_mutual_uses_lines_two_to_five():
    lines = make_lines([Y, N, N, N, Y, N])
    upper, lower = mutual_trigrams(lines)
    assert lower == lines_to_binary(lines[1:4])
    assert upper == lines_to_binary(lines[2:5])


def test_flip_changing_only_touches_changing_lines():
    lines = make_lines([Y, Y, N, N, Y, N], changing=(1, 4))
    flipped = flip_changing(lines)
    assert [l.yin_yang for l in flipped] == [N, Y, N, Y, Y, N]
    assert not any(l.changing for l in flipped)
