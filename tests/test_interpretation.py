import pytest

from yijing.schemas.hexagram import DivinationResult, Line
from yijing.services.analysis import ADVICE_TEMPLATE, DetailedAnalysisGenerator
from yijing.services.interpretation import basic_interpretation


def test_overall_joins_judgment_and_commentary(bundled_store):
    qian = bundled_store.find_by_sequence(1)
    result = basic_interpretation(qian)
    assert result.overall == f"{qian.guaci.translation} {qian.tuanci.translation}"


def test_keyword_line_wins_over_template(bundled_store):
    qian = bundled_store.find_by_sequence(1)
    result = basic_interpretation(qian)
    # 九二“利见大人”命中财运关键词“利”
    assert result.wealth == "龙出现在田野上，有利于拜见大人。"
    assert result.career == "乾为天之象，事业运势亨通。"
    assert result.relationships == "乾为天之象，感情运势顺利。"
    assert result.health == "乾为天之象，应注意首健康，保持平和心态。"


def test_relationship_keyword_and_caution_template(bundled_store):
    zhun = bundled_store.find_by_sequence(3)
    result = basic_interpretation(zhun)
    assert result.relationships == zhun.line(2).translation
    assert result.career == "水雷屯之象，事业运势需谨慎。"
    assert result.wealth == zhun.line(1).translation


def test_first_matching_line_is_used(bundled_store):
    meng = bundled_store.find_by_sequence(4)
    # 六三“勿用娶女”
    assert basic_interpretation(meng).relationships == meng.line(3).translation


def _result(store, primary_seq, changed_seq, mutual_seq, changing):
    def summary(seq):
        return store.find_by_sequence(seq).summary()

    polarities = [line.yin_yang for line in store.find_by_sequence(primary_seq).yaoci]
    lines = [Line(position=i, yin_yang=p, changing=i in changing) for i, p in enumerate(polarities, start=1)]
    return DivinationResult(
        primary=summary(primary_seq),
        changed=summary(changed_seq),
        mutual=summary(mutual_seq),
        lines=lines,
        changing_lines=sorted(changing),
    )


@pytest.fixture
def analyzer(bundled_store):
    return DetailedAnalysisGenerator(bundled_store)


def test_no_changing_lines_is_stable(bundled_store, analyzer):
    analysis = analyzer.detailed_analysis(_result(bundled_store, 3, 3, 2, []))
    zhun = bundled_store.find_by_sequence(3)
    assert "无变爻" in analysis.changing_analysis
    assert zhun.tuanci.translation in analysis.changing_analysis
    assert "冬季" in analysis.timing_analysis
    assert "无需急于求成" in analysis.timing_analysis
    assert analysis.advice == ADVICE_TEMPLATE


def test_single_changing_line_quotes_the_line(bundled_store, analyzer):
    analysis = analyzer.detailed_analysis(_result(bundled_store, 3, 4, 2, [2]))
    zhun = bundled_store.find_by_sequence(3)
    assert zhun.line(2).original in analysis.changing_analysis
    assert zhun.line(2).translation in analysis.changing_analysis
    assert "由水雷屯变为山水蒙" in analysis.changing_analysis
    assert "二爻发动，应期半月内" in analysis.timing_analysis


@pytest.mark.parametrize(
    "changing,phrase",
    [
        ([1, 4], "两爻变动"),
        ([1, 2, 3], "应参考互卦坤为地"),
        ([1, 2, 3, 5], "应以变卦山水蒙为主"),
        ([1, 2, 3, 4, 5, 6], "6个爻变动"),
    ],
)
def test_changing_analysis_branches_on_count(bundled_store, analyzer, changing, phrase):
    analysis = analyzer.detailed_analysis(_result(bundled_store, 3, 4, 2, changing))
    assert phrase in analysis.changing_analysis


def test_earliest_changing_line_sets_the_window(bundled_store, analyzer):
    analysis = analyzer.detailed_analysis(_result(bundled_store, 1, 2, 1, [3, 5]))
    assert "三爻发动，应期一个月内" in analysis.timing_analysis
    assert "五爻发动" not in analysis.timing_analysis
    assert "秋季" in analysis.timing_analysis


def test_mutual_analysis_uses_nature(bundled_store, analyzer):
    analysis = analyzer.detailed_analysis(_result(bundled_store, 1, 1, 3, []))
    assert "互卦为水雷屯" in analysis.mutual_analysis
    assert "互卦之德为雷" in analysis.mutual_analysis


def test_advice_does_not_vary(bundled_store, analyzer):
    a = analyzer.detailed_analysis(_result(bundled_store, 1, 1, 1, []))
    b = analyzer.detailed_analysis(_result(bundled_store, 4, 3, 2, [1, 6]))
    assert a.advice == b.advice == ADVICE_TEMPLATE
