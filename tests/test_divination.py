import itertools
import logging
import random
from datetime import datetime, timedelta

import pytest

from conftest import ScriptedRandom
from yijing.core.errors import NoReferenceDataError, RecordNotFoundError
from yijing.schemas.hexagram import Line, Trigram, YinYang
from yijing.services.divination import DivinationWorkflow, HexagramGenerator, line_from_heads
from yijing.stores.records import InMemoryDivinationRecordStore
from yijing.stores.reference import HexagramReferenceStore

Y, N = YinYang.YANG, YinYang.YIN

HEAD, TAIL = 0.1, 0.9


def make_lines(polarities, changing=()):
    return [Line(position=i, yin_yang=p, changing=i in changing) for i, p in enumerate(polarities, start=1)]


@pytest.mark.parametrize(
    "heads,yin_yang,changing",
    [(1, Y, False), (2, N, False), (3, Y, True), (0, N, True)],
)
def test_line_from_heads(heads, yin_yang, changing):
    line = line_from_heads(4, heads)
    assert line.position == 4
    assert line.yin_yang is yin_yang
    assert line.changing is changing


def test_line_from_heads_rejects_impossible_count():
    with pytest.raises(ValueError):
        line_from_heads(1, 4)


def test_changing_lines_invariants_over_many_casts(full_store):
    for seed in range(300):
        result = HexagramGenerator(full_store, rng=random.Random(seed)).cast()
        expected = [line.position for line in result.lines if line.changing]
        assert result.changing_lines == expected
        assert len(result.changing_lines) == sum(1 for line in result.lines if line.changing)
        assert all(1 <= p <= 6 for p in result.changing_lines)
        assert result.changing_lines == sorted(set(result.changing_lines))
        if not result.changing_lines:
            assert result.changed.sequence == result.primary.sequence


def test_primary_matches_trigram_lookup(full_store):
    generator = HexagramGenerator(full_store)
    result = generator.build_result(make_lines([Y, N, N, N, Y, N]))
    expected = full_store.find_by_trigrams(Trigram.KAN, Trigram.ZHEN)
    assert result.primary.sequence == expected.sequence


def test_mutual_ignores_outer_lines(full_store):
    generator = HexagramGenerator(full_store)
    for polarities in itertools.product([Y, N], repeat=6):
        base = generator.build_result(make_lines(polarities)).mutual
        for flip_index in (0, 5):
            flipped = list(polarities)
            flipped[flip_index] = flipped[flip_index].flipped()
            assert generator.build_result(make_lines(flipped)).mutual == base


def test_three_heads_everywhere(full_store):
    generator = HexagramGenerator(full_store, rng=ScriptedRandom([HEAD] * 18))
    result = generator.cast()
    assert all(line.yin_yang is Y and line.changing for line in result.lines)
    assert result.changing_lines == [1, 2, 3, 4, 5, 6]
    assert result.primary.sequence == full_store.find_by_trigrams(Trigram.QIAN, Trigram.QIAN).sequence
    assert result.changed.sequence == full_store.find_by_trigrams(Trigram.KUN, Trigram.KUN).sequence


def test_three_tails_everywhere(full_store):
    generator = HexagramGenerator(full_store, rng=ScriptedRandom([TAIL] * 18))
    result = generator.cast()
    assert all(line.yin_yang is N and line.changing for line in result.lines)
    assert result.changing_lines == [1, 2, 3, 4, 5, 6]
    assert result.primary.sequence == full_store.find_by_trigrams(Trigram.KUN, Trigram.KUN).sequence
    assert result.changed.sequence == full_store.find_by_trigrams(Trigram.QIAN, Trigram.QIAN).sequence


def test_changed_flips_only_changing_lines(full_store):
    generator = HexagramGenerator(full_store)
    # 屯卦初爻动，变为水地比
    result = generator.build_result(make_lines([Y, N, N, N, Y, N], changing=(1,)))
    assert result.changing_lines == [1]
    assert result.changed.sequence == full_store.find_by_trigrams(Trigram.KAN, Trigram.KUN).sequence


def test_empty_store_cannot_cast():
    with pytest.raises(NoReferenceDataError):
        HexagramGenerator(HexagramReferenceStore()).cast()


def test_missing_primary_falls_back_to_random_entry(bundled_store, caplog):
    generator = HexagramGenerator(bundled_store, rng=random.Random(7))
    # 上离下兑，不在内置数据中
    lines = make_lines([Y, Y, N, Y, N, Y])
    with caplog.at_level(logging.WARNING):
        result = generator.build_result(lines)
    assert bundled_store.find_by_sequence(result.primary.sequence) is not None
    assert "Using random hexagram" in caplog.text


def test_missing_mutual_falls_back_to_random_entry(bundled_store, caplog):
    generator = HexagramGenerator(bundled_store, rng=random.Random(7))
    # 水雷屯的互卦为山地剥，内置数据中没有
    with caplog.at_level(logging.WARNING):
        result = generator.build_result(make_lines([Y, N, N, N, Y, N]))
    assert result.primary.name == "水雷屯"
    assert result.changed.sequence == result.primary.sequence
    assert bundled_store.find_by_sequence(result.mutual.sequence) is not None
    assert "No hexagram found for upper=艮, lower=坤" in caplog.text
    assert caplog.text.count("Using random hexagram") == 1


def test_missing_changed_falls_back_to_primary(bundled_store):
    generator = HexagramGenerator(bundled_store)
    # 乾为天上爻动变为泽天夬，内置数据中没有
    result = generator.build_result(make_lines([Y] * 6, changing=(6,)))
    assert result.primary.sequence == 1
    assert result.changed.sequence == 1


def test_bundled_store_lookup(bundled_store):
    generator = HexagramGenerator(bundled_store)
    result = generator.build_result(make_lines([N, Y, N, N, N, Y]))
    assert result.primary.name == "山水蒙"


@pytest.mark.asyncio
async def test_cast_and_record_persists_basic_reading(bundled_store):
    records = InMemoryDivinationRecordStore()
    workflow = DivinationWorkflow(HexagramGenerator(bundled_store, rng=random.Random(1)), records, bundled_store)

    record = await workflow.cast_and_record(user_id="u1")

    stored = await records.find_by_id(record.id, "u1")
    assert stored is not None
    assert stored.interpretation.basic.hexagram_name == record.hexagram.primary.name
    assert len(stored.interpretation.basic.yaoci) == 6
    assert stored.guest_id is None


@pytest.mark.asyncio
async def test_cast_and_record_requires_an_owner(bundled_store):
    workflow = DivinationWorkflow(HexagramGenerator(bundled_store), InMemoryDivinationRecordStore(), bundled_store)
    with pytest.raises(ValueError):
        await workflow.cast_and_record()


@pytest.mark.asyncio
async def test_history_is_newest_first_and_paginated(bundled_store):
    ticks = iter(range(10))
    base = datetime(2024, 1, 1)
    workflow = DivinationWorkflow(
        HexagramGenerator(bundled_store, rng=random.Random(3)),
        InMemoryDivinationRecordStore(),
        bundled_store,
        clock=lambda: base + timedelta(minutes=next(ticks)),
    )
    created = [await workflow.cast_and_record(guest_id="device-1") for _ in range(5)]
    await workflow.cast_and_record(user_id="someone-else")

    page, total = await workflow.history("device-1", page=1, limit=2)
    assert total == 5
    assert [r.id for r in page] == [created[4].id, created[3].id]

    page, _ = await workflow.history("device-1", page=3, limit=2)
    assert [r.id for r in page] == [created[0].id]


@pytest.mark.asyncio
async def test_records_are_scoped_to_owner(bundled_store):
    workflow = DivinationWorkflow(HexagramGenerator(bundled_store), InMemoryDivinationRecordStore(), bundled_store)
    record = await workflow.cast_and_record(user_id="u1")
    with pytest.raises(RecordNotFoundError):
        await workflow.get_record(record.id, "u2")


@pytest.mark.asyncio
async def test_detailed_analysis_is_written_back(bundled_store):
    workflow = DivinationWorkflow(HexagramGenerator(bundled_store), InMemoryDivinationRecordStore(), bundled_store)
    record = await workflow.cast_and_record(user_id="u1")

    updated, detailed = await workflow.detailed_analysis(record.id, "u1")

    assert updated.interpretation.detailed == detailed
    assert detailed.advice.startswith("【综合建议】")
