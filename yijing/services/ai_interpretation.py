"""AI 解卦编排

``generate_ai_interpretation`` runs a fixed sequence: quota check, record
fetch, already-generated check, cache check, per-record lock, prompt build,
model call, response parse, persist, lock release. All cross-request state
lives in the coordination store, so the guarantees hold across processes:
for a given record the external model is called at most once, apart from a
lock holder crashing and its lock expiring after ``lock_ttl`` seconds.
"""

import json
import logging
import re
from datetime import datetime
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from yijing.clients.llm_client import LLMClient
from yijing.core.errors import GenerationInProgressError, RecordNotFoundError
from yijing.monitor import StepMonitor, generate_request_id, log_step
from yijing.schemas.hexagram import DivinationResult
from yijing.schemas.interpretation import AIInterpretation
from yijing.services.analysis import line_names
from yijing.services.rate_limit import RateLimiter
from yijing.shared.utils import parse_lenient_json, prompt_digest, question_digest
from yijing.stores.coordination import CoordinationStore
from yijing.stores.records import DivinationRecordStore
from yijing.stores.reference import HexagramReferenceStore

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "ai:interpretation:cache"
LOCK_KEY_PREFIX = "ai:interpretation:lock"

SUMMARY_PLACEHOLDER = "暂无总体解读"
DETAILED_PLACEHOLDER = "暂无详细分析"
ADVICE_PLACEHOLDER = "暂无建议"

RESPONSE_INSTRUCTION = (
    "请严格以JSON格式返回，只输出一个JSON对象，不要输出其他内容。JSON包含以下三个字段：\n"
    '{"summary": "卦象总体解读，100字以内", '
    '"detailedAnalysis": "结合本卦、变卦、互卦及占问事项的详细分析", '
    '"advice": "具体、可执行的建议"}'
)

_BLANK_LINES = re.compile(r"\n\s*\n")


def cache_key(sequence: int, question: Optional[str]) -> str:
    return f"{CACHE_KEY_PREFIX}:{sequence}:{question_digest(question)}"


def lock_key(record_id: str) -> str:
    return f"{LOCK_KEY_PREFIX}:{record_id}"


def build_prompt(
    result: DivinationResult,
    reference_store: HexagramReferenceStore,
    question: Optional[str] = None,
) -> str:
    primary = reference_store.find_by_sequence(result.primary.sequence)

    parts = ["你是一位精通《周易》的解卦师，请根据以下卦象为用户解卦。", ""]
    parts.append(f"【本卦】{result.primary.name}（{result.primary.symbol}）")
    if primary is not None:
        parts.append(f"卦辞：{primary.guaci.original}")
        if primary.guaci.translation:
            parts.append(f"白话：{primary.guaci.translation}")
        parts.append("爻辞：")
        for line in primary.yaoci:
            parts.append(f"{line.name}：{line.original}（{line.translation}）")

    if result.changing_lines:
        parts.append("")
        parts.append(f"【变爻】{line_names(result.changing_lines)}")
        parts.append(f"【变卦】{result.changed.name}（{result.changed.symbol}）")
        changed = reference_store.find_by_sequence(result.changed.sequence)
        if changed is not None:
            parts.append(f"卦辞：{changed.guaci.original}")
            if changed.guaci.translation:
                parts.append(f"白话：{changed.guaci.translation}")

    parts.append("")
    parts.append(f"【互卦】{result.mutual.name}")

    if question:
        parts.append("")
        parts.append(f"【占问事项】{question}")

    parts.append("")
    parts.append(RESPONSE_INSTRUCTION)
    return "\n".join(parts)


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return json.dumps(value, ensure_ascii=False)


def split_sections(raw: str) -> Dict[str, str]:
    """按空行切分为三段；缺失的段落使用占位文本"""
    sections = [s.strip() for s in _BLANK_LINES.split(raw.strip()) if s.strip()]
    return {
        "summary": sections[0] if sections else SUMMARY_PLACEHOLDER,
        "detailed_analysis": sections[1] if len(sections) > 1 else DETAILED_PLACEHOLDER,
        "advice": "\n\n".join(sections[2:]) if len(sections) > 2 else ADVICE_PLACEHOLDER,
    }


def parse_interpretation_response(raw: str) -> Dict[str, str]:
    try:
        data = parse_lenient_json(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"AI 响应不是合法JSON，按段落切分: {e.msg}")
        return split_sections(raw)

    summary = _as_text(data.get("summary"))
    detailed = _as_text(data.get("detailedAnalysis", data.get("detailed_analysis")))
    advice = _as_text(data.get("advice"))
    if not (summary or detailed or advice):
        logger.warning("AI 响应JSON缺少 summary/detailedAnalysis/advice 字段，按段落切分")
        return split_sections(raw)
    return {
        "summary": summary or SUMMARY_PLACEHOLDER,
        "detailed_analysis": detailed or DETAILED_PLACEHOLDER,
        "advice": advice or ADVICE_PLACEHOLDER,
    }


class AIInterpretationService:
    def __init__(
        self,
        record_store: DivinationRecordStore,
        reference_store: HexagramReferenceStore,
        coordination_store: CoordinationStore,
        llm_client: LLMClient,
        rate_limiter: RateLimiter,
        model_id: str,
        cache_ttl: int = 86400,
        lock_ttl: int = 60,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.record_store = record_store
        self.reference_store = reference_store
        self.coordination_store = coordination_store
        self.llm_client = llm_client
        self.rate_limiter = rate_limiter
        self.model_id = model_id
        self.cache_ttl = cache_ttl
        self.lock_ttl = lock_ttl
        self._clock = clock

    async def _read_cache(self, key: str) -> Optional[AIInterpretation]:
        cached = await self.coordination_store.get(key)
        if not cached:
            return None
        try:
            return AIInterpretation.model_validate_json(cached)
        except ValidationError as e:
            logger.warning(f"缓存内容无法解析，忽略: {key} ({e.error_count()} errors)")
            return None

    async def generate_ai_interpretation(
        self,
        record_id: str,
        user_id: str,
        question: Optional[str] = None,
    ) -> AIInterpretation:
        request_id = generate_request_id()
        trace = {"record_id": record_id, "user_id": user_id}

        with StepMonitor("rate_check", request_id, trace):
            await self.rate_limiter.hit(user_id)

        with StepMonitor("record_fetch", request_id, trace):
            record = await self.record_store.find_by_id(record_id, user_id)
            if record is None:
                raise RecordNotFoundError()

        if record.ai_interpretation is not None:
            log_step("already_generated", request_id, trace)
            return record.ai_interpretation

        key = cache_key(record.hexagram.primary.sequence, question)
        with StepMonitor("cache_check", request_id, {**trace, "cache_key": key}):
            cached = await self._read_cache(key)
        if cached is not None:
            interpretation = cached.model_copy(update={"served_from_cache": True})
            await self.record_store.update(record.id, {"ai_interpretation": interpretation})
            log_step("cache_hit", request_id, trace)
            return interpretation

        lock = lock_key(record.id)
        with StepMonitor("lock_acquire", request_id, trace):
            acquired = await self.coordination_store.set_if_absent_with_expiry(lock, self.lock_ttl, value=request_id)
            if not acquired:
                raise GenerationInProgressError()

        try:
            # 上一个持锁者可能已经生成完毕
            current = await self.record_store.find_by_id(record_id, user_id)
            if current is not None and current.ai_interpretation is not None:
                log_step("already_generated", request_id, trace)
                return current.ai_interpretation

            with StepMonitor("prompt_build", request_id, trace):
                prompt = build_prompt(record.hexagram, self.reference_store, question)

            with StepMonitor("external_call", request_id, {**trace, "model": self.model_id}):
                raw = await self.llm_client.complete(prompt, request_id=request_id)

            with StepMonitor("response_parse", request_id, trace):
                sections = parse_interpretation_response(raw)

            interpretation = AIInterpretation(
                **sections,
                model_id=self.model_id,
                prompt_digest=prompt_digest(prompt),
                created_at=self._clock(),
                served_from_cache=False,
            )

            with StepMonitor("persist", request_id, trace):
                # 持锁超时后另一个请求可能已写入，保留先写入的结果
                latest = await self.record_store.find_by_id(record_id, user_id)
                if latest is not None and latest.ai_interpretation is not None:
                    log_step("already_generated", request_id, trace)
                    return latest.ai_interpretation
                await self.record_store.update(record.id, {"ai_interpretation": interpretation})
                await self.coordination_store.set_with_expiry(key, interpretation.model_dump_json(), self.cache_ttl)
            return interpretation
        finally:
            released = await self.coordination_store.delete_if_value(lock, request_id)
            if released:
                log_step("lock_release", request_id, trace)
            else:
                # 锁已过期并被其他请求持有
                log_step("lock_release", request_id, trace, status="锁已失效")
