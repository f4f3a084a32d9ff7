import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from yijing.clients.http_client import close_shared_session, create_shared_session
from yijing.clients.llm_client import LLMClient
from yijing.clients.redis_client import create_redis_client
from yijing.core import db
from yijing.core.config import get_settings
from yijing.services.ai_interpretation import AIInterpretationService
from yijing.services.analysis import DetailedAnalysisGenerator
from yijing.services.divination import DivinationWorkflow, HexagramGenerator
from yijing.services.precise import PreciseInterpretationService
from yijing.services.rate_limit import GuestCastRateLimiter, RateLimiter
from yijing.stores.coordination import InMemoryCoordinationStore, RedisCoordinationStore
from yijing.stores.records import InMemoryDivinationRecordStore, MySQLDivinationRecordStore
from yijing.stores.reference import HexagramReferenceStore

logger = logging.getLogger(__name__)


def build_services(app: FastAPI, reference_store, record_store, coordination_store, llm_client, settings) -> None:
    """把所有服务对象挂到 app.state 上，测试中也直接调用"""
    analysis = DetailedAnalysisGenerator(reference_store)
    generator = HexagramGenerator(reference_store)

    app.state.settings = settings
    app.state.reference_store = reference_store
    app.state.record_store = record_store
    app.state.coordination_store = coordination_store
    app.state.analysis = analysis
    app.state.workflow = DivinationWorkflow(generator, record_store, reference_store, analysis=analysis)
    app.state.guest_rate_limiter = GuestCastRateLimiter(
        coordination_store,
        limit=settings.guest_cast_rate_limit,
        window_seconds=settings.guest_cast_rate_window,
    )
    app.state.ai_service = AIInterpretationService(
        record_store=record_store,
        reference_store=reference_store,
        coordination_store=coordination_store,
        llm_client=llm_client,
        rate_limiter=RateLimiter(coordination_store, limit=settings.ai_interpretation_rate_limit),
        model_id=settings.llm_model_name,
        cache_ttl=settings.ai_interpretation_cache_ttl,
        lock_ttl=settings.ai_interpretation_lock_ttl,
    )
    app.state.precise_service = PreciseInterpretationService(record_store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # Startup
    reference_store = HexagramReferenceStore.from_csv(settings.hexagrams_csv_path, settings.hexagram_lines_csv_path)

    redis_client = await create_redis_client(settings.redis_url) if settings.redis_url else None
    if redis_client is not None:
        coordination_store = RedisCoordinationStore(redis_client)
    else:
        logger.warning("未配置可用的 REDIS_URL，协调存储使用内存模式（仅单进程有效）")
        coordination_store = InMemoryCoordinationStore()

    pool = await db.init_db_pool(settings)
    if pool is not None:
        record_store = MySQLDivinationRecordStore(pool)
        await record_store.ensure_schema()
    else:
        record_store = InMemoryDivinationRecordStore()

    session = create_shared_session()
    llm_client = LLMClient.from_settings(session, settings)
    build_services(app, reference_store, record_store, coordination_store, llm_client, settings)
    logger.info("易经占卜服务启动完成")
    try:
        yield
    finally:
        # Shutdown
        await close_shared_session(session)
        await coordination_store.close()
        await db.close_db_pool()
