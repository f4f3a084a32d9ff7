from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class Settings(BaseSettings):
    """Central settings for the divination service."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = "INFO"
    monitor_log_file: Optional[str] = None

    # ===== Redis =====
    # 未配置时使用内存模式
    redis_url: Optional[str] = None

    # ===== MySQL =====
    db_host: Optional[str] = None
    db_port: int = 3306
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    db_name: str = "yingshi"
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10

    # ===== 卦象数据 =====
    hexagrams_csv_path: Path = DATA_DIR / "hexagrams.csv"
    hexagram_lines_csv_path: Path = DATA_DIR / "hexagram_lines.csv"

    # ===== LLM =====
    llm_api_base_url: str = "https://open.bigmodel.cn/api/paas/v4"
    llm_model_name: str = "glm-4-flash"
    llm_api_key: str = ""
    llm_timeout_seconds: float = 30.0
    llm_max_tokens: int = 2000
    llm_temperature: float = 0.7

    # ===== AI 解卦 =====
    ai_interpretation_rate_limit: int = 10
    ai_interpretation_cache_ttl: int = 86400
    ai_interpretation_lock_ttl: int = 60

    # ===== 游客起卦限流 =====
    guest_cast_rate_limit: int = 5
    guest_cast_rate_window: int = 60

    @model_validator(mode="after")
    def check_lock_outlives_model_call(self) -> "Settings":
        if self.llm_timeout_seconds >= self.ai_interpretation_lock_ttl:
            raise ValueError("AI_INTERPRETATION_LOCK_TTL 必须大于 LLM_TIMEOUT_SECONDS")
        return self

    def get_db_config(self) -> Dict[str, Any]:
        """aiomysql 连接参数"""
        return {
            "host": self.db_host,
            "port": self.db_port,
            "user": self.db_user,
            "password": self.db_password,
            "db": self.db_name,
            "minsize": self.db_pool_min_size,
            "maxsize": self.db_pool_max_size,
            "autocommit": True,
        }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
