import pytest
from pydantic import ValidationError

from yijing.core.config import Settings


def test_lock_ttl_must_outlive_model_timeout():
    with pytest.raises(ValidationError):
        Settings(llm_timeout_seconds=60, ai_interpretation_lock_ttl=60)


def test_db_config_for_aiomysql():
    settings = Settings(db_host="db.internal", db_user="yijing", db_password="pw", db_name="yijing")
    config = settings.get_db_config()
    assert config["host"] == "db.internal"
    assert config["db"] == "yijing"
    assert config["autocommit"] is True
