"""Divination record persistence.

Records are owned by a user id or a guest (device) id. Every read is scoped
to the owner, so a record id alone never leaks another caller's reading.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import aiomysql

from yijing.schemas.record import DivinationRecord

logger = logging.getLogger(__name__)

# 只允许通过 update 修改的字段
UPDATABLE_FIELDS = ("hexagram", "interpretation", "ai_interpretation", "precise_info")

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS divination_records (
    id VARCHAR(32) NOT NULL PRIMARY KEY,
    user_id VARCHAR(64) NULL,
    guest_id VARCHAR(128) NULL,
    hexagram JSON NOT NULL,
    interpretation JSON NOT NULL,
    ai_interpretation JSON NULL,
    precise_info JSON NULL,
    created_at DATETIME(6) NOT NULL,
    INDEX idx_user_created (user_id, created_at),
    INDEX idx_guest_created (guest_id, created_at)
) DEFAULT CHARSET=utf8mb4
"""


def new_record_id() -> str:
    return uuid.uuid4().hex


def _dump_field(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "model_dump_json"):
        return value.model_dump_json()
    return json.dumps(value, ensure_ascii=False, default=str)


class DivinationRecordStore(ABC):
    @abstractmethod
    async def create(self, record: DivinationRecord) -> DivinationRecord:
        ...

    @abstractmethod
    async def find_by_id(self, record_id: str, owner_id: str) -> Optional[DivinationRecord]:
        ...

    @abstractmethod
    async def update(self, record_id: str, patch: Dict[str, Any]) -> Optional[DivinationRecord]:
        """按字段覆盖写入，返回更新后的记录；记录不存在返回 None"""

    @abstractmethod
    async def list_by_owner(self, owner_id: str, page: int = 1, limit: int = 20) -> Tuple[List[DivinationRecord], int]:
        ...

    @staticmethod
    def _check_patch(patch: Dict[str, Any]) -> None:
        unknown = set(patch) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"不支持更新的字段: {sorted(unknown)}")


class InMemoryDivinationRecordStore(DivinationRecordStore):
    def __init__(self):
        self._records: Dict[str, DivinationRecord] = {}

    async def create(self, record: DivinationRecord) -> DivinationRecord:
        self._records[record.id] = record.model_copy(deep=True)
        return record

    async def find_by_id(self, record_id: str, owner_id: str) -> Optional[DivinationRecord]:
        record = self._records.get(record_id)
        if record is None or owner_id not in (record.user_id, record.guest_id):
            return None
        return record.model_copy(deep=True)

    async def update(self, record_id: str, patch: Dict[str, Any]) -> Optional[DivinationRecord]:
        self._check_patch(patch)
        record = self._records.get(record_id)
        if record is None:
            return None
        updated = record.model_copy(update=patch, deep=True)
        self._records[record_id] = updated
        return updated.model_copy(deep=True)

    async def list_by_owner(self, owner_id: str, page: int = 1, limit: int = 20) -> Tuple[List[DivinationRecord], int]:
        owned = [r for r in self._records.values() if owner_id in (r.user_id, r.guest_id)]
        owned.sort(key=lambda r: r.created_at, reverse=True)
        skip = (max(page, 1) - 1) * limit
        return [r.model_copy(deep=True) for r in owned[skip: skip + limit]], len(owned)


class MySQLDivinationRecordStore(DivinationRecordStore):
    _COLUMNS = "id, user_id, guest_id, hexagram, interpretation, ai_interpretation, precise_info, created_at"

    def __init__(self, pool: aiomysql.Pool):
        self.pool = pool

    async def ensure_schema(self) -> None:
        async with self.pool.acquire() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(CREATE_TABLE_SQL)

    @staticmethod
    def _row_to_record(row: Dict[str, Any]) -> DivinationRecord:
        data = dict(row)
        for column in UPDATABLE_FIELDS:
            if isinstance(data.get(column), (str, bytes)):
                data[column] = json.loads(data[column])
        return DivinationRecord.model_validate(data)

    async def create(self, record: DivinationRecord) -> DivinationRecord:
        sql = (
            f"INSERT INTO divination_records ({self._COLUMNS}) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s)"
        )
        params = (
            record.id,
            record.user_id,
            record.guest_id,
            _dump_field(record.hexagram),
            _dump_field(record.interpretation),
            _dump_field(record.ai_interpretation),
            _dump_field(record.precise_info),
            record.created_at.replace(tzinfo=None),
        )
        async with self.pool.acquire() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(sql, params)
        logger.info(f"卜卦记录已保存: {record.id}")
        return record

    async def find_by_id(self, record_id: str, owner_id: str) -> Optional[DivinationRecord]:
        sql = (
            f"SELECT {self._COLUMNS} FROM divination_records "
            "WHERE id = %s AND (user_id = %s OR guest_id = %s)"
        )
        async with self.pool.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(sql, (record_id, owner_id, owner_id))
                row = await cursor.fetchone()
        return self._row_to_record(row) if row else None

    async def _find_unscoped(self, record_id: str) -> Optional[DivinationRecord]:
        sql = f"SELECT {self._COLUMNS} FROM divination_records WHERE id = %s"
        async with self.pool.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(sql, (record_id,))
                row = await cursor.fetchone()
        return self._row_to_record(row) if row else None

    async def update(self, record_id: str, patch: Dict[str, Any]) -> Optional[DivinationRecord]:
        self._check_patch(patch)
        if patch:
            assignments = ", ".join(f"{column} = %s" for column in patch)
            sql = f"UPDATE divination_records SET {assignments} WHERE id = %s"
            params = tuple(_dump_field(value) for value in patch.values()) + (record_id,)
            async with self.pool.acquire() as conn:
                async with conn.cursor() as cursor:
                    await cursor.execute(sql, params)
        return await self._find_unscoped(record_id)

    async def list_by_owner(self, owner_id: str, page: int = 1, limit: int = 20) -> Tuple[List[DivinationRecord], int]:
        skip = (max(page, 1) - 1) * limit
        sql = (
            f"SELECT {self._COLUMNS} FROM divination_records "
            "WHERE user_id = %s OR guest_id = %s "
            "ORDER BY created_at DESC LIMIT %s OFFSET %s"
        )
        count_sql = "SELECT COUNT(*) AS total FROM divination_records WHERE user_id = %s OR guest_id = %s"
        async with self.pool.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(sql, (owner_id, owner_id, limit, skip))
                rows = await cursor.fetchall()
                await cursor.execute(count_sql, (owner_id, owner_id))
                total_row = await cursor.fetchone()
        return [self._row_to_record(row) for row in rows], int(total_row["total"])


def make_record(
    hexagram,
    interpretation,
    user_id: Optional[str] = None,
    guest_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> DivinationRecord:
    return DivinationRecord(
        id=new_record_id(),
        user_id=user_id,
        guest_id=guest_id,
        hexagram=hexagram,
        interpretation=interpretation,
        created_at=created_at or datetime.now(),
    )
