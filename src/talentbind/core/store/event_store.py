"""AssignmentEventStore SQLite 实现

事件表 append-only：只允许插入，不允许更新或删除。
request_seq 同一 request 内严格单调递增。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.enums import EventSource, EventType
from ..models.event import AssignmentEvent


class SqliteEventStore:
    """AssignmentEventStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_event(self, event: AssignmentEvent) -> None:
        """追加事件（append-only）

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            """
            INSERT INTO assignment_events (event_id, request_id, request_seq, ts,
                                           type, source, payload, trace_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.request_id,
                event.request_seq,
                event.ts.isoformat(),
                event.type.value,
                event.source.value,
                json.dumps(event.payload, ensure_ascii=False),
                event.trace_id,
            ),
        )

    async def get_events_for_request(self, request_id: str) -> list[AssignmentEvent]:
        """查询指定请求的所有事件，按 request_seq 正序"""
        cursor = await self._conn.execute(
            """
            SELECT event_id, request_id, request_seq, ts, type, source, payload, trace_id
            FROM assignment_events WHERE request_id = ? ORDER BY request_seq ASC
            """,
            (request_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_next_request_seq(self, request_id: str) -> int:
        """获取指定请求的下一个 request_seq（MAX+1）

        在事务内调用以确保原子性。
        """
        cursor = await self._conn.execute(
            "SELECT COALESCE(MAX(request_seq), 0) FROM assignment_events WHERE request_id = ?",
            (request_id,),
        )
        row = await cursor.fetchone()
        return (row[0] if row else 0) + 1

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> AssignmentEvent:
        """将数据库行转换为 AssignmentEvent 模型"""
        payload = json.loads(row[6]) if row[6] else {}
        return AssignmentEvent(
            event_id=row[0],
            request_id=row[1],
            request_seq=row[2],
            ts=datetime.fromisoformat(row[3]),
            type=EventType(row[4]),
            source=EventSource(row[5]),
            payload=payload,
            trace_id=row[7],
        )
