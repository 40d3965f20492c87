"""ActorDirectory SQLite 实现

actors 表由外部入职流程维护；引擎只读，register_actor 仅供入职同步与测试夹具使用。
"""

import json

import aiosqlite

from ..exceptions import NotFoundError
from ..models.actor import Actor
from ..models.enums import Seniority

_COLUMNS = "actor_id, kind, profile_id, seniority, languages, expertise, status"


class SqliteActorDirectory:
    """ActorDirectory 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def register_actor(self, actor: Actor) -> None:
        """写入或覆盖执行者（不自动提交事务）"""
        await self._conn.execute(
            f"""
            INSERT OR REPLACE INTO actors ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                actor.actor_id,
                actor.kind.value,
                actor.profile_id,
                actor.seniority.value,
                json.dumps(sorted(actor.languages), ensure_ascii=False),
                json.dumps(sorted(actor.expertise), ensure_ascii=False),
                actor.status.value,
            ),
        )

    async def get_actor(self, actor_id: str) -> Actor:
        """根据 actor_id 查询执行者

        Raises:
            NotFoundError: 执行者不存在
        """
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM actors WHERE actor_id = ?",
            (actor_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            raise NotFoundError("actor", actor_id)
        return self._row_to_actor(row)

    async def list_actors(self, profile_id: str, seniority: Seniority) -> list[Actor]:
        """查询指定岗位 + 资历的所有执行者"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM actors
            WHERE profile_id = ? AND seniority = ?
            ORDER BY actor_id ASC
            """,
            (profile_id, seniority.value),
        )
        rows = await cursor.fetchall()
        return [self._row_to_actor(row) for row in rows]

    @staticmethod
    def _row_to_actor(row: aiosqlite.Row) -> Actor:
        return Actor(
            actor_id=row[0],
            kind=row[1],
            profile_id=row[2],
            seniority=row[3],
            languages=json.loads(row[4]),
            expertise=json.loads(row[5]),
            status=row[6],
        )
