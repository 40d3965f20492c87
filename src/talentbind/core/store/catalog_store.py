"""Catalog SQLite 实现

岗位目录（profile、允许的资历、是否由 AI 承担）是只读参考数据。
"""

import json

import aiosqlite

from ..exceptions import NotFoundError
from ..models.actor import RoleProfile


class SqliteCatalog:
    """Catalog 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def register_profile(self, profile: RoleProfile) -> None:
        """写入或覆盖岗位条目（不自动提交事务）"""
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO role_profiles (profile_id, name, is_ai,
                                                  seniority_options, metadata)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                profile.profile_id,
                profile.name,
                int(profile.is_ai),
                json.dumps(sorted(s.value for s in profile.seniority_options)),
                json.dumps(profile.metadata, ensure_ascii=False),
            ),
        )

    async def get_capability_requirements(self, profile_id: str) -> RoleProfile:
        """查询岗位条目（资历选项 + 目录元数据）

        Raises:
            NotFoundError: 岗位不存在
        """
        cursor = await self._conn.execute(
            """
            SELECT profile_id, name, is_ai, seniority_options, metadata
            FROM role_profiles WHERE profile_id = ?
            """,
            (profile_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            raise NotFoundError("profile", profile_id)
        return RoleProfile(
            profile_id=row[0],
            name=row[1],
            is_ai=bool(row[2]),
            seniority_options=frozenset(json.loads(row[3])),
            metadata=json.loads(row[4]) if row[4] else {},
        )

    async def is_ai_role(self, profile_id: str) -> bool:
        """岗位是否由 AI 承担"""
        profile = await self.get_capability_requirements(profile_id)
        return profile.is_ai
