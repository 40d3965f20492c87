"""AssignmentStore SQLite 实现

role_requests 表持有每个 Role Request 的当前状态。
status / bound_actor_id 的修改只通过 compare_and_set（CAS）完成，
此处仅提供数据库操作，不自动提交事务。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.aliases import normalize_status
from ..models.assignment import RoleRequest
from ..models.enums import AssignmentStatus, Seniority

_COLUMNS = (
    "request_id, project_id, profile_id, seniority, required_languages, "
    "required_expertise, bound_actor_id, status, is_ai_request, "
    "invited_actor_ids, revision, created_at, updated_at"
)

_CANONICAL_STATUSES = ", ".join(f"'{s.value}'" for s in AssignmentStatus)

# 状态拼写非规范、绑定不一致或 AI 请求未自动绑定的行
_INCONSISTENT_WHERE = f"""
    status NOT IN ({_CANONICAL_STATUSES})
    OR (status = 'ACCEPTED' AND bound_actor_id IS NULL)
    OR (status != 'ACCEPTED' AND bound_actor_id IS NOT NULL)
    OR (is_ai_request = 1 AND status = 'SEARCHING')
    OR (is_ai_request = 1 AND status = 'ACCEPTED' AND bound_actor_id != profile_id)
"""


def _dump_tags(tags: frozenset[str]) -> str:
    return json.dumps(sorted(tags), ensure_ascii=False)


class SqliteAssignmentStore:
    """AssignmentStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_request(self, request: RoleRequest) -> None:
        """创建 Role Request 记录"""
        await self._conn.execute(
            f"""
            INSERT INTO role_requests ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                request.request_id,
                request.project_id,
                request.profile_id,
                request.seniority.value,
                _dump_tags(request.required_languages),
                _dump_tags(request.required_expertise),
                request.bound_actor_id,
                request.status.value,
                int(request.is_ai_request),
                _dump_tags(request.invited_actor_ids),
                request.revision,
                request.created_at.isoformat(),
                request.updated_at.isoformat(),
            ),
        )

    async def get_request(self, request_id: str) -> RoleRequest | None:
        """根据 request_id 查询"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM role_requests WHERE request_id = ?",
            (request_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_request(row)

    async def list_requests(
        self,
        status: AssignmentStatus | None = None,
        project_id: str | None = None,
    ) -> list[RoleRequest]:
        """查询请求列表，按创建顺序正序"""
        clauses: list[str] = []
        params: list[str] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if project_id is not None:
            clauses.append("project_id = ?")
            params.append(project_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM role_requests {where} "
            "ORDER BY created_at ASC, rowid ASC",
            params,
        )
        rows = await cursor.fetchall()
        return [self._row_to_request(row) for row in rows]

    async def list_open_requests(
        self,
        profile_id: str,
        seniority: Seniority,
    ) -> list[RoleRequest]:
        """查询指定岗位 + 资历下所有 SEARCHING 且未绑定的请求，按创建顺序"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM role_requests
            WHERE profile_id = ? AND seniority = ?
              AND status = 'SEARCHING' AND bound_actor_id IS NULL
            ORDER BY created_at ASC, rowid ASC
            """,
            (profile_id, seniority.value),
        )
        rows = await cursor.fetchall()
        return [self._row_to_request(row) for row in rows]

    async def list_inconsistent(self) -> tuple[list[RoleRequest], dict[str, str]]:
        """查询可能违反不变量的请求（由 ConsistencyAuditor 分类）

        外部直接写入的行可能无法解码（未知状态拼写、损坏的 JSON 列），
        这些行不中断查询，按 request_id 单独返回错误信息。

        Returns:
            (可解码的请求, request_id -> 解码错误)
        """
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM role_requests WHERE {_INCONSISTENT_WHERE} "
            "ORDER BY created_at ASC, rowid ASC"
        )
        rows = await cursor.fetchall()
        requests: list[RoleRequest] = []
        undecodable: dict[str, str] = {}
        for row in rows:
            try:
                requests.append(self._row_to_request(row))
            except (ValueError, TypeError) as e:
                undecodable[row[0]] = str(e)
        return requests, undecodable

    async def list_legacy_statuses(self) -> dict[str, str]:
        """查询状态拼写不是规范枚举值的行，返回 request_id -> 原始拼写"""
        cursor = await self._conn.execute(
            "SELECT request_id, status FROM role_requests "
            f"WHERE status NOT IN ({_CANONICAL_STATUSES}) "
            "ORDER BY created_at ASC, rowid ASC"
        )
        rows = await cursor.fetchall()
        return {row[0]: row[1] for row in rows}

    async def rewrite_status_spelling(
        self,
        request_id: str,
        raw_status: str,
        status: AssignmentStatus,
        updated_at: str,
    ) -> bool:
        """将外部写入的状态拼写改写为规范值，仅当原始拼写未变时写入"""
        cursor = await self._conn.execute(
            """
            UPDATE role_requests
            SET status = ?, revision = revision + 1, updated_at = ?
            WHERE request_id = ? AND status = ?
            """,
            (status.value, updated_at, request_id, raw_status),
        )
        return cursor.rowcount == 1

    async def count_requests(self) -> int:
        cursor = await self._conn.execute("SELECT COUNT(*) FROM role_requests")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def compare_and_set(
        self,
        request_id: str,
        expected_revision: int,
        expected_status: AssignmentStatus,
        expected_actor_id: str | None,
        new_status: AssignmentStatus,
        new_actor_id: str | None,
        updated_at: str,
    ) -> bool:
        """CAS 更新状态与绑定

        仅当 revision / status / bound_actor_id 与读取时一致才写入。

        Returns:
            True 如果写入了一行，False 表示并发写入已改变该行
        """
        cursor = await self._conn.execute(
            """
            UPDATE role_requests
            SET status = ?, bound_actor_id = ?, revision = revision + 1,
                updated_at = ?
            WHERE request_id = ? AND revision = ?
              AND status = ? AND bound_actor_id IS ?
            """,
            (
                new_status.value,
                new_actor_id,
                updated_at,
                request_id,
                expected_revision,
                expected_status.value,
                expected_actor_id,
            ),
        )
        return cursor.rowcount == 1

    async def compare_and_set_requirements(
        self,
        request: RoleRequest,
        expected_revision: int,
        updated_at: str,
    ) -> bool:
        """CAS 更新能力要求（可同时释放绑定）

        Args:
            request: 目标快照（seniority / languages / expertise / status /
                bound_actor_id 取自此对象）
            expected_revision: 读取时的 revision
            updated_at: 更新时间
        """
        cursor = await self._conn.execute(
            """
            UPDATE role_requests
            SET seniority = ?, required_languages = ?, required_expertise = ?,
                status = ?, bound_actor_id = ?, revision = revision + 1,
                updated_at = ?
            WHERE request_id = ? AND revision = ?
            """,
            (
                request.seniority.value,
                _dump_tags(request.required_languages),
                _dump_tags(request.required_expertise),
                request.status.value,
                request.bound_actor_id,
                updated_at,
                request.request_id,
                expected_revision,
            ),
        )
        return cursor.rowcount == 1

    @staticmethod
    def _row_to_request(row: aiosqlite.Row) -> RoleRequest:
        """将数据库行转换为 RoleRequest 模型"""
        return RoleRequest(
            request_id=row[0],
            project_id=row[1],
            profile_id=row[2],
            seniority=row[3],
            required_languages=json.loads(row[4]),
            required_expertise=json.loads(row[5]),
            bound_actor_id=row[6],
            status=normalize_status(row[7]),
            is_ai_request=bool(row[8]),
            invited_actor_ids=frozenset(json.loads(row[9])),
            revision=row[10],
            created_at=datetime.fromisoformat(row[11]),
            updated_at=datetime.fromisoformat(row[12]),
        )
