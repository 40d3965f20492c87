"""SQLite 数据库初始化

PRAGMA 配置 + 四张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

from ..config import SQLITE_BUSY_TIMEOUT_MS

# role_profiles 表 DDL（目录，只读参考数据）
_ROLE_PROFILES_DDL = """
CREATE TABLE IF NOT EXISTS role_profiles (
    profile_id        TEXT PRIMARY KEY,
    name              TEXT NOT NULL DEFAULT '',
    is_ai             INTEGER NOT NULL DEFAULT 0,
    seniority_options TEXT NOT NULL DEFAULT '[]',
    metadata          TEXT NOT NULL DEFAULT '{}'
);
"""

# actors 表 DDL（人类候选人与 AI 资源共享 ID 命名空间）
_ACTORS_DDL = """
CREATE TABLE IF NOT EXISTS actors (
    actor_id    TEXT PRIMARY KEY,
    kind        TEXT NOT NULL DEFAULT 'human',
    profile_id  TEXT NOT NULL,
    seniority   TEXT NOT NULL,
    languages   TEXT NOT NULL DEFAULT '[]',
    expertise   TEXT NOT NULL DEFAULT '[]',
    status      TEXT NOT NULL DEFAULT 'available'
);
"""

_ACTORS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_actors_capability ON actors(profile_id, seniority);",
]

# role_requests 表 DDL
_ROLE_REQUESTS_DDL = """
CREATE TABLE IF NOT EXISTS role_requests (
    request_id          TEXT PRIMARY KEY,
    project_id          TEXT NOT NULL,
    profile_id          TEXT NOT NULL,
    seniority           TEXT NOT NULL,
    required_languages  TEXT NOT NULL DEFAULT '[]',
    required_expertise  TEXT NOT NULL DEFAULT '[]',
    bound_actor_id      TEXT,
    status              TEXT NOT NULL DEFAULT 'SEARCHING',
    is_ai_request       INTEGER NOT NULL DEFAULT 0,
    invited_actor_ids   TEXT NOT NULL DEFAULT '[]',
    revision            INTEGER NOT NULL DEFAULT 1,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
);
"""

_ROLE_REQUESTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_requests_status ON role_requests(status);",
    "CREATE INDEX IF NOT EXISTS idx_requests_project ON role_requests(project_id);",
    (
        "CREATE INDEX IF NOT EXISTS idx_requests_open "
        "ON role_requests(profile_id, seniority, status);"
    ),
]

# assignment_events 表 DDL
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS assignment_events (
    event_id     TEXT PRIMARY KEY,
    request_id   TEXT NOT NULL,
    request_seq  INTEGER NOT NULL,
    ts           TEXT NOT NULL,
    type         TEXT NOT NULL,
    source       TEXT NOT NULL,
    payload      TEXT NOT NULL DEFAULT '{}',
    trace_id     TEXT NOT NULL DEFAULT '',

    FOREIGN KEY (request_id) REFERENCES role_requests(request_id)
);
"""

_EVENTS_INDEXES = [
    # 请求内事件序号唯一约束（确保 request_seq 严格单调递增）
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_events_request_seq "
        "ON assignment_events(request_id, request_seq);"
    ),
    "CREATE INDEX IF NOT EXISTS idx_events_request_ts ON assignment_events(request_id, ts);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS};")

    for ddl in (_ROLE_PROFILES_DDL, _ACTORS_DDL, _ROLE_REQUESTS_DDL, _EVENTS_DDL):
        await conn.execute(ddl)

    for idx_sql in _ACTORS_INDEXES + _ROLE_REQUESTS_INDEXES + _EVENTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()
