"""TalentBind Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from pathlib import Path

import aiosqlite

from .actor_store import SqliteActorDirectory
from .assignment_store import SqliteAssignmentStore
from .catalog_store import SqliteCatalog
from .event_store import SqliteEventStore
from .sqlite_init import init_db
from .transaction import (
    RevisionConflictError,
    change_requirements_with_event,
    create_request_with_event,
    rewrite_status_with_event,
    transition_with_event,
    translate_store_errors,
)


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接

    write_lock 串行化共享连接上的写事务（SQLite 单写者），
    保证一个事务的回滚不会波及另一个协程尚未提交的写入。
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.catalog = SqliteCatalog(conn)
        self.actor_directory = SqliteActorDirectory(conn)
        self.assignment_store = SqliteAssignmentStore(conn)
        self.event_store = SqliteEventStore(conn)

    async def close(self) -> None:
        await self.conn.close()


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteCatalog",
    "SqliteActorDirectory",
    "SqliteAssignmentStore",
    "SqliteEventStore",
    "init_db",
    "RevisionConflictError",
    "create_request_with_event",
    "rewrite_status_with_event",
    "transition_with_event",
    "change_requirements_with_event",
    "translate_store_errors",
]
