"""CAS 写入 + 事件原子事务封装

在同一 SQLite 事务内原子提交 role_requests 的 CAS 更新和审计事件，
CAS 未命中或任何写入失败时整体回滚。
调用方需持有 StoreGroup.write_lock，保证共享连接上的事务不交错。
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager

import aiosqlite

from ..exceptions import InvalidTransitionError, UnavailableError
from ..models.assignment import RoleRequest
from ..models.enums import AssignmentStatus
from ..models.event import AssignmentEvent
from .protocols import AssignmentStore, EventStore

EventBuilder = Callable[[int], AssignmentEvent]


class RevisionConflictError(Exception):
    """CAS 未命中：读取之后该行已被并发写入修改"""

    def __init__(self, request_id: str, expected_revision: int) -> None:
        super().__init__(
            f"Request {request_id} changed since revision {expected_revision}"
        )
        self.request_id = request_id
        self.expected_revision = expected_revision


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """将 SQLite 运行期错误（锁超时、磁盘不可用等）转换为 UnavailableError"""
    try:
        yield
    except aiosqlite.OperationalError as e:
        raise UnavailableError(operation, e) from e


async def create_request_with_event(
    conn: aiosqlite.Connection,
    assignment_store: AssignmentStore,
    event_store: EventStore,
    request: RoleRequest,
    event: AssignmentEvent,
) -> None:
    """在同一事务内创建请求并写入 REQUEST_CREATED 事件"""
    try:
        await assignment_store.create_request(request)
        await event_store.append_event(event)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise


async def transition_with_event(
    conn: aiosqlite.Connection,
    assignment_store: AssignmentStore,
    event_store: EventStore,
    current: RoleRequest,
    target: RoleRequest,
    event_builder: EventBuilder,
    operation: str,
) -> RoleRequest:
    """CAS 更新 status / bound_actor_id 并写入事件

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        assignment_store: AssignmentStore 实例
        event_store: EventStore 实例
        current: 读取到的快照（CAS 期望值）
        target: 目标快照（只取 status / bound_actor_id / updated_at）
        event_builder: 根据 request_seq 构造事件
        operation: 操作名（用于错误信息）

    Returns:
        写入后的快照（revision + 1）

    Raises:
        InvalidTransitionError: 目标快照违反不变量，未写入任何数据
        RevisionConflictError: CAS 未命中，已回滚
    """
    committed = target.model_copy(update={"revision": current.revision + 1})
    errors = committed.invariant_errors()
    if errors:
        raise InvalidTransitionError(
            current.request_id, current.status, operation, "; ".join(errors)
        )

    try:
        seq = await event_store.get_next_request_seq(current.request_id)
        written = await assignment_store.compare_and_set(
            request_id=current.request_id,
            expected_revision=current.revision,
            expected_status=current.status,
            expected_actor_id=current.bound_actor_id,
            new_status=committed.status,
            new_actor_id=committed.bound_actor_id,
            updated_at=committed.updated_at.isoformat(),
        )
        if not written:
            raise RevisionConflictError(current.request_id, current.revision)
        await event_store.append_event(event_builder(seq))
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return committed


async def change_requirements_with_event(
    conn: aiosqlite.Connection,
    assignment_store: AssignmentStore,
    event_store: EventStore,
    current: RoleRequest,
    target: RoleRequest,
    event_builder: EventBuilder,
    operation: str = "modify_requirements",
) -> RoleRequest:
    """CAS 更新能力要求（可能同时释放绑定）并写入事件"""
    committed = target.model_copy(update={"revision": current.revision + 1})
    errors = committed.invariant_errors()
    if errors:
        raise InvalidTransitionError(
            current.request_id, current.status, operation, "; ".join(errors)
        )

    try:
        seq = await event_store.get_next_request_seq(current.request_id)
        written = await assignment_store.compare_and_set_requirements(
            committed,
            expected_revision=current.revision,
            updated_at=committed.updated_at.isoformat(),
        )
        if not written:
            raise RevisionConflictError(current.request_id, current.revision)
        await event_store.append_event(event_builder(seq))
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return committed


async def rewrite_status_with_event(
    conn: aiosqlite.Connection,
    assignment_store: AssignmentStore,
    event_store: EventStore,
    request_id: str,
    raw_status: str,
    status: AssignmentStatus,
    updated_at: str,
    event_builder: EventBuilder,
) -> bool:
    """改写外部写入的状态拼写并写入 REPAIR_APPLIED 事件

    Returns:
        False 表示原始拼写已被并发改写，未写入任何数据
    """
    try:
        seq = await event_store.get_next_request_seq(request_id)
        written = await assignment_store.rewrite_status_spelling(
            request_id, raw_status, status, updated_at
        )
        if not written:
            await conn.rollback()
            return False
        await event_store.append_event(event_builder(seq))
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return True
