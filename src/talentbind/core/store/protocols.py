"""Store Protocol 接口定义

定义 Catalog、ActorDirectory、AssignmentStore、EventStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
Matcher / BookingCoordinator 在构造时注入这些接口，不依赖全局客户端。
"""

from typing import Protocol

from ..models.actor import Actor, RoleProfile
from ..models.assignment import RoleRequest
from ..models.enums import AssignmentStatus, Seniority
from ..models.event import AssignmentEvent


class Catalog(Protocol):
    """岗位目录接口（只读）"""

    async def get_capability_requirements(self, profile_id: str) -> RoleProfile:
        """查询岗位的资历选项与目录元数据，不存在时抛出 NotFoundError"""
        ...

    async def is_ai_role(self, profile_id: str) -> bool:
        """岗位是否由 AI 承担"""
        ...


class ActorDirectory(Protocol):
    """执行者目录接口（只读）"""

    async def get_actor(self, actor_id: str) -> Actor:
        """根据 actor_id 查询执行者，不存在时抛出 NotFoundError"""
        ...

    async def list_actors(self, profile_id: str, seniority: Seniority) -> list[Actor]:
        """查询指定岗位 + 资历的所有执行者"""
        ...


class AssignmentStore(Protocol):
    """Role Request 存储接口"""

    async def create_request(self, request: RoleRequest) -> None:
        """创建请求记录"""
        ...

    async def get_request(self, request_id: str) -> RoleRequest | None:
        """根据 request_id 查询"""
        ...

    async def list_requests(
        self,
        status: AssignmentStatus | None = None,
        project_id: str | None = None,
    ) -> list[RoleRequest]:
        """查询请求列表，按创建顺序"""
        ...

    async def list_open_requests(
        self,
        profile_id: str,
        seniority: Seniority,
    ) -> list[RoleRequest]:
        """查询 SEARCHING 且未绑定的请求，按创建顺序"""
        ...

    async def list_inconsistent(self) -> tuple[list[RoleRequest], dict[str, str]]:
        """查询可能违反不变量的请求，无法解码的行单独返回 request_id -> 错误"""
        ...

    async def list_legacy_statuses(self) -> dict[str, str]:
        """查询状态拼写非规范的行，request_id -> 原始拼写"""
        ...

    async def rewrite_status_spelling(
        self,
        request_id: str,
        raw_status: str,
        status: AssignmentStatus,
        updated_at: str,
    ) -> bool:
        """改写状态拼写为规范值，返回是否写入"""
        ...

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
        """CAS 更新状态与绑定，返回是否写入"""
        ...

    async def compare_and_set_requirements(
        self,
        request: RoleRequest,
        expected_revision: int,
        updated_at: str,
    ) -> bool:
        """CAS 更新能力要求（可同时释放绑定），返回是否写入"""
        ...

    async def count_requests(self) -> int:
        """请求总数"""
        ...


class EventStore(Protocol):
    """Assignment 事件存储接口

    事件表 append-only：只允许插入，不允许更新或删除。
    """

    async def append_event(self, event: AssignmentEvent) -> None:
        """追加事件（append-only）"""
        ...

    async def get_events_for_request(self, request_id: str) -> list[AssignmentEvent]:
        """查询指定请求的所有事件"""
        ...

    async def get_next_request_seq(self, request_id: str) -> int:
        """获取指定请求的下一个 request_seq（MAX+1）"""
        ...
