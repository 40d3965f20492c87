"""Booking 异常体系

所有错误以类型化异常返回调用方，引擎内部不重试、不吞掉。
recoverable=True 表示调用方可以退避重试（仅 UnavailableError）。
"""

from .models.enums import AssignmentStatus


class BookingError(Exception):
    """Booking 引擎基础异常"""

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可由调用方退避重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class NotFoundError(BookingError):
    """引用的 request / actor / profile 不存在"""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class NotEligibleError(BookingError):
    """执行者能力不满足请求要求

    调用方不应在未改变 actor / request 的情况下重试。
    """

    def __init__(self, request_id: str, actor_id: str, reasons: list[str]) -> None:
        super().__init__(
            f"Actor {actor_id} is not eligible for {request_id}: {', '.join(reasons)}"
        )
        self.request_id = request_id
        self.actor_id = actor_id
        self.reasons = reasons


class AlreadyBoundError(BookingError):
    """请求已被其他执行者接受或已关闭

    调用方可以重新查询 find_open_requests_for 并选择其他请求，
    但不得对同一请求静默重试 accept。
    """

    def __init__(
        self,
        request_id: str,
        status: AssignmentStatus,
        bound_actor_id: str | None,
    ) -> None:
        super().__init__(f"Request {request_id} is no longer open (status={status})")
        self.request_id = request_id
        self.status = status
        self.bound_actor_id = bound_actor_id


class InvalidTransitionError(BookingError):
    """当前状态下不允许该操作"""

    def __init__(
        self,
        request_id: str,
        from_status: AssignmentStatus,
        operation: str,
        detail: str = "",
    ) -> None:
        message = f"Cannot {operation} request {request_id} in status {from_status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.request_id = request_id
        self.from_status = from_status
        self.operation = operation


class UnavailableError(BookingError):
    """底层存储或目录不可达

    调用方可以退避重试，引擎自身不重试。
    """

    def __init__(self, operation: str, original_error: Exception) -> None:
        super().__init__(
            f"Store unavailable during {operation}: {original_error}",
            recoverable=True,
        )
        self.operation = operation
        self.original_error = original_error


class SweepInProgressError(BookingError):
    """已有巡检在运行，不允许重叠执行"""

    def __init__(self) -> None:
        super().__init__("A consistency sweep is already running", recoverable=True)
