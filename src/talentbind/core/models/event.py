"""Assignment Event 模型

assignment_events 表 append-only，不允许更新或删除。
event_id 使用 ULID 格式，时间有序。
request_seq 同一 request 内严格单调递增。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import EventSource, EventType


class AssignmentEvent(BaseModel):
    """Assignment 审计事件"""

    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    request_id: str = Field(description="关联的 Role Request ID")
    request_seq: int = Field(description="请求内序号，严格单调递增")
    ts: datetime = Field(description="事件时间戳")
    type: EventType = Field(description="事件类型")
    source: EventSource = Field(description="写入方")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")
    trace_id: str = Field(default="", description="追踪标识，同一 request 共享")
