"""外部状态字符串翻译

历史数据与周边系统使用多种拼写（"recherche"、"booké"、"pending" ...），
只在边界处翻译为 AssignmentStatus，引擎内部只使用闭合枚举。
"""

import unicodedata

from .enums import AssignmentStatus

STATUS_ALIASES: dict[str, AssignmentStatus] = {
    "draft": AssignmentStatus.DRAFT,
    "brouillon": AssignmentStatus.DRAFT,
    "searching": AssignmentStatus.SEARCHING,
    "recherche": AssignmentStatus.SEARCHING,
    "pending": AssignmentStatus.SEARCHING,
    "open": AssignmentStatus.SEARCHING,
    "accepted": AssignmentStatus.ACCEPTED,
    "booke": AssignmentStatus.ACCEPTED,
    "booked": AssignmentStatus.ACCEPTED,
    "confirmed": AssignmentStatus.ACCEPTED,
    "declined": AssignmentStatus.DECLINED,
    "cancelled": AssignmentStatus.DECLINED,
    "canceled": AssignmentStatus.DECLINED,
    "expired": AssignmentStatus.DECLINED,
    "completed": AssignmentStatus.COMPLETED,
}

# 写回外部系统时使用的规范拼写
EXTERNAL_SPELLING: dict[AssignmentStatus, str] = {
    AssignmentStatus.DRAFT: "draft",
    AssignmentStatus.SEARCHING: "recherche",
    AssignmentStatus.ACCEPTED: "accepted",
    AssignmentStatus.DECLINED: "declined",
    AssignmentStatus.COMPLETED: "completed",
}


def _fold(value: str) -> str:
    """去除重音并小写，"booké" -> "booke" """
    decomposed = unicodedata.normalize("NFKD", value.strip())
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def normalize_status(value: str | AssignmentStatus) -> AssignmentStatus:
    """将外部状态拼写翻译为 AssignmentStatus

    Raises:
        ValueError: 无法识别的状态
    """
    if isinstance(value, AssignmentStatus):
        return value
    folded = _fold(value)
    try:
        return AssignmentStatus(folded.upper())
    except ValueError:
        pass
    try:
        return STATUS_ALIASES[folded]
    except KeyError:
        raise ValueError(f"Unknown assignment status: {value!r}") from None


def to_external(status: AssignmentStatus) -> str:
    return EXTERNAL_SPELLING[status]
