"""TalentBind Engine -- 匹配、绑定与一致性巡检

engine 的公开接口导出。
"""

# 核心组件
from .auditor import ConsistencyAuditor, classify
from .booking import BookingCoordinator
from .matcher import Matcher, eligibility_failures, is_eligible

__all__ = [
    "Matcher",
    "BookingCoordinator",
    "ConsistencyAuditor",
    "is_eligible",
    "eligibility_failures",
    "classify",
]
