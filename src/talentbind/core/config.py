"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、CAS 冲突重试次数等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TALENTBIND_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TALENTBIND_DB_PATH",
        str(_get_base_dir() / "sqlite" / "talentbind.db"),
    )


def get_cas_max_retries() -> int:
    """revision 冲突时重新读取并重新评估的最大次数"""
    return max(1, int(os.environ.get("TALENTBIND_CAS_MAX_RETRIES", "3")))


# SQLite busy_timeout（毫秒），跨进程写锁等待上限
SQLITE_BUSY_TIMEOUT_MS: int = int(
    os.environ.get("TALENTBIND_SQLITE_BUSY_TIMEOUT_MS", "5000")
)
