"""CLI 入口模块 -- python -m talentbind.core <command>

支持的命令：
  scan    只读巡检，列出违反不变量或无法解码的请求
  repair  执行一次完整巡检并修复
"""

import asyncio
import os
import sys

from .config import get_db_path
from .logging_config import setup_logging

_USAGE = """用法: python -m talentbind.core <command>
命令:
  scan    只读巡检，列出违反不变量或无法解码的请求
  repair  执行一次完整巡检并修复"""


def main(argv: list[str] | None = None) -> int:
    """CLI 主入口，返回进程退出码"""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(_USAGE)
        return 1

    command = args[0]
    setup_logging(log_format=os.environ.get("TALENTBIND_LOG_FORMAT", "json"))

    if command == "scan":
        return asyncio.run(scan())
    if command == "repair":
        return asyncio.run(repair())

    print(f"未知命令: {command}")
    print("可用命令: scan, repair")
    return 1


async def scan() -> int:
    """列出违规，存在违规或无法解码的行时退出码为 2"""
    from talentbind.engine import BookingCoordinator, ConsistencyAuditor

    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        auditor = ConsistencyAuditor(store_group, BookingCoordinator(store_group))
        violations, undecodable = await auditor.inspect()
    finally:
        await store_group.close()

    for v in violations:
        print(
            f"{v.request_id}  {v.kind.value}  status={v.observed_status.value}  "
            f"actor={v.observed_actor_id or '-'}  revision={v.observed_revision}"
        )
    for request_id, error in undecodable.items():
        print(f"{request_id}  无法解码: {error}")
    print(f"发现 {len(violations)} 条违规，{len(undecodable)} 条无法解码")
    return 2 if violations or undecodable else 0


async def repair() -> int:
    """执行一次巡检修复，存在修复失败或无法解码的行时退出码为 2"""
    from talentbind.engine import BookingCoordinator, ConsistencyAuditor

    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    print("开始巡检修复...")

    store_group = await create_store_group(db_path)
    try:
        auditor = ConsistencyAuditor(store_group, BookingCoordinator(store_group))
        report = await auditor.sweep()
    finally:
        await store_group.close()

    applied = sum(1 for r in report.repaired if r.applied)
    print(
        f"巡检完成，扫描 {report.scanned} 条请求，发现 {len(report.violations)} 条违规，"
        f"修复 {applied} 条，失败 {len(report.failed)} 条"
    )
    for request_id, error_type in report.failed.items():
        print(f"  修复失败: {request_id} ({error_type})")
    for request_id, error in report.undecodable.items():
        print(f"  无法解码: {request_id} ({error})")
    return 2 if report.failed or report.undecodable else 0


if __name__ == "__main__":
    sys.exit(main())
