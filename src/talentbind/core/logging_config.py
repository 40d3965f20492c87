"""structlog 配置模块

dev 模式：ConsoleRenderer 可读输出，适合本地运行 CLI
json 模式：每行一个 JSON 对象，供 cron 巡检的修复审计日志采集
"""

import logging
import os

import structlog

# aiosqlite 在 DEBUG 级别为每条语句输出日志，巡检时噪音过大
_NOISY_LOGGERS = ("aiosqlite",)


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog 配置

    Args:
        log_format: "json" 或 "dev"，缺省读取 TALENTBIND_LOG_FORMAT（默认 dev）
        log_level: 日志级别名，缺省读取 TALENTBIND_LOG_LEVEL（默认 INFO）
    """
    log_format = log_format or os.environ.get("TALENTBIND_LOG_FORMAT", "dev")
    log_level = (log_level or os.environ.get("TALENTBIND_LOG_LEVEL", "INFO")).upper()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "json":
        # JSON 采集端无法渲染 traceback 对象
        shared_processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format),
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
