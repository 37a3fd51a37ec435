"""
日志系统配置和工具
"""

import os
import logging
import platform
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "CRTicketMonitor"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAIN_LOG = "ticket_monitor.log"
ERROR_LOG = "error.log"


def get_logger(name: str) -> logging.Logger:
    """获取挂在主日志器下的模块日志器，模块日志统一由 TicketLogger 的 handler 输出"""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def _level(value) -> int:
    level = logging.getLevelName(str(value or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


class TicketLogger:
    """
    车票监控日志器

    启动时先以默认配置初始化，读取配置文件后调用 configure 按 logging 段重新配置。
    """

    def __init__(self, log_dir: str, config: dict = None):
        """
        :param log_dir: 日志目录路径
        :param config: 日志配置字典，见 config.example.yml 的 logging 段
        """
        self.log_dir = log_dir
        os.makedirs(log_dir, exist_ok=True)
        self.logger = logging.getLogger(LOGGER_NAME)
        self.configure(config or {})

    def _file_handler(self, filename: str, max_bytes: int, backup_count: int) -> RotatingFileHandler:
        return RotatingFileHandler(
            os.path.join(self.log_dir, filename),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )

    def configure(self, config: dict):
        """按配置替换全部 handler"""
        self.config = config
        level = _level(config.get("level"))
        max_bytes = int(config.get("max_size_mb", 10) * 1024 * 1024)
        backup_count = int(config.get("backup_count", 5))

        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        handlers = [self._file_handler(MAIN_LOG, max_bytes, backup_count)]

        # 错误单独记录
        errors = self._file_handler(ERROR_LOG, max_bytes, backup_count)
        errors.setLevel(logging.ERROR)
        handlers.append(errors)

        # 无人值守时也默认输出到控制台
        if config.get("console_output", True) or level == logging.DEBUG:
            console = logging.StreamHandler()
            console.setLevel(level)
            handlers.append(console)

        for old in list(self.logger.handlers):
            self.logger.removeHandler(old)
            old.close()
        self.logger.setLevel(level)
        for handler in handlers:
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_startup(self, version: str):
        self.logger.info("=" * 60)
        self.logger.info(f"{LOGGER_NAME} 启动，版本: {version}")
        self.logger.info(f"运行环境: Python {platform.python_version()} / {platform.system()} {platform.release()}")

    def log_shutdown(self):
        self.logger.info(f"{LOGGER_NAME} 退出")
        self.logger.info("=" * 60)

    def info(self, msg: str):
        self.logger.info(msg)

    def error(self, msg: str, exc_info: bool = False):
        self.logger.error(msg, exc_info=exc_info)

    def critical(self, msg: str, exc_info: bool = True):
        self.logger.critical(msg, exc_info=exc_info)
