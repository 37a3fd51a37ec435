"""
日志系统模块
"""

from .ticket_logger import TicketLogger, get_logger, LOGGER_NAME

__all__ = ['TicketLogger', 'get_logger', 'LOGGER_NAME']
