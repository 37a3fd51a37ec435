"""
余票查询相关的异常定义
"""


class TicketMonitorError(Exception):
    """余票监控异常基类"""


class NetworkError(TicketMonitorError):
    """重试耗尽后仍然失败的网络请求"""

    def __init__(self, message: str, last_error: Exception = None):
        super().__init__(message)
        self.last_error = last_error


class RemoteDataError(TicketMonitorError):
    """12306 返回的数据不完整或 status 为假"""


class DateRangeError(TicketMonitorError):
    """查询日期不在 0~15 天范围内"""


class MalformedRecordError(TicketMonitorError):
    """无法解析的车次记录"""


class StationNotFoundError(TicketMonitorError):
    """站名无法匹配到电报码"""


class QueryCancelled(TicketMonitorError):
    """程序退出时中止了正在进行的查询"""
