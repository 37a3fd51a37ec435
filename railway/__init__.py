"""
12306 余票查询模块
"""

from .errors import (
    TicketMonitorError,
    NetworkError,
    RemoteDataError,
    DateRangeError,
    MalformedRecordError,
    StationNotFoundError,
    QueryCancelled,
)
from .http import RetryPolicy, create_session, fetch_with_retry
from .cache import TicketCache
from .records import TrainRecord, parse_train_record, SEAT_CATEGORIES
from .stations import StationDirectory
from .client import TicketClient
from .evaluator import Availability, AvailabilityEvaluator, check_seats

__all__ = [
    'TicketMonitorError',
    'NetworkError',
    'RemoteDataError',
    'DateRangeError',
    'MalformedRecordError',
    'StationNotFoundError',
    'QueryCancelled',
    'RetryPolicy',
    'create_session',
    'fetch_with_retry',
    'TicketCache',
    'TrainRecord',
    'parse_train_record',
    'SEAT_CATEGORIES',
    'StationDirectory',
    'TicketClient',
    'Availability',
    'AvailabilityEvaluator',
    'check_seats',
]
