"""
监控调度模块
"""

from .config import (
    ConfigError,
    MonitorConfig,
    TrainFilter,
    Watch,
    describe_config,
    load_config,
    parse_config,
)
from .loop import MonitorLoop, MonitorState
from .watcher import ConfigFileWatcher

__all__ = [
    'ConfigError',
    'MonitorConfig',
    'TrainFilter',
    'Watch',
    'describe_config',
    'load_config',
    'parse_config',
    'MonitorLoop',
    'MonitorState',
    'ConfigFileWatcher',
]
