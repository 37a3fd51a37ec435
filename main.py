import os
import shutil
import signal
import sys

import yaml

from logger import TicketLogger
from monitor import ConfigError, ConfigFileWatcher, MonitorLoop, load_config
from notification import AlertMessage, NotificationManager
from railway import StationDirectory, TicketClient

VERSION = "2.0.0"

BANNER = r"""
           __________  ________  ___
          / ____/ __ \/_  __/  |/  /
         / /   / /_/ / / / / /|_/ /
        / /___/ _  _/ / / / /  / /
        \____/_/ |_| /_/ /_/  /_/
"""


class TrainMonitor:
    def __init__(self, base_dir: str = None):
        base_dir = base_dir or os.path.dirname(os.path.abspath(__file__))
        self.config_yml = os.path.join(base_dir, "config.yml")
        self.example_yml = os.path.join(base_dir, "config.example.yml")
        # 热重载监听的文件与实际读取的配置文件不同，保持原有行为
        self.watch_file = os.path.join(base_dir, "config.json")
        self.station_json = os.path.join(base_dir, "station_codes.json")
        self.log_dir = os.path.join(base_dir, "logs")

        self.logger = TicketLogger(self.log_dir)
        self.loop = None
        self.watcher = None
        self._stop_requested = False

    def _ensure_config_file(self) -> bool:
        """config.yml 不存在时根据示例创建"""
        if os.path.exists(self.config_yml):
            return True
        self.logger.error("config.yml 不存在")
        try:
            shutil.copyfile(self.example_yml, self.config_yml)
            self.logger.info("已自动创建 config.yml")
            self.logger.info("请根据需要修改后重启程序")
        except OSError as e:
            self.logger.error(f"创建 config.yml 失败：{e}")
            self.logger.info("请自行创建后重启程序")
        return False

    def _notify_startup_failure(self, content: str, grace_seconds: float = 5):
        """配置无效时，尽量用仍可创建的推送渠道发出提醒"""
        try:
            with open(self.config_yml, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError):
            return
        configs = raw.get("notifications") if isinstance(raw, dict) else None
        if not isinstance(configs, list) or not configs:
            return
        notifier = NotificationManager()
        try:
            notifier.reload(configs)
            notifier.notify(AlertMessage.now(content), timeout=grace_seconds)
        finally:
            notifier.shutdown()

    def _handle_signal(self, signum, frame):
        self.logger.info(f"收到信号 {signum}，准备退出")
        self._stop_requested = True
        if self.loop:
            self.loop.stop()

    def start(self) -> int:
        print(BANNER)
        self.logger.log_startup(VERSION)

        if not self._ensure_config_file():
            return 1
        try:
            config = load_config(self.config_yml)
        except ConfigError as e:
            self.logger.error(f"配置文件错误：{e}")
            self._notify_startup_failure(f"车票监控程序异常退出：{e}")
            return 1

        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

        try:
            client = TicketClient()
            stations = StationDirectory(cache_file=self.station_json)
            self.loop = MonitorLoop(self.config_yml, client, stations, NotificationManager(),
                                    ticket_logger=self.logger)
            if self._stop_requested:
                self.loop.stop()
            self.loop.apply(config)
            client.start()

            self.watcher = ConfigFileWatcher(self.watch_file, self.loop.reload)
            self.watcher.start()

            self.loop.run()
        except Exception as e:
            self.logger.critical(f"发生错误：{e}")
            self._shutdown(f"车票监控程序异常退出：{e}")
            return 1
        self._shutdown()
        return 0

    def _shutdown(self, final_message: str = "车票监控程序已停止"):
        if self.watcher:
            self.watcher.stop()
        if self.loop:
            self.loop.close(final_message)
        self.logger.info("程序已结束")
        self.logger.log_shutdown()


if __name__ == "__main__":
    sys.exit(TrainMonitor().start())
