"""
监控主循环：定时查询、热重载、并发推送
"""

import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Callable, List, Optional, Set

from prettytable import PrettyTable

from logger import get_logger
from notification import AlertMessage, NotificationManager
from railway import (AvailabilityEvaluator, DateRangeError, NetworkError, QueryCancelled,
                     RemoteDataError, StationDirectory, StationNotFoundError, TicketClient,
                     TrainRecord)
from railway.evaluator import Availability
from .config import ConfigError, MonitorConfig, TrainFilter, Watch, describe_config, load_config

logger = get_logger(__name__)

TABLE_SEATS = ["商务座", "一等座", "二等座", "软卧", "硬卧", "软座", "硬座", "无座"]


class MonitorState(Enum):
    IDLE = "idle"
    POLLING = "polling"
    FAILED = "failed"


class Event(Enum):
    RELOAD = "reload"
    STOP = "stop"


class MonitorLoop:
    """
    余票监控循环

    控制循环只在一个线程中消费事件（热重载、停止）并按固定间隔触发查询，
    每轮查询提交到线程池执行，耗时过长时允许与下一轮重叠。
    """

    def __init__(self, config_path: str, client: TicketClient, stations: StationDirectory,
                 notifier: NotificationManager, first_delay: float = 5, grace_seconds: float = 5,
                 max_cycles: int = 2, clock: Callable[[], float] = time.monotonic, ticket_logger=None):
        """
        :param config_path: YAML 配置文件路径
        :param client: 余票查询客户端
        :param stations: 车站目录
        :param notifier: 通知管理器
        :param first_delay: 启动或重载后首次查询前的等待秒数
        :param grace_seconds: 退出时等待进行中的查询与最后一条提醒的最长秒数
        :param max_cycles: 允许同时进行的查询轮数
        :param ticket_logger: TicketLogger，加载配置时按 logging 段重新配置
        """
        self.config_path = config_path
        self.client = client
        self.stations = stations
        self.notifier = notifier
        self.first_delay = first_delay
        self.grace_seconds = grace_seconds
        self.config: Optional[MonitorConfig] = None
        self.evaluator: Optional[AvailabilityEvaluator] = None
        self.state = MonitorState.IDLE
        self.cycle_count = 0
        self._clock = clock
        self._events: "queue.Queue[Event]" = queue.Queue()
        self._next_tick: Optional[float] = None
        self.ticket_logger = ticket_logger
        self._cycles = ThreadPoolExecutor(max_workers=max_cycles, thread_name_prefix="poll")
        self._running: Set[Future] = set()
        self._running_lock = threading.Lock()
        self._stopping = threading.Event()
        self._closed = False

    # ---- 配置 ----

    def load(self) -> MonitorConfig:
        """
        加载配置并创建推送渠道
        :raises ConfigError: 配置文件错误
        """
        config = load_config(self.config_path)
        self.apply(config)
        return config

    def apply(self, config: MonitorConfig):
        """使用新配置：重新配置日志，重建所有推送渠道并发送配置摘要"""
        if self.ticket_logger is not None:
            self.ticket_logger.configure(config.logging)
        self.notifier.reload(config.notifications)
        channels = "、".join(self.notifier.get_available_channels())
        logger.info(f"当前推送渠道：{channels or '无'}")
        self.config = config
        self.evaluator = AvailabilityEvaluator(self.client, delay=config.delay)

        summary = describe_config(config)
        logger.info(summary)
        self.send(summary)
        logger.info("已尝试发送提醒，如未收到请检查配置")

    def reload(self):
        """热重载入口，供文件监听线程调用"""
        self._events.put(Event.RELOAD)

    def stop(self):
        self._stopping.set()
        self._events.put(Event.STOP)

    def reload_config(self) -> bool:
        """在控制循环中执行重载，失败时保留原配置与定时器"""
        logger.info("检测到配置文件变化，正在重新加载...")
        try:
            config = load_config(self.config_path)
        except ConfigError as e:
            logger.error(f"重新加载配置文件失败：{e}")
            self.send(f"配置文件重新加载失败：{e}")
            return False

        self.apply(config)
        self._schedule_first()
        logger.info("配置文件重新加载完成")
        self.send("配置文件已重新加载，监控已重新启动")
        return True

    # ---- 定时 ----

    def _schedule_first(self):
        self._next_tick = self._clock() + self.first_delay
        logger.info(f"{self.first_delay:g}秒后开始首次查询，按 Ctrl+C 中止")

    def _advance_tick(self):
        period = self.config.interval * 60
        now = self._clock()
        self._next_tick += period
        while self._next_tick <= now:
            self._next_tick += period

    def run(self):
        """控制循环，直到收到停止事件"""
        if self.config is None:
            self.load()
        self._schedule_first()
        while True:
            timeout = max(0.0, self._next_tick - self._clock())
            try:
                event = self._events.get(timeout=timeout)
            except queue.Empty:
                event = None

            if event is Event.STOP:
                logger.info("收到停止信号")
                return
            if event is Event.RELOAD:
                self.reload_config()
                continue
            if self._clock() >= self._next_tick:
                self.submit_cycle()
                self._advance_tick()

    def submit_cycle(self) -> Future:
        """在线程池中执行一轮查询，退出时等待这些查询结束"""
        future = self._cycles.submit(self.run_cycle)
        with self._running_lock:
            self._running.add(future)
        future.add_done_callback(self._cycle_done)
        return future

    def _cycle_done(self, future: Future):
        with self._running_lock:
            self._running.discard(future)

    # ---- 查询 ----

    def run_cycle(self):
        """执行一轮查询"""
        config, evaluator = self.config, self.evaluator
        self.cycle_count += 1
        self.state = MonitorState.POLLING
        logger.info("开始查询余票")
        try:
            for watch in config.watch:
                if self._stopping.is_set():
                    break
                self.check_watch(watch, config, evaluator)
            self.state = MonitorState.IDLE
        except QueryCancelled:
            self.state = MonitorState.IDLE
            logger.info("程序退出，已中止本轮查询")
        except Exception as e:
            self.state = MonitorState.FAILED
            logger.error(f"查询余票时发生错误：{e}", exc_info=True)
            self.send(f"错误：{e}")
        finally:
            logger.debug(f"本轮缓存统计: {self.client.cache_stats()}")
            self.client.clear_cache()
        logger.info("余票查询完成")
        logger.info("-" * 60)

    def check_watch(self, watch: Watch, config: MonitorConfig, evaluator: AvailabilityEvaluator):
        """查询单个监控任务，已知错误只影响本任务"""
        route = f"{watch.date} {watch.from_station}→{watch.to_station}"
        try:
            self.search_tickets(watch, config, evaluator)
        except RemoteDataError as e:
            logger.warning(f"{route} 余票数据异常，按无结果处理：{e}")
        except (DateRangeError, NetworkError, StationNotFoundError) as e:
            logger.error(f"查询 {route} 失败：{e}")
            self.send(f"错误：{route} {e}")

    def search_tickets(self, watch: Watch, config: MonitorConfig,
                       evaluator: AvailabilityEvaluator) -> List[Availability]:
        logger.info(f"查询 {watch.date} {watch.from_station}→{watch.to_station} 车票：")
        records = self.client.query_trains(
            watch.date,
            self.stations.get_code(watch.from_station),
            self.stations.get_code(watch.to_station),
            delay=config.delay,
        )
        logger.debug("\n" + self.render_table(records))

        results = []
        for record in records:
            from_name = self.stations.get_name(record.from_station_telecode)
            to_name = self.stations.get_name(record.to_station_telecode)
            if not watch.trains:
                results.append(self.determine(record, from_name, to_name, evaluator))
                continue
            for train in watch.trains:
                if train.matches(record.station_train_code, from_name, to_name):
                    results.append(self.determine(record, from_name, to_name, evaluator, train))
        return results

    def determine(self, record: TrainRecord, from_name: str, to_name: str,
                  evaluator: AvailabilityEvaluator, train: TrainFilter = None) -> Availability:
        """判断单个车次并在有票时推送"""
        seat_filter = train.seat_category if train else None
        check_round_trip = train.check_round_trip if train else False
        description = f"{record.station_train_code} {from_name}→{to_name}"

        result = evaluator.evaluate(record, seat_filter, check_round_trip)
        msg = result.summary
        if not result.has_availability and seat_filter is not None:
            msg = "/".join(seat_filter) + " " + msg

        logger.info(f"- {description} {msg}")
        if result.has_availability:
            self.send(f"{description}\n{msg}")
        return result

    def render_table(self, records: List[TrainRecord]) -> str:
        table = PrettyTable()
        table.field_names = ["车次", "始发", "到达", "开点", "到点", "历时"] + TABLE_SEATS
        for record in records:
            table.add_row([
                record.station_train_code,
                self.stations.get_name(record.from_station_telecode),
                self.stations.get_name(record.to_station_telecode),
                record.start_time,
                record.arrive_time,
                record.lishi,
            ] + [record.tickets[seat] or "--" for seat in TABLE_SEATS])
        return table.get_string()

    # ---- 推送与退出 ----

    def send(self, content: str):
        """异步推送，不等待结果"""
        self.notifier.broadcast(AlertMessage.now(content))

    def close(self, final_message: str = "车票监控程序已停止"):
        """
        中止进行中的查询，尽力发送最后一条提醒后释放所有资源
        :param final_message: 最后一条提醒内容
        """
        if self._closed:
            return
        self._closed = True
        self._stopping.set()
        self.client.cancel()
        self._cycles.shutdown(wait=False, cancel_futures=True)
        with self._running_lock:
            running = list(self._running)
        if running:
            _, pending = wait(running, timeout=self.grace_seconds)
            if pending:
                logger.warning(f"仍有 {len(pending)} 轮查询未结束，不再等待")

        results = self.notifier.notify(AlertMessage.now(final_message), timeout=self.grace_seconds)
        for channel, result in results.items():
            logger.debug(f"  {channel} 退出提醒: {result}")
        self.notifier.shutdown()
        self.client.close()
