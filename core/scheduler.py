"""
Event Status Scheduler：依照時間推進活動狀態

每隔固定時間（預設 60 秒）執行一次 tick()：
1. Programado 且 starts_at <= now  -> Em Andamento
2. Em Andamento 且 ends_at <= now  -> Concluído

兩個步驟都是集合式的條件 UPDATE（不逐筆判斷），
重複執行不會產生額外變化（冪等），Cancelado 永遠不會被選到。

錯誤處理：
- 每個步驟各自一個 transaction，失敗只記 log，不影響另一個步驟
- tick() 永遠不會拋出異常，下一次 tick 會自然重試
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
import logging
import threading

from sqlalchemy import update

from models import Event, EventStatus
from database import Database

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    started: int = 0
    completed: int = 0


class EventStatusScheduler:
    """
    活動狀態排程服務

    使用方式：
        scheduler = EventStatusScheduler(database, interval_seconds=60)
        scheduler.start()   # 背景 thread，每 interval 秒 tick 一次
        ...
        scheduler.stop()

    測試時不需要啟動 thread，直接呼叫 tick(now=...) 即可
    """

    def __init__(
        self,
        database: Database,
        interval_seconds: float = 60.0,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.database = database
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """啟動背景 thread（重複呼叫不會建立第二個 thread）"""
        if self.running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="event-status-scheduler",
            daemon=True
        )
        self._thread.start()
        logger.info(f"Event status scheduler started (every {self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        """停止背景 thread，等待目前的 tick 結束"""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Event status scheduler stopped")

    def _run(self) -> None:
        # 啟動後先 tick 一次，之後每 interval 秒一次，stop() 會中斷等待
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(self.interval_seconds)

    def tick(self, now: Optional[datetime] = None) -> TickResult:
        """
        執行一次狀態推進

        參數：
            now: 目前時間（預設用 clock()）

        返回：
            TickResult(started, completed)：各步驟更新的活動數，失敗的步驟為 0
        """
        try:
            now = now or self.clock()
        except Exception as e:
            logger.error(f"Scheduler clock failed: {e}", exc_info=True)
            return TickResult()

        result = TickResult()
        result.started = self._advance(
            EventStatus.SCHEDULED, EventStatus.IN_PROGRESS, Event.starts_at, now
        )
        result.completed = self._advance(
            EventStatus.IN_PROGRESS, EventStatus.COMPLETED, Event.ends_at, now
        )
        return result

    def _advance(self, from_status: EventStatus, to_status: EventStatus, deadline, now: datetime) -> int:
        """
        單一步驟：UPDATE events SET status = :to WHERE status = :from AND deadline <= :now

        失敗時 rollback 並記 log，返回 0
        """
        try:
            # 離開 with 時 commit，發生異常時 rollback，session 一定會關閉
            with self.database.transaction() as db:
                result = db.execute(
                    update(Event)
                    .where(Event.status == from_status, deadline <= now)
                    .values(status=to_status, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                count = result.rowcount or 0
        except Exception as e:
            logger.error(
                f"Failed to move events {from_status.value} -> {to_status.value}: {e}",
                exc_info=True
            )
            return 0

        if count:
            logger.info(f"{count} event(s) moved {from_status.value} -> {to_status.value}")
        else:
            logger.debug(f"No events to move {from_status.value} -> {to_status.value}")
        return count
