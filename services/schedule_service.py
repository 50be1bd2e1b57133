"""
時間區間服務：把 date + start_time / end_time 轉成可比較的 datetime

純計算邏輯，不涉及狀態轉換
"""
from datetime import date, datetime, time
from typing import Tuple

from core.exceptions import InvalidTimeWindow


def event_window(event_date: date, start_time: time, end_time: time) -> Tuple[datetime, datetime]:
    """
    計算活動的開始 / 結束時間點

    規則：
    - 活動只在同一天內進行，end_time 必須嚴格晚於 start_time
    - 跨午夜（例如 22:00-01:00）不支援，直接拒絕

    參數：
        event_date: 活動日期
        start_time: 開始時間
        end_time: 結束時間

    返回：
        (starts_at, ends_at)

    異常：
        InvalidTimeWindow: end_time <= start_time

    範例：
        event_window(date(2024, 5, 1), time(10), time(12))
        -> (datetime(2024, 5, 1, 10, 0), datetime(2024, 5, 1, 12, 0))
    """
    if end_time <= start_time:
        raise InvalidTimeWindow(
            f"End time {end_time.isoformat()} must be after start time {start_time.isoformat()}"
        )
    return datetime.combine(event_date, start_time), datetime.combine(event_date, end_time)
