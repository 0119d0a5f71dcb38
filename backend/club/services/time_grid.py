"""
时间网格工具
墙钟时间按当日分钟数计算，不处理时区
"""
import json
from datetime import time
from enum import IntEnum
from typing import List, Optional, Tuple


Window = Tuple[time, time]


class Weekday(IntEnum):
    """周排班下标（与 date.weekday() 一致）"""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


def parse_hhmm(value) -> time:
    """'HH:MM' -> time，已是 time 时原样返回"""
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Hora inválida: {value!r}")
    try:
        hours, minutes = value.strip().split(":")[:2]
        return time(int(hours), int(minutes))
    except ValueError as e:
        raise ValueError(f"Hora inválida: {value!r}") from e


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """当日分钟数 -> time，超出当日范围视为错误"""
    if minutes < 0 or minutes >= 24 * 60:
        raise ValueError(f"Fuera del día: {minutes} minutos")
    return time(minutes // 60, minutes % 60)


def add_minutes(value: time, minutes: int) -> time:
    return from_minutes(to_minutes(value) + minutes)


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """半开区间 [a) 与 [b) 是否重叠"""
    return start_a < end_b and end_a > start_b


def generate_slots(open_time, close_time, interval_minutes: int) -> List[str]:
    """
    生成时段起点列表，每个起点满足 start + interval <= close
    open >= close 或 interval 超出窗口时返回空列表
    """
    if interval_minutes <= 0:
        raise ValueError("interval_minutes debe ser positivo")
    start = to_minutes(parse_hhmm(open_time))
    end = to_minutes(parse_hhmm(close_time))

    slots = []
    current = start
    while current + interval_minutes <= end:
        slots.append(f"{current // 60:02d}:{current % 60:02d}")
        current += interval_minutes
    return slots


class WeeklySchedule:
    """
    7 项周排班表，按 Weekday 下标取当日窗口
    每项为 {start_key: 'HH:MM', end_key: 'HH:MM'} 或 None
    """

    def __init__(self, days: List[Optional[Window]]):
        if len(days) != 7:
            raise ValueError("El horario semanal debe tener 7 días")
        self._days = days

    @classmethod
    def from_json(cls, raw: Optional[str], start_key: str = "start", end_key: str = "end") -> "WeeklySchedule":
        """解析存储的 JSON；格式错误抛出 ValueError"""
        if not raw:
            return cls([None] * 7)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Horario semanal ilegible: {e}") from e
        if not isinstance(data, list) or len(data) != 7:
            raise ValueError("El horario semanal debe ser una lista de 7 días")

        days: List[Optional[Window]] = []
        for entry in data:
            if entry is None:
                days.append(None)
                continue
            if not isinstance(entry, dict) or start_key not in entry or end_key not in entry:
                raise ValueError(f"Entrada de horario inválida: {entry!r}")
            days.append((parse_hhmm(entry[start_key]), parse_hhmm(entry[end_key])))
        return cls(days)

    def window_for(self, day) -> Optional[Window]:
        return self._days[Weekday(day.weekday())]

    def to_json(self, start_key: str = "start", end_key: str = "end") -> str:
        return json.dumps([
            None if window is None else {start_key: format_hhmm(window[0]), end_key: format_hhmm(window[1])}
            for window in self._days
        ])
