# xovis/services/scheduler.py
"""
Ключевые периодические задачи (потоки со stop-событием).

  scheduler.ensure("collect 5", fn, 60)   # второй вызов с тем же ключом ничего не делает
  scheduler.stop("collect 5")             # текущая итерация доработает до конца
  scheduler.stop_matching("collect ")     # по префиксу ключа
  scheduler.stop_all()                    # stop + join с таймаутом (shutdown)

Задача сама может завершиться: fn возвращает False → поток выходит.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

_log = logging.getLogger("collector")

TaskFn = Callable[[], Optional[bool]]

# как часто спящая задача перечитывает interval_s
WAKE_STEP_S = 1.0


class PeriodicTask(threading.Thread):
    def __init__(self, key: str, fn: TaskFn, interval_s: float):
        super().__init__(daemon=True, name=key)
        self.key = key
        self.fn = fn
        self.interval_s = max(0.01, float(interval_s))
        self._stop_evt = threading.Event()
        self.runs = 0
        self.last_error: Optional[str] = None

    def stop(self) -> None:
        self._stop_evt.set()

    @property
    def stopping(self) -> bool:
        return self._stop_evt.is_set()

    def run(self) -> None:
        while not self._stop_evt.is_set():
            try:
                keep = self.fn()
                self.last_error = None
            except Exception as e:
                # ошибка одной итерации не роняет задачу: повтор в следующем цикле
                self.last_error = str(e)
                _log.error(f"task '{self.key}' failed: {e}")
                keep = True
            self.runs += 1
            if keep is False:
                _log.debug(f"task '{self.key}' finished")
                break
            self._sleep()

    def _sleep(self) -> None:
        # interval_s может смениться во время сна (ensure с новым периодом)
        started = time.monotonic()
        while not self._stop_evt.is_set():
            left = started + self.interval_s - time.monotonic()
            if left <= 0:
                return
            self._stop_evt.wait(min(left, WAKE_STEP_S))


class TaskScheduler:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tasks: Dict[str, PeriodicTask] = {}

    def ensure(self, key: str, fn: TaskFn, interval_s: float) -> bool:
        """
        Запустить задачу, если с таким ключом ещё ничего не работает. True, если запущена новая.
        У живой задачи только обновляется период: он действует со следующего ожидания.
        """
        interval_s = max(0.01, float(interval_s))
        with self._lock:
            t = self._tasks.get(key)
            if t is not None and t.is_alive() and not t.stopping:
                if t.interval_s != interval_s:
                    _log.info(f"task '{key}' interval changed: {t.interval_s}s -> {interval_s}s")
                    t.interval_s = interval_s
                return False
            t = PeriodicTask(key, fn, interval_s)
            self._tasks[key] = t
            t.start()
        _log.debug(f"task '{key}' started, every {interval_s}s")
        return True

    def is_running(self, key: str) -> bool:
        with self._lock:
            t = self._tasks.get(key)
            return bool(t and t.is_alive() and not t.stopping)

    def stop(self, key: str) -> bool:
        with self._lock:
            t = self._tasks.pop(key, None)
        if t is None:
            return False
        t.stop()
        return True

    def stop_matching(self, prefix: str) -> List[str]:
        with self._lock:
            keys = [k for k in self._tasks if k.startswith(prefix)]
            tasks = [self._tasks.pop(k) for k in keys]
        for t in tasks:
            t.stop()
        return keys

    def stop_all(self, timeout: float = 2.0) -> None:
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks = {}
        for t in tasks:
            t.stop()
        # не зависать бесконечно на задаче, которая ждёт ответа датчика
        for t in tasks:
            t.join(timeout=timeout)

    def status(self) -> List[Dict[str, object]]:
        with self._lock:
            return [
                {
                    "key": k,
                    "alive": t.is_alive(),
                    "interval_s": t.interval_s,
                    "runs": t.runs,
                    "last_error": t.last_error,
                }
                for k, t in sorted(self._tasks.items())
            ]
