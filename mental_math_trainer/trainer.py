from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from .clock import Clock, PollingScheduler, RealClock
from .core import Rng
from .persistence import Repository
from .problems import OperationKind
from .results import SessionSummary
from .session import (
    DEFAULT_TIME_LIMIT_S,
    SessionConfig,
    SessionController,
    SessionListener,
)
from .settings import Settings
from .stats import AnalyticsReport, HistoryReport, StatisticsEngine

logger = logging.getLogger(__name__)


class Trainer:
    """Everything the presentation layer may call.

    Owns the settings value, the scheduler pump and the session controller;
    persistence is reached only through the injected repository.
    """

    def __init__(
        self,
        repository: Repository,
        *,
        clock: Clock | None = None,
        scheduler: PollingScheduler | None = None,
        rng: Rng | None = None,
        listener: SessionListener | None = None,
        wall_clock: Callable[[], float] = time.time,
        time_limit_s: float | None = DEFAULT_TIME_LIMIT_S,
    ) -> None:
        self._clock: Clock = clock if clock is not None else RealClock()
        self._scheduler = scheduler if scheduler is not None else PollingScheduler(self._clock)
        self._repository = repository
        self._stats = StatisticsEngine(repository, wall_clock=wall_clock)
        self._settings = repository.load_settings()
        self.time_limit_s = time_limit_s
        self._controller = SessionController(
            clock=self._clock,
            scheduler=self._scheduler,
            stats=self._stats,
            rng=rng,
            listener=listener,
            wall_clock=wall_clock,
        )

    @property
    def controller(self) -> SessionController:
        return self._controller

    @property
    def listener(self) -> SessionListener:
        return self._controller.listener

    @listener.setter
    def listener(self, value: SessionListener | None) -> None:
        self._controller.listener = value

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def time_limit_s(self) -> float | None:
        return self._time_limit_s

    @time_limit_s.setter
    def time_limit_s(self, value: float | None) -> None:
        self._time_limit_s = None if value is None or value <= 0 else float(value)

    def pump(self) -> int:
        """Run due timer/sequence/delay callbacks. Call once per frame."""

        return self._scheduler.run_due()

    def start_session(self, mode: OperationKind | str, config: SessionConfig | None = None) -> None:
        if config is None:
            config = SessionConfig(settings=self._settings, time_limit_s=self._time_limit_s)
        self._controller.start_session(mode, config)

    def submit_answer(self, text: str) -> bool:
        return self._controller.submit_answer(text)

    def skip(self) -> bool:
        return self._controller.skip()

    def end_session(self) -> SessionSummary | None:
        return self._controller.end_session()

    def load_analytics(self) -> AnalyticsReport:
        return self._stats.analytics()

    def load_history(self) -> HistoryReport:
        return self._stats.history()

    def update_settings(self, partial: dict[str, Any]) -> Settings:
        self._settings = self._settings.merged(partial)
        self._repository.save_settings(self._settings)
        logger.info("Settings updated: %s", self._settings.to_dict())
        return self._settings

    def clear_all(self) -> None:
        self._controller.end_session()
        self._repository.clear_all()
        self._settings = Settings()
