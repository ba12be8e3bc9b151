"""Pygame UI shell for the Mental Math Trainer.

Screens:
- Main menu (practice modes, analytics, history, settings)
- Practice (problem / flash round, answer entry, timer bar, live stats)
- Session complete
- Analytics (Ao5/Ao12, overall and per-operation stats)
- History (recent sessions and wrong answers)
- Settings (digit range, chain length, targets, time limit, clear all)

Deterministic timing/scoring/RNG/state lives in the core modules; this layer
only renders, forwards input to :class:`Trainer`, and pumps its scheduler once
per frame.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .clock import RealClock
from .persistence import Repository, SqliteRepository, default_db_path
from .problems import OperationKind, Problem
from .results import SessionSummary, format_percent, format_time, format_timestamp
from .sequence import SequenceStepEvent
from .session import AnswerResolution, SessionListener, SessionState
from .timer import TimerLevel, TimerTick
from .trainer import Trainer

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

TIME_LIMIT_CHOICES = (10.0, 30.0, 60.0, 0.0)

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
GOOD = (140, 220, 160)
BAD = (236, 150, 150)
BAR_COLOURS = {
    TimerLevel.NORMAL: (120, 170, 255),
    TimerLevel.WARNING: (240, 200, 90),
    TimerLevel.DANGER: (236, 96, 96),
}


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font, trainer: Trainer) -> None:
        self._surface = surface
        self._font = font
        self._trainer = trainer
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    @property
    def trainer(self) -> Trainer:
        return self._trainer

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def replace(self, screen: Screen) -> None:
        self.pop()
        self.push(screen)

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _draw_lines(surface: pygame.Surface, font: pygame.font.Font, lines: list[str], *, x: int = 40, y: int = 40) -> None:
    for line in lines:
        text = font.render(line, True, TEXT_MAIN)
        surface.blit(text, (x, y))
        y += font.get_linesize() + 4


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            if self._items:
                self._items[self._selected].action()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            if self._is_root:
                self._app.quit()
            else:
                self._app.pop()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, title.get_rect(midtop=(w // 2, 24)))

        row_h = max(28, min(40, (h - 140) // max(1, len(self._items))))
        y = 90
        for idx, item in enumerate(self._items):
            row = pygame.Rect(60, y, w - 120, row_h - 4)
            selected = idx == self._selected
            pygame.draw.rect(surface, (244, 248, 255) if selected else PANEL_BG, row)
            colour = (14, 26, 74) if selected else TEXT_MAIN
            text = self._item_font.render(item.label, True, colour)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += row_h

        foot = self._hint_font.render("Enter/Space: Select  |  Esc/Backspace: Back", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 10)))


class PracticeScreen(SessionListener):
    """Live practice view; receives core events through the listener hooks."""

    def __init__(self, app: App, mode: OperationKind) -> None:
        self._app = app
        self._mode = mode
        self._input = ""
        self._prompt = ""
        self._accepting = False
        self._feedback: str | None = None
        self._feedback_ok = False
        self._tick: TimerTick | None = None
        self._dots: tuple[int, int] | None = None

        self._big_font = pygame.font.Font(None, 96)
        self._mid_font = pygame.font.Font(None, 48)
        self._small_font = pygame.font.Font(None, 26)

    def start(self) -> None:
        trainer = self._app.trainer
        trainer.listener = self
        trainer.start_session(self._mode)

    # -- Listener hooks -------------------------------------------------------
    def on_problem_changed(self, problem: Problem, accepting_input: bool) -> None:
        self._input = ""
        self._tick = None
        self._accepting = accepting_input
        if problem.operation_kind is OperationKind.CHAIN:
            if accepting_input:
                self._prompt = "?"
                self._feedback = "What is the total?"
            else:
                self._prompt = ""
                self._feedback = "Watch the numbers..."
            self._feedback_ok = True
        else:
            self._prompt = problem.display_text
            self._feedback = None

    def on_timer_tick(self, tick: TimerTick) -> None:
        self._tick = tick

    def on_answer_resolved(self, resolution: AnswerResolution) -> None:
        self._accepting = False
        self._feedback = resolution.feedback()
        self._feedback_ok = resolution.correct

    def on_sequence_step(self, step: SequenceStepEvent) -> None:
        self._prompt = step.text
        self._dots = (step.index, step.total_steps)

    def on_session_ended(self, summary: SessionSummary) -> None:
        self._app.replace(CompleteScreen(self._app, summary))

    # -- Input ------------------------------------------------------------------
    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        trainer = self._app.trainer
        if event.key == pygame.K_ESCAPE:
            if trainer.end_session() is None:
                self._app.pop()
            return
        if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            if not trainer.submit_answer(self._input):
                self._input = ""
            return
        if event.key == pygame.K_TAB:
            trainer.skip()
            return
        if not self._accepting:
            return
        if event.key == pygame.K_BACKSPACE:
            self._input = self._input[:-1]
        elif event.key == pygame.K_MINUS and not self._input:
            self._input = "-"
        elif event.unicode and event.unicode.isdigit() and len(self._input) < 7:
            self._input += event.unicode

    # -- Rendering --------------------------------------------------------------
    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)
        trainer = self._app.trainer
        stats = trainer.controller.live_stats()

        header = self._small_font.render(f"{self._mode.display_name}  |  {stats.total} solved", True, TEXT_MUTED)
        surface.blit(header, (40, 20))

        self._render_timer_bar(surface, pygame.Rect(40, 52, w - 80, 14))

        prompt = self._big_font.render(self._prompt, True, TEXT_MAIN)
        surface.blit(prompt, prompt.get_rect(center=(w // 2, h // 2 - 60)))

        if self._dots is not None and self._mode is OperationKind.CHAIN:
            index, total = self._dots
            x0 = w // 2 - (total * 18) // 2
            for i in range(total):
                colour = TEXT_MAIN if i == index else TEXT_MUTED if i < index else PANEL_BG
                pygame.draw.circle(surface, colour, (x0 + i * 18 + 9, h // 2), 6)

        answer = self._mid_font.render(self._input or ("_" if self._accepting else ""), True, TEXT_MAIN)
        surface.blit(answer, answer.get_rect(center=(w // 2, h // 2 + 40)))

        if self._feedback:
            colour = GOOD if self._feedback_ok else BAD
            fb = self._small_font.render(self._feedback, True, colour)
            surface.blit(fb, fb.get_rect(center=(w // 2, h // 2 + 90)))

        footer = (
            f"Correct: {stats.correct}   Accuracy: {stats.accuracy_percent}%   "
            f"Avg: {format_time(stats.average_latency_s)}"
        )
        foot = self._small_font.render(footer, True, TEXT_MUTED)
        surface.blit(foot, (40, h - 70))
        hint = self._small_font.render("Enter: Submit  |  Tab: Skip  |  Esc: End session", True, TEXT_MUTED)
        surface.blit(hint, (40, h - 40))

    def _render_timer_bar(self, surface: pygame.Surface, rect: pygame.Rect) -> None:
        pygame.draw.rect(surface, PANEL_BG, rect)
        tick = self._tick
        if tick is None:
            return
        progress = 1.0 if tick.progress is None else tick.progress
        fill = rect.copy()
        fill.width = int(rect.width * progress)
        pygame.draw.rect(surface, BAR_COLOURS[tick.level], fill)
        label = self._small_font.render(format_time(tick.elapsed_s), True, TEXT_MAIN)
        surface.blit(label, (rect.right - label.get_width(), rect.bottom + 4))


class CompleteScreen:
    def __init__(self, app: App, summary: SessionSummary) -> None:
        self._app = app
        self._summary = summary

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            mode = OperationKind(self._summary.mode)
            practice = PracticeScreen(self._app, mode)
            self._app.replace(practice)
            practice.start()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        surface.fill(BG)
        s = self._summary
        _draw_lines(
            surface,
            self._app.font,
            [
                "Session Complete",
                "",
                f"Correct: {s.correct} / {s.total}",
                f"Accuracy: {s.accuracy_percent}%",
                f"Average time: {format_time(s.average_latency_s)}",
                f"Best time: {format_time(s.best_latency_s)}",
                "",
                "Enter: Try again  |  Esc: Menu",
            ],
        )


class AnalyticsScreen:
    def __init__(self, app: App) -> None:
        self._app = app
        self._lines = self._build_lines()

    def _build_lines(self) -> list[str]:
        report = self._app.trainer.load_analytics()
        overall = report.overall
        lines = [
            "Analytics",
            "",
            f"Ao5: {format_time(report.ao5_s)}    Ao12: {format_time(report.ao12_s)}",
            f"Problems: {overall.total_problems}    Accuracy: {format_percent(overall.accuracy_percent, places=1)}",
            f"Average: {format_time(overall.average_latency_s)}    Best: {format_time(overall.personal_best_s)}",
            "",
        ]
        with_data = [op for op in report.operations if op.has_data]
        if not with_data:
            lines.append("No data yet. Complete some practice sessions!")
        for op in with_data:
            lines.append(
                f"{op.kind.display_name}: {format_percent(op.accuracy_percent)}  ({op.total} problems)"
            )
        return lines

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN and event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        surface.fill(BG)
        _draw_lines(surface, self._app.font, self._lines)


class HistoryScreen:
    def __init__(self, app: App) -> None:
        self._app = app
        self._show_wrong = False
        self._small_font = pygame.font.Font(None, 26)
        self._report = app.trainer.load_history()

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_LEFT, pygame.K_RIGHT, pygame.K_TAB):
            self._show_wrong = not self._show_wrong
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        surface.fill(BG)
        if self._show_wrong:
            title = "Wrong answers  (Tab: sessions)"
            rows = [
                f"{w.problem_text}   Your: {w.submitted_answer}   Correct: {w.correct_answer}"
                for w in self._report.wrong_answers
            ] or ["No wrong answers! Keep it up!"]
        else:
            title = "Sessions  (Tab: wrong answers)"
            rows = [
                f"{format_timestamp(s.timestamp)}  {_mode_name(s.mode)}  "
                f"{s.correct}/{s.total}  {s.accuracy_percent}%  {format_time(s.average_latency_s)}"
                for s in self._report.sessions
            ] or ["No sessions yet. Start practicing!"]
        _draw_lines(surface, self._app.font, [title], y=24)
        _draw_lines(surface, self._small_font, rows[:16], y=70)


class SettingsScreen:
    _FIELDS = (
        ("digit_range", "Digit range", (1, 2, 3)),
        ("chain_length", "Chain length", (3, 4, 5, 6, 8, 10, 15)),
        ("target_time", "Target time (s)", (2, 3, 5, 8, 10)),
        ("target_streak", "Target streak", (5, 10, 20, 50)),
    )

    def __init__(self, app: App) -> None:
        self._app = app
        self._selected = 0
        self._confirm_clear = False

    def _rows(self) -> int:
        return len(self._FIELDS) + 2

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()
        elif event.key == pygame.K_UP:
            self._selected = (self._selected - 1) % self._rows()
            self._confirm_clear = False
        elif event.key == pygame.K_DOWN:
            self._selected = (self._selected + 1) % self._rows()
            self._confirm_clear = False
        elif event.key in (pygame.K_LEFT, pygame.K_RIGHT):
            self._cycle(1 if event.key == pygame.K_RIGHT else -1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER) and self._selected == self._rows() - 1:
            if self._confirm_clear:
                self._app.trainer.clear_all()
                self._confirm_clear = False
            else:
                self._confirm_clear = True

    def _cycle(self, delta: int) -> None:
        trainer = self._app.trainer
        if self._selected < len(self._FIELDS):
            key, _, choices = self._FIELDS[self._selected]
            current = trainer.settings.to_dict()[key]
            idx = choices.index(current) if current in choices else 0
            trainer.update_settings({key: choices[(idx + delta) % len(choices)]})
        elif self._selected == len(self._FIELDS):
            current = trainer.time_limit_s or 0.0
            idx = TIME_LIMIT_CHOICES.index(current) if current in TIME_LIMIT_CHOICES else 0
            trainer.time_limit_s = TIME_LIMIT_CHOICES[(idx + delta) % len(TIME_LIMIT_CHOICES)]

    def render(self, surface: pygame.Surface) -> None:
        surface.fill(BG)
        trainer = self._app.trainer
        values = trainer.settings.to_dict()
        limit = trainer.time_limit_s
        rows = [f"{label}: {values[key]}" for key, label, _ in self._FIELDS]
        rows.append(f"Time limit: {'unlimited' if limit is None else f'{limit:.0f}s'}")
        rows.append("Press Enter again to delete ALL progress" if self._confirm_clear else "Clear all data")
        lines = ["Settings  (Left/Right: change)", ""]
        lines.extend(("> " if i == self._selected else "  ") + row for i, row in enumerate(rows))
        _draw_lines(surface, self._app.font, lines)


def _mode_name(mode: str) -> str:
    kind = OperationKind.parse(mode)
    return mode if kind is None else kind.display_name


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    repository: Repository | None = None,
) -> int:
    pygame.init()

    pygame.display.set_caption("Mental Math Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    owned_repo: SqliteRepository | None = None
    if repository is None:
        owned_repo = SqliteRepository.open_default()
        logger.info("Progress database: %s", default_db_path())
        repository = owned_repo

    trainer = Trainer(repository, clock=RealClock())
    app = App(surface=surface, font=font, trainer=trainer)

    def open_practice(mode: OperationKind) -> Callable[[], None]:
        def _open() -> None:
            screen = PracticeScreen(app, mode)
            app.push(screen)
            screen.start()

        return _open

    main_items = [MenuItem(kind.display_name, open_practice(kind)) for kind in OperationKind]
    main_items += [
        MenuItem("Analytics", lambda: app.push(AnalyticsScreen(app))),
        MenuItem("History", lambda: app.push(HistoryScreen(app))),
        MenuItem("Settings", lambda: app.push(SettingsScreen(app))),
        MenuItem("Quit", app.quit),
    ]
    app.push(MenuScreen(app, "Mental Math Trainer", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            trainer.pump()
            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        if trainer.controller.state is SessionState.ACTIVE:
            trainer.end_session()
        if owned_repo is not None:
            owned_repo.close()
        pygame.quit()

    return 0
