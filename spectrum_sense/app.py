"""Pygame UI shell for SpectrumSense.

The shell owns the single live TestState and only ever replaces it with the
value returned by the session functions. Hue math, search, session state and
token encoding all live in spectrum_sense/* (core modules).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .clock import Clock, PauseTimer, RealClock
from .config import AppConfig
from .palette import hue_to_rgb
from .results import TestMode, TestResult, summarize_test_result
from .session import (
    SessionPhase,
    TestState,
    advance_from_interstitial,
    answer_question,
    create_test_session,
    get_consistency_score,
    get_current_question,
    get_test_results,
    is_test_complete,
    resolve_choice,
)
from .share_codec import build_share_url, decode_result

log = logging.getLogger(__name__)

BG = (10, 10, 14)
PANEL_BG = (24, 24, 32)
TEXT_MAIN = (235, 235, 245)
TEXT_MUTED = (170, 170, 186)
ACCENT = (120, 142, 196)
DISABLED = (90, 90, 104)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]
    # Greyed out and skipped by navigation while this returns False.
    enabled: Callable[[], bool] | None = None

    def is_enabled(self) -> bool:
        return self.enabled is None or bool(self.enabled())


class App:
    """Screen stack; only the top screen sees events and draws."""

    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._stack: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def top(self) -> Screen | None:
        return self._stack[-1] if self._stack else None

    def push(self, screen: Screen) -> None:
        self._stack.append(screen)

    def pop(self) -> None:
        # The root menu stays; it owns quitting.
        if len(self._stack) > 1:
            self._stack.pop()

    def replace(self, screen: Screen) -> None:
        self.pop()
        self.push(screen)

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
        elif self._stack:
            self._stack[-1].handle_event(event)

    def render(self) -> None:
        if self._stack:
            self._stack[-1].render(self._surface)


_MENU_KEYS: dict[int, str] = {
    pygame.K_UP: "up",
    pygame.K_w: "up",
    pygame.K_DOWN: "down",
    pygame.K_s: "down",
    pygame.K_RETURN: "select",
    pygame.K_KP_ENTER: "select",
    pygame.K_SPACE: "select",
    pygame.K_ESCAPE: "back",
    pygame.K_BACKSPACE: "back",
}

# Gamepad: hat up/down moves, button 0 selects, button 1 goes back.
_MENU_BUTTONS: dict[int, str] = {0: "select", 1: "back"}


class MenuScreen:
    def __init__(
        self,
        app: App,
        title: str,
        items: list[MenuItem],
        *,
        subtitle: str = "",
        is_root: bool = False,
    ) -> None:
        self._app = app
        self._title = title
        self._subtitle = subtitle
        self._items = items
        self._is_root = is_root
        self._selected = 0
        self._title_font = pygame.font.Font(None, 48)
        self._subtitle_font = pygame.font.Font(None, 24)
        self._item_font = pygame.font.Font(None, 32)

    @property
    def selected_label(self) -> str | None:
        return self._items[self._selected].label if self._items else None

    def handle_event(self, event: pygame.event.Event) -> None:
        action: str | None = None
        if event.type == pygame.KEYDOWN:
            action = _MENU_KEYS.get(event.key)
        elif event.type == pygame.JOYBUTTONDOWN:
            action = _MENU_BUTTONS.get(event.button)
        elif event.type == pygame.JOYHATMOTION:
            action = {1: "up", -1: "down"}.get(event.value[1])

        if action == "up":
            self._step(-1)
        elif action == "down":
            self._step(1)
        elif action == "select":
            item = self._items[self._selected] if self._items else None
            if item is not None and item.is_enabled():
                item.action()
        elif action == "back":
            if self._is_root:
                self._app.quit()
            else:
                self._app.pop()

    def _step(self, delta: int) -> None:
        # Walk past disabled entries; stay put if nothing else is enabled.
        n = len(self._items)
        for offset in range(1, n + 1):
            idx = (self._selected + delta * offset) % n
            if self._items[idx].is_enabled():
                self._selected = idx
                return

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        # Thin hue ribbon under the title.
        ribbon_y = max(20, h // 14)
        for x in range(w):
            surface.set_at((x, ribbon_y), hue_to_rgb(360.0 * x / max(1, w)))

        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, title.get_rect(midtop=(w // 2, ribbon_y + 12)))
        top = ribbon_y + 12 + title.get_height() + 8
        if self._subtitle:
            sub = self._subtitle_font.render(self._subtitle, True, TEXT_MUTED)
            surface.blit(sub, sub.get_rect(midtop=(w // 2, top)))
            top += sub.get_height()

        y = max(top + 24, h // 3)
        for idx, item in enumerate(self._items):
            box = pygame.Rect(0, 0, 360, 40)
            box.midtop = (w // 2, y)
            if idx == self._selected:
                pygame.draw.rect(surface, ACCENT, box, border_radius=6)
            colour = TEXT_MAIN if item.is_enabled() else DISABLED
            label = self._item_font.render(item.label, True, colour)
            surface.blit(label, label.get_rect(center=box.center))
            y += 48


class HueTestScreen:
    """Presents one stimulus at a time and feeds answers into the session.

    Left (or 1 / A / button 0) picks the first option, right (or 2 / D /
    button 1) the second.
    """

    def __init__(
        self,
        app: App,
        *,
        state: TestState,
        clock: Clock,
        interstitial_s: float,
        on_complete: Callable[[TestState], None],
    ) -> None:
        self._app = app
        self._state = state
        self._on_complete = on_complete
        self._pause = PauseTimer(clock, interstitial_s)
        self._finished = False

        self._label_font = app.font
        self._small_font = pygame.font.Font(None, 24)

    @property
    def state(self) -> TestState:
        return self._state

    def handle_event(self, event: pygame.event.Event) -> None:
        picked_first: bool | None = None
        if event.type == pygame.KEYDOWN:
            if event.key in (pygame.K_LEFT, pygame.K_a, pygame.K_1):
                picked_first = True
            elif event.key in (pygame.K_RIGHT, pygame.K_d, pygame.K_2):
                picked_first = False
            elif event.key == pygame.K_ESCAPE:
                log.info("session %s abandoned at step %d", self._state.seed, self._state.current_step)
                self._app.pop()
                return
        elif event.type == pygame.JOYBUTTONDOWN and event.button in (0, 1):
            picked_first = event.button == 0

        if picked_first is None:
            return
        if self._state.phase not in (SessionPhase.TESTING, SessionPhase.CATCH_TRIAL):
            return

        question = get_current_question(self._state)
        self._state = answer_question(self._state, resolve_choice(question, picked_first))
        if self._state.phase is SessionPhase.INTERSTITIAL:
            self._pause.arm()

    def update(self) -> None:
        if self._state.phase is SessionPhase.INTERSTITIAL:
            self._pause.arm()
            if self._pause.due():
                self._state = advance_from_interstitial(self._state)
                self._pause.reset()

        if is_test_complete(self._state) and not self._finished:
            self._finished = True
            self._on_complete(self._state)

    def render(self, surface: pygame.Surface) -> None:
        self.update()
        w, h = surface.get_size()
        surface.fill(BG)

        question = get_current_question(self._state)

        # Progress bar: total_questions can grow, so it is re-read every frame.
        bar = pygame.Rect(40, 24, w - 80, 10)
        pygame.draw.rect(surface, PANEL_BG, bar)
        fill = bar.copy()
        fill.w = int(round(bar.w * question.progress))
        pygame.draw.rect(surface, ACCENT, fill)
        counter = self._small_font.render(
            f"{min(question.question_number, question.total_questions)} / {question.total_questions}",
            True,
            TEXT_MUTED,
        )
        surface.blit(counter, counter.get_rect(topright=(bar.right, bar.bottom + 6)))

        if self._state.phase not in (SessionPhase.TESTING, SessionPhase.CATCH_TRIAL):
            return

        swatch = pygame.Rect(0, 0, min(320, w // 3), min(320, h // 2))
        swatch.center = (w // 2, h // 2 - 20)
        pygame.draw.rect(surface, hue_to_rgb(question.hue), swatch)

        first = self._label_font.render(f"< {question.first_label.title()}", True, TEXT_MAIN)
        second = self._label_font.render(f"{question.second_label.title()} >", True, TEXT_MAIN)
        surface.blit(first, first.get_rect(midright=(swatch.left - 30, swatch.centery)))
        surface.blit(second, second.get_rect(midleft=(swatch.right + 30, swatch.centery)))

        hint = self._small_font.render("Which colour is this closer to?  Left / Right", True, TEXT_MUTED)
        surface.blit(hint, hint.get_rect(midbottom=(w // 2, h - 16)))


class ResultsScreen:
    def __init__(
        self,
        app: App,
        *,
        result: TestResult,
        base_url: str,
        consistency: float | None = None,
        on_refine: Callable[[TestResult], None] | None = None,
    ) -> None:
        self._app = app
        self._result = result
        self._summary = summarize_test_result(result)
        self._consistency = consistency
        self._on_refine = on_refine
        self._share_url = build_share_url(result, base_url)

        self._title_font = pygame.font.Font(None, 40)
        self._row_font = pygame.font.Font(None, 26)
        self._small_font = pygame.font.Font(None, 20)

    @property
    def share_url(self) -> str:
        return self._share_url

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key == pygame.K_r and self._on_refine is not None:
            self._on_refine(self._result)
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        heading = "Your colour boundaries"
        if self._result.nickname:
            heading = f"{self._result.nickname}'s colour boundaries"
        title = self._title_font.render(heading, True, TEXT_MAIN)
        surface.blit(title, (40, 24))

        y = 76
        for d in self._summary.deviations:
            pygame.draw.rect(surface, hue_to_rgb(d.user_hue), pygame.Rect(40, y + 2, 18, 18))
            line = (
                f"{d.color.value.title():<8} {d.user_hue:6.1f} deg   "
                f"reference {d.reference_hue:6.1f}   shift {d.difference:+6.1f}"
            )
            surface.blit(self._row_font.render(line, True, TEXT_MAIN), (70, y))
            y += 28

        stats = [
            f"Mean shift: {self._summary.mean_absolute_deviation:.1f} deg",
            f"Most shifted: {self._summary.most_shifted.color.value.title()}",
        ]
        if self._consistency is not None:
            stats.append(f"Consistency: {int(round(self._consistency * 100))}%")
        for text in stats:
            surface.blit(self._row_font.render(text, True, TEXT_MUTED), (40, y + 8))
            y += 26

        share = self._small_font.render(self._share_url, True, ACCENT)
        surface.blit(share, (40, h - 56))
        keys = "R: Refine  |  Enter/Esc: Menu" if self._on_refine is not None else "Enter/Esc: Menu"
        hint = self._small_font.render(keys, True, TEXT_MUTED)
        surface.blit(hint, hint.get_rect(bottomright=(w - 40, h - 16)))


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    config: AppConfig | None = None,
) -> int:
    cfg = config or AppConfig.from_env()

    pygame.init()
    pygame.display.set_caption("SpectrumSense")
    surface = pygame.display.set_mode(cfg.window_size, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    frame_clock = pygame.time.Clock()
    real_clock = RealClock()

    app = App(surface=surface, font=font)
    last_result: list[TestResult] = []

    def show_results(result: TestResult, consistency: float | None) -> ResultsScreen:
        return ResultsScreen(
            app,
            result=result,
            base_url=cfg.base_url,
            consistency=consistency,
            on_refine=start_refine,
        )

    def finish(state: TestState) -> None:
        result = get_test_results(state, cfg.locale, nickname=cfg.nickname)
        last_result[:] = [result]
        log.info("share url: %s", build_share_url(result, cfg.base_url))
        app.replace(show_results(result, get_consistency_score(state)))

    def start(mode: TestMode, previous: TestResult | None = None) -> None:
        state = create_test_session(mode, cfg.locale, previous, seed=cfg.seed)
        app.push(
            HueTestScreen(
                app,
                state=state,
                clock=real_clock,
                interstitial_s=cfg.interstitial_s,
                on_complete=finish,
            )
        )

    def start_refine(previous: TestResult) -> None:
        app.pop()
        start(TestMode.REFINE, previous)

    def refine_last() -> None:
        start(TestMode.REFINE, last_result[0])

    main_items = [
        MenuItem("Start test", lambda: start(TestMode.NORMAL)),
        MenuItem("Refine last result", refine_last, enabled=lambda: bool(last_result)),
        MenuItem("Quit", app.quit),
    ]
    subtitle = "Where does one colour become the next?"
    app.push(MenuScreen(app, "SpectrumSense", main_items, subtitle=subtitle, is_root=True))

    if cfg.result_token:
        shared = decode_result(cfg.result_token)
        if shared is None:
            log.warning("ignoring invalid result token")
        else:
            last_result[:] = [shared]
            app.push(show_results(shared, None))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            frame_clock.tick(cfg.target_fps)
    finally:
        pygame.quit()

    return 0
