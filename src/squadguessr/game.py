"""Application controller: screens, input, rendering and session wiring."""

from __future__ import annotations

from enum import Enum, auto
from pathlib import Path
import asyncio
import io
import logging

import pygame

from .audio import AudioManager
from .errors import SquadGuessrError
from .highscores import HighScoreStore
from .maps import MapMetadata, MapRegistry
from .menu import Menu, MenuItem
from .minimap import Minimap
from .rounds import Round, RoundSource
from .session import GameSession, LocationGuess, NameGuess, Phase, RoundResult, SessionSummary
from .settings import GameMode, GameSettings, SettingsManager
from .utils import (
    ACCENT,
    BG_COLOR,
    FPS,
    GREEN,
    HINT_RECT,
    MINIMAP_RECT,
    MUTED_COLOR,
    PANEL_COLOR,
    RED,
    SCORES_FILE,
    SCREEN_HEIGHT,
    SCREEN_WIDTH,
    TEXT_COLOR,
)

logger = logging.getLogger(__name__)

THUMB_SIZE = (200, 200)
TIMEOUT_REVEAL_FRAMES = FPS * 3
MAX_TYPED_CHARS = 40


class AppState(Enum):
    """Top-level screens."""

    MAIN_MENU = auto()
    SETTINGS = auto()
    LOADING = auto()
    PLAYING = auto()
    RESULTS = auto()
    HIGH_SCORES = auto()


class SquadGuessrGame:
    """Pygame front end; also the session's rendering adapter."""

    def __init__(
        self,
        root: Path,
        round_source: RoundSource,
        maps: MapRegistry,
        settings_manager: SettingsManager | None = None,
    ) -> None:
        pygame.init()
        pygame.font.init()

        self.root = root
        self.settings_manager = settings_manager or SettingsManager()
        self.settings: GameSettings = self.settings_manager.settings
        self.round_source = round_source

        flags = pygame.FULLSCREEN if self.settings.display.fullscreen else 0
        self.screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT), flags)
        pygame.display.set_caption("SquadGuessr")
        self.clock = pygame.time.Clock()

        self.title_font = pygame.font.SysFont("dejavusans", 52, bold=True)
        self.body_font = pygame.font.SysFont("dejavusans", 26, bold=True)
        self.small_font = pygame.font.SysFont("dejavusans", 18)

        self.state = AppState.MAIN_MENU
        self.main_menu = Menu(
            title="SQUADGUESSR",
            items=[
                *(MenuItem(mode.label, f"play_{mode.value}", mode) for mode in GameMode),
                MenuItem("High Scores", "high_scores"),
                MenuItem("Settings", "settings"),
                MenuItem("Exit", "exit"),
            ],
        )
        self.main_menu.selected_index = list(GameMode).index(self.settings.game_mode)

        self.audio = AudioManager(root / "assets" / "sounds")
        self.audio.load_assets()
        self._apply_audio_settings()

        self.session = GameSession(round_source, maps, HighScoreStore(SCORES_FILE), observer=self)
        self.best_scores = self.session.high_scores.read_all([mode.value for mode in GameMode])
        self.minimap = Minimap(
            pygame.Rect(MINIMAP_RECT), self.settings.display.minimap_pixels, root / "assets" / "maps"
        )

        self.pending_guess: tuple[float, float] | None = None
        self.dragging = False
        self.typed_text = ""
        self.result: RoundResult | None = None
        self.last_timeout: RoundResult | None = None
        self.last_timeout_map: MapMetadata | None = None
        self.reveal_frames = 0
        self.summary: SessionSummary | None = None
        self.timer_remaining: int | None = None
        self.hint: pygame.Surface | None = None
        self.thumbnails: dict[int, pygame.Surface] = {}
        self.flash_message = ""
        self.flash_timer = 0
        self._tasks: set[asyncio.Task] = set()

    # ----- session observer --------------------------------------------------

    def round_loaded(self, index: int, total: int, round_: Round, meta: MapMetadata) -> None:
        self.pending_guess = None
        self.dragging = False
        self.typed_text = ""
        self.result = None
        self.timer_remaining = None
        self.hint = None
        self.minimap.set_map(meta)
        if self.session.mode is not None and self.session.mode.guesses_by_name:
            pygame.key.start_text_input()
        self._spawn(self._load_hint(index, round_.hint_ref))

    def round_resolved(self, result: RoundResult) -> None:
        self.result = result
        self.timer_remaining = None
        if result.timed_out:
            # expiry advances in the same call; keep the result for the reveal
            self.last_timeout = result
            self.last_timeout_map = self.minimap.meta
            self.reveal_frames = TIMEOUT_REVEAL_FRAMES
        self.audio.play("guess" if result.points else "miss")

    def timer_ticked(self, remaining: int) -> None:
        self.timer_remaining = remaining
        if 0 < remaining <= 5:
            self.audio.play("tick")

    def session_finished(self, summary: SessionSummary) -> None:
        self.summary = summary
        self.best_scores = dict(self.session.best_scores)
        if summary.new_record:
            self.audio.play("record")
        if self.last_timeout is None:
            self.state = AppState.RESULTS

    def session_failed(self, error: SquadGuessrError) -> None:
        self._flash(f"Game aborted: {error}")
        self.session.reset()
        self.state = AppState.MAIN_MENU

    # ----- loop ----------------------------------------------------------------

    async def run(self) -> None:
        """Main event/render loop; yields to asyncio once per frame."""
        running = True
        while running:
            self.clock.tick(FPS)
            running = self._handle_events()
            if not running:
                break
            if self.flash_timer > 0:
                self.flash_timer -= 1
            self._update_reveal()
            self._render()
            await asyncio.sleep(0)

        self.session.reset()
        for task in list(self._tasks):
            task.cancel()
        pygame.quit()

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _flash(self, message: str) -> None:
        self.flash_message = message
        self.flash_timer = FPS * 4

    def _update_reveal(self) -> None:
        if self.last_timeout is None:
            return
        self.reveal_frames -= 1
        if self.reveal_frames <= 0:
            self._end_reveal()

    def _end_reveal(self) -> None:
        self.last_timeout = None
        self.last_timeout_map = None
        self.reveal_frames = 0
        if self.state == AppState.PLAYING and self.session.phase is Phase.FINISHED:
            self.state = AppState.RESULTS

    def _apply_audio_settings(self) -> None:
        self.audio.muted = self.settings.disable_sounds
        self.audio.set_volume(self.settings.master_volume, self.settings.sfx_volume)

    # ----- async work ------------------------------------------------------------

    async def _start_game(self, mode: GameMode) -> None:
        self.state = AppState.LOADING
        self.summary = None
        self.thumbnails.clear()
        self._end_reveal()
        try:
            await self.session.start_new_game(
                mode, self.settings.round_count, timer_seconds=self.settings.timer_for(mode)
            )
        except SquadGuessrError as exc:
            logger.warning("Could not start game: %s", exc)
            if self.state == AppState.LOADING and not self.session.is_loading:
                self._flash(f"Could not start game: {exc}")
                self.state = AppState.MAIN_MENU
            return
        if self.session.phase is Phase.PLAYING:
            self.state = AppState.PLAYING

    async def _load_hint(self, index: int, hint_ref: str) -> None:
        fetch_hint = getattr(self.round_source, "fetch_hint", None)
        if fetch_hint is None or not hint_ref:
            return
        try:
            data = await fetch_hint(hint_ref)
            image = pygame.image.load(io.BytesIO(data))
        except (SquadGuessrError, pygame.error) as exc:
            logger.warning("Hint %s unavailable: %s", hint_ref, exc)
            return
        self.thumbnails[index] = pygame.transform.smoothscale(image, THUMB_SIZE)
        if self.session.current_index == index and self.session.current_round is not None:
            self.hint = pygame.transform.smoothscale(image, HINT_RECT[2:])

    # ----- input -----------------------------------------------------------------

    def _handle_events(self) -> bool:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            if self.state == AppState.PLAYING:
                self._handle_playing_event(event)
                continue
            if event.type != pygame.KEYDOWN:
                continue

            if event.key == pygame.K_ESCAPE:
                if self.state == AppState.MAIN_MENU:
                    return False
                self.session.reset()
                self.state = AppState.MAIN_MENU
                continue

            if self.state == AppState.MAIN_MENU:
                self._handle_menu_input(event.key)
            elif self.state == AppState.SETTINGS:
                self._handle_settings_input(event.key)
            elif self.state == AppState.HIGH_SCORES and event.key in (pygame.K_RETURN, pygame.K_SPACE):
                self.state = AppState.MAIN_MENU
            elif self.state == AppState.RESULTS and event.key in (pygame.K_RETURN, pygame.K_SPACE):
                self.session.reset()
                self.state = AppState.MAIN_MENU
        return True

    def _handle_menu_input(self, key: int) -> None:
        if key == pygame.K_UP:
            self.main_menu.move(-1)
            self.audio.play("menu")
            return
        if key == pygame.K_DOWN:
            self.main_menu.move(1)
            self.audio.play("menu")
            return
        if key not in (pygame.K_RETURN, pygame.K_SPACE):
            return

        item = self.main_menu.current()
        self.audio.play("menu")
        if item.mode is not None:
            self.settings_manager.set_mode(item.mode)
            self._spawn(self._start_game(item.mode))
        elif item.action == "high_scores":
            self.best_scores = self.session.high_scores.read_all([mode.value for mode in GameMode])
            self.state = AppState.HIGH_SCORES
        elif item.action == "settings":
            self.state = AppState.SETTINGS
        elif item.action == "exit":
            pygame.event.post(pygame.event.Event(pygame.QUIT))

    def _handle_settings_input(self, key: int) -> None:
        timer_keys = {
            pygame.K_1: (GameMode.CLASSIC, -5),
            pygame.K_2: (GameMode.CLASSIC, 5),
            pygame.K_3: (GameMode.TIME_ATTACK, -5),
            pygame.K_4: (GameMode.TIME_ATTACK, 5),
            pygame.K_5: (GameMode.MAP_FINDER, -5),
            pygame.K_6: (GameMode.MAP_FINDER, 5),
        }
        if key in timer_keys:
            self.settings_manager.adjust_timer(*timer_keys[key])
        elif key == pygame.K_s:
            self.settings_manager.toggle_sounds()
        elif key == pygame.K_MINUS:
            self.settings_manager.adjust_volume("master_volume", -0.05)
        elif key in (pygame.K_EQUALS, pygame.K_PLUS):
            self.settings_manager.adjust_volume("master_volume", 0.05)
        elif key == pygame.K_g:
            self.settings.display.show_grid = not self.settings.display.show_grid
            self.settings_manager.save()
        elif key == pygame.K_BACKSPACE:
            self.state = AppState.MAIN_MENU

        self.settings = self.settings_manager.settings
        self._apply_audio_settings()

    def _handle_playing_event(self, event: pygame.event.Event) -> None:
        session = self.session
        mode = session.mode
        if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
            session.reset()
            self.state = AppState.MAIN_MENU
            return
        if self.last_timeout is not None:
            if event.type == pygame.MOUSEBUTTONDOWN or (
                event.type == pygame.KEYDOWN and event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE)
            ):
                self._end_reveal()
            return
        if mode is None:
            return

        if event.type == pygame.KEYDOWN and event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            self._confirm()
            return

        if session.phase is not Phase.PLAYING:
            if event.type == pygame.KEYDOWN and event.key == pygame.K_SPACE:
                self._confirm()
            return

        if mode.guesses_by_name:
            if event.type == pygame.KEYDOWN and event.key == pygame.K_BACKSPACE:
                self.typed_text = self.typed_text[:-1]
            elif event.type == pygame.TEXTINPUT and len(self.typed_text) < MAX_TYPED_CHARS:
                self.typed_text += event.text
            return

        if event.type == pygame.KEYDOWN and event.key == pygame.K_SPACE:
            self._confirm()
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1 and self.minimap.contains(event.pos):
            self.pending_guess = self.minimap.to_display(event.pos)
            self.dragging = True
        elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
            self.dragging = False
        elif event.type == pygame.MOUSEMOTION and self.dragging and session.transform is not None:
            self.pending_guess = session.transform.clamp_display(self.minimap.to_display(event.pos))

    def _confirm(self) -> None:
        """Submit the pending guess, or move on once the round is revealed."""
        session = self.session
        try:
            if session.phase is Phase.PLAYING:
                if session.mode is not None and session.mode.guesses_by_name:
                    session.submit_guess(NameGuess(self.typed_text) if self.typed_text.strip() else None)
                else:
                    session.submit_guess(LocationGuess(self.pending_guess) if self.pending_guess else None)
                self.dragging = False
            elif session.phase is Phase.ROUND_RESOLVED:
                session.advance_round()
        except SquadGuessrError as exc:
            logger.error("Round could not continue: %s", exc)
            self.session_failed(exc)

    # ----- rendering -------------------------------------------------------------

    def _render(self) -> None:
        self.screen.fill(BG_COLOR)
        if self.state == AppState.MAIN_MENU:
            self.main_menu.render(
                self.screen, self.title_font, self.body_font, self.small_font, self._menu_details()
            )
        elif self.state == AppState.SETTINGS:
            self._render_settings()
        elif self.state == AppState.LOADING:
            self._render_centered("Loading rounds...")
        elif self.state == AppState.PLAYING:
            self._render_playing()
        elif self.state == AppState.RESULTS:
            self._render_results()
        elif self.state == AppState.HIGH_SCORES:
            self._render_high_scores()

        if self.flash_timer > 0 and self.flash_message:
            msg = self.small_font.render(self.flash_message, True, RED)
            self.screen.blit(msg, (SCREEN_WIDTH // 2 - msg.get_width() // 2, SCREEN_HEIGHT - 40))
        pygame.display.flip()

    def _menu_details(self) -> dict[str, str]:
        details = {}
        for mode in GameMode:
            seconds = self.settings.timer_for(mode)
            timer = f"{seconds}s" if seconds else "no timer"
            details[f"play_{mode.value}"] = f"Best {self.best_scores.get(mode.value, 0)} | {timer}"
        return details

    def _render_centered(self, text: str) -> None:
        line = self.body_font.render(text, True, TEXT_COLOR)
        self.screen.blit(line, (SCREEN_WIDTH // 2 - line.get_width() // 2, SCREEN_HEIGHT // 2))

    def _render_playing(self) -> None:
        session = self.session
        mode = session.mode
        if self.last_timeout is not None:
            self._render_timeout_reveal(self.last_timeout)
            return
        if mode is None or session.current_round is None:
            return

        header = f"{mode.label}   Round {session.current_index + 1}/{len(session.rounds)}   Score {session.total_score}"
        self.screen.blit(self.body_font.render(header, True, TEXT_COLOR), (40, 40))
        if self.timer_remaining is not None:
            color = RED if self.timer_remaining <= 5 else ACCENT
            timer = self.body_font.render(f"{self.timer_remaining}s", True, color)
            self.screen.blit(timer, (SCREEN_WIDTH - timer.get_width() - 40, 40))

        hint_rect = pygame.Rect(HINT_RECT)
        if self.hint is not None:
            self.screen.blit(self.hint, hint_rect.topleft)
        else:
            pygame.draw.rect(self.screen, PANEL_COLOR, hint_rect)
            wait = self.small_font.render("Loading hint...", True, MUTED_COLOR)
            self.screen.blit(wait, wait.get_rect(center=hint_rect.center))

        result = self.result
        hide_map = mode.guesses_by_name and result is None
        if hide_map:
            pygame.draw.rect(self.screen, PANEL_COLOR, self.minimap.rect)
            prompt = self.body_font.render(f"> {self.typed_text}_", True, TEXT_COLOR)
            self.screen.blit(prompt, (self.minimap.rect.x + 24, self.minimap.rect.centery))
        else:
            self.minimap.render(
                self.screen,
                self.settings.display.show_grid,
                guess=result.guess_display if result else self.pending_guess,
                solution=result.true_display if result else None,
                label_font=self.small_font,
                label=result.distance_text if result else "",
            )

        footer_y = hint_rect.bottom + 30
        if result is None:
            hint = "Type the map name, Enter to guess" if mode.guesses_by_name else "Click the minimap, Enter to guess"
            self.screen.blit(self.small_font.render(hint, True, MUTED_COLOR), (40, footer_y))
            return
        outcome = f"+{result.points}  {result.label}"
        if mode.guesses_by_name:
            outcome = f"{'OK' if result.points else 'X'}  {result.map_name}  +{result.points}"
        elif not result.guessed:
            outcome = "Time's up! +0" if result.timed_out else "No guess +0"
        color = GREEN if result.points else RED
        self.screen.blit(self.body_font.render(outcome, True, color), (40, footer_y))
        last = session.current_index + 1 == len(session.rounds)
        prompt = "Enter for results" if last else "Enter for next round"
        self.screen.blit(self.small_font.render(prompt, True, MUTED_COLOR), (40, footer_y + 40))

    def _render_timeout_reveal(self, result: RoundResult) -> None:
        header = self.body_font.render(f"Round {result.index + 1}: Time's up! +0", True, RED)
        self.screen.blit(header, (40, 40))
        self.minimap.render(
            self.screen,
            self.settings.display.show_grid,
            solution=result.true_display,
            label_font=self.small_font,
            label=result.map_name,
            meta=self.last_timeout_map,
        )
        answer = self.body_font.render(f"It was here, on {result.map_name}", True, ACCENT)
        self.screen.blit(answer, (40, HINT_RECT[1] + 40))
        seconds = self.reveal_frames // FPS + 1
        prompt = self.small_font.render(f"Enter to continue ({seconds}s)", True, MUTED_COLOR)
        self.screen.blit(prompt, (40, HINT_RECT[1] + 90))

    def _render_results(self) -> None:
        summary = self.summary
        if summary is None:
            return
        title = self.title_font.render(f"{summary.total_score} points", True, ACCENT)
        self.screen.blit(title, (SCREEN_WIDTH // 2 - title.get_width() // 2, 50))
        if summary.new_record:
            banner = self.body_font.render("New record!", True, GREEN)
        else:
            banner = self.small_font.render(f"Best: {summary.previous_best}", True, MUTED_COLOR)
        self.screen.blit(banner, (SCREEN_WIDTH // 2 - banner.get_width() // 2, 120))

        columns = 5
        gap = 24
        width = columns * THUMB_SIZE[0] + (columns - 1) * gap
        left = SCREEN_WIDTH // 2 - width // 2
        for idx, round_ in enumerate(summary.rounds):
            x = left + (idx % columns) * (THUMB_SIZE[0] + gap)
            y = 190 + (idx // columns) * (THUMB_SIZE[1] + 60)
            thumb = self.thumbnails.get(idx)
            if thumb is not None:
                self.screen.blit(thumb, (x, y))
            else:
                pygame.draw.rect(self.screen, PANEL_COLOR, pygame.Rect((x, y), THUMB_SIZE))
            points = self.body_font.render(f"+{round_.points_awarded or 0}", True, TEXT_COLOR)
            self.screen.blit(points, (x + 8, y + THUMB_SIZE[1] + 8))

        prompt = self.small_font.render("Enter to return to the menu", True, MUTED_COLOR)
        self.screen.blit(prompt, (SCREEN_WIDTH // 2 - prompt.get_width() // 2, SCREEN_HEIGHT - 80))

    def _render_settings(self) -> None:
        title = self.title_font.render("SETTINGS", True, ACCENT)
        self.screen.blit(title, (SCREEN_WIDTH // 2 - title.get_width() // 2, 56))

        lines = [
            f"Classic timer [1/2]: {self.settings.timer_for(GameMode.CLASSIC)}s",
            f"Time Attack timer [3/4]: {self.settings.timer_for(GameMode.TIME_ATTACK)}s",
            f"Map Finder timer [5/6]: {self.settings.timer_for(GameMode.MAP_FINDER)}s",
            f"Master Volume [-/+]: {self.settings.master_volume:.2f}",
            f"Sounds [S]: {'off' if self.settings.disable_sounds else 'on'}",
            f"Show Grid [G]: {self.settings.display.show_grid}",
            "Back: ESC or Backspace",
        ]
        for idx, line in enumerate(lines):
            text = self.body_font.render(line, True, TEXT_COLOR)
            self.screen.blit(text, (160, 180 + idx * 50))

    def _render_high_scores(self) -> None:
        title = self.title_font.render("HIGH SCORES", True, ACCENT)
        self.screen.blit(title, (SCREEN_WIDTH // 2 - title.get_width() // 2, 56))
        for idx, mode in enumerate(GameMode):
            line = self.body_font.render(f"{mode.label}: {self.best_scores.get(mode.value, 0)}", True, TEXT_COLOR)
            self.screen.blit(line, (SCREEN_WIDTH // 2 - line.get_width() // 2, 200 + idx * 60))
        prompt = self.small_font.render("Enter or ESC to return", True, MUTED_COLOR)
        self.screen.blit(prompt, (SCREEN_WIDTH // 2 - prompt.get_width() // 2, SCREEN_HEIGHT - 80))
