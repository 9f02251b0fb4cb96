import logging
import sys

import pygame

from classes import MemoryGame
from config import configure_logging, load_settings
from database import open_storage
from difficulty import all_levels

logger = logging.getLogger(__name__)

# Colors
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
GRAY = (200, 200, 200)
BLUE = (0, 100, 255)
GREEN = (0, 200, 0)
YELLOW = (255, 255, 0)
CARD_BACK_COLOR = (50, 50, 200)
CARD_FRONT_COLOR = (220, 220, 255)
CARD_MATCHED_COLOR = (200, 255, 200)

# Game settings
CARD_MARGIN = 10
DIFFICULTY_KEYS = {pygame.K_1: "easy", pygame.K_2: "medium", pygame.K_3: "hard"}


class GameGUI:
    """Graphical user interface for the memory card game."""

    def __init__(self, game: MemoryGame, fps=60):
        """Initialize the game GUI."""
        self.game = game
        self.fps = fps
        self.clock = pygame.time.Clock()
        self.screen = None
        self.width = 800
        self.height = 640
        self.card_width = 80
        self.card_height = 100
        self.board_margin_top = 100
        self.board_margin_left = 0
        self.message = ""
        self.message_timer = 0
        self.paused = False
        self.text_cache = {}  # Cache for rendered text

        self.font_small = pygame.font.SysFont('Arial', 20)
        self.font_medium = pygame.font.SysFont('Arial', 30)
        self.font_large = pygame.font.SysFont('Arial', 40)
        self.font_card = pygame.font.SysFont('Arial', 16, bold=True)

    def setup_window(self):
        """Set up the game window."""
        self.screen = pygame.display.set_mode((self.width, self.height))
        pygame.display.set_caption("Magic Memory")

    def layout_board(self):
        """Size and center the cards for the current difficulty."""
        level = self.game.difficulty
        rows, cols = level.rows, level.cols
        max_card_width = (self.width - CARD_MARGIN * (cols + 1)) // cols
        max_card_height = (self.height - self.board_margin_top - CARD_MARGIN * (rows + 1)) // rows

        # Keep aspect ratio
        self.card_width = int(min(max_card_width, max_card_height * 0.8))
        self.card_height = int(self.card_width * 1.25)
        self.board_margin_left = (self.width - (cols * self.card_width + (cols - 1) * CARD_MARGIN)) // 2

    def get_card_rect(self, row, col):
        """Get the rectangle for a card at the given position."""
        x = self.board_margin_left + col * (self.card_width + CARD_MARGIN)
        y = self.board_margin_top + row * (self.card_height + CARD_MARGIN)
        return pygame.Rect(x, y, self.card_width, self.card_height)

    def get_card_at_pos(self, pos):
        """Get the id of the card at the given screen position."""
        for row, cards in enumerate(self.game.session.board()):
            for col, view in enumerate(cards):
                if self.get_card_rect(row, col).collidepoint(pos):
                    return view.card_id
        return None

    def draw_card(self, view, rect):
        """Draw a card on the screen."""
        if view.matched:
            pygame.draw.rect(self.screen, CARD_MATCHED_COLOR, rect, 0, 5)
            pygame.draw.rect(self.screen, GREEN, rect, 2, 5)
        elif view.revealed:
            pygame.draw.rect(self.screen, CARD_FRONT_COLOR, rect, 0, 5)
            pygame.draw.rect(self.screen, BLUE, rect, 2, 5)
        else:
            # Face down cards
            pygame.draw.rect(self.screen, CARD_BACK_COLOR, rect, 0, 5)
            pygame.draw.rect(self.screen, BLUE, rect, 2, 5)
            for i in range(3):
                for j in range(4):
                    x = rect.left + rect.width * (i + 1) / 4
                    y = rect.top + rect.height * (j + 1) / 5
                    pygame.draw.circle(self.screen, WHITE, (x, y), 3)
            return

        text = self.render_text(self.font_card, view.face, GREEN if view.matched else BLACK)
        self.screen.blit(text, (rect.centerx - text.get_width() // 2,
                                rect.centery - text.get_height() // 2))

    def draw_board(self):
        """Draw the game board and all cards."""
        for row, cards in enumerate(self.game.session.board()):
            for col, view in enumerate(cards):
                self.draw_card(view, self.get_card_rect(row, col))

    def render_text(self, font, text, color):
        """Render and cache text to avoid recreating text surfaces."""
        cache_key = (font, text, color)
        if cache_key not in self.text_cache:
            if len(self.text_cache) > 200:
                self.text_cache.clear()
            self.text_cache[cache_key] = font.render(text, True, color)
        return self.text_cache[cache_key]

    def draw_ui(self):
        """Draw the turn counter, mistakes and timer."""
        if self.message and pygame.time.get_ticks() < self.message_timer:
            message_text = self.render_text(self.font_medium, self.message, BLUE)
            self.screen.blit(message_text, (self.width // 2 - message_text.get_width() // 2, 20))

        stats_rect = pygame.Rect(10, 10, 220, 75)
        stats_bg = pygame.Surface((stats_rect.width, stats_rect.height), pygame.SRCALPHA)
        stats_bg.fill((0, 0, 0, 128))
        self.screen.blit(stats_bg, stats_rect)
        pygame.draw.rect(self.screen, BLUE, stats_rect, 2, 5)

        lines = [
            f"{self.game.difficulty.name}  Turns: {self.game.turns}",
            f"Mistakes: {self.game.mistakes}",
        ]
        if self.game.preferences.show_timer:
            lines.append(f"Time: {self.game.formatted_time()}{' (paused)' if self.paused else ''}")
        for i, line in enumerate(lines):
            self.screen.blit(self.render_text(self.font_small, line, WHITE),
                             (stats_rect.x + 10, stats_rect.y + 5 + i * 22))

        hint = self.render_text(self.font_small, "N: new  1/2/3: difficulty  P: pause", GRAY)
        self.screen.blit(hint, (self.width - hint.get_width() - 10, 10))

    def show_message(self, message, duration=2000):
        """Show a message for a duration in milliseconds."""
        self.message = message
        self.message_timer = pygame.time.get_ticks() + duration

    def draw_summary(self, summary):
        """Draw the results overlay for a finished game."""
        overlay = pygame.Surface((self.width, self.height), pygame.SRCALPHA)
        overlay.fill((0, 0, 0, 180))
        self.screen.blit(overlay, (0, 0))

        lines = [
            (self.font_large, "Congratulations!", YELLOW),
            (self.font_medium, "*" * summary.stars, YELLOW),
            (self.font_medium, f"Score: {summary.final_score} ({summary.performance_level})", WHITE),
            (self.font_small, f"Time: {summary.formatted_time}   Turns: {summary.turns}   "
                              f"Mistakes: {summary.mistakes}", WHITE),
        ]
        if summary.personal_best.is_new_best:
            lines.append((self.font_small, "New personal best!", GREEN))
        lines.append((self.font_small, "Press N to play again", GRAY))

        y = 160
        for font, text, color in lines:
            surface = self.render_text(font, text, color)
            self.screen.blit(surface, (self.width // 2 - surface.get_width() // 2, y))
            y += surface.get_height() + 15

    def handle_key(self, key):
        if key == pygame.K_ESCAPE:
            return False
        if key == pygame.K_n:
            self.paused = False
            self.game.new_game()
            self.layout_board()
        elif key in DIFFICULTY_KEYS:
            self.paused = False
            self.game.change_difficulty(DIFFICULTY_KEYS[key])
            self.layout_board()
            self.show_message(f"{self.game.difficulty.name}: {self.game.difficulty.description}")
        elif key == pygame.K_p:
            self.paused = not self.paused
            if self.paused:
                self.game.pause()
            else:
                self.game.resume()
        return True

    def run_game(self):
        """Run the game loop."""
        if self.game.resume_saved_game():
            self.show_message("Resumed your last game")
        else:
            self.game.new_game()
        self.layout_board()

        running = True
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN:
                    running = self.handle_key(event.key)
                elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                    # Input lock is enforced by the session itself
                    if not self.paused and not self.game.locked:
                        card_id = self.get_card_at_pos(event.pos)
                        if card_id:
                            self.game.select_card(card_id)

            # Settle delays and timer ticks
            self.game.update()

            self.screen.fill(WHITE)
            self.draw_ui()
            self.draw_board()
            if self.game.summary is not None:
                self.draw_summary(self.game.summary)
            pygame.display.flip()

            self.clock.tick(self.fps)


def main():
    """Main function to run the game."""
    configure_logging()
    settings = load_settings()

    pygame.init()
    levels = ", ".join(level.name for level in all_levels())
    logger.info("Starting Magic Memory (levels: %s)", levels)

    game = MemoryGame(storage=open_storage(settings["db_file"]))
    gui = GameGUI(game, fps=settings.get("fps", 60))
    gui.setup_window()
    try:
        gui.run_game()
    finally:
        game.storage.store.close()
        pygame.quit()
    sys.exit(0)


if __name__ == "__main__":
    main()
