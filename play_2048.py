"""
2048 Viewer - Graphical Interface using Pygame
Watch a configured agent play, or play with the keyboard.

Usage:
    python play_2048.py                                    # Arrow keys
    python play_2048.py --play "name=TD alpha=0 load=weights.bin"
    python play_2048.py --play "name=greedy_pos" --delay 100
"""

import logging
import sys
from typing import Optional

import pygame

from agent_config import ConfigError
from agents import Agent, make_player, make_environment
from game_2048 import Game2048Env, UP, DOWN, LEFT, RIGHT
from weights import WeightFileError

logger = logging.getLogger(__name__)


# Color scheme matching the original 2048 game
COLORS = {
    'background': (187, 173, 160),
    'text_dark': (119, 110, 101),
    'text_light': (249, 246, 242),
    'game_bg': (250, 248, 239),
    'tiles': {
        0: (205, 193, 180),
        2: (238, 228, 218),
        4: (237, 224, 200),
        8: (242, 177, 121),
        16: (245, 149, 99),
        32: (246, 124, 95),
        64: (246, 94, 59),
        128: (237, 207, 114),
        256: (237, 204, 97),
        512: (237, 200, 80),
        1024: (237, 197, 63),
        2048: (237, 194, 46),
        4096: (60, 58, 50),
    }
}

KEY_DIRECTIONS = {
    pygame.K_UP: UP,
    pygame.K_DOWN: DOWN,
    pygame.K_LEFT: LEFT,
    pygame.K_RIGHT: RIGHT,
}


class Game2048Viewer:
    """Window that renders a Game2048Env while an agent or the keyboard plays."""

    def __init__(self, env: Game2048Env, player: Optional[Agent] = None,
                 delay: int = 200, width: int = 500, height: int = 600):
        """
        Args:
            env: Environment to play in
            player: Agent choosing the slides, or None for keyboard play
            delay: Milliseconds between agent moves
            width: Window width
            height: Window height
        """
        pygame.init()

        self.env = env
        self.player = player
        self.delay = delay
        self.width = width
        self.height = height
        self.screen = pygame.display.set_mode((width, height))
        pygame.display.set_caption("2048" if player is None else f"2048 - {player.name}")

        self.tile_size = 100
        self.tile_margin = 15
        grid_width = self.tile_size * 4 + self.tile_margin * 5
        self.grid_x = (width - grid_width) // 2
        self.grid_y = 150

        self.title_font = pygame.font.Font(None, 80)
        self.score_font = pygame.font.Font(None, 36)
        self.tile_fonts = [pygame.font.Font(None, size) for size in (60, 50, 40)]
        self.info_font = pygame.font.Font(None, 24)

        self.clock = pygame.time.Clock()
        self.fps = 60
        self.paused = False
        self.last_move_ms = 0
        self.restart()

    def restart(self) -> None:
        self.env.reset()
        self.game_over = False
        if self.player is not None:
            self.player.open_episode()

    def finish(self) -> None:
        self.game_over = True
        if self.player is not None:
            self.player.close_episode()
        logger.info(f"Game over: score {self.env.score}, moves {self.env.moves_made}, "
                    f"max tile {2 ** self.env.board.max_tile()}")

    def draw_tile(self, value: int, x: int, y: int) -> None:
        color = COLORS['tiles'].get(value, COLORS['tiles'][4096])
        pygame.draw.rect(self.screen, color, pygame.Rect(x, y, self.tile_size, self.tile_size), border_radius=8)
        if value > 0:
            font = self.tile_fonts[min(len(str(value)) // 2, 2)]
            text_color = COLORS['text_dark'] if value <= 4 else COLORS['text_light']
            text = font.render(str(value), True, text_color)
            self.screen.blit(text, text.get_rect(center=(x + self.tile_size // 2, y + self.tile_size // 2)))

    def draw_grid(self) -> None:
        grid_width = self.tile_size * 4 + self.tile_margin * 5
        grid_rect = pygame.Rect(self.grid_x - self.tile_margin, self.grid_y - self.tile_margin,
                                grid_width, grid_width)
        pygame.draw.rect(self.screen, COLORS['background'], grid_rect, border_radius=10)

        actual_grid = self.env.get_grid_actual_values()
        for i in range(4):
            for j in range(4):
                x = self.grid_x + j * (self.tile_size + self.tile_margin)
                y = self.grid_y + i * (self.tile_size + self.tile_margin)
                self.draw_tile(int(actual_grid[i, j]), x, y)

    def draw_header(self) -> None:
        title_text = self.title_font.render("2048", True, COLORS['text_dark'])
        self.screen.blit(title_text, (30, 30))

        box_width, box_height = 150, 70
        box_x, box_y = self.width - box_width - 30, 30
        pygame.draw.rect(self.screen, COLORS['background'],
                         pygame.Rect(box_x, box_y, box_width, box_height), border_radius=8)
        label = self.info_font.render(f"SCORE  ({self.env.moves_made} moves)", True, COLORS['text_light'])
        self.screen.blit(label, label.get_rect(center=(box_x + box_width // 2, box_y + 20)))
        value = self.score_font.render(str(self.env.score), True, (255, 255, 255))
        self.screen.blit(value, value.get_rect(center=(box_x + box_width // 2, box_y + 48)))

    def draw_instructions(self) -> None:
        if self.player is None:
            instructions = ["Use Arrow Keys to move tiles", "Press R to restart | ESC to quit"]
        else:
            instructions = ["SPACE to pause" + (" (paused)" if self.paused else ""),
                            "Press R to restart | ESC to quit"]
        y_offset = self.height - 60
        for instruction in instructions:
            text = self.info_font.render(instruction, True, COLORS['text_dark'])
            self.screen.blit(text, text.get_rect(center=(self.width // 2, y_offset)))
            y_offset += 25

    def draw_game_over(self) -> None:
        overlay = pygame.Surface((self.width, self.height))
        overlay.set_alpha(180)
        overlay.fill((238, 228, 218))
        self.screen.blit(overlay, (0, 0))

        lines = [(self.title_font, "Game Over!", -40),
                 (self.score_font, f"Final Score: {self.env.score}", 20),
                 (self.info_font, "Press R to restart", 60)]
        for font, message, dy in lines:
            text = font.render(message, True, COLORS['text_dark'])
            self.screen.blit(text, text.get_rect(center=(self.width // 2, self.height // 2 + dy)))

    def draw(self) -> None:
        self.screen.fill(COLORS['game_bg'])
        self.draw_header()
        self.draw_grid()
        self.draw_instructions()
        if self.game_over:
            self.draw_game_over()
        pygame.display.flip()

    def handle_input(self, event) -> bool:
        """
        Handle keyboard input.

        Returns:
            False when the window should close
        """
        if event.type == pygame.QUIT:
            return False
        if event.type != pygame.KEYDOWN:
            return True

        if event.key == pygame.K_ESCAPE:
            return False
        if event.key == pygame.K_r:
            self.restart()
        elif event.key == pygame.K_SPACE:
            self.paused = not self.paused
        elif self.player is None and not self.game_over and event.key in KEY_DIRECTIONS:
            _, _, terminated, _, _ = self.env.step(KEY_DIRECTIONS[event.key])
            if terminated:
                self.finish()
        return True

    def agent_move(self) -> None:
        now = pygame.time.get_ticks()
        if now - self.last_move_ms < self.delay:
            return
        self.last_move_ms = now
        action = self.player.take_action(self.env.board)
        if not action:
            self.finish()
            return
        self.env.step(action.direction)

    def run(self) -> None:
        """Main game loop."""
        running = True
        while running:
            for event in pygame.event.get():
                if not self.handle_input(event):
                    running = False

            if self.player is not None and not self.paused and not self.game_over:
                self.agent_move()

            self.draw()
            self.clock.tick(self.fps)

        pygame.quit()


def main() -> int:
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='Watch a 2048 agent play')
    parser.add_argument('--play', type=str, default=None,
                        help='Player arguments, e.g. "name=TD alpha=0 load=weights.bin"')
    parser.add_argument('--env', type=str, default="",
                        help='Environment arguments, e.g. "seed=42"')
    parser.add_argument('--delay', type=int, default=200,
                        help='Milliseconds between agent moves')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(message)s')

    try:
        player = make_player(args.play) if args.play is not None else None
        env = Game2048Env(make_environment(args.env))
    except (ConfigError, WeightFileError) as e:
        logger.error(f"Cannot create agents: {e}")
        return 1

    viewer = Game2048Viewer(env, player, delay=args.delay)
    viewer.run()
    if player is not None:
        try:
            player.close()
        except WeightFileError as e:
            logger.error(f"Cannot save weights: {e}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
