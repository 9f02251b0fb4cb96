"""
Difficulty levels for the memory card game.

Each level fixes the grid size, the number of pairs, the score multiplier
and the precomputed maximum score for that level.
"""
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class DifficultyLevel:
    """A single, immutable difficulty level."""
    id: str
    name: str
    rows: int
    cols: int
    total_pairs: int
    score_multiplier: float
    max_score: int
    description: str = ""

    @property
    def total_cards(self) -> int:
        return self.total_pairs * 2


EASY = DifficultyLevel(
    id="easy",
    name="Easy",
    rows=3,
    cols=4,
    total_pairs=6,
    score_multiplier=1,
    max_score=1600,
    description="3x4 grid with 6 pairs",
)

MEDIUM = DifficultyLevel(
    id="medium",
    name="Medium",
    rows=4,
    cols=4,
    total_pairs=8,
    score_multiplier=1.5,
    max_score=2400,
    description="4x4 grid with 8 pairs",
)

HARD = DifficultyLevel(
    id="hard",
    name="Hard",
    rows=6,
    cols=6,
    total_pairs=18,
    score_multiplier=2,
    max_score=3200,
    description="6x6 grid with 18 pairs",
)

DIFFICULTY_CONFIGS = {level.id: level for level in (EASY, MEDIUM, HARD)}
DEFAULT_DIFFICULTY = EASY


def config_for(difficulty_id: Optional[str]) -> DifficultyLevel:
    """Return the level for an id, or the easy level for anything unknown."""
    try:
        return DIFFICULTY_CONFIGS.get(difficulty_id, DEFAULT_DIFFICULTY)
    except TypeError:
        return DEFAULT_DIFFICULTY


def all_levels() -> List[DifficultyLevel]:
    """All levels, easiest first."""
    return list(DIFFICULTY_CONFIGS.values())


def is_valid(difficulty_id: Optional[str]) -> bool:
    return isinstance(difficulty_id, str) and difficulty_id in DIFFICULTY_CONFIGS


def multiplier_for(difficulty_id: Optional[str]) -> float:
    return config_for(difficulty_id).score_multiplier


def max_score_for(difficulty_id: Optional[str]) -> int:
    return config_for(difficulty_id).max_score
