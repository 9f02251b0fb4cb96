"""
Score calculation for finished games.

Everything in this module is pure: scores are derived only from the elapsed
time, the number of mistakes and the difficulty level.
"""
import math
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Union

from difficulty import DifficultyLevel, config_for

BASE_SCORE = 1000
MAX_TIME_FOR_BONUS = 60  # seconds
TIME_BONUS_PER_SECOND = 10
MISTAKE_PENALTY = 50

THREE_STAR_PERCENTAGE = 90
TWO_STAR_PERCENTAGE = 70


@dataclass(frozen=True)
class ScoreBreakdown:
    """Every component that went into a final score."""
    base_score: int
    time_bonus: float
    mistake_penalty: int
    difficulty_multiplier: float
    raw_score: float
    final_score: int
    max_score: int
    percentage_of_max: float
    stars: int

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class PersonalBest:
    """How a score compares to the previous best for its difficulty."""
    is_new_best: bool
    improvement: int
    previous_best: int
    improvement_percentage: float


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _level(difficulty: Union[str, DifficultyLevel, None]) -> DifficultyLevel:
    if isinstance(difficulty, DifficultyLevel):
        return difficulty
    return config_for(difficulty)


class ScoreEngine:
    """
    Computes scores and star ratings.

    Stateless; a single instance can be shared by any number of sessions.
    """

    def calculate(self, elapsed_seconds, mistakes, difficulty) -> ScoreBreakdown:
        """
        Calculate the score for a finished game.

        Args:
            elapsed_seconds: Time taken, in seconds
            mistakes: Number of mismatched pairs
            difficulty: Difficulty id or DifficultyLevel

        Returns:
            ScoreBreakdown with the final score and star rating
        """
        level = _level(difficulty)
        elapsed_seconds = max(0, elapsed_seconds or 0)
        mistakes = max(0, mistakes or 0)

        time_bonus = max(0, (MAX_TIME_FOR_BONUS - elapsed_seconds) * TIME_BONUS_PER_SECOND)
        mistake_penalty = mistakes * MISTAKE_PENALTY
        raw_score = max(0, BASE_SCORE + time_bonus - mistake_penalty)
        final_score = max(0, _round_half_up(raw_score * level.score_multiplier))
        max_score = level.max_score

        return ScoreBreakdown(
            base_score=BASE_SCORE,
            time_bonus=time_bonus,
            mistake_penalty=mistake_penalty,
            difficulty_multiplier=level.score_multiplier,
            raw_score=raw_score,
            final_score=final_score,
            max_score=max_score,
            percentage_of_max=final_score / max_score * 100,
            stars=self.stars_for(final_score, max_score),
        )

    def stars_for(self, score, max_score) -> int:
        """Star rating for a score; every finished game earns at least one."""
        if not max_score or max_score <= 0:
            return 1
        percentage = score / max_score * 100
        if percentage >= THREE_STAR_PERCENTAGE:
            return 3
        if percentage >= TWO_STAR_PERCENTAGE:
            return 2
        return 1

    def max_score(self, difficulty) -> int:
        return _level(difficulty).max_score

    def compare_to_personal_best(self, score: int, previous_best: Optional[int]) -> PersonalBest:
        """Compare a score against the stored best (None when there is none)."""
        if not previous_best:
            return PersonalBest(
                is_new_best=True,
                improvement=score,
                previous_best=0,
                improvement_percentage=0.0,
            )
        improvement = score - previous_best
        return PersonalBest(
            is_new_best=score > previous_best,
            improvement=improvement,
            previous_best=previous_best,
            improvement_percentage=improvement / previous_best * 100,
        )

    def performance_level(self, percentage_of_max: float) -> str:
        if percentage_of_max >= 90:
            return "Excellent"
        if percentage_of_max >= 70:
            return "Good"
        if percentage_of_max >= 50:
            return "Average"
        return "Needs Improvement"

    def breakdown_components(self, breakdown: ScoreBreakdown) -> List[Dict[str, object]]:
        """Rows for a results screen, in display order."""
        return [
            {"label": "Base points", "points": breakdown.base_score},
            {"label": "Speed bonus", "points": breakdown.time_bonus},
            {"label": "Mistake penalty", "points": -breakdown.mistake_penalty},
            {"label": "Difficulty multiplier", "multiplier": breakdown.difficulty_multiplier},
        ]
