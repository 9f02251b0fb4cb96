"""
Persisted data models for the memory game.
These are the plain JSON shapes written to and read from the key-value store.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional


@dataclass
class SessionRecord:
    """One completed game, as stored in the history."""
    id: str
    difficulty: str
    start_time: str
    end_time: str
    time_elapsed: int
    score: int
    mistakes: int
    stars: int
    max_possible_score: int
    card_pairs: int
    turns: int = 0
    completed: bool = True

    @classmethod
    def from_dict(cls, data):
        """Create a SessionRecord object from a dictionary."""
        return cls(
            id=str(data.get('id', '')),
            difficulty=data.get('difficulty', ''),
            start_time=data.get('start_time', ''),
            end_time=data.get('end_time', ''),
            time_elapsed=int(data.get('time_elapsed', 0)),
            score=int(data.get('score', 0)),
            mistakes=int(data.get('mistakes', 0)),
            stars=int(data.get('stars', 1)),
            max_possible_score=int(data.get('max_possible_score', 0)),
            card_pairs=int(data.get('card_pairs', 0)),
            turns=int(data.get('turns', 0)),
            completed=bool(data.get('completed', True)),
        )

    def to_dict(self):
        """Convert the SessionRecord object to a dictionary."""
        return {
            'id': self.id,
            'difficulty': self.difficulty,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'time_elapsed': self.time_elapsed,
            'score': self.score,
            'mistakes': self.mistakes,
            'stars': self.stars,
            'max_possible_score': self.max_possible_score,
            'card_pairs': self.card_pairs,
            'turns': self.turns,
            'completed': self.completed,
        }

    @classmethod
    def create_from_game_end(cls, session_id, difficulty, end_time, time_elapsed, score,
                             mistakes, stars, max_possible_score, card_pairs, turns=0):
        """Create a SessionRecord from game end data. end_time is a UNIX timestamp."""
        end = datetime.fromtimestamp(end_time, tz=timezone.utc)
        start = end - timedelta(seconds=time_elapsed)
        return cls(
            id=session_id,
            difficulty=difficulty,
            start_time=start.isoformat(),
            end_time=end.isoformat(),
            time_elapsed=time_elapsed,
            score=score,
            mistakes=mistakes,
            stars=stars,
            max_possible_score=max_possible_score,
            card_pairs=card_pairs,
            turns=turns,
        )


@dataclass
class BestScore:
    """Best result recorded for one difficulty."""
    score: int
    time_elapsed: int
    stars: int
    date: str

    @classmethod
    def from_dict(cls, data):
        return cls(
            score=int(data.get('score', 0)),
            time_elapsed=int(data.get('time_elapsed', 0)),
            stars=int(data.get('stars', 1)),
            date=data.get('date', ''),
        )

    def to_dict(self):
        return {
            'score': self.score,
            'time_elapsed': self.time_elapsed,
            'stars': self.stars,
            'date': self.date,
        }


@dataclass
class PerformanceMetrics:
    """Aggregate statistics over every completed game."""
    total_games_played: int = 0
    total_time_played: int = 0
    average_score: float = 0.0
    best_score_by_difficulty: Dict[str, BestScore] = field(default_factory=dict)
    fastest_time_by_difficulty: Dict[str, int] = field(default_factory=dict)
    total_stars_earned: int = 0
    perfect_games: int = 0

    @classmethod
    def from_dict(cls, data):
        """Create a PerformanceMetrics object from a dictionary."""
        return cls(
            total_games_played=int(data.get('total_games_played', 0)),
            total_time_played=int(data.get('total_time_played', 0)),
            average_score=float(data.get('average_score', 0.0)),
            best_score_by_difficulty={
                difficulty: BestScore.from_dict(best)
                for difficulty, best in (data.get('best_score_by_difficulty') or {}).items()
            },
            fastest_time_by_difficulty={
                difficulty: int(seconds)
                for difficulty, seconds in (data.get('fastest_time_by_difficulty') or {}).items()
            },
            total_stars_earned=int(data.get('total_stars_earned', 0)),
            perfect_games=int(data.get('perfect_games', 0)),
        )

    def to_dict(self):
        """Convert the PerformanceMetrics object to a dictionary."""
        return {
            'total_games_played': self.total_games_played,
            'total_time_played': self.total_time_played,
            'average_score': self.average_score,
            'best_score_by_difficulty': {
                difficulty: best.to_dict() for difficulty, best in self.best_score_by_difficulty.items()
            },
            'fastest_time_by_difficulty': dict(self.fastest_time_by_difficulty),
            'total_stars_earned': self.total_stars_earned,
            'perfect_games': self.perfect_games,
        }

    def best_score(self, difficulty: str) -> Optional[int]:
        best = self.best_score_by_difficulty.get(difficulty)
        return best.score if best else None

    def record(self, session: SessionRecord) -> None:
        """Fold a completed session into the totals."""
        self.total_games_played += 1
        self.total_time_played += session.time_elapsed
        self.total_stars_earned += session.stars
        # running mean over every game ever played, not just the kept history
        self.average_score += (session.score - self.average_score) / self.total_games_played

        best = self.best_score_by_difficulty.get(session.difficulty)
        if best is None or session.score > best.score:
            self.best_score_by_difficulty[session.difficulty] = BestScore(
                score=session.score,
                time_elapsed=session.time_elapsed,
                stars=session.stars,
                date=session.end_time,
            )

        fastest = self.fastest_time_by_difficulty.get(session.difficulty)
        if fastest is None or session.time_elapsed < fastest:
            self.fastest_time_by_difficulty[session.difficulty] = session.time_elapsed

        if session.stars == 3:
            self.perfect_games += 1


@dataclass
class Preferences:
    """Player preferences."""
    default_difficulty: str = "medium"
    sound_enabled: bool = True
    show_timer: bool = True
    animation_speed: str = "normal"

    @classmethod
    def from_dict(cls, data):
        """Create Preferences from a dictionary, keeping defaults for values of the wrong type."""
        def flag(key):
            value = data.get(key)
            return value if isinstance(value, bool) else True

        return cls(
            default_difficulty=data.get('default_difficulty', 'medium'),
            sound_enabled=flag('sound_enabled'),
            show_timer=flag('show_timer'),
            animation_speed=data.get('animation_speed', 'normal'),
        )

    def to_dict(self):
        return {
            'default_difficulty': self.default_difficulty,
            'sound_enabled': self.sound_enabled,
            'show_timer': self.show_timer,
            'animation_speed': self.animation_speed,
        }
