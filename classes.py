import logging
import random
import time
import uuid
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from config import CARD_FACES, SETTLE_DELAY
from database import GameStorage, MemoryStore
from difficulty import DifficultyLevel, config_for, is_valid
from game_timer import GameTimer, format_time
from scheduler import ScheduledTask, Scheduler
from scoring import PersonalBest, ScoreBreakdown, ScoreEngine
from shared.models import PerformanceMetrics, SessionRecord

logger = logging.getLogger(__name__)


class Card:
    """
    A class representing a memory card in the memory card game.
    Each card shows a face and becomes matched once its pair is found.
    """

    def __init__(self, face, card_id=None):
        """
        Initialize a new card.

        Args:
            face: The value the player sees when the card is revealed
            card_id: Unique identifier for this card instance (generated if omitted)
        """
        self.face = face
        self.card_id = card_id or uuid.uuid4().hex
        self.is_matched = False

    def match(self):
        """Mark the card as matched. A matched card never reverts."""
        self.is_matched = True

    def to_dict(self):
        return {"card_id": self.card_id, "face": self.face, "is_matched": self.is_matched}

    @classmethod
    def from_dict(cls, data):
        card = cls(data["face"], card_id=data["card_id"])
        if data.get("is_matched"):
            card.match()
        return card

    def __str__(self):
        """Return a string representation of the card."""
        status = "matched" if self.is_matched else "unmatched"
        return f"Card({self.face}, {status})"

    def __repr__(self):
        """Return a detailed string representation of the card."""
        return f"Card(face={self.face!r}, card_id={self.card_id!r}, is_matched={self.is_matched})"


def build_deck(difficulty, faces=CARD_FACES, rng=None) -> List[Card]:
    """
    Build a freshly shuffled deck for a difficulty.

    Args:
        difficulty: Difficulty id or DifficultyLevel
        faces: Ordered master list of faces; the first total_pairs are used
        rng: Optional random.Random for reproducible shuffles

    Returns:
        List of 2 * total_pairs cards, each face appearing exactly twice
    """
    level = difficulty if isinstance(difficulty, DifficultyLevel) else config_for(difficulty)
    pairs_needed = level.total_pairs

    if len(faces) < pairs_needed:
        raise ValueError(f"Not enough card faces. Need at least {pairs_needed} faces.")

    selected_faces = list(faces[:pairs_needed])
    deck = [Card(face) for face in selected_faces + selected_faces]

    # random.shuffle is a Fisher-Yates shuffle
    (rng or random).shuffle(deck)
    return deck


class GameState(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    RESOLVING = "resolving"
    COMPLETE = "complete"


@dataclass(frozen=True)
class CardView:
    """What the renderer needs to draw one card."""
    card_id: str
    face: str
    revealed: bool
    matched: bool


@dataclass
class GameSummary:
    """Results of a completed game."""
    session_id: str
    difficulty: str
    time_elapsed: int
    turns: int
    mistakes: int
    score: ScoreBreakdown
    personal_best: PersonalBest
    performance_level: str
    record: SessionRecord
    metrics: PerformanceMetrics

    @property
    def final_score(self) -> int:
        return self.score.final_score

    @property
    def stars(self) -> int:
        return self.score.stars

    @property
    def formatted_time(self) -> str:
        return format_time(self.time_elapsed)


class GameSession:
    """
    State machine for one game of memory.

    A session moves IDLE -> PLAYING -> RESOLVING -> PLAYING ... -> COMPLETE.
    Selecting the second card of a pair locks input until the settle delay
    has passed; the last match completes the game, scores it and saves it.
    """

    def __init__(self, storage: Optional[GameStorage] = None,
                 scheduler: Optional[Scheduler] = None,
                 timer: Optional[GameTimer] = None,
                 score_engine: Optional[ScoreEngine] = None,
                 settle_delay: float = SETTLE_DELAY,
                 faces=CARD_FACES,
                 rng=None,
                 wall_clock: Callable[[], float] = time.time):
        self.storage = storage or GameStorage(MemoryStore())
        self.scheduler = scheduler or Scheduler()
        self.timer = timer or GameTimer(self.scheduler)
        self.score_engine = score_engine or ScoreEngine()
        self.settle_delay = settle_delay
        self.faces = faces
        self.rng = rng
        self.wall_clock = wall_clock

        self.state = GameState.IDLE
        self.session_id = None
        self.difficulty: DifficultyLevel = config_for(None)
        self.deck: List[Card] = []
        self.turns = 0
        self.mistakes = 0
        self.started_at = None
        self.locked = False
        self.choice_one: Optional[str] = None
        self.choice_two: Optional[str] = None
        self.summary: Optional[GameSummary] = None

        self._cards: Dict[str, Card] = {}
        self._settle_task: Optional[ScheduledTask] = None
        self._completed = False
        self._listeners: List[Callable[[str, "GameSession"], None]] = []

    # -- lifecycle -------------------------------------------------------

    def start(self, difficulty=None) -> None:
        """Deal a new deck and start playing."""
        self._cancel_settle()
        self.timer.stop()

        self.difficulty = difficulty if isinstance(difficulty, DifficultyLevel) else config_for(difficulty)
        self._set_deck(build_deck(self.difficulty, self.faces, self.rng))
        self.turns = 0
        self.mistakes = 0
        self._clear_choices()
        self.locked = False
        self._completed = False
        self.summary = None
        self.session_id = uuid.uuid4().hex
        self.started_at = self.wall_clock()
        self.state = GameState.PLAYING
        self.timer.start(self.session_id)
        logger.info("Started %s game %s with %d pairs",
                    self.difficulty.id, self.session_id, self.difficulty.total_pairs)

    def abandon(self) -> None:
        """Stop timing and drop any pending resolution without saving anything."""
        self._cancel_settle()
        self.timer.stop()
        if self.state is not GameState.COMPLETE:
            self.state = GameState.IDLE
        self.locked = False

    def pause(self) -> None:
        if self.state in (GameState.PLAYING, GameState.RESOLVING):
            self.timer.pause()

    def resume(self) -> None:
        if self.state in (GameState.PLAYING, GameState.RESOLVING):
            self.timer.resume()

    def add_listener(self, callback: Callable[[str, "GameSession"], None]) -> None:
        """Register callback(event, session); events are 'resolved' and 'complete'."""
        self._listeners.append(callback)

    # -- player input ----------------------------------------------------

    def select(self, card_id: str) -> bool:
        """
        Choose a card.

        Ineligible selections (input locked, game not in play, unknown card,
        matched card, or the card already chosen) are ignored.

        Returns:
            True if the selection was accepted
        """
        if self.state is not GameState.PLAYING or self.locked:
            return False
        card = self._cards.get(card_id)
        if card is None or card.is_matched or card_id == self.choice_one:
            logger.debug("Ignoring selection of %s", card_id)
            return False

        if self.choice_one is None:
            self.choice_one = card_id
            return True

        self.choice_two = card_id
        self._resolve()
        return True

    def _resolve(self):
        self.state = GameState.RESOLVING
        self.locked = True

        first = self._cards[self.choice_one]
        second = self._cards[self.choice_two]
        if first.face == second.face:
            first.match()
            second.match()
            logger.debug("Match: %s", first.face)
            if self.all_matched():
                self._end_turn()
                self.check_completion()
                return
        else:
            self.mistakes += 1
            logger.debug("No match: %s / %s", first.face, second.face)

        self._settle_task = self.scheduler.call_later(self.settle_delay, self._settle, name="settle")

    def _settle(self):
        self._settle_task = None
        self._end_turn()
        self.state = GameState.PLAYING
        self._notify("resolved")

    def _end_turn(self):
        self._clear_choices()
        self.turns += 1
        self.locked = False

    # -- completion ------------------------------------------------------

    def all_matched(self) -> bool:
        return bool(self.deck) and all(card.is_matched for card in self.deck)

    def check_completion(self) -> bool:
        """
        Complete the game if every card is matched.

        Safe to call any number of times; the game is scored and saved once.

        Returns:
            True if the game is complete
        """
        if self._completed:
            return True
        if not self.all_matched() or self.state is GameState.IDLE:
            return False

        self._completed = True
        self._cancel_settle()
        self._clear_choices()
        self.locked = False
        self.state = GameState.COMPLETE

        elapsed = self.timer.stop()
        score = self.score_engine.calculate(elapsed, self.mistakes, self.difficulty)
        previous_best = self.storage.load_performance_metrics().best_score(self.difficulty.id)
        personal_best = self.score_engine.compare_to_personal_best(score.final_score, previous_best)

        record = SessionRecord.create_from_game_end(
            session_id=self.session_id,
            difficulty=self.difficulty.id,
            end_time=self.wall_clock(),
            time_elapsed=elapsed,
            score=score.final_score,
            mistakes=self.mistakes,
            stars=score.stars,
            max_possible_score=score.max_score,
            card_pairs=self.difficulty.total_pairs,
            turns=self.turns,
        )
        metrics = self.storage.save_game_session(record)
        self.storage.clear_current_game()

        self.summary = GameSummary(
            session_id=self.session_id,
            difficulty=self.difficulty.id,
            time_elapsed=elapsed,
            turns=self.turns,
            mistakes=self.mistakes,
            score=score,
            personal_best=personal_best,
            performance_level=self.score_engine.performance_level(score.percentage_of_max),
            record=record,
            metrics=metrics,
        )
        logger.info("Game %s complete: %d points, %d stars in %ss with %d mistakes",
                    self.session_id, score.final_score, score.stars, elapsed, self.mistakes)
        self._notify("complete")
        return True

    # -- view ------------------------------------------------------------

    def get_card(self, card_id: str) -> Optional[Card]:
        return self._cards.get(card_id)

    def is_revealed(self, card: Card) -> bool:
        return card.is_matched or card.card_id in (self.choice_one, self.choice_two)

    def card_views(self) -> List[CardView]:
        return [
            CardView(card.card_id, card.face, self.is_revealed(card), card.is_matched)
            for card in self.deck
        ]

    def board(self) -> List[List[CardView]]:
        """Card views laid out in rows for the grid."""
        views = self.card_views()
        cols = self.difficulty.cols
        return [views[i:i + cols] for i in range(0, len(views), cols)]

    @property
    def matched_pairs(self) -> int:
        return sum(1 for card in self.deck if card.is_matched) // 2

    @property
    def is_complete(self) -> bool:
        return self.state is GameState.COMPLETE

    def elapsed_seconds(self) -> int:
        if self.summary is not None:
            return self.summary.time_elapsed
        return self.timer.elapsed_seconds()

    def formatted_time(self) -> str:
        return format_time(self.elapsed_seconds())

    # -- save / resume ---------------------------------------------------

    def snapshot(self) -> dict:
        """JSON-ready state of an in-progress game."""
        return {
            "session_id": self.session_id,
            "difficulty": self.difficulty.id,
            "started_at": self.started_at,
            "turns": self.turns,
            "mistakes": self.mistakes,
            "elapsed": self.elapsed_seconds(),
            "cards": [card.to_dict() for card in self.deck],
        }

    def restore(self, snapshot: dict) -> bool:
        """
        Continue a game saved with snapshot().

        Returns:
            False if the snapshot does not describe a playable game
        """
        try:
            level = config_for(snapshot["difficulty"])
            cards = [Card.from_dict(item) for item in snapshot["cards"]]
            turns = int(snapshot.get("turns", 0))
            mistakes = int(snapshot.get("mistakes", 0))
            elapsed = int(snapshot.get("elapsed", 0))
            session_id = str(snapshot["session_id"])
            if not all(isinstance(card.face, str) and isinstance(card.card_id, str) for card in cards):
                raise TypeError("card faces and ids must be strings")
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Cannot restore saved game: %s", e)
            return False

        faces = Counter(card.face for card in cards)
        if (not is_valid(snapshot["difficulty"]) or len(cards) != level.total_cards
                or len(faces) != level.total_pairs or any(n != 2 for n in faces.values())
                or len({card.card_id for card in cards}) != len(cards)
                or all(card.is_matched for card in cards)):
            logger.warning("Cannot restore saved game: inconsistent deck")
            return False

        self._cancel_settle()
        self.timer.stop()
        self.difficulty = level
        self._set_deck(cards)
        self.turns = turns
        self.mistakes = mistakes
        self._clear_choices()
        self.locked = False
        self._completed = False
        self.summary = None
        self.session_id = session_id
        self.started_at = snapshot.get("started_at") or self.wall_clock()
        self.state = GameState.PLAYING
        self.timer.start(session_id, offset=elapsed)
        logger.info("Resumed %s game %s at %ss", level.id, session_id, elapsed)
        return True

    # -- helpers ---------------------------------------------------------

    def _set_deck(self, deck: List[Card]):
        self.deck = deck
        self._cards = {card.card_id: card for card in deck}

    def _clear_choices(self):
        self.choice_one = None
        self.choice_two = None

    def _cancel_settle(self):
        if self._settle_task is not None:
            self._settle_task.cancel()
            self._settle_task = None

    def _notify(self, event: str):
        for callback in list(self._listeners):
            callback(event, self)

    def __str__(self):
        """Return a string representation of the game state."""
        return (f"Game {self.session_id} [{self.state.value}] {self.difficulty.name}: "
                f"turns={self.turns}, mistakes={self.mistakes}, "
                f"pairs={self.matched_pairs}/{self.difficulty.total_pairs}")


class MemoryGame:
    """
    Entry point for the user interface.

    Holds the current session and turns player intents (new game, pick a
    card, change difficulty) into session calls. The renderer reads the
    board, counters and summary from here and calls update() every frame.
    """

    def __init__(self, storage: Optional[GameStorage] = None,
                 scheduler: Optional[Scheduler] = None,
                 settle_delay: float = SETTLE_DELAY,
                 rng=None,
                 wall_clock: Callable[[], float] = time.time):
        self.storage = storage or GameStorage(MemoryStore())
        self.scheduler = scheduler or Scheduler()
        self.settle_delay = settle_delay
        self.rng = rng
        self.wall_clock = wall_clock
        self.preferences = self.storage.load_preferences()
        self.difficulty = config_for(self.preferences.default_difficulty)
        self.session: Optional[GameSession] = None

    def _create_session(self) -> GameSession:
        session = GameSession(
            storage=self.storage,
            scheduler=self.scheduler,
            timer=GameTimer(self.scheduler),
            settle_delay=self.settle_delay,
            rng=self.rng,
            wall_clock=self.wall_clock,
        )
        session.add_listener(self._on_session_event)
        return session

    def _on_session_event(self, event, session):
        if event == "resolved" and session is self.session:
            self.storage.save_current_game(session.snapshot())

    def new_game(self, difficulty=None) -> GameSession:
        """Replace the current session with a fresh one."""
        if difficulty is not None:
            self.difficulty = config_for(difficulty)
        if self.session is not None:
            self.session.abandon()
        self.storage.clear_current_game()
        self.session = self._create_session()
        self.session.start(self.difficulty)
        return self.session

    def change_difficulty(self, difficulty_id) -> GameSession:
        """Switch difficulty, remember it as the default, and deal a new game."""
        self.difficulty = config_for(difficulty_id)
        if self.preferences.default_difficulty != self.difficulty.id:
            self.preferences.default_difficulty = self.difficulty.id
            self.storage.save_preferences(self.preferences)
        return self.new_game()

    def resume_saved_game(self) -> bool:
        """Continue the game saved in storage, if there is a usable one."""
        snapshot = self.storage.load_current_game()
        if not snapshot:
            return False
        session = self._create_session()
        if not session.restore(snapshot):
            self.storage.clear_current_game()
            return False
        if self.session is not None:
            self.session.abandon()
        self.session = session
        self.difficulty = session.difficulty
        return True

    def select_card(self, card_id) -> bool:
        if self.session is None:
            return False
        return self.session.select(card_id)

    def update(self) -> int:
        """Run due timer ticks and settle delays. Call once per frame."""
        return self.scheduler.run_pending()

    def pause(self):
        if self.session is not None:
            self.session.pause()

    def resume(self):
        if self.session is not None:
            self.session.resume()

    @property
    def locked(self) -> bool:
        return self.session is not None and self.session.locked

    @property
    def summary(self) -> Optional[GameSummary]:
        return self.session.summary if self.session is not None else None

    @property
    def turns(self) -> int:
        return self.session.turns if self.session is not None else 0

    @property
    def mistakes(self) -> int:
        return self.session.mistakes if self.session is not None else 0

    def formatted_time(self) -> str:
        return self.session.formatted_time() if self.session is not None else format_time(0)

    def card_views(self) -> List[CardView]:
        return self.session.card_views() if self.session is not None else []
