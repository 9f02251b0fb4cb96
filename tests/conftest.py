import random
from collections import defaultdict

import pytest

from classes import GameSession, MemoryGame
from database import GameStorage, KeyValueStore, MemoryStore, PersistenceUnavailable
from game_timer import GameTimer
from scheduler import Scheduler

WALL_CLOCK = 1_700_000_000.0


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FailingStore(KeyValueStore):
    """Store whose medium is always unavailable."""

    def get(self, key):
        raise PersistenceUnavailable("disk on fire")

    def set(self, key, value):
        raise PersistenceUnavailable("disk on fire")

    def delete(self, key):
        raise PersistenceUnavailable("disk on fire")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return Scheduler(clock=clock)


@pytest.fixture
def advance(clock, scheduler):
    """Move time forward in half-second steps, running due tasks as we go."""
    def _advance(seconds, step=0.5):
        remaining = seconds
        while remaining > 0:
            delta = min(step, remaining)
            clock.advance(delta)
            scheduler.run_pending()
            remaining -= delta
    return _advance


@pytest.fixture
def timer(scheduler):
    return GameTimer(scheduler)


@pytest.fixture
def storage():
    return GameStorage(MemoryStore())


@pytest.fixture
def session(storage, scheduler, timer):
    return GameSession(
        storage=storage,
        scheduler=scheduler,
        timer=timer,
        rng=random.Random(7),
        wall_clock=lambda: WALL_CLOCK,
    )


@pytest.fixture
def memory_game(storage, scheduler):
    return MemoryGame(
        storage=storage,
        scheduler=scheduler,
        rng=random.Random(11),
        wall_clock=lambda: WALL_CLOCK,
    )


def pairs_by_face(session):
    pairs = defaultdict(list)
    for card in session.deck:
        pairs[card.face].append(card.card_id)
    return dict(pairs)


def mismatched_pair(session):
    """Ids of two unmatched cards with different faces."""
    unmatched = [card for card in session.deck if not card.is_matched]
    first = unmatched[0]
    second = next(card for card in unmatched if card.face != first.face)
    return first.card_id, second.card_id


@pytest.fixture
def play():
    """Helpers for driving a session through a game."""
    class Play:
        pairs_by_face = staticmethod(pairs_by_face)
        mismatched_pair = staticmethod(mismatched_pair)

        @staticmethod
        def match_all(session, advance, settle=1.0):
            for first, second in pairs_by_face(session).values():
                if session.get_card(first).is_matched:
                    continue
                assert session.select(first)
                assert session.select(second)
                if not session.is_complete:
                    advance(settle)

    return Play
