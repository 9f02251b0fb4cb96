import random

import pytest

from classes import GameSession, GameState
from database import GameStorage
from game_timer import GameTimer
from tests.conftest import WALL_CLOCK, FailingStore


def test_start_deals_fresh_deck(session):
    session.start("medium")

    assert session.state is GameState.PLAYING
    assert len(session.deck) == 16
    assert session.turns == 0
    assert session.mistakes == 0
    assert session.choice_one is None and session.choice_two is None
    assert session.timer.is_running
    assert session.timer.session_id == session.session_id
    assert session.started_at == WALL_CLOCK


def test_restart_gives_new_session_and_card_ids(session):
    session.start("easy")
    first_id = session.session_id
    first_cards = {card.card_id for card in session.deck}

    session.start("easy")

    assert session.session_id != first_id
    assert not first_cards & {card.card_id for card in session.deck}


def test_select_ignored_before_start(session):
    assert session.state is GameState.IDLE
    assert session.select("anything") is False


def test_select_unknown_card_ignored(session):
    session.start("easy")
    assert session.select("not-a-card") is False
    assert session.choice_one is None


def test_same_card_twice_is_ignored(session):
    session.start("easy")
    card_id = session.deck[0].card_id

    assert session.select(card_id) is True
    assert session.select(card_id) is False
    assert session.choice_one == card_id
    assert session.choice_two is None
    assert session.state is GameState.PLAYING


def test_mismatch_counts_mistake_and_locks_until_settled(session, advance, play):
    session.start("easy")
    first, second = play.mismatched_pair(session)

    session.select(first)
    session.select(second)

    assert session.state is GameState.RESOLVING
    assert session.locked
    assert session.mistakes == 1
    assert session.turns == 0
    # both cards stay visible during the settle delay
    assert session.is_revealed(session.get_card(first))
    assert session.is_revealed(session.get_card(second))

    other = next(c.card_id for c in session.deck if c.card_id not in (first, second))
    assert session.select(other) is False

    advance(0.5)
    assert session.locked

    advance(0.5)
    assert session.state is GameState.PLAYING
    assert not session.locked
    assert session.turns == 1
    assert session.mistakes == 1
    assert session.choice_one is None and session.choice_two is None
    assert not session.is_revealed(session.get_card(first))


def test_match_marks_cards_and_counts_turn(session, advance, play):
    session.start("easy")
    first, second = next(iter(play.pairs_by_face(session).values()))

    session.select(first)
    session.select(second)

    assert session.get_card(first).is_matched
    assert session.get_card(second).is_matched
    assert session.mistakes == 0
    assert session.locked

    advance(1.0)
    assert session.turns == 1
    assert session.matched_pairs == 1
    assert session.state is GameState.PLAYING


def test_selecting_matched_card_changes_nothing(session, advance, play):
    session.start("easy")
    first, second = next(iter(play.pairs_by_face(session).values()))
    session.select(first)
    session.select(second)
    advance(1.0)

    before = (session.turns, session.mistakes, session.choice_one, session.state)
    assert session.select(first) is False
    assert session.select(second) is False
    assert (session.turns, session.mistakes, session.choice_one, session.state) == before


def test_card_from_lost_round_can_be_chosen_again(session, advance, play):
    session.start("easy")
    first, second = play.mismatched_pair(session)
    session.select(first)
    session.select(second)
    advance(1.0)

    assert session.select(first) is True
    assert session.choice_one == first


def test_turns_and_mistakes_invariants(session, advance, play):
    session.start("medium")
    for _ in range(3):
        first, second = play.mismatched_pair(session)
        session.select(first)
        session.select(second)
        advance(1.0)

    assert session.mistakes == 3
    assert session.turns == 3

    play.match_all(session, advance)

    assert session.mistakes == 3
    assert session.turns == 3 + 8


def test_completion_scores_and_saves_once(session, storage, advance, play):
    session.start("easy")
    play.match_all(session, advance)

    assert session.state is GameState.COMPLETE
    assert not session.timer.is_running
    assert session.summary is not None
    assert session.summary.stars >= 1
    assert len(storage.load_game_history()) == 1

    assert session.check_completion() is True
    assert session.check_completion() is True
    assert len(storage.load_game_history()) == 1
    assert storage.load_performance_metrics().total_games_played == 1


def test_select_after_completion_is_ignored(session, advance, play):
    session.start("easy")
    play.match_all(session, advance)

    assert session.select(session.deck[0].card_id) is False
    assert session.state is GameState.COMPLETE


def test_full_game_score_matches_formula(session, storage, advance, play):
    session.start("medium")
    advance(21)
    for _ in range(2):
        first, second = play.mismatched_pair(session)
        session.select(first)
        session.select(second)
        advance(1.0)
    # 7 settle delays remain before the last pair, which completes immediately
    play.match_all(session, advance)

    summary = session.summary
    assert summary.time_elapsed == 30
    assert summary.mistakes == 2
    assert summary.turns == 10
    assert summary.score.time_bonus == 300
    assert summary.score.mistake_penalty == 100
    assert summary.final_score == 1800
    assert summary.score.percentage_of_max == 75
    assert summary.stars == 2
    assert summary.formatted_time == "00:30"

    record = storage.load_game_history()[-1]
    assert record.id == session.session_id
    assert record.difficulty == "medium"
    assert record.score == 1800
    assert record.time_elapsed == 30
    assert record.max_possible_score == 2400
    assert record.card_pairs == 8
    assert record.completed is True


def test_personal_best_compared_against_stored_best(session, advance, play):
    session.start("easy")
    play.match_all(session, advance)
    assert session.summary.personal_best.is_new_best

    session.start("easy")
    advance(30)
    play.match_all(session, advance)

    best = session.summary.personal_best
    assert not best.is_new_best
    assert best.previous_best > session.summary.final_score


def test_restart_cancels_pending_settle(session, advance, play):
    session.start("easy")
    first, second = play.mismatched_pair(session)
    session.select(first)
    session.select(second)

    session.start("easy")
    advance(2.0)

    assert session.turns == 0
    assert session.mistakes == 0
    assert not session.locked


def test_pause_excludes_time(session, advance, play):
    session.start("easy")
    advance(5)
    session.pause()
    advance(50)
    session.resume()
    play.match_all(session, advance)

    assert session.summary.time_elapsed == 5 + 5


def test_game_completes_without_working_storage(scheduler, advance, play):
    session = GameSession(
        storage=GameStorage(FailingStore()),
        scheduler=scheduler,
        timer=GameTimer(scheduler),
        rng=random.Random(3),
    )
    session.start("easy")
    play.match_all(session, advance)

    assert session.is_complete
    assert session.summary.metrics.total_games_played == 1


def test_board_rows_follow_grid(session):
    session.start("hard")
    board = session.board()
    assert len(board) == 6
    assert all(len(row) == 6 for row in board)
    assert not any(view.revealed for row in board for view in row)


def test_snapshot_and_restore(session, storage, scheduler, advance, play):
    session.start("easy")
    first, second = next(iter(play.pairs_by_face(session).values()))
    session.select(first)
    session.select(second)
    advance(1.0)
    a, b = play.mismatched_pair(session)
    session.select(a)
    session.select(b)
    advance(1.0)
    advance(3)

    snapshot = session.snapshot()
    session.abandon()

    restored = GameSession(storage=storage, scheduler=scheduler, timer=GameTimer(scheduler))
    assert restored.restore(snapshot) is True

    assert restored.session_id == snapshot["session_id"]
    assert [c.card_id for c in restored.deck] == [c["card_id"] for c in snapshot["cards"]]
    assert restored.get_card(first).is_matched
    assert restored.turns == 2
    assert restored.mistakes == 1
    assert restored.elapsed_seconds() == 5
    assert restored.state is GameState.PLAYING


@pytest.mark.parametrize("snapshot", [
    {},
    {"difficulty": "easy", "session_id": "x", "cards": "nope"},
    {"difficulty": "easy", "session_id": "x",
     "cards": [{"card_id": "a", "face": "ring", "is_matched": False}]},
    {"difficulty": "easy", "session_id": "x",
     "cards": [{"card_id": str(i), "face": [i // 2]} for i in range(12)]},
])
def test_restore_rejects_bad_snapshots(session, snapshot):
    assert session.restore(snapshot) is False
    assert session.state is GameState.IDLE
