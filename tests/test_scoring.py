import pytest

from difficulty import all_levels, config_for
from scoring import ScoreEngine


@pytest.fixture
def engine():
    return ScoreEngine()


def test_medium_example(engine):
    score = engine.calculate(30, 2, "medium")

    assert score.base_score == 1000
    assert score.time_bonus == 300
    assert score.mistake_penalty == 100
    assert score.raw_score == 1200
    assert score.difficulty_multiplier == 1.5
    assert score.final_score == 1800
    assert score.max_score == 2400
    assert score.percentage_of_max == 75
    assert score.stars == 2


def test_easy_slow_example(engine):
    score = engine.calculate(70, 0, "easy")

    assert score.time_bonus == 0
    assert score.raw_score == 1000
    assert score.final_score == 1000
    assert score.percentage_of_max == 62.5
    assert score.stars == 1


def test_raw_score_never_negative(engine):
    score = engine.calculate(300, 40, "hard")

    assert score.raw_score == 0
    assert score.final_score == 0
    assert score.stars == 1


def test_negative_inputs_are_clamped(engine):
    score = engine.calculate(-10, -3, "easy")

    assert score.time_bonus == 600
    assert score.mistake_penalty == 0
    assert score.final_score == 1600


def test_three_stars_for_fast_clean_game(engine):
    score = engine.calculate(10, 0, "hard")
    assert score.final_score == 3000
    assert score.stars == 3


@pytest.mark.parametrize("level", all_levels(), ids=lambda level: level.id)
def test_stored_max_score_matches_formula_ceiling(engine, level):
    assert engine.calculate(0, 0, level).final_score == level.max_score
    assert engine.max_score(level.id) == level.max_score


def test_unknown_difficulty_scores_as_easy(engine):
    assert engine.calculate(30, 0, "nightmare") == engine.calculate(30, 0, config_for("easy"))


@pytest.mark.parametrize("score,max_score,stars", [
    (1440, 1600, 3),
    (1439, 1600, 2),
    (1120, 1600, 2),
    (1119, 1600, 1),
    (0, 1600, 1),
    (10, 0, 1),
])
def test_stars_for(engine, score, max_score, stars):
    assert engine.stars_for(score, max_score) == stars


def test_compare_to_personal_best(engine):
    first = engine.compare_to_personal_best(1200, None)
    assert first.is_new_best
    assert first.improvement == 1200
    assert first.previous_best == 0

    better = engine.compare_to_personal_best(1500, 1200)
    assert better.is_new_best
    assert better.improvement == 300
    assert better.improvement_percentage == 25

    worse = engine.compare_to_personal_best(1000, 1200)
    assert not worse.is_new_best
    assert worse.improvement == -200


@pytest.mark.parametrize("percentage,level", [
    (95, "Excellent"),
    (70, "Good"),
    (50, "Average"),
    (10, "Needs Improvement"),
])
def test_performance_level(engine, percentage, level):
    assert engine.performance_level(percentage) == level


def test_breakdown_components(engine):
    rows = engine.breakdown_components(engine.calculate(30, 2, "medium"))

    assert [row["label"] for row in rows] == [
        "Base points", "Speed bonus", "Mistake penalty", "Difficulty multiplier",
    ]
    assert rows[2]["points"] == -100
    assert rows[3]["multiplier"] == 1.5
