import pytest

from scorecard.scoring import handicap


def test_score_differential_rounds_to_tenth():
    assert handicap.score_differential(90, 71.5, 125) == 16.7
    assert handicap.score_differential(85, 72.0, 113) == 13.0


def test_score_differential_below_rating_is_negative():
    assert handicap.score_differential(68, 70.0, 113) == -2.0


def test_score_differential_rejects_zero_slope():
    with pytest.raises(ValueError):
        handicap.score_differential(90, 72.0, 0)


def test_nine_hole_differential_is_doubled_after_halving_rating():
    # 45 on a 72.0/113 tee: (45 - 36) * 2
    assert handicap.nine_hole_score_differential(45, 72.0, 113) == 18.0


@pytest.mark.parametrize(
    "par, course_hcp, expected",
    [
        (4, 5, 6),
        (3, 9, 5),
        (4, 15, 7),
        (5, 25, 8),
        (3, 35, 9),
        (4, 45, 10),
    ],
    ids=["double-bogey", "band-edge", "seven", "eight", "nine", "ten"],
)
def test_esc_max_score(par, course_hcp, expected):
    assert handicap.esc_max_score(par, course_hcp) == expected


def test_equitable_stroke_control_caps_each_hole_and_skips_blanks():
    holes = [
        {"par": 4, "strokes": 10},
        {"par": 3, "strokes": 3},
        {"par": 5, "strokes": None},
    ]
    assert handicap.equitable_stroke_control(holes, 15) == 10


def test_equitable_stroke_control_uses_default_index_without_handicap():
    # default index 20.0 at slope 113 -> course handicap 20 -> max 8 per hole
    assert handicap.equitable_stroke_control([{"par": 4, "strokes": 12}], None) == 8


def test_handicap_index_requires_three_differentials():
    assert handicap.handicap_index([]) is None
    assert handicap.handicap_index([10.0, 12.0]) is None


def test_handicap_index_three_differentials_gets_adjustment():
    assert handicap.handicap_index([15.0, 10.0, 12.0]) == 8.0


def test_handicap_index_six_differentials_averages_lowest_two():
    assert handicap.handicap_index([10.0, 11.0, 12.0, 13.0, 14.0, 15.0]) == 9.5


def test_handicap_index_full_record_averages_best_eight():
    values = [float(v) for v in range(1, 21)]
    assert handicap.handicap_index(values) == 4.5


def test_handicap_index_only_considers_most_recent_twenty():
    newest = [30.0] * 20
    oldest = [1.0] * 5
    assert handicap.handicap_index(newest + oldest) == 30.0
    assert handicap.handicap_index(oldest + newest, newest_first=False) == 30.0


def test_handicap_index_is_capped():
    assert handicap.handicap_index([60.0, 60.0, 60.0]) == handicap.MAX_HANDICAP_INDEX


def test_differentials_used_table():
    assert handicap.differentials_used(2) == 0
    assert handicap.differentials_used(3) == 1
    assert handicap.differentials_used(9) == 3
    assert handicap.differentials_used(20) == 8
    assert handicap.differentials_used(32) == 8


def test_course_and_playing_handicap():
    assert handicap.course_handicap(10.0, 130) == 12
    assert handicap.course_handicap(20.0, 113) == 20
    assert handicap.playing_handicap(10.0, 130, 72.5, 72) == 12
    assert handicap.default_course_handicap(113) == 20


def test_net_score_rounds_half_up():
    assert handicap.net_score(90, 12.5) == 77
    assert handicap.round_handicap(12.4) == 12


def test_exceptional_scores():
    assert handicap.is_exceptional_score(5.0, 12.0)
    assert not handicap.is_exceptional_score(5.1, 12.0)
    assert handicap.exceptional_score_reduction(1.0, 12.0) == 2.0
    assert handicap.exceptional_score_reduction(4.5, 12.0) == 1.0
    assert handicap.exceptional_score_reduction(8.0, 12.0) == 0.0


def test_format_handicap():
    assert handicap.format_handicap(None) == "N/A"
    assert handicap.format_handicap(12.0) == "12.0"
    assert handicap.format_handicap(-1.5) == "+1.5"
