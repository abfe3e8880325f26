from fitnessapp.core.constitution import Constitution, choose_constitution, compute_scores


def test_compute_scores_groups_by_prefix_and_ignores_unknown_keys() -> None:
    scores = compute_scores({"yin_dryMouth": 3, "yin_nightSweats": 2, "qi_fatigue": 4, "mood_low": 5})
    assert scores == {"yang": 0, "yin": 5, "qi": 4, "phlegm": 0, "stasis": 0}


def test_compute_scores_treats_missing_values_as_zero() -> None:
    scores = compute_scores({"yang_coldHands": None, "stasis_bruising": 2})
    assert scores["yang"] == 0
    assert scores["stasis"] == 2


def test_clear_leader_wins() -> None:
    scores = {"yang": 1, "yin": 0, "qi": 1, "phlegm": 8, "stasis": 2}
    assert choose_constitution(scores) == Constitution.PHLEGM_DAMPNESS


def test_small_gap_and_low_top_is_balanced() -> None:
    scores = {"yang": 5, "yin": 4, "qi": 1, "phlegm": 0, "stasis": 0}
    assert choose_constitution(scores) == Constitution.BALANCED


def test_small_gap_with_high_top_still_picks_top() -> None:
    scores = {"yang": 2, "yin": 7, "qi": 6, "phlegm": 0, "stasis": 0}
    assert choose_constitution(scores) == Constitution.YIN_DEFICIENCY


def test_large_gap_with_low_top_picks_top() -> None:
    scores = {"yang": 0, "yin": 0, "qi": 3, "phlegm": 0, "stasis": 0}
    assert choose_constitution(scores) == Constitution.QI_DEFICIENCY


def test_ties_resolve_in_bucket_order() -> None:
    scores = {"yang": 0, "yin": 0, "qi": 0, "phlegm": 9, "stasis": 9}
    assert choose_constitution(scores) == Constitution.PHLEGM_DAMPNESS


def test_all_zero_is_balanced() -> None:
    assert choose_constitution(compute_scores({})) == Constitution.BALANCED
