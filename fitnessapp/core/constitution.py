from enum import Enum
from typing import Mapping

# Bucket order doubles as the tie-break order when scores are equal.
BUCKETS = ["yang", "yin", "qi", "phlegm", "stasis"]

MIN_TOP_GAP = 2
MIN_TOP_SCORE = 6


class Constitution(str, Enum):
    YANG_DEFICIENCY = "YANG_DEFICIENCY"
    YIN_DEFICIENCY = "YIN_DEFICIENCY"
    QI_DEFICIENCY = "QI_DEFICIENCY"
    PHLEGM_DAMPNESS = "PHLEGM_DAMPNESS"
    BLOOD_STASIS = "BLOOD_STASIS"
    BALANCED = "BALANCED"


BUCKET_CONSTITUTIONS: dict[str, Constitution] = {
    "yang": Constitution.YANG_DEFICIENCY,
    "yin": Constitution.YIN_DEFICIENCY,
    "qi": Constitution.QI_DEFICIENCY,
    "phlegm": Constitution.PHLEGM_DAMPNESS,
    "stasis": Constitution.BLOOD_STASIS,
}


def compute_scores(answers: Mapping[str, float]) -> dict[str, int]:
    """Sum answer values into buckets keyed by the question prefix (``yin_dryMouth`` -> ``yin``)."""
    buckets = {name: 0 for name in BUCKETS}
    for key, value in answers.items():
        head = str(key).split("_")[0]
        if head in buckets:
            buckets[head] += int(value or 0)
    return buckets


def choose_constitution(scores: Mapping[str, int]) -> Constitution:
    ranked = sorted(BUCKETS, key=lambda name: scores.get(name, 0), reverse=True)
    top_key = ranked[0]
    top_score = scores.get(top_key, 0)
    second = scores.get(ranked[1], 0)

    gap_ok = top_score - second >= MIN_TOP_GAP
    if not gap_ok and top_score < MIN_TOP_SCORE:
        return Constitution.BALANCED
    return BUCKET_CONSTITUTIONS[top_key]
