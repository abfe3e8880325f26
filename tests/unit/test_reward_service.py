import pytest

from fitnessapp.db.models import Reward, User
from fitnessapp.services.rewards import InsufficientPointsError, UnknownRewardError, redeem_badge


def _stored(db_session, user_id: int) -> User:
    db_session.expire_all()
    return db_session.query(User).filter(User.id == user_id).one()


def _ledger_count(db_session, user_id: int) -> int:
    return db_session.query(Reward).filter(Reward.user_id == user_id).count()


def test_redeem_spends_points_and_counts_badge(db_session, create_user) -> None:
    user = create_user(points=250)

    updated = redeem_badge(db_session, user.id, "Silver Badge")

    assert updated.points == 50
    assert updated.silver_badges == 1
    assert _ledger_count(db_session, user.id) == 1


def test_redeem_rejects_without_writing(db_session, create_user) -> None:
    user = create_user(points=90)

    with pytest.raises(InsufficientPointsError):
        redeem_badge(db_session, user.id, "Bronze Badge")
    with pytest.raises(UnknownRewardError):
        redeem_badge(db_session, user.id, "Diamond Badge")

    stored = _stored(db_session, user.id)
    assert stored.points == 90
    assert stored.bronze_badges == 0
    assert _ledger_count(db_session, user.id) == 0


def test_failed_ledger_insert_rolls_back_redemption(db_session, create_user, monkeypatch) -> None:
    user = create_user(points=600)

    def _failing_ledger(*args, **kwargs):
        raise RuntimeError("ledger insert failed")

    monkeypatch.setattr("fitnessapp.services.rewards.Reward", _failing_ledger)
    with pytest.raises(RuntimeError):
        redeem_badge(db_session, user.id, "Gold Badge")

    stored = _stored(db_session, user.id)
    assert stored.points == 600
    assert stored.gold_badges == 0
    assert _ledger_count(db_session, user.id) == 0
