from uuid import uuid4

from sqlalchemy import func

from fitnessapp.db.models import Reward
from scripts.seed_demo import DEMO_ACCOUNTS, upsert_user


def _ledger_sum(db_session, user_id: int) -> int:
    return db_session.query(func.coalesce(func.sum(Reward.points), 0)).filter(Reward.user_id == user_id).scalar()


def test_seeded_balance_is_backed_by_ledger(db_session) -> None:
    account = {**DEMO_ACCOUNTS[0], "email": f"seed_{uuid4().hex[:10]}@user.com"}

    user, created = upsert_user(db_session, account)
    db_session.commit()
    assert created is True
    assert user.points == 5000
    assert _ledger_sum(db_session, user.id) == 5000
    rows = db_session.query(Reward).filter(Reward.user_id == user.id).all()
    assert [(row.kind, row.note) for row in rows] == [("SEED", "opening balance")]

    again, created = upsert_user(db_session, account)
    db_session.commit()
    assert created is False
    assert db_session.query(Reward).filter(Reward.user_id == again.id).count() == 1


def test_reseed_reconciles_spent_points(db_session) -> None:
    account = {**DEMO_ACCOUNTS[0], "email": f"seed_{uuid4().hex[:10]}@user.com"}
    user, _ = upsert_user(db_session, account)
    db_session.add(Reward(user_id=user.id, points=-500, kind="REDEEM", note="Gold Badge"))
    user.points = 4500
    db_session.commit()

    user, _ = upsert_user(db_session, account)
    db_session.commit()

    assert user.points == 5000
    assert _ledger_sum(db_session, user.id) == 5000


def test_zero_balance_accounts_get_no_ledger_rows(db_session) -> None:
    account = {**DEMO_ACCOUNTS[1], "email": f"seed_{uuid4().hex[:10]}@test.com"}

    user, _ = upsert_user(db_session, account)
    db_session.commit()

    assert db_session.query(Reward).filter(Reward.user_id == user.id).count() == 0
