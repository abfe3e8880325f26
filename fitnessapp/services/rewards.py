import logging

from sqlalchemy.orm import Session

from fitnessapp.core.rewards import BADGE_CATALOG, LEDGER_REDEEM
from fitnessapp.db.models import Reward, User

logger = logging.getLogger("uvicorn.error")


class UnknownRewardError(ValueError):
    pass


class InsufficientPointsError(ValueError):
    pass


def redeem_badge(db: Session, user_id: int, kind: str) -> User:
    """Spend points on a badge; the balance, badge counter and ledger row commit together."""
    if kind not in BADGE_CATALOG:
        raise UnknownRewardError("Invalid reward type")
    cost, counter = BADGE_CATALOG[kind]
    badge_column = getattr(User, counter)

    try:
        # Conditional on the balance so concurrent redemptions cannot overdraw it.
        updated = (
            db.query(User)
            .filter(User.id == user_id, User.points >= cost)
            .update(
                {User.points: User.points - cost, badge_column: badge_column + 1},
                synchronize_session="fetch",
            )
        )
        if not updated:
            raise InsufficientPointsError("Insufficient points")
        db.add(Reward(user_id=user_id, points=-cost, kind=LEDGER_REDEEM, note=kind))
        db.commit()
    except Exception:
        db.rollback()
        raise

    user = db.query(User).filter(User.id == user_id).one()
    db.refresh(user)
    logger.info("badge_redeemed user_id=%s kind=%s points=%s", user_id, kind, user.points)
    return user


def list_ledger(db: Session, user_id: int, limit: int = 100) -> list[Reward]:
    return (
        db.query(Reward)
        .filter(Reward.user_id == user_id)
        .order_by(Reward.created_at.desc(), Reward.id.desc())
        .limit(limit)
        .all()
    )
