from fitnessapp.db.models import Reward, User


def test_reward_status_reports_tier(client, create_user, headers_for) -> None:
    user = create_user(points=350)
    body = client.get("/reward", headers=headers_for(user)).json()
    assert body["points"] == 350
    assert body["tier"] == "Silver"
    assert body["next_tier"] == "Gold"
    assert body["points_to_next_tier"] == 150
    assert body["tier_progress"] == 50
    assert body["silver_badges"] == 0


def test_redeem_deducts_points_and_writes_ledger(client, create_user, headers_for, db_session) -> None:
    user = create_user(points=650)
    headers = headers_for(user)

    response = client.post("/reward", headers=headers, json={"kind": "Gold Badge"})
    assert response.status_code == 200
    body = response.json()
    assert body["points"] == 150
    assert body["gold_badges"] == 1
    assert body["tier"] == "Bronze"

    bronze = client.post("/reward", headers=headers, json={"kind": "Bronze Badge"})
    assert bronze.json()["points"] == 50
    assert bronze.json()["bronze_badges"] == 1

    rows = db_session.query(Reward).filter(Reward.user_id == user.id).order_by(Reward.id).all()
    assert [(row.points, row.kind, row.note) for row in rows] == [
        (-500, "REDEEM", "Gold Badge"),
        (-100, "REDEEM", "Bronze Badge"),
    ]


def test_redeem_insufficient_points_changes_nothing(client, create_user, headers_for, db_session) -> None:
    user = create_user(points=150)
    response = client.post("/reward", headers=headers_for(user), json={"kind": "Silver Badge"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Insufficient points"

    db_session.expire_all()
    stored = db_session.query(User).filter(User.id == user.id).one()
    assert stored.points == 150
    assert stored.silver_badges == 0
    assert db_session.query(Reward).filter(Reward.user_id == user.id).count() == 0


def test_redeem_unknown_or_missing_kind(client, create_user, headers_for) -> None:
    headers = headers_for(create_user(points=1000))
    unknown = client.post("/reward", headers=headers, json={"kind": "Platinum Badge"})
    assert unknown.status_code == 400
    assert unknown.json()["detail"] == "Invalid reward type"
    assert client.post("/reward", headers=headers, json={}).status_code == 422
