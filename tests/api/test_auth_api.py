from uuid import uuid4


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_register_user_returns_token(client) -> None:
    email = f"Reg_{uuid4().hex[:8]}@Test.com"
    response = client.post("/auth/register", json={"email": email, "password": "secret1", "name": "Reg"})
    assert response.status_code == 201
    body = response.json()
    assert body["access_token"]
    assert body["user"]["email"] == email.lower()
    assert body["user"]["role"] == "USER"

    me = client.get("/auth/me", headers=_auth_headers(body["access_token"]))
    assert me.status_code == 200
    assert me.json()["name"] == "Reg"


def test_register_duplicate_email_conflicts(client) -> None:
    email = f"dup_{uuid4().hex[:8]}@test.com"
    first = client.post("/auth/register", json={"email": email, "password": "secret1"})
    assert first.status_code == 201
    second = client.post("/auth/register", json={"email": email, "password": "secret2"})
    assert second.status_code == 409


def test_register_rejects_short_password(client) -> None:
    response = client.post("/auth/register", json={"email": f"s_{uuid4().hex[:8]}@test.com", "password": "abc"})
    assert response.status_code == 422


def test_coach_registration_waits_for_approval(client) -> None:
    email = f"coach_{uuid4().hex[:8]}@test.com"
    response = client.post("/auth/register", json={"email": email, "password": "secret1", "role": "COACH"})
    assert response.status_code == 201
    body = response.json()
    assert body["access_token"] is None
    assert body["user"]["coach_status"] == "PENDING"
    assert "approval" in body["message"].lower()

    login = client.post("/auth/login", data={"username": email, "password": "secret1"})
    assert login.status_code == 403
    assert "under review" in login.json()["detail"]


def test_rejected_coach_cannot_login(client, create_user) -> None:
    coach = create_user(role="COACH", coach_status="REJECTED")
    login = client.post("/auth/login", data={"username": coach.email, "password": "StrongPass123"})
    assert login.status_code == 403
    assert "rejected" in login.json()["detail"]


def test_approved_coach_can_login(client, create_user) -> None:
    coach = create_user(role="COACH", coach_status="APPROVED")
    login = client.post("/auth/login", data={"username": coach.email, "password": "StrongPass123"})
    assert login.status_code == 200
    assert login.json()["token_type"] == "bearer"


def test_login_bad_password(client, create_user) -> None:
    user = create_user()
    login = client.post("/auth/login", data={"username": user.email, "password": "wrong-password"})
    assert login.status_code == 401


def test_me_requires_token(client) -> None:
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers=_auth_headers("not-a-jwt")).status_code == 401


def test_profile_update_only_writes_given_fields(client, auth_token) -> None:
    headers = _auth_headers(auth_token)
    first = client.put("/profile", headers=headers, json={"height_cm": 172, "weight_kg": 68, "sex": "male"})
    assert first.status_code == 200

    second = client.put("/profile", headers=headers, json={"birth_date": "1994-05-02", "height_cm": None})
    assert second.status_code == 200
    body = second.json()
    assert body["height_cm"] == 172
    assert body["weight_kg"] == 68
    assert body["birth_date"] == "1994-05-02"
    assert body["points"] == 0

    invalid = client.put("/profile", headers=headers, json={"height_cm": 20})
    assert invalid.status_code == 422

    profile = client.get("/profile", headers=headers)
    assert profile.json()["sex"] == "male"


def test_health_and_banner(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/api").json()["status"] == "ok"
