from datetime import datetime, timedelta

from fitnessapp.services.todo import create_todo, toggle_checklist_item


def _complete_days(db_session, user_id: int, todo, days: list[int]) -> None:
    for item in list(todo.items):
        if item.day_index in days and item.kind == "DIET":
            toggle_checklist_item(db_session, user_id, todo.id, item.id, True)


def test_weekly_report_without_todos_is_empty(client, create_user, headers_for) -> None:
    response = client.get("/reports/weekly", headers=headers_for(create_user()))
    assert response.status_code == 200
    body = response.json()
    assert body["totals"] == {"completed_count": 0, "todos_touched": 0, "scheduled_count": 0, "completion_rate": 0.0}
    assert [d["date"] for d in body["daily"]] == [f"day{i}" for i in range(1, 8)]
    assert all(d["completed_count"] == 0 for d in body["daily"])
    assert body["top_todos"] == []
    assert body["streak_days"] == 0


def test_weekly_report_totals_streak_and_breakdown(client, create_user, headers_for, seed_plan, db_session) -> None:
    user = create_user()
    todo = create_todo(db_session, user.id, seed_plan(user.id).id)
    _complete_days(db_session, user.id, todo, [1, 5, 6, 7])
    monday_exercise = next(i for i in todo.items if i.day_index == 1 and i.kind == "EXERCISE")
    toggle_checklist_item(db_session, user.id, todo.id, monday_exercise.id, True)

    body = client.get("/reports/weekly", headers=headers_for(user)).json()

    assert body["totals"]["completed_count"] == 5
    assert body["totals"]["scheduled_count"] == 13
    assert body["totals"]["todos_touched"] == 1
    assert abs(body["totals"]["completion_rate"] - 5 / 13) < 1e-9
    assert [d["completed_count"] for d in body["daily"]] == [2, 0, 0, 0, 1, 1, 1]
    assert body["streak_days"] == 3
    assert body["breakdown"] == {
        "diet_scheduled": 7,
        "exercise_scheduled": 6,
        "diet_completed": 4,
        "exercise_completed": 1,
    }
    assert body["top_todos"] == [{"todo_id": todo.id, "title": "Balance Week", "completed_count": 5}]
    start = datetime.fromisoformat(body["week_start"]).date()
    assert datetime.fromisoformat(body["week_end"]).date() - start == timedelta(days=6)


def test_weekly_report_week_over_week(client, create_user, headers_for, seed_plan, db_session) -> None:
    user = create_user()
    plan_id = seed_plan(user.id, content={"summary": "diet only"}).id
    previous = create_todo(db_session, user.id, plan_id)
    _complete_days(db_session, user.id, previous, [1, 2])
    current = create_todo(db_session, user.id, plan_id)
    _complete_days(db_session, user.id, current, [1, 2, 3, 4, 5])

    body = client.get("/reports/weekly", headers=headers_for(user)).json()

    assert body["top_todos"][0]["todo_id"] == current.id
    assert body["wow"]["completed_count_delta"] == 3
    assert abs(body["wow"]["completion_rate_delta"] - 3 / 7) < 1e-9
    assert body["wow"]["prev_week"]["completed_count"] == 2
    assert body["wow"]["prev_week"]["scheduled_count"] == 7


def test_weekly_report_window(client, create_user, headers_for, seed_plan, db_session) -> None:
    user = create_user()
    todo = create_todo(db_session, user.id, seed_plan(user.id).id)
    _complete_days(db_session, user.id, todo, [1])
    headers = headers_for(user)
    created = todo.created_at.date()

    inside = client.get("/reports/weekly", headers=headers, params={"week_start": created.isoformat()}).json()
    assert inside["week_start"] == created.isoformat()
    assert inside["week_end"] == (created + timedelta(days=6)).isoformat()
    assert inside["totals"]["completed_count"] == 1

    past = (created - timedelta(days=30)).isoformat()
    outside = client.get("/reports/weekly", headers=headers, params={"week_start": past}).json()
    assert outside["week_start"] == past
    assert outside["totals"]["todos_touched"] == 0


def test_weekly_report_rejects_bad_date(client, create_user, headers_for) -> None:
    response = client.get("/reports/weekly", headers=headers_for(create_user()), params={"week_start": "last-week"})
    assert response.status_code == 422
