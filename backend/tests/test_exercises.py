import pytest

from simosmaths.services import exercise_service

from .utils import register_parent

pytestmark = pytest.mark.anyio("asyncio")


async def test_grade_answer_rules():
    assert exercise_service.grade_answer("X=4", "x = 4", 300)["score"] == 20
    assert exercise_service.grade_answer(" x =\t4 ", "x=4", 0)["correct"] is True
    wrong = exercise_service.grade_answer("x = 5", "x = 4", 90)
    assert wrong == {"correct": False, "score": 19, "feedback": "Réponse incorrecte"}
    assert exercise_service.grade_answer("x = 5", "x = 4", 59)["score"] == 20
    assert exercise_service.grade_answer("x = 5", "x = 4", 1300)["score"] == 0
    assert exercise_service.grade_answer("", None, 0)["correct"] is False


async def test_public_exercise_list_hides_solution(async_client, store):
    store.add_exercise(solution="42")

    resp = await async_client.get("/api/exercises")

    assert resp.status_code == 200
    items = resp.json()
    assert len(items) == 1
    assert "solution" not in items[0]
    assert items[0]["chapterTitle"] == "Équations"
    assert store.list_limits == [10]


async def test_exercise_limit_is_capped(async_client, store):
    resp = await async_client.get("/api/exercises", params={"limit": 500, "level": "3eme"})
    assert resp.status_code == 200
    resp = await async_client.get("/api/videos", params={"limit": 5})
    assert resp.status_code == 200
    assert store.list_limits == [50, 5]


async def test_exercise_filters(async_client, store):
    store.add_exercise(level="3eme", subject="Algèbre")
    store.add_exercise(level="6eme", subject="Géométrie")

    resp = await async_client.get("/api/exercises", params={"level": "6eme"})

    assert [item["subject"] for item in resp.json()] == ["Géométrie"]


async def test_submit_correct_answer(async_client, store):
    headers, profile_id = register_parent(store)
    child = store.add_child(profile_id)
    exercise = store.add_exercise(solution="x = 4")

    resp = await async_client.post(
        "/api/exercises/submit",
        headers=headers,
        json={"childId": child["id"], "exerciseId": exercise["id"], "userAnswer": "X=4", "timeSpent": 45},
    )

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["correct"] is True
    assert body["score"] == 20
    assert body["feedback"] == "Bonne réponse !"
    assert body["data"]["child_id"] == child["id"]
    assert len(store.sessions) == 1
    assert store.sessions[0]["time_spent"] == 45


async def test_submit_wrong_answer_loses_points_per_minute(async_client, store):
    headers, profile_id = register_parent(store)
    child = store.add_child(profile_id)
    exercise = store.add_exercise(solution="x = 4")

    resp = await async_client.post(
        "/api/exercises/submit",
        headers=headers,
        json={"childId": child["id"], "exerciseId": exercise["id"], "userAnswer": "x = 3", "timeSpent": 90},
    )

    assert resp.status_code == 200
    assert resp.json()["correct"] is False
    assert resp.json()["score"] == 19


async def test_submit_for_another_parents_child(async_client, store):
    headers, _ = register_parent(store)
    other = store.add_profile()
    child = store.add_child(other["id"])
    exercise = store.add_exercise()

    resp = await async_client.post(
        "/api/exercises/submit",
        headers=headers,
        json={"childId": child["id"], "exerciseId": exercise["id"], "userAnswer": "x = 4"},
    )

    assert resp.status_code == 404
    assert store.sessions == []


async def test_submit_unknown_exercise(async_client, store):
    headers, profile_id = register_parent(store)
    child = store.add_child(profile_id)

    resp = await async_client.post(
        "/api/exercises/submit",
        headers=headers,
        json={"childId": child["id"], "exerciseId": "00000000-0000-0000-0000-000000000000", "userAnswer": "1"},
    )
    assert resp.status_code == 404


async def test_malformed_ids_are_rejected_before_the_store(async_client, store):
    headers, profile_id = register_parent(store)
    exercise = store.add_exercise()

    submitted = await async_client.post(
        "/api/exercises/submit",
        headers=headers,
        json={"childId": "nope", "exerciseId": exercise["id"], "userAnswer": "1"},
    )
    history = await async_client.get("/api/children/nope/exercises", headers=headers)
    progress = await async_client.post(
        "/api/videos/progress",
        headers=headers,
        json={"childId": "nope", "videoId": "also-nope", "watchedSeconds": 10},
    )

    assert submitted.status_code == 422
    assert history.status_code == 422
    assert progress.status_code == 422
    assert store.sessions == []
    assert store.watch_history == {}


async def test_negative_time_is_rejected(async_client, store):
    headers, profile_id = register_parent(store)
    child = store.add_child(profile_id)
    exercise = store.add_exercise()

    resp = await async_client.post(
        "/api/exercises/submit",
        headers=headers,
        json={"childId": child["id"], "exerciseId": exercise["id"], "userAnswer": "1", "timeSpent": -5},
    )
    assert resp.status_code == 422


async def test_exercise_history(async_client, store):
    headers, profile_id = register_parent(store)
    child = store.add_child(profile_id)
    store.add_exercise()
    store.add_session(child["id"], correct=True)
    store.add_session(child["id"], correct=False, score=18)

    resp = await async_client.get(f"/api/children/{child['id']}/exercises", headers=headers)

    assert resp.status_code == 200
    items = resp.json()
    assert [item["correct"] for item in items] == [False, True]
    assert items[0]["exerciseTitle"] == "Équation du premier degré"


async def test_video_progress_upserts_single_row(async_client, store):
    headers, profile_id = register_parent(store)
    child = store.add_child(profile_id)
    video = store.add_video()

    for seconds, completed in ((120, False), (600, True)):
        resp = await async_client.post(
            "/api/videos/progress",
            headers=headers,
            json={
                "childId": child["id"],
                "videoId": video["id"],
                "watchedSeconds": seconds,
                "lastPosition": seconds,
                "completed": completed,
            },
        )
        assert resp.status_code == 200, resp.text

    assert len(store.watch_history) == 1
    body = resp.json()
    assert body["watchedSeconds"] == 600
    assert body["completed"] is True
    assert body["completedAt"] is not None


async def test_public_video_list(async_client, store):
    store.add_video(title="Théorème de Pythagore", level="4eme")

    resp = await async_client.get("/api/videos", params={"level": "4eme"})

    assert resp.status_code == 200
    assert resp.json()[0]["title"] == "Théorème de Pythagore"
