async def make_room(client, headers, **extra):
    body = {"name": "Friday quiz night"}
    body.update(extra)
    res = await client.post("/v1/rooms", json=body, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def room_answers(*selections):
    return {
        "user_answers": [
            {"question_id": i, "selected_answer": s} for i, s in enumerate(selections, start=1)
        ],
        "time_taken": 60,
    }


async def test_create_room_makes_host_first_member(client, register):
    host_id, host = await register("host")

    room = await make_room(client, host, settings={"max_members": 5})

    assert len(room["room_code"]) == 6
    assert room["status"] == "waiting"
    assert room["host"]["username"] == "host"
    assert [(m["user"]["id"], m["role"]) for m in room["members"]] == [(host_id, "host")]
    assert room["settings"]["max_members"] == 5

    me = (await client.get("/v1/auth/me", headers=host)).json()
    assert me["stats"]["total_rooms_created"] == 1


async def test_rooms_require_authentication(client):
    res = await client.post("/v1/rooms", json={"name": "Anonymous"})

    assert res.status_code == 401


async def test_create_room_with_unknown_quiz_is_404(client, register):
    _, host = await register("host")

    res = await client.post("/v1/rooms", json={"name": "Broken", "quiz_id": 999}, headers=host)

    assert res.status_code == 404


async def test_join_by_code_is_idempotent(client, register):
    _, host = await register("host")
    guest_id, guest = await register("guest")
    room = await make_room(client, host)

    first = await client.post(f"/v1/rooms/join/{room['room_code'].lower()}", headers=guest)
    again = await client.post(f"/v1/rooms/join/{room['room_code']}", headers=guest)

    assert first.json()["joined"] is True
    assert again.json()["joined"] is False
    assert again.json()["room"]["member_count"] == 2
    me = (await client.get("/v1/auth/me", headers=guest)).json()
    assert me["stats"]["total_rooms_joined"] == 1


async def test_join_validates_code(client, register):
    _, guest = await register("guest")

    bad = await client.post("/v1/rooms/join/abc", headers=guest)
    missing = await client.post("/v1/rooms/join/ZZZZZZ", headers=guest)

    assert bad.status_code == 400
    assert missing.status_code == 404


async def test_full_room_rejects_join(client, register):
    _, host = await register("host")
    _, guest = await register("guest")
    _, late = await register("late")
    room = await make_room(client, host, settings={"max_members": 2})

    await client.post(f"/v1/rooms/join/{room['room_code']}", headers=guest)
    res = await client.post(f"/v1/rooms/join/{room['room_code']}", headers=late)

    assert res.status_code == 400
    assert res.json()["detail"]["code"] == "room_full"


async def test_host_adds_member_by_username(client, register):
    _, host = await register("host")
    friend_id, friend = await register("friend")
    room = await make_room(client, host)

    by_friend = await client.post(
        f"/v1/rooms/{room['id']}/members", json={"username": "host"}, headers=friend
    )
    added = await client.post(
        f"/v1/rooms/{room['id']}/members", json={"username": "friend"}, headers=host
    )
    duplicate = await client.post(
        f"/v1/rooms/{room['id']}/members", json={"username": "friend"}, headers=host
    )
    unknown = await client.post(
        f"/v1/rooms/{room['id']}/members", json={"username": "nobody"}, headers=host
    )

    assert by_friend.status_code == 403
    assert added.status_code == 200
    assert friend_id in [m["user"]["id"] for m in added.json()["members"]]
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"]["code"] == "duplicate_member"
    assert unknown.status_code == 404


async def test_leave_room(client, register):
    _, host = await register("host")
    guest_id, guest = await register("guest")
    room = await make_room(client, host)
    await client.post(f"/v1/rooms/join/{room['room_code']}", headers=guest)

    host_leave = await client.post(f"/v1/rooms/{room['id']}/leave", headers=host)
    left = await client.post(f"/v1/rooms/{room['id']}/leave", headers=guest)
    left_again = await client.post(f"/v1/rooms/{room['id']}/leave", headers=guest)

    assert host_leave.status_code == 400
    assert left.status_code == 200
    assert guest_id not in [m["user"]["id"] for m in left.json()["members"]]
    assert left_again.status_code == 200
    assert (await client.get(f"/v1/rooms/{room['id']}", headers=guest)).status_code == 403


async def test_full_room_quiz_flow(client, register, create_quiz):
    host_id, host = await register("host")
    guest_id, guest = await register("guest")
    _, outsider = await register("outsider")
    quiz_id = await create_quiz()
    room = await make_room(client, host, quiz_id=quiz_id)
    await client.post(f"/v1/rooms/join/{room['room_code']}", headers=guest)

    not_host = await client.post(f"/v1/rooms/{room['id']}/start", headers=guest)
    started = await client.post(f"/v1/rooms/{room['id']}/start", headers=host)
    restart = await client.post(f"/v1/rooms/{room['id']}/start", headers=host)

    assert not_host.status_code == 403
    assert started.status_code == 200
    assert started.json()["status"] == "active"
    assert len(started.json()["session"]["participants"]) == 2
    assert restart.status_code == 400
    assert restart.json()["detail"]["code"] == "invalid_state_transition"

    await client.post(f"/v1/rooms/join/{room['room_code']}", headers=outsider)
    late = await client.post(
        f"/v1/rooms/{room['id']}/submit", json=room_answers("A"), headers=outsider
    )
    assert late.status_code == 403
    assert late.json()["detail"]["code"] == "not_a_participant"

    guest_submit = await client.post(
        f"/v1/rooms/{room['id']}/submit", json=room_answers("A", "B", None), headers=guest
    )
    assert guest_submit.status_code == 201
    assert guest_submit.json()["rank"] == 1
    assert guest_submit.json()["room_status"] == "active"

    host_submit = await client.post(
        f"/v1/rooms/{room['id']}/submit", json=room_answers("A", "B", "C"), headers=host
    )
    assert host_submit.json()["room_status"] == "completed"
    assert host_submit.json()["grade"] == "A+"

    board = (await client.get(f"/v1/rooms/{room['id']}/leaderboard", headers=guest)).json()
    assert board["status"] == "completed"
    assert [(e["user"]["id"], e["rank"], e["score"]) for e in board["leaderboard"]] == [
        (host_id, 1, 100.0),
        (guest_id, 2, 66.67),
    ]

    attempt = await client.get(f"/v1/attempts/{guest_submit.json()['attempt_id']}")
    assert attempt.json()["room_id"] == room["id"]


async def test_start_without_quiz_is_rejected(client, register):
    _, host = await register("host")
    room = await make_room(client, host)

    no_quiz = await client.post(f"/v1/rooms/{room['id']}/start", headers=host)
    unknown = await client.post(
        f"/v1/rooms/{room['id']}/start", json={"quiz_id": 4242}, headers=host
    )

    assert no_quiz.status_code == 400
    assert unknown.status_code == 404


async def test_close_room_and_my_rooms(client, register):
    _, host = await register("host")
    _, guest = await register("guest")
    kept = await make_room(client, host, name="Kept room")
    closed = await make_room(client, host, name="Closed room")
    await client.post(f"/v1/rooms/join/{closed['room_code']}", headers=guest)

    by_guest = await client.delete(f"/v1/rooms/{closed['id']}", headers=guest)
    res = await client.delete(f"/v1/rooms/{closed['id']}", headers=host)
    again = await client.delete(f"/v1/rooms/{closed['id']}", headers=host)
    join_closed = await client.post(f"/v1/rooms/join/{closed['room_code']}", headers=guest)

    assert by_guest.status_code == 403
    assert res.json()["status"] == "closed"
    assert again.status_code == 400
    assert join_closed.json()["detail"]["code"] == "room_closed"

    mine = (await client.get("/v1/rooms/mine", headers=host)).json()
    assert [r["id"] for r in mine] == [kept["id"]]
    assert (await client.get("/v1/rooms/mine", headers=guest)).json() == []


async def test_unknown_room_is_404(client, register):
    _, user = await register("someone")

    assert (await client.get("/v1/rooms/999", headers=user)).status_code == 404
    assert (await client.get("/v1/rooms/999/leaderboard", headers=user)).status_code == 404


async def test_submit_to_closed_room_is_rejected(client, register, create_quiz):
    _, host = await register("host")
    _, guest = await register("guest")
    quiz_id = await create_quiz()
    room = await make_room(client, host, quiz_id=quiz_id)
    await client.post(f"/v1/rooms/join/{room['room_code']}", headers=guest)
    await client.post(f"/v1/rooms/{room['id']}/start", headers=host)
    await client.post(f"/v1/rooms/{room['id']}/submit", json=room_answers("A"), headers=host)
    await client.delete(f"/v1/rooms/{room['id']}", headers=host)

    res = await client.post(
        f"/v1/rooms/{room['id']}/submit", json=room_answers("A", "B", "C"), headers=guest
    )

    assert res.status_code == 400
    assert res.json()["detail"]["code"] == "room_closed"
    after = (await client.get(f"/v1/rooms/{room['id']}", headers=guest)).json()
    assert after["status"] == "closed"
    assert after["session"]["completed_at"] is None
    assert len((await client.get(f"/v1/attempts/quiz/{quiz_id}")).json()) == 1
    me = (await client.get("/v1/auth/me", headers=guest)).json()
    assert me["stats"]["total_quizzes_taken"] == 0


async def test_resubmit_after_completion_overwrites_result(client, register, create_quiz):
    host_id, host = await register("host")
    guest_id, guest = await register("guest")
    quiz_id = await create_quiz()
    room = await make_room(client, host, quiz_id=quiz_id)
    await client.post(f"/v1/rooms/join/{room['room_code']}", headers=guest)
    await client.post(f"/v1/rooms/{room['id']}/start", headers=host)
    await client.post(f"/v1/rooms/{room['id']}/submit", json=room_answers("A", "B"), headers=host)
    first = await client.post(
        f"/v1/rooms/{room['id']}/submit", json=room_answers("A"), headers=guest
    )
    assert first.json()["room_status"] == "completed"
    completed_at = (await client.get(f"/v1/rooms/{room['id']}", headers=host)).json()[
        "session"
    ]["completed_at"]

    again = await client.post(
        f"/v1/rooms/{room['id']}/submit", json=room_answers("A", "B", "C"), headers=guest
    )

    assert again.status_code == 201
    assert again.json()["attempt_id"] != first.json()["attempt_id"]
    assert again.json()["rank"] == 1
    assert again.json()["room_status"] == "completed"
    after = (await client.get(f"/v1/rooms/{room['id']}", headers=host)).json()
    assert after["session"]["completed_at"] >= completed_at
    board = (await client.get(f"/v1/rooms/{room['id']}/leaderboard", headers=host)).json()
    assert [(e["user"]["id"], e["score"]) for e in board["leaderboard"]] == [
        (guest_id, 100.0),
        (host_id, 66.67),
    ]
    assert len((await client.get(f"/v1/attempts/quiz/{quiz_id}")).json()) == 3
