import pytest

from app.modules.rooms import (
    DuplicateMemberError,
    MemberRole,
    Room,
    RoomClosedError,
    RoomFullError,
    RoomSettings,
    RoomStatus,
)
from app.modules.rooms.membership import add_member, is_host, join_by_code, remove_member


def make_room(max_members: int = 50) -> Room:
    return Room.create(
        room_code="abc123",
        name="Study group",
        host_id=1,
        settings=RoomSettings(max_members=max_members),
    )


def test_new_room_has_host_as_only_member():
    room = make_room()

    assert room.room_code == "ABC123"
    assert room.status == RoomStatus.WAITING
    assert [(m.user_id, m.role) for m in room.members] == [(1, MemberRole.HOST)]
    assert is_host(room, 1)
    assert not is_host(room, 2)


def test_add_member_appends_plain_member():
    room = add_member(make_room(), 2)

    assert room.member_count == 2
    assert room.members[-1].role == MemberRole.MEMBER


def test_add_member_rejects_duplicates():
    room = add_member(make_room(), 2)

    with pytest.raises(DuplicateMemberError):
        add_member(room, 2)
    assert room.member_count == 2


def test_capacity_is_enforced():
    room = add_member(make_room(max_members=2), 2)

    with pytest.raises(RoomFullError):
        add_member(room, 3)
    assert room.member_count == 2


def test_duplicate_is_reported_before_full():
    room = add_member(make_room(max_members=2), 2)

    with pytest.raises(DuplicateMemberError):
        add_member(room, 2)


def test_closed_room_rejects_new_members():
    room = make_room()
    room.status = RoomStatus.CLOSED

    with pytest.raises(RoomClosedError):
        add_member(room, 2)


def test_remove_member_is_idempotent():
    room = add_member(make_room(), 2)

    remove_member(room, 2)
    remove_member(room, 2)

    assert not room.is_member(2)
    assert room.member_count == 1


def test_join_by_code_adds_new_member():
    room, joined = join_by_code(make_room(), 5)

    assert joined is True
    assert room.is_member(5)


def test_join_by_code_is_a_noop_for_existing_member():
    room = add_member(make_room(), 5)

    room, joined = join_by_code(room, 5)

    assert joined is False
    assert room.member_count == 2


def test_join_by_code_rejects_closed_room_even_for_members():
    room = add_member(make_room(), 5)
    room.status = RoomStatus.CLOSED

    with pytest.raises(RoomClosedError):
        join_by_code(room, 5)


def test_join_by_code_on_full_room():
    room = add_member(make_room(max_members=2), 2)

    with pytest.raises(RoomFullError):
        join_by_code(room, 3)


def test_errors_carry_stable_codes():
    assert DuplicateMemberError.code == "duplicate_member"
    assert RoomFullError.code == "room_full"
    assert RoomClosedError.code == "room_closed"
    assert isinstance(RoomFullError(), ValueError)
