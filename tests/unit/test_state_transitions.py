from datetime import timedelta

import pytest

from core.exceptions import (
    EmptyWaitingList,
    InvalidSlotCount,
    MissingParticipantName,
    MissingPhoneNumber,
    NoEmptySlots,
    SlotNotFound,
    SlotNotOccupied,
    SlotOccupied,
    SlotsStillOccupied,
    WaiterNotFound,
)
from core.state_transitions import (
    admit_participant,
    append_waiter,
    build_waiter,
    ensure_empty_slot,
    initial_state,
    mark_notified,
    release_slot,
    remove_waiter,
    resize_slots,
    waiting_position,
)
from schemas import HistoryRecord
from tests.helpers import START

T0 = START
T1 = START + timedelta(minutes=25)


def with_waiters(state, *names):
    for i, name in enumerate(names):
        state = append_waiter(state, build_waiter(name, f"010-0000-000{i}"))
    return state


def test_initial_state_has_three_empty_slots():
    state = initial_state()

    assert [s.id for s in state.slots] == [0, 1, 2]
    assert not any(s.is_occupied for s in state.slots)
    assert state.history == []
    assert state.waiting_list == []


def test_admit_occupies_slot_and_prepends_open_record():
    state = initial_state()
    older = HistoryRecord(slot_number=3, participant_name="Park", entry_time=T0, exit_time=T0)
    state = state.model_copy(update={"history": [older]})

    new_state = admit_participant(state, 1, "  Kim  ", "  VIP ", now=T0)

    slot = new_state.find_slot(1)
    assert slot.participant_name == "Kim"
    assert slot.memo == "VIP"
    assert slot.entry_time == T0
    assert new_state.history[0].slot_number == 2
    assert new_state.history[0].participant_name == "Kim"
    assert new_state.history[0].exit_time is None
    assert new_state.history[1] == older
    # 原本的 state 不被修改
    assert not state.find_slot(1).is_occupied


def test_admit_blank_memo_becomes_none():
    state = admit_participant(initial_state(), 0, "Kim", "   ", now=T0)

    assert state.find_slot(0).memo is None
    assert state.history[0].memo is None


def test_admit_rejects_unknown_slot():
    with pytest.raises(SlotNotFound):
        admit_participant(initial_state(), 7, "Kim", None, now=T0)


def test_admit_rejects_occupied_slot():
    state = admit_participant(initial_state(), 0, "Kim", None, now=T0)

    with pytest.raises(SlotOccupied):
        admit_participant(state, 0, "Lee", None, now=T1)


def test_admit_rejects_blank_name():
    with pytest.raises(MissingParticipantName):
        admit_participant(initial_state(), 0, "   ", None, now=T0)


def test_admit_from_waitlist_takes_front_waiter_and_ignores_name():
    state = with_waiters(initial_state(), "A", "B")

    new_state = admit_participant(state, 2, "ignored", None, now=T0, from_waitlist=True)

    assert new_state.find_slot(2).participant_name == "A"
    assert [w.name for w in new_state.waiting_list] == ["B"]
    assert new_state.history[0].participant_name == "A"


def test_admit_from_empty_waitlist_raises_consistency_error():
    with pytest.raises(EmptyWaitingList):
        admit_participant(initial_state(), 0, "Kim", None, now=T0, from_waitlist=True)


def test_release_closes_open_record_and_clears_slot():
    state = admit_participant(initial_state(), 0, "Kim", "memo", now=T0)

    new_state = release_slot(state, 0, now=T1)

    slot = new_state.find_slot(0)
    assert (slot.participant_name, slot.memo, slot.entry_time) == (None, None, None)
    assert len(new_state.history) == 1
    assert new_state.history[0].exit_time == T1
    assert new_state.history[0].exit_time >= new_state.history[0].entry_time


def test_release_only_closes_record_of_same_slot():
    state = admit_participant(initial_state(), 0, "Kim", None, now=T0)
    state = admit_participant(state, 1, "Lee", None, now=T0)

    new_state = release_slot(state, 0, now=T1)

    by_slot = {r.slot_number: r for r in new_state.history}
    assert by_slot[1].exit_time == T1
    assert by_slot[2].exit_time is None


def test_release_without_open_record_still_clears_slot():
    # history 被清掉但座位仍有人：資料不一致時座位照樣清空，history 不動
    state = admit_participant(initial_state(), 0, "Kim", None, now=T0)
    state = state.model_copy(update={"history": []})

    new_state = release_slot(state, 0, now=T1)

    assert not new_state.find_slot(0).is_occupied
    assert new_state.history == []


def test_release_rejects_empty_or_unknown_slot():
    with pytest.raises(SlotNotOccupied):
        release_slot(initial_state(), 0, now=T1)
    with pytest.raises(SlotNotFound):
        release_slot(initial_state(), 9, now=T1)


@pytest.mark.parametrize("count", [1, 2, 3, 4, 17, 50])
def test_resize_yields_contiguous_ids(count):
    state = resize_slots(initial_state(), count)

    assert [s.id for s in state.slots] == list(range(count))


def test_resize_grow_preserves_occupied_slots():
    state = admit_participant(initial_state(), 2, "Kim", None, now=T0)

    new_state = resize_slots(state, 5)

    assert new_state.find_slot(2).participant_name == "Kim"
    assert [s.id for s in new_state.slots] == [0, 1, 2, 3, 4]


def test_resize_same_count_is_noop():
    state = initial_state()

    assert resize_slots(state, 3) is state


@pytest.mark.parametrize("count", [0, -1, 51, 100])
def test_resize_rejects_out_of_range(count):
    with pytest.raises(InvalidSlotCount):
        resize_slots(initial_state(), count)


def test_resize_shrink_rejected_when_removed_slot_occupied():
    state = resize_slots(initial_state(), 5)
    state = admit_participant(state, 3, "Kim", None, now=T0)

    with pytest.raises(SlotsStillOccupied) as exc_info:
        resize_slots(state, 2)

    assert exc_info.value.occupied_numbers == [4]


def test_resize_shrink_only_checks_removed_slots():
    state = admit_participant(initial_state(), 0, "Kim", None, now=T0)

    new_state = resize_slots(state, 2)

    assert len(new_state.slots) == 2
    assert new_state.find_slot(0).participant_name == "Kim"


def test_build_waiter_requires_name_and_phone():
    with pytest.raises(MissingParticipantName):
        build_waiter(" ", "010")
    with pytest.raises(MissingPhoneNumber):
        build_waiter("Lee", "")


def test_waiting_list_is_fifo_with_positions():
    state = with_waiters(initial_state(), "A", "B", "C")

    assert [w.name for w in state.waiting_list] == ["A", "B", "C"]
    assert [waiting_position(state, w.id) for w in state.waiting_list] == [1, 2, 3]
    assert all(not w.notified for w in state.waiting_list)


def test_remove_waiter_from_middle():
    state = with_waiters(initial_state(), "A", "B", "C")
    middle = state.waiting_list[1]

    new_state = remove_waiter(state, middle.id)

    assert [w.name for w in new_state.waiting_list] == ["A", "C"]
    with pytest.raises(WaiterNotFound):
        remove_waiter(new_state, middle.id)


def test_mark_notified_overwrites_timestamp():
    state = with_waiters(initial_state(), "A")
    waiter_id = state.waiting_list[0].id

    state = mark_notified(state, waiter_id, now=T0)
    assert state.waiting_list[0].notified is True
    assert state.waiting_list[0].notified_at == T0

    state = mark_notified(state, waiter_id, now=T1)
    assert state.waiting_list[0].notified_at == T1


def test_ensure_empty_slot_when_pool_full():
    state = resize_slots(initial_state(), 1)
    state = admit_participant(state, 0, "Kim", None, now=T0)

    with pytest.raises(NoEmptySlots):
        ensure_empty_slot(state)
