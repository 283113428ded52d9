"""Tests for InspectionStatusTracker and the recent-checked list."""

from auth_inspector.inspection.status import (
    RECENT_CHECKED_LIMIT,
    InspectionStatusTracker,
    append_recent_checked,
)


# === append_recent_checked ===


def test_recent_checked_keeps_most_recent_last():
    assert append_recent_checked(["a", "b"], ["c", "d"]) == ["a", "b", "c", "d"]


def test_recent_checked_dedups_keeping_latest_position():
    result = append_recent_checked(["a", "b", "c"], ["a", "d"])
    assert result == ["b", "c", "a", "d"]


def test_recent_checked_drops_blanks():
    assert append_recent_checked([], ["", "  ", "x", " y "]) == ["x", "y"]


def test_recent_checked_caps_length():
    names = [f"auth-{i}.json" for i in range(25)]
    result = append_recent_checked([], names, limit=10)
    assert len(result) == 10
    assert result == names[-10:]


def test_recent_checked_invariants_across_batches():
    recent: list[str] = []
    for batch in range(8):
        names = [f"f{(batch * 3 + i) % 7}" for i in range(4)]
        recent = append_recent_checked(recent, names, limit=5)
        assert len(recent) <= 5
        assert len(set(recent)) == len(recent)
        # the newest name of the batch is always last
        assert recent[-1] == names[-1]


def test_recent_checked_non_positive_limit_uses_default():
    names = [str(i) for i in range(30)]
    assert len(append_recent_checked([], names, limit=0)) == RECENT_CHECKED_LIMIT


# === begin / update / finish ===


def test_begin_sets_running_and_trigger():
    tracker = InspectionStatusTracker()
    assert tracker.begin(" manual ") is True
    snap = tracker.snapshot()
    assert snap.running is True
    assert snap.trigger == "manual"
    assert snap.last_run_started_at is not None
    assert snap.last_run_finished is None


def test_begin_while_running_is_rejected_without_reset():
    tracker = InspectionStatusTracker()
    assert tracker.begin("scheduled")
    tracker.update_progress(total=10, checked=4, valid=3, invalid=1, round=1,
                            current_name="b.json", batch_names=["a.json", "b.json"])

    assert tracker.begin("manual") is False

    snap = tracker.snapshot()
    assert snap.running is True
    assert snap.trigger == "scheduled"
    assert snap.checked == 4
    assert snap.valid == 3
    assert snap.invalid == 1
    assert snap.recent_checked == ["a.json", "b.json"]


def test_begin_after_finish_resets_counters():
    tracker = InspectionStatusTracker()
    tracker.begin("manual")
    tracker.update_progress(total=5, checked=5, valid=4, invalid=1, round=1)
    tracker.finish(deleted=1, error="boom")

    assert tracker.begin("scheduled") is True
    snap = tracker.snapshot()
    assert (snap.checked, snap.valid, snap.invalid, snap.deleted, snap.total, snap.round) == (0, 0, 0, 0, 0, 0)
    assert snap.last_error == ""
    assert snap.recent_checked == []
    assert snap.current_file == ""


def test_counters_never_decrease_within_run():
    tracker = InspectionStatusTracker()
    tracker.begin("manual")
    tracker.update_progress(total=10, checked=6, valid=5, invalid=1, round=2)
    tracker.update_progress(total=10, checked=3, valid=2, invalid=0, round=1)
    snap = tracker.snapshot()
    assert snap.checked == 6
    assert snap.valid == 5
    assert snap.round == 2


def test_blank_current_name_keeps_previous():
    tracker = InspectionStatusTracker()
    tracker.begin("manual")
    tracker.update_progress(1, 1, 1, 0, 1, current_name="x.json")
    tracker.update_progress(1, 1, 1, 0, 1, current_name="  ")
    assert tracker.snapshot().current_file == "x.json"


def test_finish_records_error_and_deleted():
    tracker = InspectionStatusTracker()
    tracker.begin("manual")
    tracker.finish(deleted=3, error=RuntimeError(" provider down "))
    snap = tracker.snapshot()
    assert snap.running is False
    assert snap.deleted == 3
    assert snap.last_error == "provider down"
    assert snap.last_run_finished is not None


def test_finish_with_empty_exception_uses_type_name():
    tracker = InspectionStatusTracker()
    tracker.begin("manual")
    tracker.finish(error=TimeoutError())
    assert tracker.snapshot().last_error == "TimeoutError"


def test_snapshot_is_a_copy():
    tracker = InspectionStatusTracker()
    tracker.begin("manual")
    tracker.update_progress(1, 1, 1, 0, 1, batch_names=["a"])
    snap = tracker.snapshot()
    snap.recent_checked.append("mutated")
    snap.checked = 99
    fresh = tracker.snapshot()
    assert fresh.recent_checked == ["a"]
    assert fresh.checked == 1


def test_next_run_roundtrip():
    from datetime import datetime, timezone

    tracker = InspectionStatusTracker()
    assert tracker.next_run_at is None
    when = datetime(2030, 1, 1, tzinfo=timezone.utc)
    tracker.set_next_run(when)
    assert tracker.next_run_at == when
    tracker.set_next_run(None)
    assert tracker.snapshot().next_run_at is None
