import pytest

from classplanner.services.constraint_index import ConstraintIndex, ReservationConflict


def test_half_open_intervals_may_touch():
    index = ConstraintIndex()
    index.reserve("room", "r1", "Sunday", 510, 585)

    assert index.is_free("room", "r1", "Sunday", 585, 660)
    assert index.is_free("room", "r1", "Sunday", 435, 510)
    assert not index.is_free("room", "r1", "Sunday", 584, 600)
    assert not index.is_free("room", "r1", "Sunday", 500, 700)


def test_keys_are_independent_per_kind_resource_and_day():
    index = ConstraintIndex()
    index.reserve("teacher", "t1", "Sunday", 510, 585)

    assert index.is_free("teacher", "t1", "Monday", 510, 585)
    assert index.is_free("teacher", "t2", "Sunday", 510, 585)
    assert index.is_free("room", "t1", "Sunday", 510, 585)


def test_reserve_refuses_overlap():
    index = ConstraintIndex()
    index.reserve("batch", "b1", "Sunday", 600, 700)

    with pytest.raises(ReservationConflict):
        index.reserve("batch", "b1", "Sunday", 650, 750)
    assert not index.is_free("batch", "b1", "Sunday", 600, 650)
    assert index.is_free("batch", "b1", "Sunday", 700, 750)


def test_overlap_detected_against_earlier_neighbour():
    index = ConstraintIndex()
    index.reserve("room", "r1", "Sunday", 480, 600)
    index.reserve("room", "r1", "Sunday", 700, 800)

    assert not index.is_free("room", "r1", "Sunday", 590, 650)
    assert index.is_free("room", "r1", "Sunday", 600, 700)


def test_release_frees_the_interval():
    index = ConstraintIndex()
    index.reserve("teacher", "t1", "Tuesday", 1080, 1180)
    index.release("teacher", "t1", "Tuesday", 1080, 1180)

    assert index.is_free("teacher", "t1", "Tuesday", 1080, 1180)


def test_missing_resource_is_always_free():
    index = ConstraintIndex()
    index.reserve("teacher", None, "Sunday", 510, 585)
    index.reserve("teacher", None, "Sunday", 510, 585)

    assert index.is_free("teacher", None, "Sunday", 510, 585)
    assert index.is_free("teacher", "t1", "Sunday", 510, 585)


def test_seed_merges_clashing_bookings():
    index = ConstraintIndex()
    assert index.seed(day="Sunday", start=510, end=585, teacher_id="t1", room_id="r1", batch_id="b1")
    assert not index.seed(day="Sunday", start=540, end=640, teacher_id="t1", room_id="r2", batch_id="b2")

    assert not index.is_free("teacher", "t1", "Sunday", 630, 650)
    assert index.is_free("teacher", "t1", "Sunday", 640, 700)
    assert not index.is_free("room", "r2", "Sunday", 540, 560)
    assert index.is_free("room", "r2", "Sunday", 480, 540)
    assert index.is_free("room", "r2", "Sunday", 640, 700)


def test_empty_interval_is_rejected():
    with pytest.raises(ValueError):
        ConstraintIndex().reserve("room", "r1", "Sunday", 600, 600)
