import random

import pytest

from lyricmv.exceptions import ValidationError
from lyricmv.models import ConfirmationSet


def assert_disjoint(gate: ConfirmationSet) -> None:
    confirmed, pending, regenerating = map(set, (gate.confirmed, gate.pending, gate.regenerating))
    assert not confirmed & pending
    assert not confirmed & regenerating
    assert not pending & regenerating


def test_seeded_gate_is_pending():
    gate = ConfirmationSet.seeded([3, 1, 2, 2])

    assert gate.pending == [1, 2, 3]
    assert gate.confirmed == []
    assert not gate.is_complete


def test_empty_gate_is_complete():
    assert ConfirmationSet().is_complete
    assert ConfirmationSet.seeded([]).is_complete


def test_confirm_moves_one_index():
    gate = ConfirmationSet.seeded([1, 2])
    confirmed = gate.confirm(2)

    assert confirmed.confirmed == [2]
    assert confirmed.pending == [1]
    # Operations never mutate the original
    assert gate.pending == [1, 2]
    assert confirmed.confirm(2) == confirmed


def test_confirm_unknown_index_is_rejected():
    with pytest.raises(ValidationError):
        ConfirmationSet.seeded([1]).confirm(5)


def test_confirm_all_confirms_pending_only():
    gate = ConfirmationSet.seeded([1, 2, 3]).start_regeneration(2)
    done = gate.confirm_all()

    assert done.confirmed == [1, 3]
    assert done.regenerating == [2]
    assert not done.is_complete
    assert_disjoint(done)


def test_regenerating_a_confirmed_index_reopens_the_gate():
    gate = ConfirmationSet.seeded([1, 2]).confirm_all()
    assert gate.is_complete

    gate = gate.start_regeneration(1)
    assert not gate.is_complete
    assert gate.confirmed == [2]
    assert gate.regenerating == [1]
    assert_disjoint(gate)

    with pytest.raises(ValidationError):
        gate.confirm(1)
    with pytest.raises(ValidationError):
        gate.start_regeneration(1)

    gate = gate.finish_regeneration(1, success=True)
    assert gate.pending == [1]
    assert not gate.is_complete
    assert gate.confirm(1).is_complete


def test_failed_regeneration_leaves_the_gate():
    gate = ConfirmationSet.seeded([1, 2]).confirm(2).start_regeneration(1)
    gate = gate.finish_regeneration(1, success=False)

    assert gate.tracked == {2}
    assert gate.is_complete


def test_finish_without_start_is_rejected():
    with pytest.raises(ValidationError):
        ConfirmationSet.seeded([1]).finish_regeneration(1, success=True)


def test_summary_counts():
    gate = ConfirmationSet.seeded([1, 2, 3]).confirm(1).start_regeneration(2)
    assert gate.summary() == {"confirmed": 1, "pending": 1, "regenerating": 1}


def apply_random_operation(rng: random.Random, gate: ConfirmationSet, index: int) -> ConfirmationSet:
    operation = rng.choice(["confirm", "confirm_all", "start", "finish"])
    if operation == "confirm":
        return gate.confirm(index)
    if operation == "confirm_all":
        return gate.confirm_all()
    if operation == "start":
        return gate.start_regeneration(index)
    return gate.finish_regeneration(index, success=rng.random() < 0.7)


@pytest.mark.parametrize("seed", range(20))
def test_lists_stay_disjoint_for_any_sequence(seed):
    rng = random.Random(seed)
    gate = ConfirmationSet.seeded(range(1, 9))

    for _ in range(200):
        before = gate.model_dump()
        try:
            updated = apply_random_operation(rng, gate, rng.randint(1, 10))
        except ValidationError:
            continue
        # Operations return a new set and never touch the old one
        assert gate.model_dump() == before
        gate = updated

        assert_disjoint(gate)
        for values in (gate.confirmed, gate.pending, gate.regenerating):
            assert values == sorted(set(values))
        assert gate.tracked <= set(range(1, 11))
