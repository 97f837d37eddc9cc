import random

import pytest

from conftest import completed, invalid, live, plain, positioned, upcoming
from streamkeeper.models import Delete, MoveTo, TargetSequence
from streamkeeper.stages.plan import PlanInfeasible, plan, simulate, stable_items
from streamkeeper.stages.target import build


def _ids(items):
    return [it.item_id for it in items]


def _five():
    return positioned(
        [
            completed("t2", hours=-48),
            upcoming("up", hours=24),
            completed("t1", hours=-72),
            live("live"),
            completed("t3", hours=-24),
        ]
    )


def test_five_item_scenario():
    items = _five()
    p = plan(_ids(items), build(items, keep_count=2))

    assert p.expected_order == ("live", "up", "t3", "t2")
    assert p.operations == (Delete("t1"), MoveTo("up", 2), MoveTo("t2", 3))
    assert simulate(_ids(items), p.operations) == ["live", "up", "t3", "t2"]


def test_deletes_come_before_moves():
    items = positioned([completed("a", hours=-1), invalid("x"), live("l"), invalid("y")])
    p = plan(_ids(items), build(items))

    kinds = [op.kind for op in p]
    assert kinds == sorted(kinds)  # "delete" < "move"
    assert [op.item_id for op in p.deletes] == ["x", "y"]


def test_already_canonical_order_needs_no_operations():
    ids = ["a", "b", "c"]
    assert not plan(ids, TargetSequence(sequence=("a", "b", "c"), deletions=()))


def test_second_plan_is_empty():
    items = _five()
    target = build(items, keep_count=2)
    first = plan(_ids(items), target)

    after = simulate(_ids(items), first.operations)
    assert not plan(after, TargetSequence(sequence=target.sequence, deletions=()))


def test_single_displaced_item_costs_one_move():
    p = plan(["a", "b", "c", "d"], TargetSequence(sequence=("b", "c", "d", "a"), deletions=()))
    assert p.operations == (MoveTo("a", 3),)


def test_reversal_moves_all_but_one():
    p = plan(["a", "b", "c", "d"], TargetSequence(sequence=("d", "c", "b", "a"), deletions=()))
    assert len(p.moves) == 3
    assert simulate(["a", "b", "c", "d"], p.operations) == ["d", "c", "b", "a"]


def test_non_stream_items_keep_their_slot():
    items = positioned(
        [plain("p1"), completed("old", hours=-5), live("l"), plain("p2"), upcoming("u")]
    )
    p = plan(_ids(items), build(items))

    assert p.expected_order == ("p1", "l", "u", "p2", "old")
    assert simulate(_ids(items), p.operations) == list(p.expected_order)
    assert not any(op.item_id in ("p1", "p2") for op in p)


def test_non_stream_slots_count_surviving_items_only():
    items = positioned([invalid("x"), plain("p"), completed("c"), live("l")])
    p = plan(_ids(items), build(items))

    # x is deleted first; p keeps index 0 among the survivors
    assert p.expected_order == ("p", "l", "c")
    assert simulate(_ids(items), p.operations) == ["p", "l", "c"]


def test_deletion_of_absent_item_is_skipped():
    p = plan(["a", "b"], TargetSequence(sequence=("a", "b"), deletions=("ghost",)))
    assert not p


def test_plan_is_deterministic():
    items = _five()
    target = build(items, keep_count=1)
    assert plan(_ids(items), target) == plan(_ids(items), target)


def test_stable_items_include_every_pinned_item():
    remaining = ["b", "p", "a"]
    expected = ["a", "p", "b"]
    stable = stable_items(remaining, expected, {"p"})

    assert "p" in stable
    # neither a nor b sits on the right side of p
    assert stable == {"p"}


@pytest.mark.parametrize(
    "current, target",
    [
        (["a", "a"], TargetSequence(sequence=("a",), deletions=())),
        (["a", "b"], TargetSequence(sequence=("a", "a"), deletions=())),
        (["a", "b"], TargetSequence(sequence=("a",), deletions=("a",))),
        (["a"], TargetSequence(sequence=("a", "z"), deletions=())),
    ],
)
def test_infeasible_targets_are_refused(current, target):
    with pytest.raises(PlanInfeasible):
        plan(current, target)


# ------------------------------------------------------------
# Properties over random playlists
# ------------------------------------------------------------


def _random_playlist(rng, n):
    makers = [
        lambda i: live(f"l{i}", hours=rng.randint(-3, 3)),
        lambda i: upcoming(f"u{i}", hours=rng.randint(1, 200)),
        lambda i: completed(f"c{i}", hours=-rng.randint(1, 500)),
        lambda i: invalid(f"x{i}"),
        lambda i: plain(f"p{i}"),
    ]
    return positioned([rng.choice(makers)(i) for i in range(n)])


@pytest.mark.parametrize("seed", range(60))
def test_random_playlists_converge(seed):
    rng = random.Random(seed)
    items = _random_playlist(rng, rng.randint(0, 25))
    keep = rng.choice([None, 0, 1, 3, 50])

    target = build(items, keep_count=keep)
    p = plan(_ids(items), target)

    final = simulate(_ids(items), p.operations)
    assert final == list(p.expected_order)
    assert [i for i in final if i in set(target.sequence)] == list(target.sequence)
    assert not set(final) & set(target.deletions)
    assert not any(isinstance(op, MoveTo) and op.item_id in target.untouched for op in p)


@pytest.mark.parametrize("seed", range(30))
def test_every_prefix_loses_nothing_but_deletions(seed):
    rng = random.Random(1000 + seed)
    items = _random_playlist(rng, rng.randint(1, 20))
    target = build(items, keep_count=rng.choice([None, 0, 2]))
    current = _ids(items)
    p = plan(current, target)

    for k in range(len(p) + 1):
        state = simulate(current, p.operations[:k])
        assert len(state) == len(set(state))
        assert set(current) - set(state) <= set(target.deletions)
        assert set(state) <= set(current)
