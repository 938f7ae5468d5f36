import random

from patent_qc_app.llm.context import CredentialPool, InferenceContext, TierDowngraded
from patent_qc_app.llm.models import ModelTier


def test_rotation_toggles_between_two_credentials() -> None:
    pool = CredentialPool(["a", "b"], rng=random.Random(1))
    seen = [pool.current_index]
    for _ in range(20):
        pool.rotate()
        seen.append(pool.current_index)

    assert seen == [0, 1] * 10 + [0]


def test_rotation_never_repeats_an_index() -> None:
    pool = CredentialPool([f"key-{i}" for i in range(5)], rng=random.Random(3))
    previous = pool.current_index
    visited = set()
    for _ in range(2000):
        pool.rotate()
        assert pool.current_index != previous
        previous = pool.current_index
        visited.add(previous)

    assert visited == set(range(5))


def test_random_selection_spreads_over_the_pool() -> None:
    pool = CredentialPool(["a", "b", "c"], rng=random.Random(5))
    chosen = {pool.select_random() for _ in range(200)}

    assert chosen == {"a", "b", "c"}


def test_degenerate_pools() -> None:
    empty = CredentialPool([])
    single = CredentialPool(["only"])

    assert empty.current is None
    assert empty.select_random() is None
    assert empty.rotate() is None
    assert single.rotate() == "only"
    assert single.current_index == 0


def test_downgrade_happens_once_and_notifies() -> None:
    context = InferenceContext(smart_model="s", fast_model="f", credentials=CredentialPool(["a"]))
    events = []
    unsubscribe = context.subscribe(events.append)

    assert context.downgrade_tier() is True
    assert context.downgrade_tier() is False
    assert context.active_model() == "f"
    assert len(events) == 1 and isinstance(events[0], TierDowngraded)

    unsubscribe()
    context.set_tier(ModelTier.SMART)
    context.downgrade_tier()
    assert len(events) == 1


def test_failing_observer_does_not_break_notification() -> None:
    context = InferenceContext(smart_model="s", fast_model="f", credentials=CredentialPool(["a", "b"]))
    received = []

    def broken(event):
        raise RuntimeError("observer bug")

    context.subscribe(broken)
    context.subscribe(received.append)
    context.rotate_credential()

    assert len(received) == 1
