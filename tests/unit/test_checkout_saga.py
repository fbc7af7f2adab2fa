import pytest

from storefront.checkout.saga import Saga


def test_saga_runs_steps_in_order_and_returns_results():
    calls = []
    results = (
        Saga("t")
        .step("a", lambda r: calls.append("a") or 1)
        .step("b", lambda r: calls.append("b") or r["a"] + 1)
        .run()
    )
    assert calls == ["a", "b"]
    assert results == {"a": 1, "b": 2}


def test_saga_compensates_completed_steps_in_reverse():
    undone = []

    def boom(r):
        raise ValueError("step c failed")

    saga = (
        Saga("t")
        .step("a", lambda r: "A", compensate=lambda r: undone.append(("a", r["a"])))
        .step("b", lambda r: "B", compensate=lambda r: undone.append(("b", r["b"])))
        .step("c", boom, compensate=lambda r: undone.append(("c", None)))
    )
    with pytest.raises(ValueError, match="step c failed"):
        saga.run()
    assert undone == [("b", "B"), ("a", "A")]


def test_saga_compensation_failure_does_not_mask_original_error(caplog):
    undone = []

    def missing_key(r):
        raise KeyError("c")

    def bad_compensation(r):
        raise RuntimeError("delete failed")

    saga = (
        Saga("t")
        .step("a", lambda r: "A", compensate=lambda r: undone.append("a"))
        .step("b", lambda r: "B", compensate=bad_compensation)
        .step("c", missing_key)
    )
    with pytest.raises(KeyError):
        saga.run()
    assert undone == ["a"]
    assert "compensation failed step=b" in caplog.text


def test_saga_later_steps_not_started_after_failure():
    started = []

    def fail(r):
        raise RuntimeError("x")

    with pytest.raises(RuntimeError):
        Saga("t").step("a", fail).step("b", lambda r: started.append("b")).run()
    assert started == []
