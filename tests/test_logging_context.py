"""Tests for logging context propagation."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from notification_engine.logging.context import (
    clear_log_context,
    context_bound,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


def test_empty_context():
    assert get_log_context() == {}


def test_nested_push_and_pop():
    """Layers merge on push and unwind in reverse order."""
    token1 = push_log_context(run_id="abc123")
    token2 = push_log_context(event_type="attendance_absent")
    token3 = push_log_context(reference_id="att-001")

    assert get_log_context() == {
        "run_id": "abc123",
        "event_type": "attendance_absent",
        "reference_id": "att-001",
    }

    pop_log_context(token3)
    assert get_log_context() == {"run_id": "abc123", "event_type": "attendance_absent"}
    pop_log_context(token2)
    pop_log_context(token1)
    assert get_log_context() == {}


def test_context_override():
    token1 = push_log_context(recipient_id="G1")
    token2 = push_log_context(recipient_id="G2")
    assert get_log_context() == {"recipient_id": "G2"}

    pop_log_context(token2)
    assert get_log_context() == {"recipient_id": "G1"}
    pop_log_context(token1)


def test_context_manager_nested():
    with log_context(run_id="abc123"):
        with log_context(event_type="birthday", reference_id="s-1"):
            assert get_log_context() == {
                "run_id": "abc123",
                "event_type": "birthday",
                "reference_id": "s-1",
            }
        assert get_log_context() == {"run_id": "abc123"}

    assert get_log_context() == {}


def test_context_manager_restores_on_exception():
    with pytest.raises(ValueError):
        with log_context(run_id="abc123"):
            raise ValueError("boom")

    assert get_log_context() == {}


def test_clear_context():
    push_log_context(run_id="abc123", recipient_id="G1")
    clear_log_context()
    assert get_log_context() == {}


def test_get_returns_copy():
    with log_context(run_id="abc123"):
        context = get_log_context()
        context["recipient_id"] = "modified"
        assert get_log_context() == {"run_id": "abc123"}


class TestContextBound:
    """Context handed to worker threads."""

    def test_worker_thread_sees_submitter_context(self):
        with log_context(run_id="abc123"):
            with ThreadPoolExecutor(max_workers=1) as pool:
                seen = pool.submit(context_bound(get_log_context)).result()

        assert seen == {"run_id": "abc123"}

    def test_worker_changes_do_not_leak_back(self):
        def work():
            push_log_context(recipient_id="G1")
            return get_log_context()

        with log_context(run_id="abc123"):
            with ThreadPoolExecutor(max_workers=1) as pool:
                inner = pool.submit(context_bound(work)).result()
            assert get_log_context() == {"run_id": "abc123"}

        assert inner == {"run_id": "abc123", "recipient_id": "G1"}

    def test_arguments_pass_through(self):
        bound = context_bound(lambda a, b=0: a + b)
        assert bound(1, b=2) == 3
