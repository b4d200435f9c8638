import time

import pytest

from factoriolp.errors import SolverInfeasible
from factoriolp.identity import Item
from factoriolp.worker import SolverWorker

A = Item("a")
B = Item("b")
TIMEOUT = 30.0


def poll_until_done(worker: SolverWorker):
    deadline = time.monotonic() + TIMEOUT
    while time.monotonic() < deadline:
        outcome = worker.poll()
        if outcome is not None:
            return outcome
        time.sleep(0.01)
    raise AssertionError("solver worker did not answer")


def test_submit_and_wait():
    with SolverWorker() as worker:
        request_id = worker.submit({A: 10.0}, {"r1": ({A: 2.0}, 1.0)})
        outcome = worker.wait(TIMEOUT)
    assert outcome is not None
    assert outcome.request_id == request_id
    assert not outcome.failed
    assert outcome.result().activities == pytest.approx({"r1": 5.0})


def test_only_latest_request_is_delivered():
    with SolverWorker() as worker:
        first = worker.submit({A: 10.0}, {"r1": ({A: 2.0}, 1.0)})
        second = worker.submit({A: 4.0}, {"r1": ({A: 2.0}, 1.0)})
        assert second > first
        assert worker.latest_request_id == second

        outcome = worker.wait(TIMEOUT)
        assert outcome is not None
        assert outcome.request_id == second
        assert outcome.result().activities == pytest.approx({"r1": 2.0})
        assert worker.poll() is None


def test_poll_returns_newest_outcome():
    with SolverWorker() as worker:
        worker.submit({A: 10.0}, {"r1": ({A: 2.0}, 1.0)})
        latest = worker.submit({A: 6.0}, {"r1": ({A: 2.0}, 1.0)})
        outcome = poll_until_done(worker)
    assert outcome.request_id == latest
    assert outcome.result().objective == pytest.approx(3.0)


def test_solver_errors_travel_as_values():
    with SolverWorker() as worker:
        worker.submit({A: 10.0}, {"r1": ({B: 1.0}, 1.0)})
        outcome = worker.wait(TIMEOUT)
    assert outcome is not None
    assert outcome.failed
    assert isinstance(outcome.solver_error, SolverInfeasible)
    with pytest.raises(SolverInfeasible):
        outcome.result()


def test_submitted_batch_is_copied():
    mechanisms = {"r1": ({A: 2.0}, 1.0)}
    with SolverWorker() as worker:
        worker.submit({A: 10.0}, mechanisms)
        mechanisms["r1"][0][A] = 1.0
        outcome = worker.wait(TIMEOUT)
    assert outcome.result().activities == pytest.approx({"r1": 5.0})


def test_wait_times_out_without_requests():
    with SolverWorker() as worker:
        assert worker.wait(0.05) is None


def test_closed_worker_rejects_requests():
    worker = SolverWorker()
    worker.close()
    with pytest.raises(AssertionError):
        worker.submit({A: 1.0}, {})
