"""Background solving for interactive callers.

Each factory owns one ``SolverWorker``. Requests are solved in order on a
daemon thread; only the outcome of the most recent request is ever handed
back, results of superseded requests are dropped when they arrive.
"""

import copy
import queue
import threading
import time
from dataclasses import dataclass
from typing import Mapping

from factoriolp.errors import SolverError
from factoriolp.identity import Flow, ItemIdentity
from factoriolp.solver import SolverSolution, solve


@dataclass
class SolveRequest:
    request_id: int
    target: Flow
    mechanisms: dict[str, tuple[Flow, float]]
    external: dict[ItemIdentity, float] | None


@dataclass
class SolveOutcome:
    request_id: int
    solution: SolverSolution | None
    error: Exception | None

    def result(self) -> SolverSolution:
        if self.error is not None:
            raise self.error
        assert self.solution is not None
        return self.solution

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def solver_error(self) -> SolverError | None:
        return self.error if isinstance(self.error, SolverError) else None


class SolverWorker:
    def __init__(self, name: str = "factoriolp-solver"):
        self._requests: queue.Queue[SolveRequest | None] = queue.Queue()
        self._results: queue.Queue[SolveOutcome] = queue.Queue()
        self._latest_request_id = 0
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def latest_request_id(self) -> int:
        return self._latest_request_id

    def submit(
        self,
        target: Flow,
        mechanisms: Mapping[str, tuple[Flow, float]],
        external: Mapping[ItemIdentity, float] | None = None,
    ) -> int:
        assert not self._closed, "worker is closed"
        self._latest_request_id += 1
        request = SolveRequest(
            request_id=self._latest_request_id,
            target=dict(target),
            mechanisms=copy.deepcopy(dict(mechanisms)),
            external=dict(external) if external is not None else None,
        )
        self._requests.put(request)
        return request.request_id

    def poll(self) -> SolveOutcome | None:
        """Newest arrived outcome of the latest request, without blocking."""
        current: SolveOutcome | None = None
        while True:
            try:
                outcome = self._results.get_nowait()
            except queue.Empty:
                return current
            if outcome.request_id == self._latest_request_id:
                current = outcome

    def wait(self, timeout: float | None = None) -> SolveOutcome | None:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
            try:
                outcome = self._results.get(timeout=remaining)
            except queue.Empty:
                return None
            if outcome.request_id == self._latest_request_id:
                return outcome

    def close(self, timeout: float | None = None):
        if self._closed:
            return
        self._closed = True
        self._requests.put(None)
        self._thread.join(timeout)

    def __enter__(self) -> "SolverWorker":
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _run(self):
        while True:
            request = self._requests.get()
            if request is None:
                return
            try:
                solution = solve(request.target, request.mechanisms, request.external)
            except Exception as e:
                # SolverError is the expected case; anything else is re-raised
                # by SolveOutcome.result() on the caller's side
                self._results.put(SolveOutcome(request.request_id, None, e))
                continue
            self._results.put(SolveOutcome(request.request_id, solution, None))
