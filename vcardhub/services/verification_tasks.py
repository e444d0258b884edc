"""
Worker pool for DNS challenge lookups.

Lookups are blocking network I/O, so they run on a small thread pool and
request threads wait on them with an explicit deadline. Only the lookup runs
off-thread; applying its outcome to the database always happens in a
request (either the one that waited or the one that polls the task).

Note: tasks live in process memory. In multi-worker deployments a poll must
reach the worker that started the task; otherwise the client gets a 404 and
simply starts a new verification.
"""
from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, Optional

from vcardhub.domain.errors import DnsVerificationTransient, VCardHubError
from vcardhub.services.dns_challenge import ChallengeResult, CircuitOpen


logger = logging.getLogger(__name__)


@dataclass
class VerificationTask:
    id: str
    domain_id: int
    owner_id: int
    future: Future
    created_at: float = field(default_factory=time.monotonic)
    outcome: Optional[Dict[str, Any]] = None
    error: Optional[VCardHubError] = None

    @property
    def done(self) -> bool:
        return self.future.done()


def _transient_from(exc: BaseException) -> DnsVerificationTransient:
    if isinstance(exc, CircuitOpen):
        return DnsVerificationTransient(
            'DNS verification is temporarily suspended after repeated lookup failures; retry later.',
            retry_after=exc.retry_after,
        )
    if isinstance(exc, (FutureTimeout, TimeoutError)):
        return DnsVerificationTransient('DNS verification timed out; retry later.')
    if isinstance(exc, CancelledError):
        return DnsVerificationTransient('DNS verification was cancelled; retry later.')
    return DnsVerificationTransient(f'DNS verification could not complete: {exc}')


class VerificationRunner:
    def __init__(self, max_workers: int = 4, timeout: float = 5.0, task_ttl_seconds: int = 900):
        self._executor = ThreadPoolExecutor(max_workers=max(1, int(max_workers)), thread_name_prefix='dns-verify')
        self.timeout = float(timeout)
        self._task_ttl = max(60, int(task_ttl_seconds))
        self._tasks: Dict[str, VerificationTask] = {}
        self._lock = Lock()

    def run(self, lookup: Callable[[], ChallengeResult]) -> ChallengeResult:
        """Run `lookup` on the pool and wait at most `timeout` seconds.

        Timeouts, cancellation and open circuits surface as DnsVerificationTransient.
        """

        future = self._executor.submit(lookup)
        return self.result(future, timeout=self.timeout)

    def result(self, future: Future, timeout: Optional[float] = None) -> ChallengeResult:
        # Small grace on top of the resolver lifetime, which already bounds each query.
        deadline = (timeout if timeout is not None else self.timeout) + 1.0
        try:
            return future.result(timeout=deadline)
        except FutureTimeout as exc:
            future.cancel()
            raise _transient_from(exc) from exc
        except CancelledError as exc:
            raise _transient_from(exc) from exc
        except CircuitOpen as exc:
            raise _transient_from(exc) from exc
        except Exception as exc:
            logger.error('DNS lookup raised unexpectedly: %s', exc, exc_info=True)
            raise _transient_from(exc) from exc

    def submit(self, domain_id: int, owner_id: int, lookup: Callable[[], ChallengeResult]) -> VerificationTask:
        self._prune()
        task = VerificationTask(
            id=uuid.uuid4().hex,
            domain_id=domain_id,
            owner_id=owner_id,
            future=self._executor.submit(lookup),
        )
        with self._lock:
            self._tasks[task.id] = task
        return task

    def get(self, task_id: str) -> Optional[VerificationTask]:
        with self._lock:
            return self._tasks.get(task_id)

    def _prune(self) -> None:
        cutoff = time.monotonic() - self._task_ttl
        with self._lock:
            stale = [k for k, t in self._tasks.items() if t.created_at <= cutoff]
            for k in stale:
                self._tasks.pop(k, None)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
