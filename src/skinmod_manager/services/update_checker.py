"""Update checking: ask each mod's origin for its latest version.

Per-mod state machine, driven by :meth:`UpdateChecker.check_one`::

    NeverChecked | CheckFailed -> Checking -> UpToDate | UpdateAvailable | CheckFailed

``Checking`` is transient and never persisted: it is the set of mods with a
fetch in flight.  ``UpToDate`` and ``UpdateAvailable`` are only re-checked once
the freshness window has passed, and ``CheckFailed`` only once its
``retry_after`` has passed, unless the caller forces the check.

Every outcome is written back to the registry as soon as that mod's check
settles, so a cancelled or partially failed ``check_all`` still leaves every
finished result recorded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from skinmod_manager.errors import InvalidInputError
from skinmod_manager.matching.versions import compare_versions
from skinmod_manager.origins.base import (
    InvalidOriginError,
    LatestInfo,
    OriginTimeoutError,
    RateLimitedError,
    UnexpectedSourceError,
    UnsupportedOriginError,
    UpdateSourceClient,
    UpdateSourceError,
)
from skinmod_manager.registry.registry import ModRegistry
from skinmod_manager.registry.types import (
    CheckFailed,
    Mod,
    NeverChecked,
    UpdateAvailable,
    UpdateState,
    UpToDate,
)

logger = logging.getLogger(__name__)

_MAX_CONCURRENT = 5


def _utcnow() -> datetime:
    return datetime.now(UTC)


def backoff_delay(failure_count: int, base: timedelta, cap: timedelta) -> timedelta:
    """Capped doubling: base, 2*base, 4*base ... never more than *cap*."""
    exponent = max(failure_count, 1) - 1
    # Past ~60 doublings every sane base exceeds any cap.
    if exponent > 60:
        return cap
    return min(base * (2**exponent), cap)


@dataclass
class CheckAllReport:
    """Summary of one ``check_all`` run."""

    started_at: datetime
    considered: int = 0
    checked: int = 0
    up_to_date: int = 0
    updates_available: int = 0
    failed: int = 0
    skipped_fresh: int = 0
    skipped_backoff: int = 0
    skipped_cancelled: int = 0
    cancelled: bool = False
    results: dict[int, UpdateState] = field(default_factory=dict)

    def tally(self, state: UpdateState) -> None:
        self.checked += 1
        if isinstance(state, UpdateAvailable):
            self.updates_available += 1
        elif isinstance(state, UpToDate):
            self.up_to_date += 1
        elif isinstance(state, CheckFailed):
            self.failed += 1


class UpdateChecker:
    def __init__(
        self,
        registry: ModRegistry,
        clients: Mapping[str, UpdateSourceClient],
        *,
        freshness: timedelta = timedelta(hours=6),
        backoff_base: timedelta = timedelta(seconds=60),
        backoff_cap: timedelta = timedelta(hours=6),
        max_concurrent: int = _MAX_CONCURRENT,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.registry = registry
        self.clients = dict(clients)
        self.freshness = freshness
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self.max_concurrent = max_concurrent
        self.timeout = timeout
        self.clock = clock

        self._loop: asyncio.AbstractEventLoop | None = None
        self._semaphore: asyncio.Semaphore | None = None
        self._in_flight: dict[int, asyncio.Task[UpdateState | None]] = {}
        self._cancel_events: set[asyncio.Event] = set()

    # ------------------------------------------------------------------
    # Scheduling policy
    # ------------------------------------------------------------------

    def next_check_at(self, state: UpdateState) -> datetime | None:
        """Earliest time a non-forced check may run; None means right away."""
        match state:
            case NeverChecked():
                return None
            case CheckFailed(retry_after=retry_after):
                return retry_after
            case UpToDate(checked_at=checked_at) | UpdateAvailable(checked_at=checked_at):
                return checked_at + self.freshness
        return None

    def is_due(self, mod_id: int, now: datetime | None = None) -> bool:
        due_at = self.next_check_at(self.registry.snapshot().update_state(mod_id))
        return due_at is None or (now or self.clock()) >= due_at

    def in_flight(self) -> frozenset[int]:
        """Ids of mods currently in the transient ``Checking`` state."""
        return frozenset(self._in_flight)

    @property
    def running(self) -> bool:
        return bool(self._cancel_events)

    # ------------------------------------------------------------------
    # Loop-bound primitives
    # ------------------------------------------------------------------

    def _bind_loop(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        if self._loop is not loop or self._semaphore is None:
            self._loop = loop
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
            self._in_flight = {}
        return self._semaphore

    # ------------------------------------------------------------------
    # Checking
    # ------------------------------------------------------------------

    async def _fetch(self, mod: Mod) -> LatestInfo:
        if mod.origin is None:
            raise InvalidOriginError(f"Mod {mod.name} (id={mod.id}) has no origin")
        client = self.clients.get(mod.origin.kind)
        if client is None:
            raise UnsupportedOriginError(f"No update source for origin kind '{mod.origin.kind}'")
        try:
            return await asyncio.wait_for(client.fetch_latest(mod.origin), timeout=self.timeout)
        except TimeoutError as exc:
            raise OriginTimeoutError(f"No answer from {mod.origin.locator} within {self.timeout:g}s") from exc

    def _failed_state(self, mod: Mod, exc: UpdateSourceError) -> CheckFailed:
        now = self.clock()
        previous = self.registry.snapshot().update_state(mod.id)
        failures = previous.failure_count + 1 if isinstance(previous, CheckFailed) else 1
        delay = backoff_delay(failures, self.backoff_base, self.backoff_cap)
        if isinstance(exc, RateLimitedError) and exc.retry_after_seconds:
            delay = max(delay, min(timedelta(seconds=exc.retry_after_seconds), self.backoff_cap))
        return CheckFailed(
            reason=str(exc) or exc.kind,
            checked_at=now,
            retry_after=now + delay,
            failure_count=failures,
            error_kind=exc.kind,
        )

    def _success_state(self, mod_id: int, info: LatestInfo) -> UpdateState:
        now = self.clock()
        # Compare against the version installed now; a re-install may have
        # landed while the request was in flight.
        current = self.registry.snapshot().get_mod(mod_id)
        installed = current.version if current else ""
        comparison = compare_versions(installed, info.version)
        if comparison.update_available:
            return UpdateAvailable(
                remote_version=info.version, checked_at=now, download_hint=info.download_hint
            )
        return UpToDate(checked_at=now, remote_version=info.version)

    async def _run_check(self, mod: Mod, cancel: asyncio.Event | None) -> UpdateState | None:
        semaphore = self._bind_loop()
        async with semaphore:
            if cancel is not None and cancel.is_set():
                logger.debug("Skip mod %d (%s): check cancelled", mod.id, mod.name)
                return None
            try:
                info = await self._fetch(mod)
            except UpdateSourceError as exc:
                state: UpdateState = self._failed_state(mod, exc)
                logger.warning(
                    "Update check failed for %s (id=%d, %s): %s; retry after %s",
                    mod.name,
                    mod.id,
                    exc.kind,
                    exc,
                    state.retry_after.isoformat(),  # type: ignore[union-attr]
                )
            except Exception as exc:
                logger.exception("Update source for %s (id=%d) failed unexpectedly", mod.name, mod.id)
                state = self._failed_state(
                    mod, UnexpectedSourceError(f"{type(exc).__name__}: {exc}")
                )
            else:
                state = self._success_state(mod.id, info)
                if isinstance(state, UpdateAvailable):
                    logger.info(
                        "Update available for %s (id=%d): %s -> %s",
                        mod.name,
                        mod.id,
                        mod.version,
                        state.remote_version,
                    )
                else:
                    logger.debug("Mod %s (id=%d) is up to date at %s", mod.name, mod.id, info.version)

        stored = self.registry.record_update_state(mod.id, state)
        return stored if stored is not None else state

    async def _check(self, mod: Mod, cancel: asyncio.Event | None) -> UpdateState | None:
        self._bind_loop()
        task = self._in_flight.get(mod.id)
        if task is None or task.done():
            task = asyncio.ensure_future(self._run_check(mod, cancel))
            self._in_flight[mod.id] = task
            task.add_done_callback(lambda t, mod_id=mod.id: self._forget(mod_id, t))
        else:
            logger.debug("Joining in-flight check for mod %d", mod.id)
        # Shield so one caller going away does not cancel the shared check.
        state = await asyncio.shield(task)
        if state is None and not (cancel is not None and cancel.is_set()):
            # The shared check was skipped by another caller's cancellation.
            logger.debug("Re-dispatching check for mod %d after a cancelled run", mod.id)
            return await self._check(mod, cancel)
        return state

    def _forget(self, mod_id: int, task: asyncio.Task) -> None:
        if self._in_flight.get(mod_id) is task:
            del self._in_flight[mod_id]

    async def check_one(self, mod_id: int, *, force: bool = False) -> UpdateState:
        """Check one mod and return its update state.

        Within the freshness window (or before ``retry_after``) this returns
        the stored state without any network I/O, unless *force* is set.
        """
        mod = self.registry.get_mod(mod_id)
        if mod.origin is None:
            raise InvalidInputError(f"Mod {mod.name} (id={mod_id}) has no origin to check")
        if not force and not self.is_due(mod_id):
            logger.debug("Skip mod %d (%s): not due", mod_id, mod.name)
            return self.registry.get_update_state(mod_id)
        state = await self._check(mod, None)
        return state if state is not None else self.registry.get_update_state(mod_id)

    async def check_all(
        self,
        *,
        force: bool = False,
        cancel_event: asyncio.Event | None = None,
        mod_ids: Iterable[int] | None = None,
    ) -> CheckAllReport:
        """Check every due mod that has an origin, at most ``max_concurrent`` at a time.

        Returns once every dispatched check has settled.  Setting
        *cancel_event* (or calling :meth:`cancel`) skips checks that have not
        started yet; running ones finish or hit their timeout.
        """
        now = self.clock()
        report = CheckAllReport(started_at=now)
        wanted = set(mod_ids) if mod_ids is not None else None
        mods = [
            m
            for m in self.registry.list_mods()
            if m.origin is not None and (wanted is None or m.id in wanted)
        ]
        report.considered = len(mods)

        due: list[Mod] = []
        for mod in mods:
            if force or self.is_due(mod.id, now):
                due.append(mod)
                continue
            if isinstance(self.registry.snapshot().update_state(mod.id), CheckFailed):
                report.skipped_backoff += 1
                logger.debug("Skip mod %d (%s): backing off", mod.id, mod.name)
            else:
                report.skipped_fresh += 1
                logger.debug("Skip mod %d (%s): checked recently", mod.id, mod.name)

        cancel = cancel_event or asyncio.Event()
        self._cancel_events.add(cancel)
        try:
            results = await asyncio.gather(*(self._check(m, cancel) for m in due))
        finally:
            self._cancel_events.discard(cancel)

        for mod, state in zip(due, results, strict=True):
            if state is None:
                report.skipped_cancelled += 1
                continue
            report.results[mod.id] = state
            report.tally(state)
        report.cancelled = cancel.is_set()

        logger.info(
            "Update check: %d checked (%d updates, %d failed), %d fresh, %d backing off, %d cancelled",
            report.checked,
            report.updates_available,
            report.failed,
            report.skipped_fresh,
            report.skipped_backoff,
            report.skipped_cancelled,
        )
        return report

    def cancel(self) -> bool:
        """Cooperatively cancel running ``check_all`` calls.  Returns True if any were running."""
        if not self._cancel_events:
            return False
        for event in list(self._cancel_events):
            event.set()
        logger.info("Cancelling %d running update check(s)", len(self._cancel_events))
        return True

    async def run_periodic(self, interval: timedelta, stop: asyncio.Event) -> None:
        """Run ``check_all`` every *interval* until *stop* is set.

        Setting *stop* also cancels a run in progress.
        """
        logger.info("Periodic update checks every %s", interval)
        while not stop.is_set():
            run_cancel = asyncio.Event()
            watcher = asyncio.ensure_future(self._relay(stop, run_cancel))
            try:
                await self.check_all(cancel_event=run_cancel)
            except Exception:
                logger.exception("Periodic update check failed")
            finally:
                watcher.cancel()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval.total_seconds())
            except TimeoutError:
                continue
        logger.info("Periodic update checks stopped")

    @staticmethod
    async def _relay(source: asyncio.Event, target: asyncio.Event) -> None:
        await source.wait()
        target.set()
