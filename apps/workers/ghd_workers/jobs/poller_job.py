"""
Background poller: refreshes every stale tracked user on a fixed interval.

A tick never raises on account of a single user; the loop only ends when
the shutdown event is set.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass

from ghd_backend.core.errors import CredentialInvalidError, CredentialMissingError
from ghd_backend.core.state import AppState
from ghd_backend.ingestion.persistence import CacheRepository
from ghd_backend.services.credential_service import CredentialStore
from ghd_backend.services.refresh_service import RefreshEngine, RefreshOutcome

logger = logging.getLogger(__name__)


@dataclass
class TickStats:
    iteration: int
    skipped: bool = False
    stale: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class Poller:
    def __init__(self, state: AppState, engine: RefreshEngine | None = None):
        self._state = state
        self._engine = engine or RefreshEngine.from_state(state)
        self._interval = state.settings.poll_interval_seconds
        self.iteration = 0

    async def _stale_logins(self) -> list[str] | None:
        """None when there is no usable credential"""
        async with self._state.lock:
            async with self._state.session_factory() as session:
                try:
                    await CredentialStore(session).get_active_credential()
                except (CredentialMissingError, CredentialInvalidError) as e:
                    logger.debug(f"Skipping tick: {type(e).__name__}")
                    return None
                users = await CacheRepository(session).list_stale_users(self._engine.stale_cutoff())
        return [user.login for user in users]

    async def run_iteration(self) -> TickStats:
        self.iteration += 1
        stats = TickStats(iteration=self.iteration)
        await self._state.events.emit_iteration(self.iteration)

        logins = await self._stale_logins()
        if logins is None:
            stats.skipped = True
            return stats
        stats.stale = len(logins)

        for login in logins:
            try:
                outcome = await self._engine.refresh_user(login)
            except Exception as e:
                logger.exception(
                    f"Refresh of {login} crashed: {e}",
                    extra={"login": login, "iteration": self.iteration},
                )
                stats.failed += 1
                continue

            if outcome == RefreshOutcome.UPDATED:
                stats.updated += 1
            elif outcome in (RefreshOutcome.NO_UPDATE, RefreshOutcome.IN_PROGRESS):
                stats.unchanged += 1
            else:
                stats.failed += 1

            # Every further request would be rejected with the same token
            if outcome in (RefreshOutcome.CREDENTIAL_INVALID, RefreshOutcome.NO_CREDENTIAL):
                logger.warning("Token unusable, ending tick early", extra={"iteration": self.iteration})
                break

        if stats.stale:
            logger.info(
                f"Poll tick {self.iteration}: {stats.updated} updated, "
                f"{stats.unchanged} unchanged, {stats.failed} failed",
                extra=stats.to_dict(),
            )
        return stats

    async def run(self, shutdown_event: asyncio.Event) -> dict:
        logger.info(f"Poller started, interval {self._interval}s")
        while not shutdown_event.is_set():
            try:
                await self.run_iteration()
            except Exception as e:
                # Database trouble outside any single user's refresh
                logger.exception(f"Poll tick {self.iteration} failed: {e}")

            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass

        logger.info("Poller stopped", extra={"iterations": self.iteration})
        return {"status": "shutdown", "iterations": self.iteration}
