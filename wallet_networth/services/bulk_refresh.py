"""Throttled "load everything" across many tracked addresses."""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Iterable, Union

from ..config import BulkRefreshConfig
from ..models import (
    BulkRefreshPlan,
    BulkRefreshResult,
    FetchStatus,
    PortfolioSnapshot,
    RefreshStatus,
)
from .portfolio import PortfolioStore
from .price_cache import PriceCache

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[BulkRefreshPlan], Union[bool, Awaitable[bool]]]
RefreshFn = Callable[[str], Awaitable[PortfolioSnapshot]]


class BulkRefreshCoordinator:
    """Refresh every unloaded address at once, at most once per cooldown window."""

    def __init__(
        self,
        refresh: RefreshFn,
        price_cache: PriceCache,
        config: BulkRefreshConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._refresh = refresh
        self._price_cache = price_cache
        self._config = config or BulkRefreshConfig()
        self._clock = clock
        self._cooldown_until: float | None = None

    def cooldown_remaining(self) -> float:
        """Seconds until the next bulk refresh may run; 0 when allowed."""
        if self._cooldown_until is None:
            return 0.0
        remaining = self._cooldown_until - self._clock()
        if remaining <= 0:
            self._cooldown_until = None
            return 0.0
        return remaining

    def plan(self, addresses: Iterable[str], store: PortfolioStore) -> BulkRefreshPlan:
        unloaded: list[str] = []
        seen: set[str] = set()
        for address in addresses:
            if address.lower() in seen:
                continue
            seen.add(address.lower())
            snapshot = store.get(address)
            if snapshot is None or snapshot.status == FetchStatus.NOT_FETCHED:
                unloaded.append(address)
            elif snapshot.status == FetchStatus.ERROR and not snapshot.is_fetched:
                # failed before any data arrived
                unloaded.append(address)
        return BulkRefreshPlan(
            unloaded=tuple(unloaded),
            estimated_cost=self._config.unit_cost_per_address * len(unloaded),
        )

    async def run(
        self,
        addresses: Iterable[str],
        store: PortfolioStore,
        confirm: ConfirmCallback | None = None,
    ) -> BulkRefreshResult:
        remaining = self.cooldown_remaining()
        if remaining > 0:
            logger.info("Bulk refresh refused: cooldown active for %.0fs", remaining)
            return BulkRefreshResult(
                status=RefreshStatus.COOLDOWN_ACTIVE, cooldown_remaining=remaining
            )

        plan = self.plan(addresses, store)
        if not plan.unloaded:
            logger.info("Bulk refresh: nothing to do")
            return BulkRefreshResult(status=RefreshStatus.NOTHING_TO_DO, plan=plan)

        approved = False
        if confirm is not None:
            approved = confirm(plan)
            if inspect.isawaitable(approved):
                approved = await approved
        if not approved:
            logger.info(
                "Bulk refresh of %d addresses (~%d units) not confirmed",
                len(plan.unloaded), plan.estimated_cost,
            )
            return BulkRefreshResult(status=RefreshStatus.DECLINED, plan=plan)

        logger.info(
            "Bulk refresh of %d addresses (~%d units)", len(plan.unloaded), plan.estimated_cost
        )
        await self._price_cache.preload_native_prices()

        outcomes = await asyncio.gather(
            *(self._refresh(address) for address in plan.unloaded),
            return_exceptions=True,
        )

        succeeded: list[str] = []
        failed: dict[str, str] = {}
        for address, outcome in zip(plan.unloaded, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Refresh of %s failed: %s", address, outcome)
                failed[address] = str(outcome) or type(outcome).__name__
            elif outcome.status == FetchStatus.ERROR:
                failed[address] = outcome.error or "all chains failed"
            else:
                succeeded.append(address)

        self._cooldown_until = self._clock() + self._config.cooldown_seconds
        logger.info(
            "Bulk refresh done: %d succeeded, %d failed", len(succeeded), len(failed)
        )
        return BulkRefreshResult(
            status=RefreshStatus.COMPLETED,
            plan=plan,
            succeeded=tuple(succeeded),
            failed=failed,
            cooldown_remaining=self._config.cooldown_seconds,
        )
