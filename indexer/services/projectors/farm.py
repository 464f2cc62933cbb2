"""
Farm Projector.

Mirrors CthuFarm events into the ``farmEvents`` audit collection and the
``stats/farm`` singleton.

Staked/harvested totals on ``stats/farm`` are float ether magnitudes updated
with atomic increments, which is what the frontend reads. Converting wei to
a float loses precision for very large amounts; with ``exact_totals`` the
projector also keeps exact wei totals in ``...Wei`` string fields.
"""

import math

from loguru import logger

from indexer.config.constants import (
    FARM_EVENTS_COLLECTION,
    FARM_POOL_NAMES,
    FARM_STATS_DOC,
    STATS_COLLECTION,
)
from indexer.services.decoder import ContractKind, DecodedEvent, EventDecoder
from indexer.store import SERVER_TIMESTAMP, AggregateStore, StoreTransaction, doc_path
from indexer.utils.amounts import (
    format_ether,
    normalize_address,
    parse_amount,
    to_amount_str,
    to_float_ether,
)

from .base import BaseProjector, Clock, EventHandler

FARM_STATS_PATH = doc_path(STATS_COLLECTION, FARM_STATS_DOC)

# Float residue allowed on ether-valued totals
FLOAT_TOLERANCE = 1e-9


def pool_name(pid: int) -> str:
    return FARM_POOL_NAMES.get(pid, f"Pool {pid}")


class FarmProjector(BaseProjector):
    """Projector for farm deposits, withdrawals and harvests."""

    name = "farm"
    kind = ContractKind.FARM
    log_prefix = "Farm"

    def __init__(
        self,
        store: AggregateStore,
        exact_totals: bool = False,
        clock: Clock | None = None,
        decoder: EventDecoder | None = None,
    ):
        super().__init__(store, decoder=decoder, clock=clock)
        self.exact_totals = exact_totals

    @property
    def handlers(self) -> dict[str, EventHandler]:
        return {
            "Deposit": self.on_deposit,
            "Withdraw": self.on_withdraw,
            "EmergencyWithdraw": self.on_emergency_withdraw,
            "Harvest": self.on_harvest,
        }

    async def on_deposit(self, event: DecodedEvent) -> None:
        logger.info(
            f"[Farm] Deposit: {format_ether(event.args['amount'])} "
            f"to pool {event.args['pid']}"
        )
        await self._append_event(event, "deposit")
        await self._update_staked(event, sign=1)

    async def on_withdraw(self, event: DecodedEvent) -> None:
        logger.info(
            f"[Farm] Withdraw: {format_ether(event.args['amount'])} "
            f"from pool {event.args['pid']}"
        )
        await self._append_event(event, "withdraw")
        await self._update_staked(event, sign=-1)
        await self.check_stake_invariant()

    async def on_emergency_withdraw(self, event: DecodedEvent) -> None:
        logger.info(
            f"[Farm] Emergency Withdraw: {format_ether(event.args['amount'])} "
            f"from pool {event.args['pid']}"
        )
        await self._append_event(event, "emergency_withdraw")
        await self._update_staked(event, sign=-1)
        await self.check_stake_invariant()

    async def on_harvest(self, event: DecodedEvent) -> None:
        pid = int(event.args["pid"])
        amount = int(event.args["amount"])
        logger.info(f"[Farm] Harvest: {format_ether(amount)} CTHU from pool {pid}")

        await self._append_event(event, "harvest")
        fields = [f"pool{pid}TotalHarvested", "totalHarvested"]
        await self.store.increment(
            FARM_STATS_PATH,
            {field: to_float_ether(amount) for field in fields},
            extra={"lastUpdate": SERVER_TIMESTAMP},
        )
        if self.exact_totals:
            await self._add_exact(fields, amount)

    async def _append_event(self, event: DecodedEvent, event_type: str) -> None:
        pid = int(event.args["pid"])
        await self.store.set(
            doc_path(FARM_EVENTS_COLLECTION, event.event_id),
            {
                "type": event_type,
                "user": normalize_address(event.args["user"]),
                "poolId": pid,
                "poolName": pool_name(pid),
                "amount": to_amount_str(event.args["amount"]),
                "timestamp": SERVER_TIMESTAMP,
                "txHash": event.tx_hash,
                "blockNumber": event.block_number,
            },
        )

    async def _update_staked(self, event: DecodedEvent, sign: int) -> None:
        pid = int(event.args["pid"])
        amount = int(event.args["amount"])
        fields = [f"pool{pid}TotalStaked", "totalStaked"]
        change = to_float_ether(amount) * sign

        await self.store.increment(
            FARM_STATS_PATH,
            {field: change for field in fields},
            extra={"lastUpdate": SERVER_TIMESTAMP},
        )
        if self.exact_totals:
            await self._add_exact(fields, amount * sign)

    async def _add_exact(self, fields: list[str], delta: int) -> dict[str, str]:
        """Add ``delta`` wei to the exact ``{field}Wei`` totals."""

        async def mutate(tx: StoreTransaction) -> dict[str, str]:
            data = await tx.get(FARM_STATS_PATH) or {}
            updated = {
                f"{field}Wei": to_amount_str(parse_amount(data.get(f"{field}Wei")) + delta)
                for field in fields
            }
            tx.set(FARM_STATS_PATH, updated, merge=True)
            return updated

        return await self.store.transact(mutate)

    async def check_stake_invariant(self) -> bool:
        """
        Verify staked totals on ``stats/farm``.

        ``totalStaked`` must equal the sum of the per-pool totals and must not
        be negative beyond float residue; a negative total means a deposit was
        missed.

        Returns:
            True if the stats are consistent
        """
        stats = await self.store.get(FARM_STATS_PATH)
        if not stats:
            return True

        suffix = "Wei" if self.exact_totals else ""
        total_key = f"totalStaked{suffix}"
        pool_keys = [
            key for key in stats
            if key.startswith("pool") and key.endswith(f"TotalStaked{suffix}")
        ]

        if self.exact_totals:
            total = parse_amount(stats.get(total_key))
            pools_sum = sum(parse_amount(stats[key]) for key in pool_keys)
            consistent_sum = total == pools_sum
            tolerance = 0.0
        else:
            total = stats.get(total_key, 0)
            pools_sum = sum(stats[key] for key in pool_keys)
            consistent_sum = math.isclose(
                total, pools_sum, rel_tol=FLOAT_TOLERANCE, abs_tol=FLOAT_TOLERANCE
            )
            tolerance = FLOAT_TOLERANCE

        ok = True
        if total < -tolerance:
            logger.warning(
                f"[Farm] Consistency violation: {total_key} is negative ({total}), "
                f"a deposit event was probably missed"
            )
            ok = False
        if not consistent_sum:
            logger.warning(
                f"[Farm] Consistency violation: {total_key}={total} "
                f"but pool totals sum to {pools_sum}"
            )
            ok = False
        return ok
