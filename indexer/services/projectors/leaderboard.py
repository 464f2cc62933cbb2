"""
Leaderboard Projector.

Mirrors ``BurnForRank`` events into weekly leaderboards
(``leaderboards/{weekId}`` with ``entries/{token}``) and the ``burns`` audit
collection.
"""

from loguru import logger

from indexer.config.constants import (
    BURNS_COLLECTION,
    ENTRIES_COLLECTION,
    LEADERBOARDS_COLLECTION,
    UNKNOWN_TOKEN_NAME,
    UNKNOWN_TOKEN_SYMBOL,
)
from indexer.services.decoder import ContractKind, DecodedEvent
from indexer.store import SERVER_TIMESTAMP, Increment, StoreTransaction, doc_path
from indexer.utils.amounts import (
    format_ether,
    normalize_address,
    parse_amount,
    to_amount_str,
)
from indexer.utils.exceptions import StoreError
from indexer.utils.week import current_week_number, week_id_for

from .base import BaseProjector, EventHandler
from .launchpad import token_path


class LeaderboardProjector(BaseProjector):
    """
    Projector for burn-for-rank events.

    The entry create-or-add and the week total update are committed in one
    transaction; the store re-runs it on conflicting concurrent writers.
    """

    name = "leaderboard"
    kind = ContractKind.LEADERBOARD
    log_prefix = "Leaderboard"

    @property
    def handlers(self) -> dict[str, EventHandler]:
        return {"BurnForRank": self.on_burn_for_rank}

    async def _token_info(self, token: str) -> tuple[str, str]:
        """Best-effort, non-transactional lookup of token name and symbol."""
        try:
            data = await self.store.get(token_path(token))
        except StoreError as e:
            logger.debug(f"[Leaderboard] Token lookup failed for {token}: {e}")
            data = None
        data = data or {}
        return (
            data.get("name") or UNKNOWN_TOKEN_NAME,
            data.get("symbol") or UNKNOWN_TOKEN_SYMBOL,
        )

    async def on_burn_for_rank(self, event: DecodedEvent) -> None:
        args = event.args
        token = normalize_address(args["token"])
        amount = int(args["amount"])
        week_number = int(args["weekNumber"])
        now = self.clock()
        week_id = week_id_for(week_number, now)

        logger.info(
            f"[Leaderboard] Burn for Rank: {format_ether(amount)} CTHU "
            f"for {token} ({week_id})"
        )
        local_week = current_week_number(now)
        if local_week != week_number:
            logger.debug(
                f"[Leaderboard] Contract week {week_number} differs from "
                f"local week {local_week}"
            )

        week_path = doc_path(LEADERBOARDS_COLLECTION, week_id)
        entry_path = doc_path(week_path, ENTRIES_COLLECTION, token)

        async def mutate(tx: StoreTransaction) -> int:
            week = await tx.get(week_path)
            entry = await tx.get(entry_path)

            if entry is None:
                name, symbol = await self._token_info(token)

            week_total = parse_amount((week or {}).get("totalBurned")) + amount
            if week is None:
                tx.set(week_path, {
                    "weekNumber": week_number,
                    "weekId": week_id,
                    "startedAt": SERVER_TIMESTAMP,
                    "totalBurned": to_amount_str(week_total),
                })
            else:
                tx.update(week_path, {"totalBurned": to_amount_str(week_total)})

            if entry is not None:
                burn_amount = parse_amount(entry.get("burnAmount")) + amount
                tx.update(entry_path, {
                    "burnAmount": to_amount_str(burn_amount),
                    "lastBurnAt": SERVER_TIMESTAMP,
                    "burnCount": Increment(1),
                })
            else:
                burn_amount = amount
                tx.set(entry_path, {
                    "token": token,
                    "name": name,
                    "symbol": symbol,
                    "burnAmount": to_amount_str(burn_amount),
                    "weekId": week_id,
                    "weekNumber": week_number,
                    "firstBurnAt": SERVER_TIMESTAMP,
                    "lastBurnAt": SERVER_TIMESTAMP,
                    "burnCount": 1,
                })
            return burn_amount

        burn_amount = await self.store.transact(mutate)
        logger.debug(
            f"[Leaderboard] {token} burned {burn_amount} total in {week_id}"
        )

        await self.store.set(
            doc_path(BURNS_COLLECTION, event.event_id),
            {
                "token": token,
                "burner": normalize_address(args["burner"]),
                "amount": to_amount_str(amount),
                "weekNumber": week_number,
                "weekId": week_id,
                "timestamp": SERVER_TIMESTAMP,
                "txHash": event.tx_hash,
                "blockNumber": event.block_number,
            },
        )
