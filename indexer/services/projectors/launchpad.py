"""
Launchpad Projector.

Mirrors CultistLaunchpad events into ``tokens/{address}`` and its
``trades``, ``sellLocks`` and ``sellUnlocks`` subcollections.
"""

from loguru import logger

from indexer.config.constants import (
    SELL_LOCKS_COLLECTION,
    SELL_UNLOCKS_COLLECTION,
    TOKENS_COLLECTION,
    TRADES_COLLECTION,
)
from indexer.services.decoder import ContractKind, DecodedEvent
from indexer.store import SERVER_TIMESTAMP, StoreTransaction, doc_path
from indexer.utils.amounts import (
    format_ether,
    normalize_address,
    parse_amount,
    to_amount_str,
)

from .base import BaseProjector, EventHandler


def token_path(token: str) -> str:
    return doc_path(TOKENS_COLLECTION, normalize_address(token))


class LaunchpadProjector(BaseProjector):
    """
    Projector for token launches, trades, graduation and sell locks.

    Cumulative MONAD volumes are stored as decimal integer strings and
    updated inside a single-document transaction. A trade for a token
    without a document skips the totals but still records the trade.
    """

    name = "launchpad"
    kind = ContractKind.LAUNCHPAD
    log_prefix = "Launchpad"

    @property
    def handlers(self) -> dict[str, EventHandler]:
        return {
            "TokenSummoned": self.on_token_summoned,
            "TokenBought": self.on_token_bought,
            "TokenSold": self.on_token_sold,
            "TokenGraduated": self.on_token_graduated,
            "SellLockPurchased": self.on_sell_lock_purchased,
            "SellLockUnlocked": self.on_sell_lock_unlocked,
        }

    async def on_token_summoned(self, event: DecodedEvent) -> None:
        """
        Create the token document.

        Replays keep counters, graduation state and ``createdAt`` of an
        existing document and only rewrite the descriptive fields, so
        processing the event twice yields the same document.
        """
        args = event.args
        token = normalize_address(args["token"])
        path = token_path(token)
        logger.info(
            f"[Launchpad] Token Summoned: {args['name']} "
            f"({args['symbol']}) at {token}"
        )

        descriptive = {
            "address": token,
            "creator": normalize_address(args["creator"]),
            "name": args["name"],
            "symbol": args["symbol"],
            "txHash": event.tx_hash,
            "blockNumber": event.block_number,
        }

        async def mutate(tx: StoreTransaction) -> bool:
            existing = await tx.get(path)
            if existing is not None:
                tx.update(path, descriptive)
                return False
            tx.set(path, {
                **descriptive,
                "graduated": False,
                "createdAt": SERVER_TIMESTAMP,
                "totalBought": "0",
                "totalSold": "0",
                "lastPrice": "0",
                "holders": 0,
            })
            return True

        created = await self.store.transact(mutate)
        if not created:
            logger.info(f"[Launchpad] Token {token} already indexed, kept totals")

    async def on_token_bought(self, event: DecodedEvent) -> None:
        args = event.args
        logger.info(
            f"[Launchpad] Token Bought: {format_ether(args['tokensOut'])} "
            f"of {normalize_address(args['token'])}"
        )
        await self._record_trade(
            event,
            side="buy",
            trader=args["buyer"],
            monad_amount=args["monadIn"],
            token_amount=args["tokensOut"],
            total_field="totalBought",
        )

    async def on_token_sold(self, event: DecodedEvent) -> None:
        args = event.args
        logger.info(
            f"[Launchpad] Token Sold: {format_ether(args['tokensIn'])} "
            f"of {normalize_address(args['token'])}"
        )
        await self._record_trade(
            event,
            side="sell",
            trader=args["seller"],
            monad_amount=args["monadOut"],
            token_amount=args["tokensIn"],
            total_field="totalSold",
        )

    async def _record_trade(
        self,
        event: DecodedEvent,
        side: str,
        trader: str,
        monad_amount: int,
        token_amount: int,
        total_field: str,
    ) -> None:
        token = normalize_address(event.args["token"])
        path = token_path(token)
        new_price = event.args["newPrice"]

        async def mutate(tx: StoreTransaction) -> bool:
            data = await tx.get(path)
            if data is None:
                return False
            total = parse_amount(data.get(total_field)) + int(monad_amount)
            tx.update(path, {
                total_field: to_amount_str(total),
                "lastPrice": to_amount_str(new_price),
                "lastActivity": SERVER_TIMESTAMP,
            })
            return True

        if not await self.store.transact(mutate):
            logger.warning(
                f"[Launchpad] {event.name} for unknown token {token}, "
                f"totals not updated (tx={event.tx_hash})"
            )

        # One buy or sell per token per transaction
        await self.store.set(
            doc_path(path, TRADES_COLLECTION, f"{event.tx_hash}-{side}"),
            {
                "type": side,
                "trader": normalize_address(trader),
                "monadAmount": to_amount_str(monad_amount),
                "tokenAmount": to_amount_str(token_amount),
                "price": to_amount_str(new_price),
                "timestamp": SERVER_TIMESTAMP,
                "txHash": event.tx_hash,
                "blockNumber": event.block_number,
            },
        )

    async def on_token_graduated(self, event: DecodedEvent) -> None:
        args = event.args
        token = normalize_address(args["token"])
        pair = normalize_address(args["pair"])
        logger.info(f"[Launchpad] Token Graduated: {token} -> Pair: {pair}")

        await self.store.update(token_path(token), {
            "graduated": True,
            "graduatedAt": SERVER_TIMESTAMP,
            "pairAddress": pair,
            "graduationLiquidityMonad": to_amount_str(args["liquidityMonad"]),
            "graduationLiquidityTokens": to_amount_str(args["liquidityTokens"]),
            "txHash": event.tx_hash,
        })

    async def on_sell_lock_purchased(self, event: DecodedEvent) -> None:
        args = event.args
        token = normalize_address(args["token"])
        logger.info(f"[Launchpad] Sell Lock Purchased: Day {args['day']} for {token}")

        await self.store.set(
            doc_path(token_path(token), SELL_LOCKS_COLLECTION, event.event_id),
            {
                "buyer": normalize_address(args["buyer"]),
                "day": int(args["day"]),
                "cost": to_amount_str(args["cost"]),
                "timestamp": SERVER_TIMESTAMP,
                "txHash": event.tx_hash,
            },
        )

    async def on_sell_lock_unlocked(self, event: DecodedEvent) -> None:
        args = event.args
        token = normalize_address(args["token"])
        logger.info(f"[Launchpad] Sell Lock Unlocked: {token}")

        await self.store.set(
            doc_path(token_path(token), SELL_UNLOCKS_COLLECTION, event.event_id),
            {
                "holder": normalize_address(args["holder"]),
                "cost": to_amount_str(args["cost"]),
                "timestamp": SERVER_TIMESTAMP,
                "txHash": event.tx_hash,
                "blockNumber": event.block_number,
            },
        )
