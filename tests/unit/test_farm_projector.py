"""Unit tests for the farm projector."""

import asyncio
from itertools import permutations

import pytest

from indexer.services.decoder import ContractKind, EventDecoder
from indexer.services.projectors import FarmProjector
from indexer.services.projectors.farm import FARM_STATS_PATH, pool_name
from indexer.store import MemoryAggregateStore
from tests.factories import ETHER, USER, build_event


def farm_event(name, pid, amount):
    return build_event(name, user=USER, pid=pid, amount=amount)


@pytest.fixture
def projector(store):
    return FarmProjector(store)


@pytest.fixture
def exact_projector(store):
    return FarmProjector(store, exact_totals=True)


class TestPoolNames:
    """Tests for pool_name."""

    def test_known_pools(self):
        assert pool_name(0) == "CTHU/MONAD LP"
        assert pool_name(3) == "Graduated Tokens"

    def test_unknown_pool(self):
        assert pool_name(7) == "Pool 7"


class TestStaking:
    """Tests for deposits and withdrawals."""

    @pytest.mark.asyncio
    async def test_deposit_records_event_and_stats(self, projector, store):
        event = farm_event("Deposit", 1, 100 * ETHER)

        assert await projector.process(event)

        record = await store.get(f"farmEvents/{event.event_id}")
        assert record["type"] == "deposit"
        assert record["user"] == USER
        assert record["poolId"] == 1
        assert record["poolName"] == "CTHU/USDT LP"
        assert record["amount"] == str(100 * ETHER)

        stats = await store.get(FARM_STATS_PATH)
        assert stats["pool1TotalStaked"] == 100.0
        assert stats["totalStaked"] == 100.0
        assert "lastUpdate" in stats

    @pytest.mark.asyncio
    async def test_concurrent_deposits_sum_exactly(self, projector, store):
        """Two concurrent deposits into pool 0 add up to 150."""
        await asyncio.gather(
            projector.process(farm_event("Deposit", 0, 100 * ETHER)),
            projector.process(farm_event("Deposit", 0, 50 * ETHER)),
        )

        stats = await store.get(FARM_STATS_PATH)
        assert stats["pool0TotalStaked"] == 150.0
        assert stats["totalStaked"] == 150.0

    @pytest.mark.asyncio
    async def test_arrival_order_does_not_matter(self):
        """Net staked is the same for every arrival order."""
        events = [
            ("Deposit", 0, 100 * ETHER),
            ("Deposit", 0, 50 * ETHER),
            ("Withdraw", 0, 30 * ETHER),
            ("EmergencyWithdraw", 0, 20 * ETHER),
        ]
        results = set()
        for order in permutations(events):
            store = MemoryAggregateStore()
            projector = FarmProjector(store)
            for name, pid, amount in order:
                await projector.process(farm_event(name, pid, amount))
            results.add((await store.get(FARM_STATS_PATH))["pool0TotalStaked"])

        assert results == {100.0}

    @pytest.mark.asyncio
    async def test_withdraw_types(self, projector, store):
        await projector.process(farm_event("Deposit", 2, 10 * ETHER))
        withdraw = farm_event("Withdraw", 2, 4 * ETHER)
        emergency = farm_event("EmergencyWithdraw", 2, 6 * ETHER)

        await projector.process(withdraw)
        await projector.process(emergency)

        assert (await store.get(f"farmEvents/{withdraw.event_id}"))["type"] == "withdraw"
        assert (
            (await store.get(f"farmEvents/{emergency.event_id}"))["type"]
            == "emergency_withdraw"
        )
        stats = await store.get(FARM_STATS_PATH)
        assert stats["pool2TotalStaked"] == 0.0
        assert stats["totalStaked"] == 0.0

    @pytest.mark.asyncio
    async def test_replayed_event_writes_same_audit_record(self, projector, store):
        event = farm_event("Deposit", 0, ETHER)

        await projector.process(event)
        await projector.process(event)

        assert len(store.collection("farmEvents")) == 1


class TestHarvest:
    """Tests for Harvest."""

    @pytest.mark.asyncio
    async def test_harvest_updates_harvest_totals(self, projector, store):
        await projector.process(farm_event("Harvest", 3, 7 * ETHER))
        await projector.process(farm_event("Harvest", 0, 3 * ETHER))

        stats = await store.get(FARM_STATS_PATH)
        assert stats["pool3TotalHarvested"] == 7.0
        assert stats["pool0TotalHarvested"] == 3.0
        assert stats["totalHarvested"] == 10.0
        assert "totalStaked" not in stats

        kinds = {e["type"] for e in store.collection("farmEvents").values()}
        assert kinds == {"harvest"}


class TestExactTotals:
    """Tests for exact wei totals."""

    @pytest.mark.asyncio
    async def test_exact_wei_totals(self, exact_projector, store):
        amounts = [123456789012345678901, 987654321098765432109]
        for amount in amounts:
            await exact_projector.process(farm_event("Deposit", 0, amount))
        await exact_projector.process(farm_event("Withdraw", 0, 1))

        stats = await store.get(FARM_STATS_PATH)
        expected = str(sum(amounts) - 1)
        assert stats["pool0TotalStakedWei"] == expected
        assert stats["totalStakedWei"] == expected
        assert "totalStaked" in stats

    @pytest.mark.asyncio
    async def test_concurrent_exact_updates(self, exact_projector, store):
        await asyncio.gather(
            *(
                exact_projector.process(farm_event("Deposit", pid % 2, ETHER + 1))
                for pid in range(10)
            )
        )

        stats = await store.get(FARM_STATS_PATH)
        assert stats["totalStakedWei"] == str(10 * (ETHER + 1))
        assert stats["pool0TotalStakedWei"] == str(5 * (ETHER + 1))
        assert await exact_projector.check_stake_invariant()

    @pytest.mark.asyncio
    async def test_exact_harvest_totals(self, exact_projector, store):
        await exact_projector.process(farm_event("Harvest", 1, ETHER + 7))

        stats = await store.get(FARM_STATS_PATH)
        assert stats["totalHarvestedWei"] == str(ETHER + 7)
        assert stats["pool1TotalHarvestedWei"] == str(ETHER + 7)


class TestStakeInvariant:
    """Tests for check_stake_invariant."""

    @pytest.mark.asyncio
    async def test_empty_stats_are_consistent(self, projector):
        assert await projector.check_stake_invariant()

    @pytest.mark.asyncio
    async def test_consistent_after_deposits(self, projector):
        await projector.process(farm_event("Deposit", 0, 5 * ETHER))
        await projector.process(farm_event("Deposit", 1, 3 * ETHER))

        assert await projector.check_stake_invariant()

    @pytest.mark.asyncio
    async def test_withdraw_without_deposit_is_flagged(self, projector, store):
        """A withdrawal with no recorded deposit leaves a negative total."""
        assert await projector.process(farm_event("Withdraw", 0, ETHER))

        assert (await store.get(FARM_STATS_PATH))["totalStaked"] == -1.0
        assert await projector.check_stake_invariant() is False

    @pytest.mark.asyncio
    async def test_sum_mismatch_is_flagged(self, projector, store):
        await store.set(
            FARM_STATS_PATH,
            {"pool0TotalStaked": 1.0, "pool1TotalStaked": 2.0, "totalStaked": 4.0},
        )

        assert await projector.check_stake_invariant() is False

    @pytest.mark.asyncio
    async def test_float_residue_is_not_flagged(self, projector, store):
        """Matching deposit and withdrawals may leave a tiny negative float."""
        await projector.process(farm_event("Deposit", 0, 3 * 10 ** 17))
        await projector.process(farm_event("Withdraw", 0, 10 ** 17))
        await projector.process(farm_event("Withdraw", 0, 2 * 10 ** 17))

        assert abs((await store.get(FARM_STATS_PATH))["totalStaked"]) < 1e-9
        assert await projector.check_stake_invariant()


class TestConstruction:
    """Tests for FarmProjector construction."""

    def test_injected_decoder_is_used(self, store):
        decoder = EventDecoder(ContractKind.FARM)

        projector = FarmProjector(store, decoder=decoder)

        assert projector.decoder is decoder
        assert len(projector.topics) == 4
