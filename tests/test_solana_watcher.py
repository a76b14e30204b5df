"""
Unit Tests for the Solana Watcher

Tests backwards signature paging, instruction matching on program id and
discriminator, and lookup-table account resolution.
"""

import base58
import pytest

from contract_watcher.models.watcher import ChainFamily, WatcherConfig
from contract_watcher.services.watchers import CycleOutcome, SolanaWatcher
from contract_watcher.services.watchers.solana import instruction_method
from tests.conftest import FakeSolanaRpc

PROGRAM = "wormDTUJ6AWPNvk59vGQbDvGJmqbDTdgWgAqcLBCgUb"
SYSTEM_PROGRAM = "11111111111111111111111111111111"
PAYER = "Vote111111111111111111111111111111111111111"


def data(*values: int) -> str:
    return base58.b58encode(bytes(values)).decode()


def signature(slot: int) -> dict:
    return {'signature': f"sig-{slot}", 'slot': slot, 'err': None, 'block_time': 1700000000 + slot}


def transaction(slot: int, instructions, loaded=None, err=None) -> dict:
    return {
        'slot': slot,
        'blockTime': 1700000000 + slot,
        'meta': {'err': err, 'loadedAddresses': loaded or {'writable': [], 'readonly': []}},
        'transaction': {
            'message': {
                'accountKeys': [PAYER, SYSTEM_PROGRAM, PROGRAM],
                'instructions': instructions,
            },
        },
    }


def solana_config(**overrides) -> WatcherConfig:
    values = dict(
        chain_id=1,
        name="solana",
        family=ChainFamily.SOLANA,
        rpc_url="https://api.example.org",
        methods_by_address={PROGRAM: frozenset({"2", "3", "9", "10"})},
        size_blocks=16,
        wait_seconds=0.05,
        initial_block=99,
        requests_per_second=1000,
        page_size=2,
    )
    values.update(overrides)
    return WatcherConfig(**values)


class TestInstructionMethod:
    def test_first_byte_as_decimal(self):
        assert instruction_method(data(10, 1, 2)) == "10"

    def test_empty_data(self):
        assert instruction_method("") == ""


class TestSolanaWatcher:
    """Test slot-ranged fetch"""

    @pytest.fixture
    def rpc(self):
        signatures = [signature(s) for s in (120, 110, 105, 99, 90)]
        transactions = {
            "sig-110": transaction(110, [
                {'programIdIndex': 2, 'accounts': [0], 'data': data(1)},  # not monitored
            ]),
            "sig-105": transaction(105, [
                {'programIdIndex': 1, 'accounts': [0], 'data': data(2)},
                {'programIdIndex': 2, 'accounts': [0, 1], 'data': data(3, 7)},
            ]),
        }
        return FakeSolanaRpc(slot=200, signatures=signatures, transactions=transactions)

    @pytest.mark.asyncio
    async def test_range_paging_and_matching(self, build_watcher, store, rpc):
        watcher = build_watcher(solana_config(), rpc)
        assert isinstance(watcher, SolanaWatcher)

        assert await watcher.poll_once() == CycleOutcome.BEHIND

        [event] = store.events(1)
        assert event.emitter_address == PROGRAM
        assert event.block_height == 105
        assert event.tx_hash == "sig-105"
        assert event.sequence_or_index == 1
        assert event.payload['method'] == "3"
        assert event.payload['accounts'] == [PAYER, SYSTEM_PROGRAM]
        assert event.payload['status'] == "succeeded"

        # [120, 110], then [105, 99] which reaches below slot 100
        assert rpc.pages == 2
        assert await store.get_cursor(1) == 115

    @pytest.mark.asyncio
    async def test_transactions_processed_oldest_first(self, build_watcher, store, rpc):
        rpc.transactions["sig-110"] = transaction(110, [
            {'programIdIndex': 2, 'accounts': [], 'data': data(2)},
        ])

        await build_watcher(solana_config(), rpc).poll_once()

        assert [e.block_height for e in store.events(1)] == [105, 110]

    @pytest.mark.asyncio
    async def test_lookup_table_program_id(self, build_watcher, store):
        lookup_program = "SysvarRent111111111111111111111111111111111"
        tx = transaction(
            101,
            [{'programIdIndex': 3, 'accounts': [0], 'data': data(9)}],
            loaded={'writable': [lookup_program], 'readonly': []},
        )
        rpc = FakeSolanaRpc(slot=200, signatures=[signature(101)], transactions={"sig-101": tx})
        config = solana_config(methods_by_address={lookup_program: frozenset()})

        await build_watcher(config, rpc).poll_once()

        [event] = store.events(1)
        assert event.emitter_address == lookup_program
        assert event.payload['method'] == "9"

    @pytest.mark.asyncio
    async def test_failed_transaction_status(self, build_watcher, store):
        tx = transaction(101, [{'programIdIndex': 2, 'accounts': [], 'data': data(2)}],
                         err={'InstructionError': [0, 'Custom']})
        rpc = FakeSolanaRpc(slot=200, signatures=[signature(101)], transactions={"sig-101": tx})

        await build_watcher(solana_config(), rpc).poll_once()

        assert store.events(1)[0].payload['status'] == "failed"

    @pytest.mark.asyncio
    async def test_missing_transaction_fails_cycle(self, build_watcher, store):
        rpc = FakeSolanaRpc(slot=200, signatures=[signature(101)], transactions={})
        watcher = build_watcher(solana_config(), rpc)

        assert await watcher.poll_once() == CycleOutcome.FAILED
        assert await store.get_cursor(1) is None

    @pytest.mark.asyncio
    async def test_no_signatures(self, build_watcher, store):
        rpc = FakeSolanaRpc(slot=200, signatures=[], transactions={})

        await build_watcher(solana_config(), rpc).poll_once()

        assert store.events(1) == []
        assert await store.get_cursor(1) == 115


class TestSolanaCatchUp:
    """Paging cost while far behind the tip"""

    def history(self, top: int) -> FakeSolanaRpc:
        signatures = [signature(s) for s in range(top, 0, -1)]
        noop = [{'programIdIndex': 1, 'accounts': [], 'data': data(0)}]
        transactions = {item['signature']: transaction(item['slot'], noop) for item in signatures}
        return FakeSolanaRpc(slot=top, signatures=signatures, transactions=transactions)

    def config(self) -> WatcherConfig:
        return solana_config(size_blocks=100, initial_block=999, page_size=10, requests_per_second=100000)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("top", [3000, 6000])
    async def test_pages_per_cycle_follow_the_window(self, build_watcher, store, top):
        rpc = self.history(top)
        watcher = build_watcher(self.config(), rpc)

        # First walk reaches down from the tip once
        assert await watcher.poll_once() == CycleOutcome.BEHIND

        for _ in range(3):
            pages_before = rpc.pages
            assert await watcher.poll_once() == CycleOutcome.BEHIND

            # One page for new signatures, then the window plus the page above it
            assert rpc.pages - pages_before <= 100 // 10 + 2

        assert await store.get_cursor(1) == 1399

    @pytest.mark.asyncio
    async def test_new_signatures_at_the_tip_are_picked_up(self, build_watcher, store):
        rpc = FakeSolanaRpc(slot=200, signatures=[signature(105)], transactions={
            "sig-105": transaction(105, [{'programIdIndex': 2, 'accounts': [], 'data': data(2)}]),
            "sig-130": transaction(130, [{'programIdIndex': 2, 'accounts': [], 'data': data(3)}]),
        })
        watcher = build_watcher(solana_config(), rpc)
        await watcher.poll_once()

        rpc.signatures.insert(0, signature(130))
        await watcher.poll_once()

        assert [e.tx_hash for e in store.events(1)] == ["sig-105", "sig-130"]
        assert await store.get_cursor(1) == 131
