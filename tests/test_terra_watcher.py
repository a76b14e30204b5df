"""
Unit Tests for the Terra Watcher

Tests offset paging over the FCD index and execute-message matching.
"""

import base64
import json

import pytest

from contract_watcher.models.watcher import ChainFamily, WatcherConfig
from contract_watcher.services.watchers import CycleOutcome, TerraWatcher
from contract_watcher.services.watchers.terra import execute_message
from tests.conftest import FakeTerraRpc

BRIDGE = "terra10nmmwe8r3g99a9newtqa7a75xfgs2e8z87r2sf"
SENDER = "terra1x46rqay4d3cssq8gxxvqz8xt6nwlz4td20k38v"


def execute(contract: str, msg, sender: str = SENDER) -> dict:
    return {
        'type': 'wasm/MsgExecuteContract',
        'value': {'sender': sender, 'contract': contract, 'execute_msg': msg, 'coins': []},
    }


def tx(height: int, txhash: str, *messages, code: int = 0) -> dict:
    return {
        'height': str(height),
        'txhash': txhash,
        'code': code,
        'timestamp': '2022-05-01T00:00:00Z',
        'tx': {'type': 'core/StdTx', 'value': {'msg': list(messages)}},
    }


def terra_config(**overrides) -> WatcherConfig:
    values = dict(
        chain_id=3,
        name="terra",
        family=ChainFamily.TERRA,
        rpc_url="https://fcd.example.org",
        methods_by_address={BRIDGE: frozenset({"submit_vaa"})},
        size_blocks=100,
        wait_seconds=0.05,
        initial_block=1000,
        requests_per_second=1000,
        page_size=2,
    )
    values.update(overrides)
    return WatcherConfig(**values)


class TestExecuteMessage:
    def test_object(self):
        assert execute_message({'submit_vaa': {'data': 'AQ=='}}) == {'submit_vaa': {'data': 'AQ=='}}

    def test_base64_json(self):
        encoded = base64.b64encode(json.dumps({'submit_vaa': {}}).encode()).decode()

        assert execute_message(encoded) == {'submit_vaa': {}}

    def test_garbage(self):
        assert execute_message("not base64 !!") == {}
        assert execute_message(None) == {}


class TestTerraWatcher:
    """Test height-ranged fetch"""

    @pytest.fixture
    def rpc(self):
        pages = [
            {'offset': None, 'next': 501, 'txs': [
                tx(1200, "AAA", execute(BRIDGE, {'submit_vaa': {'data': 'x'}})),  # above range
                tx(1080, "BBB", execute(BRIDGE, {'register_asset_hook': {}}),
                   execute(BRIDGE, {'submit_vaa': {'data': 'y'}})),
            ]},
            {'offset': 501, 'next': 502, 'txs': [
                tx(1050, "CCC", {'type': 'bank/MsgSend', 'value': {}},
                   execute(SENDER, {'submit_vaa': {}})),
                tx(999, "DDD", execute(BRIDGE, {'submit_vaa': {}})),  # below range
            ]},
            {'offset': 502, 'next': None, 'txs': [
                tx(990, "EEE", execute(BRIDGE, {'submit_vaa': {}})),
            ]},
        ]
        return FakeTerraRpc(height=1100, pages=pages)

    @pytest.mark.asyncio
    async def test_paging_and_matching(self, build_watcher, store, rpc):
        watcher = build_watcher(terra_config(), rpc)
        assert isinstance(watcher, TerraWatcher)

        assert await watcher.poll_once() == CycleOutcome.CAUGHT_UP

        [event] = store.events(3)
        assert event.emitter_address == BRIDGE
        assert event.block_height == 1080
        assert event.tx_hash == "BBB"
        assert event.sequence_or_index == 1
        assert event.payload['method'] == "submit_vaa"
        assert event.payload['sender'] == SENDER

        # Second page reaches below height 1001, the third is never requested
        assert rpc.offsets == [None, 501]
        assert await store.get_cursor(3) == 1100

    @pytest.mark.asyncio
    async def test_failed_transaction_status(self, build_watcher, store):
        rpc = FakeTerraRpc(height=1100, pages=[
            {'offset': None, 'next': None, 'txs': [
                tx(1010, "FFF", execute(BRIDGE, {'submit_vaa': {}}), code=5),
            ]},
        ])

        await build_watcher(terra_config(), rpc).poll_once()

        assert store.events(3)[0].payload['status'] == "failed"

    @pytest.mark.asyncio
    async def test_any_method_when_unscoped(self, build_watcher, store, rpc):
        config = terra_config(methods_by_address={BRIDGE: frozenset()})

        await build_watcher(config, rpc).poll_once()

        assert [(e.tx_hash, e.sequence_or_index) for e in store.events(3)] == [("BBB", 0), ("BBB", 1)]

    @pytest.mark.asyncio
    async def test_empty_history(self, build_watcher, store):
        rpc = FakeTerraRpc(height=1100, pages=[{'offset': None, 'next': None, 'txs': []}])

        await build_watcher(terra_config(), rpc).poll_once()

        assert store.events(3) == []
        assert await store.get_cursor(3) == 1100


class TestTerraCatchUp:
    """Paging cost while far behind the tip"""

    def history(self, top: int) -> FakeTerraRpc:
        heights = list(range(top, 0, -1))
        pages = []
        for start in range(0, len(heights), 10):
            chunk = heights[start:start + 10]
            pages.append({
                'offset': start or None,
                'next': start + 10 if start + 10 < len(heights) else None,
                'txs': [tx(h, f"TX{h}", execute(BRIDGE, {'submit_vaa': {}})) for h in chunk],
            })
        return FakeTerraRpc(height=top, pages=pages)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("top", [3000, 6000])
    async def test_pages_per_cycle_follow_the_window(self, build_watcher, store, top):
        rpc = self.history(top)
        config = terra_config(size_blocks=100, initial_block=999, page_size=10, requests_per_second=100000)
        watcher = build_watcher(config, rpc)

        assert await watcher.poll_once() == CycleOutcome.BEHIND

        for _ in range(3):
            requests_before = len(rpc.offsets)
            assert await watcher.poll_once() == CycleOutcome.BEHIND
            assert len(rpc.offsets) - requests_before <= 100 // 10 + 2

        # Every height in [1000, 1399] exactly once, oldest first
        assert [e.block_height for e in store.events(3)] == list(range(1000, 1400))
