"""
Watcher Factory

Single construction point for every chain family:
- Validates a WatcherConfig (addresses, window, interval, budget)
- Normalizes monitored addresses to the form each watcher compares against
- Wires RPC adapter -> RateLimiter -> RateLimitedClient -> ChainWatcher

Construction performs no network I/O; clients connect lazily.
"""

import re
from dataclasses import replace
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple, Type

from eth_utils import is_address
from loguru import logger
from solders.pubkey import Pubkey

from contract_watcher.core.alerts import Alert, AlertClient, AlertPriority, AlertType, DummyAlertClient
from contract_watcher.core.cancellation import CancellationToken
from contract_watcher.core.errors import ConstructionError
from contract_watcher.core.metrics import Metrics
from contract_watcher.models.watcher import ChainFamily, WatcherConfig
from contract_watcher.services.checkpoint.base import CheckpointStore
from contract_watcher.services.rpc import (
    AptosRpcClient, EvmRpcClient, RateLimitedClient, RateLimiter,
    RetryPolicy, SolanaRpcClient, TerraRpcClient
)
from contract_watcher.services.watchers import (
    AptosWatcher, ChainWatcher, EvmStandardWatcher, EvmWatcher,
    SolanaWatcher, TerraWatcher, normalize_aptos_address
)

TERRA_ADDRESS = re.compile(r"^terra1[0-9a-z]{38,58}$")
APTOS_ADDRESS = re.compile(r"^(0x)?[0-9a-fA-F]{1,64}$")


class WatcherPair(NamedTuple):
    """A watcher and the rate-limited client it owns"""
    watcher: ChainWatcher
    client: RateLimitedClient


def _evm_address(address: str) -> str:
    if not is_address(address):
        raise ValueError(f"invalid EVM address {address!r}")
    return address.lower()


def _solana_address(address: str) -> str:
    try:
        return str(Pubkey.from_string(address))
    except Exception as e:
        raise ValueError(f"invalid Solana address {address!r}") from e


def _terra_address(address: str) -> str:
    address = address.lower()
    if not TERRA_ADDRESS.match(address):
        raise ValueError(f"invalid Terra address {address!r}")
    return address


def _aptos_address(address: str) -> str:
    if not APTOS_ADDRESS.match(address):
        raise ValueError(f"invalid Aptos address {address!r}")
    return normalize_aptos_address(address)


# family -> (rpc adapter, watcher class, address normalizer)
FAMILIES: Dict[ChainFamily, Tuple[Callable[..., Any], Type[ChainWatcher], Callable[[str], str]]] = {
    ChainFamily.EVM: (EvmRpcClient, EvmWatcher, _evm_address),
    ChainFamily.EVM_STANDARD: (EvmRpcClient, EvmStandardWatcher, _evm_address),
    ChainFamily.SOLANA: (SolanaRpcClient, SolanaWatcher, _solana_address),
    ChainFamily.TERRA: (TerraRpcClient, TerraWatcher, _terra_address),
    ChainFamily.APTOS: (AptosRpcClient, AptosWatcher, _aptos_address),
}


class WatcherFactory:
    """
    Builds watchers that share one store, metrics sink and cancellation token.

    Example:
        ```python
        factory = WatcherFactory(store, token, metrics=metrics, alerts=alerts)

        pair = factory.create(config)           # raises ConstructionError
        pairs, errors = factory.create_all(configs)
        ```
    """

    def __init__(
        self,
        store: CheckpointStore,
        token: CancellationToken,
        metrics: Optional[Metrics] = None,
        alerts: Optional[AlertClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        rpc_factory: Optional[Callable[[WatcherConfig], Any]] = None
    ):
        self.store = store
        self.token = token
        self.metrics = metrics or Metrics()
        self.alerts = alerts or DummyAlertClient()
        self.retry_policy = retry_policy or RetryPolicy()
        self.rpc_factory = rpc_factory or self._default_rpc

    @staticmethod
    def _default_rpc(config: WatcherConfig) -> Any:
        rpc_class = FAMILIES[config.family][0]
        return rpc_class(config.rpc_url, request_timeout=config.request_timeout)

    def validate(self, config: WatcherConfig) -> WatcherConfig:
        """
        Check a config and return a copy with normalized addresses.

        Raises:
            ConstructionError: If the config cannot produce a working watcher
        """
        def fail(reason: str):
            raise ConstructionError(reason, chain=config.name)

        if config.family not in FAMILIES:
            fail(f"unsupported chain family {config.family!r}")
        if not config.rpc_url:
            fail("missing RPC endpoint")
        if config.size_blocks <= 0:
            fail(f"window size must be positive, got {config.size_blocks}")
        if config.wait_seconds <= 0:
            fail(f"poll interval must be positive, got {config.wait_seconds}")
        if config.requests_per_second <= 0:
            fail(f"request budget must be positive, got {config.requests_per_second}")
        if config.page_size <= 0:
            fail(f"page size must be positive, got {config.page_size}")
        if config.initial_block < 0:
            fail(f"initial block must not be negative, got {config.initial_block}")
        if not config.methods_by_address:
            fail("no monitored addresses")

        normalize = FAMILIES[config.family][2]
        methods_by_address = {}
        for address, methods in config.methods_by_address.items():
            try:
                key = normalize(address)
            except ValueError as e:
                raise ConstructionError(
                    f"malformed address {address!r}", chain=config.name, cause=e
                ) from e
            if config.family in (ChainFamily.EVM, ChainFamily.EVM_STANDARD):
                methods = (m.lower() for m in methods)
            methods_by_address[key] = frozenset(methods)

        return replace(config, methods_by_address=methods_by_address)

    def create(self, config: WatcherConfig) -> WatcherPair:
        """
        Build the watcher for one chain.

        Raises:
            ConstructionError: On invalid configuration
        """
        config = self.validate(config)
        watcher_class = FAMILIES[config.family][1]

        client = RateLimitedClient(
            rpc=self.rpc_factory(config),
            limiter=RateLimiter(config.requests_per_second, self.token),
            chain=config.name,
            retry_policy=self.retry_policy,
            metrics=self.metrics,
            token=self.token,
        )
        watcher = watcher_class(client, self.store, config, self.metrics, self.token)

        logger.info(
            f"Built {config.family.value} watcher {config.name} "
            f"({len(config.addresses)} addresses, {config.requests_per_second} req/s)"
        )
        return WatcherPair(watcher, client)

    def create_all(
        self,
        configs: Sequence[WatcherConfig]
    ) -> Tuple[List[WatcherPair], List[ConstructionError]]:
        """Build every valid watcher; invalid configs are logged, alerted and skipped"""
        pairs: List[WatcherPair] = []
        errors: List[ConstructionError] = []

        for config in configs:
            try:
                pairs.append(self.create(config))
            except ConstructionError as e:
                errors.append(e)
                logger.error(f"Skipping watcher {config.name}: {e}")
                self.alerts.send(Alert(
                    type=AlertType.CONSTRUCTION_FAILED,
                    message=str(e),
                    chain=config.name,
                    priority=AlertPriority.MEDIUM,
                ))

        return pairs, errors
