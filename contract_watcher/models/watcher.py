"""Watcher configuration and runtime state"""

import enum
from dataclasses import dataclass, field
from typing import FrozenSet, Mapping


class ChainFamily(str, enum.Enum):
    """Blockchain families sharing an RPC/data model"""
    EVM = "evm"                    # log-indexed EVM chains
    EVM_STANDARD = "evm_standard"  # block-scanned EVM variants
    SOLANA = "solana"
    TERRA = "terra"
    APTOS = "aptos"


class WatcherState(str, enum.Enum):
    """Per-watcher lifecycle, owned by the Processor"""
    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass(frozen=True)
class WatcherConfig:
    """
    Configuration of one watched chain.

    `methods_by_address` maps every monitored contract address to the method
    selectors of interest; an empty set means any method.
    """
    chain_id: int
    name: str
    family: ChainFamily
    rpc_url: str
    methods_by_address: Mapping[str, FrozenSet[str]] = field(default_factory=dict)

    size_blocks: int = 100       # blocks per poll
    wait_seconds: float = 10.0   # poll interval
    initial_block: int = 0       # first run starts after this height
    requests_per_second: int = 10

    # EVM_STANDARD: block tag used as chain head (latest, safe, finalized)
    block_tag: str = "latest"
    # SOLANA, TERRA: page size of address-indexed transaction listings
    page_size: int = 100
    request_timeout: int = 30

    @property
    def addresses(self) -> FrozenSet[str]:
        return frozenset(self.methods_by_address)
