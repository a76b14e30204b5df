"""
RPC Services Package

Chain-specific RPC adapters and the rate-limited, retrying client wrapper.
"""

from contract_watcher.services.rpc.rate_limit import (
    RateLimiter,
    RateLimitedClient,
    RetryPolicy
)
from contract_watcher.services.rpc.evm import EvmRpcClient, to_hex
from contract_watcher.services.rpc.solana import SolanaRpcClient
from contract_watcher.services.rpc.terra import TerraRpcClient
from contract_watcher.services.rpc.aptos import AptosRpcClient

__all__ = [
    'RateLimiter',
    'RateLimitedClient',
    'RetryPolicy',
    'EvmRpcClient',
    'to_hex',
    'SolanaRpcClient',
    'TerraRpcClient',
    'AptosRpcClient',
]
