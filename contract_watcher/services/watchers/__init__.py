"""
Watchers Package

One polling watcher per chain family.
"""

from contract_watcher.services.watchers.base import ChainWatcher, CycleOutcome
from contract_watcher.services.watchers.evm import EvmStandardWatcher, EvmWatcher, method_selector
from contract_watcher.services.watchers.solana import SolanaWatcher
from contract_watcher.services.watchers.terra import TerraWatcher
from contract_watcher.services.watchers.aptos import AptosWatcher, normalize_aptos_address

__all__ = [
    'ChainWatcher',
    'CycleOutcome',
    'EvmWatcher',
    'EvmStandardWatcher',
    'method_selector',
    'SolanaWatcher',
    'TerraWatcher',
    'AptosWatcher',
    'normalize_aptos_address',
]
