"""
Chain Presets

Wormhole token-bridge watchers for mainnet and testnet. A preset becomes an
active WatcherConfig only when its RPC URL is configured.
"""

from dataclasses import replace
from typing import Dict, FrozenSet, List, Tuple

from loguru import logger

from contract_watcher.core.config import Settings
from contract_watcher.models.watcher import ChainFamily, WatcherConfig

# Wormhole chain ids
CHAIN_ID_SOLANA = 1
CHAIN_ID_ETHEREUM = 2
CHAIN_ID_TERRA = 3
CHAIN_ID_BSC = 4
CHAIN_ID_POLYGON = 5
CHAIN_ID_AVALANCHE = 6
CHAIN_ID_OASIS = 7
CHAIN_ID_FANTOM = 10
CHAIN_ID_CELO = 14
CHAIN_ID_MOONBEAM = 16
CHAIN_ID_APTOS = 22
CHAIN_ID_ARBITRUM = 23
CHAIN_ID_OPTIMISM = 24

# Token bridge redeem methods
METHOD_COMPLETE_TRANSFER = "0xc6878519"
METHOD_COMPLETE_AND_UNWRAP_ETH = "0xff200cde"
METHOD_COMPLETE_TRANSFER_WITH_PAYLOAD = "0xc3f511c1"
METHOD_COMPLETE_AND_UNWRAP_ETH_WITH_PAYLOAD = "0x1c8475e4"

EVM_REDEEM_METHODS: FrozenSet[str] = frozenset({
    METHOD_COMPLETE_TRANSFER,
    METHOD_COMPLETE_AND_UNWRAP_ETH,
    METHOD_COMPLETE_TRANSFER_WITH_PAYLOAD,
    METHOD_COMPLETE_AND_UNWRAP_ETH_WITH_PAYLOAD,
})

# Solana token bridge instruction discriminators
SOLANA_REDEEM_METHODS: FrozenSet[str] = frozenset({
    "2",   # complete_native
    "3",   # complete_wrapped
    "9",   # complete_native_with_payload
    "10",  # complete_wrapped_with_payload
})

TERRA_REDEEM_METHODS: FrozenSet[str] = frozenset({"submit_vaa"})

APTOS_REDEEM_METHODS: FrozenSet[str] = frozenset({
    "complete_transfer::submit_vaa_entry",
    "complete_transfer::submit_vaa_and_register_entry",
})

APTOS_TOKEN_BRIDGE = "0x576410486a2da45eee6c949c995670112ddf2fbeedab20350d506328eefc9d4f"


def _evm(
    chain_id: int,
    name: str,
    address: str,
    initial_block: int,
    size_blocks: int = 100,
    wait_seconds: float = 10.0
) -> WatcherConfig:
    return WatcherConfig(
        chain_id=chain_id,
        name=name,
        family=ChainFamily.EVM,
        rpc_url="",
        methods_by_address={address.lower(): EVM_REDEEM_METHODS},
        size_blocks=size_blocks,
        wait_seconds=wait_seconds,
        initial_block=initial_block,
    )


def _evm_standard(
    chain_id: int,
    name: str,
    address: str,
    initial_block: int,
    block_tag: str = "latest",
    size_blocks: int = 50,
    wait_seconds: float = 10.0
) -> WatcherConfig:
    return WatcherConfig(
        chain_id=chain_id,
        name=name,
        family=ChainFamily.EVM_STANDARD,
        rpc_url="",
        methods_by_address={address.lower(): EVM_REDEEM_METHODS},
        size_blocks=size_blocks,
        wait_seconds=wait_seconds,
        initial_block=initial_block,
        block_tag=block_tag,
    )


def _solana(address: str, initial_block: int) -> WatcherConfig:
    return WatcherConfig(
        chain_id=CHAIN_ID_SOLANA,
        name="solana",
        family=ChainFamily.SOLANA,
        rpc_url="",
        methods_by_address={address: SOLANA_REDEEM_METHODS},
        size_blocks=100,
        wait_seconds=10.0,
        initial_block=initial_block,
    )


def _aptos(initial_block: int) -> WatcherConfig:
    return WatcherConfig(
        chain_id=CHAIN_ID_APTOS,
        name="aptos",
        family=ChainFamily.APTOS,
        rpc_url="",
        methods_by_address={APTOS_TOKEN_BRIDGE: APTOS_REDEEM_METHODS},
        size_blocks=50,
        wait_seconds=5.0,
        initial_block=initial_block,
    )


# Initial heights sit near each token bridge deployment
MAINNET: Tuple[WatcherConfig, ...] = (
    _evm(CHAIN_ID_ETHEREUM, "ethereum", "0x3ee18B2214AFF97000D974cf647E7C347E8fa585", 13_800_000),
    _evm(CHAIN_ID_POLYGON, "polygon", "0x5a58505a96D1dbf8dF91cB21B54419FC36e93fdE", 20_300_000),
    _evm(CHAIN_ID_BSC, "bsc", "0xB6F6D86a8f9879A9c87f643768d9efc38c1Da6E7", 13_000_000),
    _evm(CHAIN_ID_FANTOM, "fantom", "0x7C9Fc5741288cDFdD83CeB07f3ea7e22618D79D2", 25_000_000),
    _evm(CHAIN_ID_AVALANCHE, "avalanche", "0x0e082F06FF657D94310cB8cE8B0D9a04541d8052", 8_500_000),
    _solana("wormDTUJ6AWPNvk59vGQbDvGJmqbDTdgWgAqcLBCgUb", 183_000_000),
    WatcherConfig(
        chain_id=CHAIN_ID_TERRA,
        name="terra",
        family=ChainFamily.TERRA,
        rpc_url="",
        methods_by_address={"terra10nmmwe8r3g99a9newtqa7a75xfgs2e8z87r2sf": TERRA_REDEEM_METHODS},
        size_blocks=100,
        wait_seconds=10.0,
        initial_block=3_911_168,
    ),
    _aptos(1_000_000),
    _evm_standard(CHAIN_ID_OASIS, "oasis", "0x5848C791e09901b40A9Ef749f2a6735b418d7564", 1_700_000),
    _evm_standard(CHAIN_ID_MOONBEAM, "moonbeam", "0xB1731c586ca89a23809861c6103F0b96B3F57D92",
                  1_500_000, block_tag="finalized"),
    _evm_standard(CHAIN_ID_CELO, "celo", "0x796Dff6D74F3E27060B71255Fe517BFb23C93eed", 12_900_000),
    _evm_standard(CHAIN_ID_ARBITRUM, "arbitrum", "0x0b2402144Bb366A632D14B83F244D2e0e21bD39c",
                  60_000_000, block_tag="finalized", size_blocks=200),
    _evm_standard(CHAIN_ID_OPTIMISM, "optimism", "0x1D68124e65faFC907325e3EDbF8c4d84499DAa8b",
                  70_000_000, block_tag="finalized", size_blocks=200),
)

TESTNET: Tuple[WatcherConfig, ...] = (
    _evm(CHAIN_ID_ETHEREUM, "ethereum", "0xF890982f9310df57d00f659cf4fd87e65adEd8d7", 8_000_000),
    _evm(CHAIN_ID_POLYGON, "polygon", "0x377D55a7928c046E18eEbb61977e714d2a76472a", 30_000_000),
    _evm(CHAIN_ID_BSC, "bsc", "0x9dcF9D205C9De35334D646BeE44b2D2859712A09", 25_000_000),
    _evm(CHAIN_ID_FANTOM, "fantom", "0x599CEa2204B4FaECd584Ab1F2b6aCA137a0afbE8", 12_000_000),
    _evm(CHAIN_ID_AVALANCHE, "avalanche", "0x61E44E506Ca5659E6c0bba9b678586fA2d729756", 15_000_000),
    _solana("DZnkkTmCiFWfYTfT41X3Rd1kDgozqzxWaHqsw6W4x2oe", 190_000_000),
    _aptos(1_000_000),
)

PRESETS: Dict[str, Tuple[WatcherConfig, ...]] = {
    "mainnet": MAINNET,
    "testnet": TESTNET,
}


def build_watcher_configs(settings: Settings) -> List[WatcherConfig]:
    """
    Bind the presets of the configured network to their endpoints.

    Args:
        settings: Application settings (P2P_NETWORK, <CHAIN>_URL,
            <CHAIN>_REQUESTS_PER_SECOND, RPC_REQUEST_TIMEOUT)

    Returns:
        Configs for every preset with a configured URL
    """
    presets = PRESETS.get(settings.P2P_NETWORK.lower())
    if presets is None:
        logger.warning(f"Unknown network {settings.P2P_NETWORK!r}, no watchers configured")
        return []

    configs: List[WatcherConfig] = []
    for preset in presets:
        prefix = preset.name.upper()
        url = getattr(settings, f"{prefix}_URL", None)
        if not url:
            logger.info(f"No {prefix}_URL configured, skipping {preset.name} watcher")
            continue

        configs.append(replace(
            preset,
            rpc_url=url,
            requests_per_second=getattr(settings, f"{prefix}_REQUESTS_PER_SECOND"),
            request_timeout=settings.RPC_REQUEST_TIMEOUT,
        ))

    logger.info(f"{len(configs)} of {len(presets)} {settings.P2P_NETWORK} watchers configured")
    return configs
