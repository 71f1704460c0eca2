"""Known contracts and tokens on Base mainnet."""

from ..core.types import FeeTier, MonitoredPair, TokenRef

BASE_CHAIN_ID = 8453
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT256 = 2**256 - 1
MAX_UINT160 = 2**160 - 1

# Preferred order; earlier tiers win liquidity ties.
DEFAULT_FEE_TIERS: tuple[FeeTier, ...] = (
    FeeTier.LOW,
    FeeTier.MEDIUM,
    FeeTier.HIGH,
    FeeTier.LOWEST,
)

TOKENS = {
    "USDC": TokenRef(
        address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        symbol="USDC",
        decimals=6,
        name="USD Coin",
    ),
    "CBBTC": TokenRef(
        address="0xcbB7C0000aB88B473b1f5aFd9ef808440eed33Bf",
        symbol="cbBTC",
        decimals=8,
        name="Coinbase Wrapped BTC",
    ),
    "WETH": TokenRef(
        address="0x4200000000000000000000000000000000000006",
        symbol="WETH",
        decimals=18,
        name="Wrapped Ether",
    ),
    "AERO": TokenRef(
        address="0x940181a94A35A4569E4529A3CDfB74e38FD98631",
        symbol="AERO",
        decimals=18,
        name="Aerodrome",
    ),
}

# Pairs whose Swap events the monitor follows by default
MONITORED_PAIRS = (
    MonitoredPair(
        address="0x6cdcb1c4a4d1c3c6d054b27ac5b77e89eafb971d",
        token0="AERO",
        token1="USDC",
        token0_decimals=18,
        token1_decimals=6,
    ),
)

CONTRACTS = {
    "factory": "0x33128a8fC17869897dcE68Ed026d694621f6FDfD",
    "quoter": "0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a",
    "swap_router": "0x2626664c2603336E57B271c5C0b26F421741e481",
    "universal_router": "0x3fC91A3afd70395Cd496C647d5a6CC9D4B2b7FAD",
    "permit2": "0x000000000022D473030F116dDEE9F6B43aC78BA3",
    "portfolio_manager": "0x5311762b56488E6A5bE780910bAb20353A93FBdb",
    "ai_trader": "0x3d66bc567613a5E7D3b49bb3b8C7BFf53EEB82f6",
    "ai_oracle": "0x8e5aF933650BE4af3A58d949e5B817194aC5d91f",
}


def known_token(address: str) -> TokenRef | None:
    """Look up a registry token by address, case-insensitively."""
    lowered = address.lower()
    for token in TOKENS.values():
        if token.address.lower() == lowered:
            return token
    return None
