"""Network definitions: RPC defaults, token and lending-market addresses."""

from __future__ import annotations

from dataclasses import dataclass, field

NATIVE_SYMBOL = "ETH"
NATIVE_DECIMALS = 18


@dataclass(frozen=True)
class Token:
    """A token the bot can move.

    ``address`` is ``None`` for the network's native coin.  ``market`` marks
    tokens the lending market accepts for supply/withdraw.
    """

    symbol: str
    address: str | None = None
    market: bool = False

    @property
    def is_native(self) -> bool:
        return self.address is None


@dataclass(frozen=True)
class Network:
    """An EVM network with a Compound III (Comet) market."""

    name: str
    chain_id: int
    rpc_url: str
    explorer_url: str
    market_address: str
    tokens: dict[str, Token] = field(default_factory=dict)
    testnet: bool = False

    @property
    def display_name(self) -> str:
        label = self.name.capitalize()
        return f"{label} Testnet" if self.testnet else label

    @property
    def market_token(self) -> Token:
        """The market's base asset."""
        return next(t for t in self.tokens.values() if t.market)

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        return f"{self.explorer_url}/address/{address}"


NETWORKS: dict[str, Network] = {
    "sepolia": Network(
        name="sepolia",
        chain_id=11155111,
        rpc_url="https://rpc.sepolia.org",
        explorer_url="https://sepolia.etherscan.io",
        market_address="0xAec1F48e02Cfb822Be958B68C7957156EB3F0b6e",
        tokens={
            "ETH": Token("ETH"),
            "USDC": Token("USDC", "0x94a9D9AC8a22534E3FaCa9F4e7F2E2cf85d5E4C8", market=True),
            "WETH": Token("WETH", "0x7b79995e5f793A07Bc00c21412e50Ecae098E7f9"),
        },
        testnet=True,
    ),
    "ethereum": Network(
        name="ethereum",
        chain_id=1,
        rpc_url="https://eth.llamarpc.com",
        explorer_url="https://etherscan.io",
        market_address="0xc3d688B66703497DAA19211EEdff47f25384cdc3",
        tokens={
            "ETH": Token("ETH"),
            "USDC": Token("USDC", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", market=True),
            "USDT": Token("USDT", "0xdAC17F958D2ee523a2206206994597C13D831ec7"),
            "DAI": Token("DAI", "0x6B175474E89094C44Da98b954EedeAC495271d0F"),
            "WETH": Token("WETH", "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"),
        },
    ),
}


def get_network(name: str) -> Network:
    """Get a network by name. Raises ``KeyError`` if not found."""
    if name not in NETWORKS:
        raise KeyError(
            f"Unknown network '{name}'. Available: {list_network_names()}"
        )
    return NETWORKS[name]


def list_network_names() -> list[str]:
    """Return the names of all supported networks."""
    return list(NETWORKS.keys())
