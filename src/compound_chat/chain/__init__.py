"""EVM chain access: network registry, ABIs, unit conversion, chain client."""

from compound_chat.chain.client import ChainClient, PendingTx, Web3ChainClient, is_valid_address
from compound_chat.chain.networks import NETWORKS, Network, Token, get_network

__all__ = [
    "ChainClient",
    "NETWORKS",
    "Network",
    "PendingTx",
    "Token",
    "Web3ChainClient",
    "get_network",
    "is_valid_address",
]
