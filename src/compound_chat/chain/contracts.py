"""Minimal ABIs for the ERC-20 tokens and the Comet lending market."""

from __future__ import annotations


def _fn(name: str, inputs: list[tuple[str, str]], outputs: list[str], view: bool) -> dict:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
        "stateMutability": "view" if view else "nonpayable",
    }


ERC20_ABI = [
    _fn("balanceOf", [("account", "address")], ["uint256"], view=True),
    _fn("allowance", [("owner", "address"), ("spender", "address")], ["uint256"], view=True),
    _fn("decimals", [], ["uint8"], view=True),
    _fn("symbol", [], ["string"], view=True),
    _fn("approve", [("spender", "address"), ("amount", "uint256")], ["bool"], view=False),
    _fn("transfer", [("to", "address"), ("amount", "uint256")], ["bool"], view=False),
]

COMET_ABI = [
    _fn("supply", [("asset", "address"), ("amount", "uint256")], [], view=False),
    _fn("withdraw", [("asset", "address"), ("amount", "uint256")], [], view=False),
    _fn("balanceOf", [("account", "address")], ["uint256"], view=True),
    _fn("baseToken", [], ["address"], view=True),
    _fn("getUtilization", [], ["uint256"], view=True),
    _fn("getSupplyRate", [("utilization", "uint256")], ["uint64"], view=True),
]

SECONDS_PER_YEAR = 60 * 60 * 24 * 365
RATE_SCALE = 10**18
