"""
Contract event ABIs.

Events-only ABIs for the three indexed contracts.
"""

from enum import Enum


class ContractKind(str, Enum):
    """Indexed contract kinds."""

    LAUNCHPAD = "launchpad"
    FARM = "farm"
    LEADERBOARD = "leaderboard"


def _event(name: str, *inputs: tuple[str, str, bool]) -> dict:
    return {
        "anonymous": False,
        "inputs": [
            {"indexed": indexed, "name": arg, "type": type_}
            for arg, type_, indexed in inputs
        ],
        "name": name,
        "type": "event",
    }


# CultistLaunchpad
LAUNCHPAD_ABI = [
    _event(
        "TokenSummoned",
        ("token", "address", True),
        ("creator", "address", True),
        ("name", "string", False),
        ("symbol", "string", False),
    ),
    _event(
        "TokenBought",
        ("token", "address", True),
        ("buyer", "address", True),
        ("monadIn", "uint256", False),
        ("tokensOut", "uint256", False),
        ("newPrice", "uint256", False),
    ),
    _event(
        "TokenSold",
        ("token", "address", True),
        ("seller", "address", True),
        ("tokensIn", "uint256", False),
        ("monadOut", "uint256", False),
        ("newPrice", "uint256", False),
    ),
    _event(
        "TokenGraduated",
        ("token", "address", True),
        ("pair", "address", False),
        ("liquidityMonad", "uint256", False),
        ("liquidityTokens", "uint256", False),
    ),
    _event(
        "SellLockPurchased",
        ("token", "address", True),
        ("buyer", "address", True),
        ("day", "uint256", False),
        ("cost", "uint256", False),
    ),
    _event(
        "SellLockUnlocked",
        ("token", "address", True),
        ("holder", "address", True),
        ("cost", "uint256", False),
    ),
]

# CthuFarm
FARM_ABI = [
    _event(
        name,
        ("user", "address", True),
        ("pid", "uint256", True),
        ("amount", "uint256", False),
    )
    for name in ("Deposit", "Withdraw", "EmergencyWithdraw", "Harvest")
]

# Leaderboard
LEADERBOARD_ABI = [
    _event(
        "BurnForRank",
        ("token", "address", True),
        ("burner", "address", True),
        ("amount", "uint256", False),
        ("weekNumber", "uint256", False),
    ),
]

ABIS = {
    ContractKind.LAUNCHPAD: LAUNCHPAD_ABI,
    ContractKind.FARM: FARM_ABI,
    ContractKind.LEADERBOARD: LEADERBOARD_ABI,
}
