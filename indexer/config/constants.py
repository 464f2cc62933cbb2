"""
Indexer constants.

Centralized constants for the indexer.
"""

# ========================================================================
# BLOCKCHAIN CONSTANTS
# ========================================================================

DEFAULT_RPC_URL = "https://testnet-rpc.monad.xyz"

# Blockchain operation timeouts (in seconds)
BLOCKCHAIN_TIMEOUT = 30.0  # Standard RPC calls (chain id, block number)
BLOCKCHAIN_LONG_TIMEOUT = 60.0  # eth_getLogs over a full block range
BLOCKCHAIN_RPC_TIMEOUT = 30  # HTTP provider request timeout

# Blockchain retry settings
BLOCKCHAIN_MAX_RETRIES = 3

# Polling
DEFAULT_POLL_INTERVAL = 4.0
DEFAULT_MAX_BLOCK_RANGE = 2000

# Token amounts are 18-decimal fixed point
TOKEN_DECIMALS = 18

# ========================================================================
# STORE CONSTANTS
# ========================================================================

TOKENS_COLLECTION = "tokens"
TRADES_COLLECTION = "trades"
SELL_LOCKS_COLLECTION = "sellLocks"
SELL_UNLOCKS_COLLECTION = "sellUnlocks"
FARM_EVENTS_COLLECTION = "farmEvents"
STATS_COLLECTION = "stats"
FARM_STATS_DOC = "farm"
LEADERBOARDS_COLLECTION = "leaderboards"
ENTRIES_COLLECTION = "entries"
BURNS_COLLECTION = "burns"

# Optimistic transaction retries (in-memory backend; Firestore uses its own)
STORE_TRANSACTION_MAX_ATTEMPTS = 10
STORE_TRANSACTION_BASE_DELAY = 0.005  # seconds, doubled per retry

# ========================================================================
# DOMAIN CONSTANTS
# ========================================================================

FARM_POOL_NAMES = {
    0: "CTHU/MONAD LP",
    1: "CTHU/USDT LP",
    2: "MONAD/USDT LP",
    3: "Graduated Tokens",
}

# Leaderboard entry placeholders when the token document is unknown
UNKNOWN_TOKEN_NAME = "Unknown"
UNKNOWN_TOKEN_SYMBOL = "???"
