# ---- Codec parameters ---------------------------------------------------------

# Balances are fixed-point integers with 2 decimals: 100_000 == 1000.00 tokens.
DECIMALS = 2
MAX_BALANCE = 100_000

# Discrete-log cache
CACHE_CAPACITY = 1000
WARMUP_DENSE_LIMIT = 100
WARMUP_ROUND_STEP = 100
WARMUP_ROUND_LIMIT = 10_000

# Discrete-log search phases
DENSE_SCAN_LIMIT = 1000
CHUNK_SIZE = 1000
CHUNK_STRIDE = 100
ROUND_AMOUNTS = (
    100, 500, 1000, 1500, 2000, 2500, 3000, 5000,
    10_000, 15_000, 20_000, 25_000, 30_000, 40_000, 50_000,
    75_000, 100_000,
)
PROGRESS_INTERVAL = 10_000

# Wall-clock cap for one search; None disables it.
SEARCH_DEADLINE_SECONDS = 30.0
SEARCH_MAX_ITERATIONS = None

# ---- Messages the wallet signs ------------------------------------------------

REGISTRATION_MESSAGE = "eERC\nRegistering user with\n Address:{address}"
DECRYPT_BALANCE_MESSAGE = "Decrypt balance for {address}"

# Raw (r, s, v) signature length
SIGNATURE_LENGTH = 65
