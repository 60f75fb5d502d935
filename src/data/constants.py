"""Fixed-point units and ledger-wide constants."""

# Ray (1e27): fixed-point unit for indices, rates and ratios
RAY = 10**27
HALF_RAY = RAY // 2

# Common precision (18 decimals) amounts are lifted to before converting
WAD_DECIMALS = 18

SECONDS_PER_YEAR = 365 * 24 * 3600

# Upper bound on ids handled by a single batched admin call
MAX_BATCH_SIZE = 50

# Highest decimal precision accepted for assets and currencies
MAX_DECIMALS = 18

# Default collateral asset (USDT, 6 decimals) and fiat currency (BOB, 2 decimals)
USDT = "0xdAC17F958D2ee523a2206206994597C13D831ec7"
USDT_DECIMALS = 6
BOB = "BOB"
BOB_DECIMALS = 2
