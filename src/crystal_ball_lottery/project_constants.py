"""
Deployment-wide parameters for the crystal ball lottery.

These values define the public rules of the distribution.
Changing them changes who can win and how much, and MUST be publicly announced.
"""

# BNB Smart Chain (MAINNET)
CHAIN_ID = 56

# Token whose holders receive crystal balls
TOKEN_CONTRACT = "0xa1164E3ee1396CC507872842F3BB44B393755df3"

# Covalent holder snapshot endpoint
COVALENT_API_URL = "https://api.covalenthq.com/v1"
COVALENT_PAGE_SIZE = 1000
COVALENT_MAX_PAGES = 100

# Balls needed for a payout; the count resets to zero when it is reached
BALL_THRESHOLD = 3

# Prize is a uniform fraction of the custodial balance in [MIN, MAX)
PAYOUT_FRACTION_MIN = 0.25
PAYOUT_FRACTION_MAX = 1.00

# Fixed-point scale applied to the fraction before it touches wei amounts
PAYOUT_SCALE = 10**6

# Gas for a plain native value transfer
TRANSFER_GAS = 21000

WEI_PER_BNB = 10**18

# One crystal ball per minute
ROUND_INTERVAL_SECONDS = 60

# Default state file (replaced wholesale after every round)
STATE_PATH = "crystal_balls.json"

# Leaderboard length used by the CLI
LEADERBOARD_SIZE = 15
