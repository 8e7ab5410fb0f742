"""
Centralized default values for the Orb engine.

This is the SINGLE SOURCE OF TRUTH for indicator periods, history
requirements and ledger timing. All modules should import from here
to ensure the live run and the backtest use identical parameters.
"""

# Instrument
DEFAULT_SYMBOL = "TSLA"

# History requirements
LOOKBACK_DAYS = 600  # Calendar days requested from the price source
MIN_BARS = 220  # Usable daily bars required (SMA 200 plus comparatives)

# BX-Trender: RSI(EMA(close, L1) - EMA(close, L2), L3) - 50
BX_SHORT_PERIOD = 5
BX_LONG_PERIOD = 20
BX_RSI_PERIOD = 5

# RSI (EMA-smoothed gains/losses)
RSI_PERIOD = 14

# SMI (Stochastic Momentum Index)
SMI_K_LENGTH = 10
SMI_D_LENGTH = 3
SMI_SMOOTH = 3

# Daily moving averages
EMA_SHORT_PERIOD = 9
EMA_LONG_PERIOD = 21
SMA_LONG_PERIOD = 200

# Weekly moving averages
WEEKLY_EMA_PERIODS = (9, 13, 21)

# Comparative lookback for rsi/smi deltas
CHANGE_LOOKBACK = 3

# Volume analytics
VOLUME_AVG_WINDOW = 20
PRICE_DEADBAND = 0.002  # |close - open| / open below this counts as flat

# Scoring
WATCHING_FACTOR = 0.3  # Watching setups contribute this share of their weight
ZONE_BUFFER = 0.04  # Distance to a zone boundary that earns a qualifier

# Trade ledger timing
FLICKER_REOPEN_DAYS = 7  # Calendar days a closed trade can be reopened
FIXED_HORIZON_DAYS = 20  # Minimum trading days held by fixed-horizon setups
GAUGE_TIMEOUT_DAYS = 60  # Gauge trades force-close after this many days

# Price fetch
FETCH_RETRY_DELAY_SECONDS = 5.0

# Grading tolerances
LEVEL_HOLD_TOLERANCE = 0.995  # Low within 0.5% of a level still counts as held/hit
LEVEL_TEST_TOLERANCE = 1.02  # Low within 2% above a level counts as a test

# Backtest
BACKTEST_START_INDEX = 250
BACKTEST_HORIZONS = (5, 10, 20, 60)
