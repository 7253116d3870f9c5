"""
Domain constants shared by the derivation engine.

Pure functions take these as keyword defaults so callers can override them.
"""

# Cohort lifecycle
ACTIVATION_THRESHOLD = 6  # paid members needed to activate a cohort
TRIAL_DAYS = 14
COUNTER_VISIBILITY_THRESHOLD = 4  # show "Activation: p/6" from this many paid members

# Daily deadline (civil time, IST)
DEADLINE_HOUR = 21
AT_RISK_MINUTES = 60

# Submission quality
MIN_BULLETS = 2
MIN_BULLET_LENGTH = 20
MAX_BULLET_LENGTH = 140
SIMILARITY_THRESHOLD = 0.70

# Leaderboard
LEADERBOARD_WINDOW_DAYS = 30
CALENDAR_DAYS = 30
TOP_TIER_PERCENTILE = 0.2
MIDDLE_TIER_PERCENTILE = 0.8

# Reminders
REMINDER_TOLERANCE_MINUTES = 5
DEFAULT_REMIND_MINUTES_BEFORE_CUTOFF = 90
DEFAULT_LAST_CALL_MINUTES_BEFORE_CUTOFF = 15
