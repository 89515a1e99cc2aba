"""
Application-wide constants.
Frequency types, step types, proof score factors and configuration defaults.
"""

# Frequency types
FREQUENCY_ONCE = "once"
FREQUENCY_DAILY = "daily"
FREQUENCY_WEEKLY = "weekly"
FREQUENCY_CUSTOM = "custom"
FREQUENCY_TYPES = (FREQUENCY_ONCE, FREQUENCY_DAILY, FREQUENCY_WEEKLY, FREQUENCY_CUSTOM)

# Weekdays are Sunday-based: 0 = Sunday ... 6 = Saturday
SUNDAY = 0
SATURDAY = 6
DAYS_IN_WEEK = 7

# Step types
STEP_BOOLEAN = "boolean"
STEP_COUNTER = "counter"
STEP_QNA = "qna"
STEP_TIMER = "timer"
STEP_SCALE = "scale"
STEP_WORKOUT = "workout"

# Exercise measurement types
MEASUREMENT_WEIGHT_REPS = "weight_reps"
MEASUREMENT_REPS = "reps"
MEASUREMENT_TIME = "time"
MEASUREMENT_DISTANCE_TIME = "distance_time"

# Ritual categories
RITUAL_CATEGORIES = (
    "wellness", "fitness", "productivity", "learning", "spiritual", "social", "other"
)

# Proof score
PROOF_SCORE_INITIAL = 1.0
PROOF_SCORE_COMPLETED_FACTOR = 1.01  # +1% for a fully completed day
PROOF_SCORE_MISSED_FACTOR = 0.99     # -1% for a day with any miss
PROOF_STREAK_AFTER_MISS = 1          # the day of the miss starts a new streak

# Proof score tiers (threshold, label), highest first
PROOF_TIER_LEGEND = "legend"
PROOF_TIER_MASTER = "master"
PROOF_TIER_EXPERT = "expert"
PROOF_TIER_SKILLED = "skilled"
PROOF_TIER_RISING = "rising"
PROOF_SCORE_TIERS = (
    (2.0, PROOF_TIER_LEGEND),
    (1.5, PROOF_TIER_MASTER),
    (1.2, PROOF_TIER_EXPERT),
    (1.1, PROOF_TIER_SKILLED),
)

# Formats
DATE_FORMAT = "%Y-%m-%d"
TIME_PATTERN = r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

# Configuration defaults
DEFAULT_DATABASE_URL = "sqlite:///./dayflow.db"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_LOG_DIRECTORY_PROD = "/var/log/dayflow"
DEFAULT_LOG_DIRECTORY_DEV = "./logs"
DEFAULT_LOG_FILE = "dayflow.log"
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
