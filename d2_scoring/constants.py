"""Constants for scoring and pass/fail evaluation."""

# Passing grade applied when no setting can be resolved
DEFAULT_PASSING_GRADE = 83.0

# Threshold cache
THRESHOLD_CACHE_TTL_SECONDS = 300  # 5 minutes

# Chart colours
PASS_COLOR = "#10b981"
FAIL_COLOR = "#ef4444"
