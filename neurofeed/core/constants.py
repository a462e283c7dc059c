"""
Core constants used across the application. Keep these simple and documented.
"""

# Stored weights live in (PRUNE_THRESHOLD, MAX_TAG_WEIGHT]
MAX_TAG_WEIGHT: float = 40.0
PRUNE_THRESHOLD: float = 0.1

# Bounds enforced on collaborator-proposed deltas
ADJUSTMENT_DELTA_LIMIT: float = 10.0
DECAY_DELTA_FLOOR: float = -10.0

NEUTRAL_REASON: str = "neutral content"
ANALYSIS_FAILED_NOTE: str = "analysis failed"

GEMINI_CREDENTIAL_NAME: str = "gemini"
