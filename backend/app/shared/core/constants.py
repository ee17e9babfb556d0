"""
Centralized Constants for the Content Automation Backend.
All hardcoded values should be defined here for easy maintenance.
"""

# ============================================
# API TIMEOUTS (in seconds)
# ============================================
TIMEOUT_CONTENT_SERVICE = 60.0        # Text/image generation can be slow
TIMEOUT_TELEGRAM_SEND = 20.0          # Single sendMessage / sendPhoto call
TIMEOUT_FIXTURES_API = 30.0           # Daily fixtures lookup

# ============================================
# RETRY SETTINGS (tenacity)
# ============================================
MAX_RETRY_ATTEMPTS = 3
RETRY_MIN_WAIT_SECONDS = 2
RETRY_MAX_WAIT_SECONDS = 10

# ============================================
# RUN BOUNDS
# ============================================
DEFAULT_RUN_DEADLINE_SECONDS = 240.0  # Whole trigger invocation
DEFAULT_ITEM_TIMEOUT_SECONDS = 45.0   # One rule / match / channel
RUN_LOG_RETENTION_DAYS = 7

# ============================================
# BATCH LIMITS
# ============================================
MAX_DUE_SCHEDULE_ITEMS = 50           # Scheduled content executed per tick
MAX_DUE_PUSH_ITEMS = 50               # Push queue items claimed per tick
CLAIM_STALE_MINUTES = 15              # Claimed rows older than this belong to a dead run
TELEGRAM_MAX_MESSAGE_LENGTH = 4096

# ============================================
# DATABASE POOL SETTINGS
# ============================================
DB_POOL_SIZE = 5
DB_MAX_OVERFLOW = 10
DB_POOL_RECYCLE = 300
