"""Global constants for claimrunner.

Centralizes the runner's tunable defaults so the config models, the CLI
and the tests agree on them.
"""

# =============================================================================
# Admission
# =============================================================================

DEFAULT_CONCURRENT_BATCHES = 5
"""Maximum number of outstanding claims before new batches are blocked."""

# =============================================================================
# Batch execution
# =============================================================================

DEFAULT_BATCH_SIZE = 100
"""Jobs staked per claim when no batch size is given."""

MEMORY_RELEASE_INTERVAL = 50
"""Release ambient memory after every Nth processed job."""

DEFAULT_CLAIM_TIMEOUT_SECONDS = 300.0
"""Age after which the reference cleaner treats a claim as stale."""

# =============================================================================
# Display
# =============================================================================

TRUNCATE_ERROR_MESSAGE_CHARS = 200
"""Maximum characters of a job failure message shown on the console."""
