"""Shared constants for scaffolder."""

# Item orchestration defaults
DEFAULT_PARALLEL_BATCH_SIZE = 5
DEFAULT_MAX_RETRIES = 3
DEFAULT_DELAY_BETWEEN_BATCHES_MS = 1000
DEFAULT_RETRY_BASE_DELAY_MS = 1000
DEFAULT_CALL_TIMEOUT_SECONDS = 60.0

# Relationship linking and read-back validation
LINK_BATCH_SIZE = 10
LINK_BATCH_DELAY_MS = 500
VALIDATION_BATCH_SIZE = 20
PARENT_RELATION = "parent"

# Platform phase
MAX_CONCURRENT_ENVIRONMENTS = 2
IDENTITY_STEPS = 3  # application, service principal, secret
DEFAULT_APP_PERMISSIONS = [
    "Dynamics CRM/user_impersonation",
    "PowerApps Service/User",
]

# Operations
DEFAULT_OPERATION_PREFIX = "proj"
OPERATION_ID_RANDOM_LEN = 9

# Templates
DEFAULT_TEMPLATE = "s-project"
TEMPLATE_SUFFIX = ".yaml"

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_INVALID = 2
