DEFAULT_HTTP_TIMEOUT = 15.0  # list/detail upstream calls
SECONDARY_HTTP_TIMEOUT = 3.0  # best-effort enrichment (TVL summaries)
RPC_TIMEOUT_S = 15.0  # per JSON-RPC request
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY_S = 0.25

SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

MAX_VAULT_ID_LENGTH = 100
ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
DECIMAL_STRING_PATTERN = r"^\d+(\.\d+)?$"

UNKNOWN_VAULT_AGE = "unknown"

# Cache TTLs (seconds)
CACHE_TTL_VAULTS_LIST = 15
CACHE_TTL_VAULT_DETAIL = 10
CACHE_TTL_USER_SPECIFIC = 5  # redemptions and other per-user reads
CACHE_TTL_HISTORICAL = 60
CACHE_TTL_ACTIVITY = 60
CACHE_TTL_PRICE = 30
CACHE_TTL_PROVIDER_INDEX = 30
CACHE_SWEEP_INTERVAL_S = 60.0

LAGOON_SUBGRAPH_PAGE_SIZE = 500
LAGOON_ACTIVITY_PAGE_SIZE = 100
