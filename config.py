"""
Configuration constants for the TracePing tool.
"""

# --- Discovery Configuration ---
MAX_HOPS = 50
DISCOVERY_TIMEOUT_MS = 3000 # Timeout for each TTL attempt during route discovery

# --- Continuous Ping Configuration ---
PING_TIMEOUT_MS = 1000 # Timeout for each per-hop probe
PING_FREQUENCY_MS = 1000 # Delay between probe cycles
PROBE_JOIN_GRACE_MS = 500 # Extra time a cycle waits for slow probe threads
RESOLVE_HOSTNAMES = False
LOOKUP_WORKERS = 4 # Threads for reverse DNS of hop addresses
ECHO_PAYLOAD = b"TracePing"

# --- Statistics Configuration ---
CALC_PERCENTILE = True # Keep raw samples so percentiles can be computed
PERCENTILE = 0.98
PERCENTILE_MIN_SAMPLES = 5
MIN_DEFAULT_VALUE = 99999999 # "Unset" marker for running minimums
NO_RESPONSE_ADDRESS = "*.*.*.*"

# --- Output Configuration ---
OUTPUT_DIRECTORY = "."
SAVE_FREQUENCY_S = 60 # 0 disables the CSV file
DISPLAY_FREQUENCY_MS = 5000
CSV_FILE_TEMPLATE = "traceping-{host}-{date}.csv"

# --- Logging Configuration ---
LOG_LEVEL = "error"
LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s'

# --- Scapy Configuration ---
SCAPY_VERBOSITY = 0 # Scapy verbosity (0=quiet)
