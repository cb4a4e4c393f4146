"""Constants for timemachine."""

# Repository marker directory
TIMEMACHINE_DIR = ".timemachine"

# Files and directories (inside TIMEMACHINE_DIR)
METADATA_FILE = "metadata.json"
CONTENTS_DIR = "contents"
CONFIG_FILE = "config.yaml"
LOCK_FILE = "lock"

# Orphaned blobs are swept automatically only past this many bytes (100 MiB)
AUTO_CLEANUP_THRESHOLD_BYTES = 100 * 1024 * 1024

# zstd level used for new blobs
DEFAULT_COMPRESSION_LEVEL = 3

# Seconds to wait for the repository lock
DEFAULT_LOCK_TIMEOUT = 30

# Version
TIMEMACHINE_VERSION = "0.1.1"

# Blob names and recorded hashes: lowercase sha256 hex, no scheme prefix
SHA256_HEX_PATTERN = r"^[0-9a-f]{64}$"

# Scratch files written into the working directory; scans skip them
WORKING_TEMP_PREFIX = ".timemachine-tmp-"
