"""Centralized user-facing text for webrisk-cache."""

from __future__ import annotations

class Styles:
    ERROR = "red"
    WARNING = "yellow"
    SUCCESS = "green"
    INFO = "dim"
    TITLE = "bold cyan"
    TABLE_HEADER = "bold magenta"


class Messages:
    APP_HELP = "webrisk-cache – a local mirror of the Web Risk threat lists."
    HELP_CATEGORY = "Threat list to synchronize: malware, social, unwanted or all."
    HELP_RESET = "Discard local state and request a full reset."
    HELP_CHECK_URI = "URL to check, or a hex-encoded 32-byte hash with --hash."
    HELP_CHECK_HASH = "Treat the argument as a full SHA-256 hash in hex."
    HELP_FIND_HASH = "Hex-encoded hash or hash prefix (4-32 bytes)."
    HELP_LOG_LEVEL = "Log level for this run (DEBUG, INFO, WARNING, ERROR)."
    HELP_SET_API_KEY = "Persist a Web Risk API key in ~/.webrisk-cache/config.json."
    HELP_CLEAR_API_KEY = "Remove the stored API key."
    HELP_SET_LOG_LEVEL = "Set the default log level."
    HELP_SET_SYNC_ATTEMPTS = "Set how many times a diff request is attempted."
    HELP_SET_SYNC_DELAY = "Set the fixed delay in seconds between diff attempts."
    HELP_SET_VERIFY_ATTEMPTS = "Set how many times a hash verification is attempted."
    HELP_SET_VERIFY_BASE_DELAY = "Set the first backoff delay in seconds for verification."
    HELP_SET_VERIFY_MAX_DELAY = "Set the backoff delay cap in seconds for verification."
    HELP_SET_MAX_DIFF_ENTRIES = "Limit entries per diff response (0 = unlimited)."
    HELP_SET_MAX_DATABASE_ENTRIES = "Limit entries per local database (0 = unlimited)."
    HELP_SHOW_CONFIG = "Show current configuration."

    ERROR_API_KEY_MISSING = (
        "Web Risk API key is missing or still set to the placeholder. "
        "Configure it via `webrisk-cache config --set-api-key <token>` or the "
        "WEBRISK_API_KEY environment variable."
    )
    ERROR_API_KEY_INVALID = (
        "Web Risk API key is invalid. Verify the stored token and try again."
    )
    ERROR_API_KEY_CONFLICT = "Use either --set-api-key or --clear-api-key, not both."
    ERROR_WEBRISK_PREFIX = "Web Risk API request failed: "
    ERROR_RESPONSE_TYPE_UNKNOWN = "Web Risk returned an unknown diff response type ({value})."
    ERROR_RICE_UNSUPPORTED = (
        "Web Risk returned Rice-encoded data although only RAW compression was requested."
    )
    ERROR_CATEGORY_INVALID = (
        "Threat type must be one of 'malware', 'social', 'unwanted', or 'all' (got {value!r})."
    )
    ERROR_CATEGORY_SINGLE = "Select a single threat type, not 'all'."
    ERROR_PREFIX_SIZE_INVALID = "Hash prefixes must be 4 to 32 bytes long (got {size})."
    ERROR_RAW_HASHES_MISALIGNED = (
        "Raw hash data of {length} bytes is not a multiple of the prefix size {size}."
    )
    ERROR_HASH_INVALID = "Hash must be bytes or a hex string (got {value!r})."
    ERROR_HASH_LENGTH = "Hash has an unsupported length of {length} bytes."
    ERROR_URI_TYPE = "URL must be a string; pass is_hash=True to check raw hashes."
    ERROR_URI_EMPTY = "URL must not be empty."
    ERROR_URI_HOST_MISSING = "URL {uri!r} has no host."
    ERROR_SYNC_EXHAUSTED = "Could not synchronize the {category} list: {reason}"
    ERROR_SYNC_EXHAUSTED_MANY = "Could not synchronize the following lists: {categories}."
    ERROR_CONFIG_JSON_INVALID = "Config payload must be a JSON object."
    ERROR_CONFIG_VALUE_INVALID = "Invalid value for config field '{field}'."
    ERROR_SHELL_COMMAND = "Invalid command: {value}"
    ERROR_SHELL_CHECK_USAGE = "Must provide input uri to check."
    ERROR_SHELL_TEST_USAGE = "Must provide prefix to check."

    WARNING_CHECKSUM_MISMATCH = "{category}: checksum does not match, requesting a full reset."
    WARNING_SYNC_FALLBACK = "{category}: sync failed ({reason}); retrying in {delay:.0f}s."
    WARNING_VERIFY_FAILED = "Verification of prefix {prefix} failed ({reason}); treating as safe."

    LOG_SYNC_APPLIED = "{category}: applied {kind}, {entries} prefixes."
    LOG_SYNC_SCHEDULED = "{category}: next sync in {delay:.0f}s."
    LOG_SYNC_SUPPRESSED = "{category}: sync already running, skipping scheduled run."
    LOG_CHECKSUM_NONCONVERGENT = "{category}: checksum still wrong after {attempts} attempts."
    LOG_REMOVAL_OUT_OF_RANGE = "{category}: ignoring removal index {index} (database holds {size})."

    INFO_API_SAVED = "API key saved."
    INFO_API_CLEARED = "API key cleared."
    INFO_LOG_LEVEL_SET = "Default log level set to {value}."
    INFO_RETRY_SET = "Retry settings updated."
    INFO_CONSTRAINTS_SET = "Diff constraints updated."
    INFO_CONFIG_SUMMARY = (
        "API key set: {api}\n"
        "Log level: {log_level}\n"
        "Sync retries: {sync_attempts} attempt(s), {sync_delay}s apart\n"
        "Verify retries: {verify_attempts} attempt(s), {verify_base}s to {verify_max}s backoff\n"
        "Fallback resync: {fallback}s\n"
        "Max diff entries: {max_diff}\n"
        "Max database entries: {max_database}"
    )
    INFO_SYNC_RUNNING = "Synchronizing {category} threat list(s)..."
    INFO_SHELL_WELCOME = "webrisk-cache shell: update, reset, check, test, debug, quit"
    SHELL_PROMPT = "<WebRisk Testing> "
    INFO_THREATS_FOUND = "Identified threats: {threats}"
    INFO_NO_THREATS = "No threats identified."
    INFO_HASH_FOUND = "Found in {location} (prefix length {length})."
    INFO_HASH_NOT_FOUND = "Not found in any local database."
    INFO_TOKENS_HEADER = "TOKENS:"
    INFO_DATABASE_HEADER = "{category} DB ({count} prefixes):"
    INFO_HITS_HEADER = "HITS:"
    INFO_SIZES_HEADER = "PREFIX SIZES:"

    TABLE_SYNC_TITLE = "Web Risk threat lists"
    TABLE_HEADER_SYNCED = "Synced"
    TABLE_HEADER_CATEGORY = "Category"
    TABLE_HEADER_ENTRIES = "Prefixes"
    TABLE_HEADER_SIZES = "Sizes"
    TABLE_HEADER_TOKEN = "Version token"
    TABLE_HEADER_NEXT_SYNC = "Next sync"
    TABLE_HEADER_KIND = "Kind"
    TABLE_HEADER_HASH = "Hash / prefix"
    TABLE_HEADER_THREATS = "Threats"
    TABLE_HEADER_EXPIRES = "Expires"
