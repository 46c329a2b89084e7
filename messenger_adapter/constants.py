"""Adapter-wide constants.

This module centralizes the Graph API endpoints, wire-level names and limits
used across the adapter so there is a single source of truth.
"""

# =============================================================================
# Facebook Graph API
# =============================================================================

# Facebook Graph API version
FACEBOOK_GRAPH_API_VERSION = "v18.0"

# Graph API host
FACEBOOK_GRAPH_API_BASE_URL = "https://graph.facebook.com"

# Timeout for Facebook Graph API calls (seconds)
FACEBOOK_API_TIMEOUT_SECONDS = 10.0

# Messenger Platform hard limit for a text message (chars)
MAX_TEXT_MESSAGE_LENGTH_CHARS = 2000

# Maximum number of quick replies Messenger renders for one message
MAX_QUICK_REPLIES = 13

# Public profile fields requested by get_user_info()
USER_INFO_FIELDS = (
    "first_name",
    "last_name",
    "profile_pic",
    "locale",
    "timezone",
    "gender",
)

# =============================================================================
# Messenger profile fields
# =============================================================================

PROFILE_FIELD_GET_STARTED = "get_started"
PROFILE_FIELD_PERSISTENT_MENU = "persistent_menu"
PROFILE_FIELD_GREETING = "greeting"
PROFILE_FIELD_WHITELISTED_DOMAINS = "whitelisted_domains"
PROFILE_FIELD_ACCOUNT_LINKING_URL = "account_linking_url"
PROFILE_FIELD_TARGET_AUDIENCE = "target_audience"

# =============================================================================
# Webhook
# =============================================================================

# Default mount point of the webhook router
DEFAULT_WEBHOOK_PATH = "/webhook"

# Signature headers sent by Facebook with every callback
SIGNATURE_HEADER = "x-hub-signature"
SIGNATURE_256_HEADER = "x-hub-signature-256"

# Error bodies returned to Facebook (never include digests here)
WRONG_SIGNATURE_ERROR = "Error, wrong signature"
WRONG_VERIFY_TOKEN_ERROR = "Error, wrong validation token"
MALFORMED_PAYLOAD_ERROR = "Error, malformed payload"

# Graceful shutdown timeout (seconds) for in-flight update dispatch tasks
GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS = 30.0
