"""Agency Inbox Conventions - IMMUTABLE

Canonical names, enumerations and limits that every part of the inbox
workspace agrees on. These values are NOT configurable.

Things that CAN be configured (via config.yaml):
- collaborator base URL and token
- cache TTL
- server bind address and API key

Things that CANNOT be configured (defined HERE):
- cache key namespaces
- channel types, thread states, priorities, routing targets
- normalization limits (pinned threads, shortcuts)
"""

# --- The Root ---
AGENCY_INBOX_HOME = "~/.agency-inbox"
CONFIG_FILENAME = "config.yaml"
# Full path: ~/.agency-inbox/config.yaml

# --- Cache ---
WORKSPACE_CACHE_NAMESPACE = "agency:inbox-workspace"
# Keys look like: agency:inbox-workspace:<workspace_id>
WORKSPACE_CACHE_TTL_SECONDS = 45

# --- Threads ---
CHANNEL_TYPES = ("direct", "project", "support", "talent")
THREAD_STATES = ("active", "archived")
THREAD_PRIORITIES = ("standard", "high")

# Lifecycle states derived from (state, unread)
LIFECYCLE_UNREAD_ACTIVE = "unread-active"
LIFECYCLE_READ_ACTIVE = "read-active"
LIFECYCLE_ARCHIVED = "archived"

# --- Support cases ---
SUPPORT_PRIORITIES = ("low", "medium", "high", "urgent")
SUPPORT_CLOSED_STATUSES = ("resolved", "closed")
DEFAULT_ESCALATION_PRIORITY = "high"

# --- Routing ---
ROUTING_TARGETS = ("operations", "finance", "success", "talent")
RULE_PRIORITIES = ("low", "medium", "high")
CONDITION_KINDS = ("contains",)

# --- Saved replies ---
SAVED_REPLY_CATEGORIES = ("general", "sales", "support", "talent")
DEFAULT_SAVED_REPLY_CATEGORY = "general"
SHORTCUT_LIMIT = 12

# --- Preferences ---
PINNED_THREAD_LIMIT = 24
DEFAULT_TIMEZONE = "UTC"
DAY_KEYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

# --- Automations ---
AUTOMATION_TOGGLES = ("autoEscalateUrgent", "shareDailyDigest", "notifyTalent")
AUTOMATION_EXTENSIONS = ("escalationMatrix", "routing", "talentAlerts")

# --- Server ---
SERVER_DEFAULT_PORT = 8420
ACTOR_HEADER = "X-Actor-Id"
