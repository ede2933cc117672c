"""Shared constants and static lookup tables.

Category merge rules and curated site lists live here as plain tables so they
can be audited and tested without touching the aggregation code.
"""

# --- Identity ---

LOCAL_USER_ID = "local"

# Placeholder sent by editor plugins that could not detect a project
UNSET_PROJECT_TOKEN = "<<PROJECT>>"

# --- Time ---

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
SECONDS_PER_WEEK = 604800
SECONDS_PER_MONTH = 2592000   # 30 days
SECONDS_PER_YEAR = 31536000   # 365 days
MINUTES_PER_HOUR = 60

# --- Categories ---

CATEGORY_CODING = "coding"
CATEGORY_BROWSING = "browsing"
CATEGORY_DEBUGGING = "debugging"
CATEGORY_COMMUNICATING = "communicating"
CATEGORY_DESIGNING = "designing"

DISPLAY_CATEGORIES = (
    CATEGORY_CODING,
    CATEGORY_COMMUNICATING,
    CATEGORY_BROWSING,
    CATEGORY_DESIGNING,
)

# Synonym -> canonical category. Minutes of a synonym are added to the canonical entry.
CATEGORY_SYNONYMS: dict[str, str] = {
    "communication": CATEGORY_COMMUNICATING,
}

# Accessor category -> categories whose minutes are folded into it on read.
# The stored label of the folded category is left untouched.
CATEGORY_FOLDS: dict[str, tuple[str, ...]] = {
    CATEGORY_CODING: (CATEGORY_DEBUGGING,),
}

# --- Display normalization ---

# Progress bars are drawn against a 3 hour day. Not a cap.
DISPLAY_BASELINE_MINUTES = 3 * MINUTES_PER_HOUR

DEFAULT_TOP_N = 3
DEFAULT_RECENT_LIMIT = 10
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50

# --- Flow detection ---

# Active minutes closer than this are part of the same flow
FLOW_MAX_GAP_MINUTES = 5
# Minimum active minutes for a flow to count as deep work
FLOW_MIN_MINUTES = 20

# --- Curated entity lists (case-insensitive substring match) ---

SOCIAL_MEDIA_SITES = (
    "facebook",
    "instagram",
    "twitter",
    "linkedin",
    "tiktok",
    "snapchat",
    "youtube",
    "twitch",
    "pinterest",
)

GROWTH_SITES = (
    "mozilla",
    "stackoverflow",
    "devdocs",
    "coursera",
    "udemy",
    "codeacademy",
    "theodinproject",
    "freecodecamp",
    "daily.dev",
    "dev.to",
    "hackernews",
    "leetcode",
    "hackerank",
)

# --- Storage ---

DB_FILENAME = "pulsemeter.db"
LOG_FILENAME = "pulsemeter.log"
SCHEMA_VERSION = 1
