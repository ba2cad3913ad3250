"""Global constants for the tourneydesk application."""

# Collection names
USERS_COLLECTION = "users"
TOURNAMENTS_COLLECTION = "tournaments"
REGISTRATIONS_COLLECTION = "registrations"
MATCHES_COLLECTION = "matches"
NOTIFICATIONS_COLLECTION = "notifications"

# Firestore caps a batch at 500 writes
FIRESTORE_BATCH_LIMIT = 400

# Scheduling defaults
MATCHES_PER_DAY = 2
ROUND_SPACING_DAYS = 3
DEFAULT_MATCH_DURATION = 60

# Seconds to wait for exclusive access to a tournament's match set
BRACKET_LOCK_TIMEOUT = 10.0

# Round-robin points
POINTS_WIN = 3
POINTS_DRAW = 1
POINTS_LOSS = 0

# Minimum team sizes by sport, other sports fall back to the default
MIN_TEAM_SIZES = {
    "Basketball": 5,
    "Football": 11,
    "Volleyball": 6,
    "Cricket": 11,
    "Rugby": 15,
    "Netball": 7,
}
DEFAULT_MIN_TEAM_SIZE = 2

SPORTS = [
    "Basketball",
    "Football",
    "Tennis",
    "Volleyball",
    "Cricket",
    "Rugby",
    "Netball",
    "Badminton",
    "Table Tennis",
    "Squash",
]

PAYMENT_REFERENCE_PREFIX = "TOURN"

# Email-related constants
SMTP_AUTH_ERROR_CODE = 534
