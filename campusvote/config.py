# campusvote/config.py
# Central place for settings and constants
import os

from dotenv import load_dotenv

load_dotenv()

# --- Database ---
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB", "campus_elections")
ELECTIONS_COLLECTION_NAME = "elections"
CANDIDATES_COLLECTION_NAME = "candidates"
BALLOTS_COLLECTION_NAME = "ballots"
FEED_COLLECTION_NAME = "activity_feed"

# Every storage call runs under this budget; exceeding it surfaces as Unavailable
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "5"))
MONGO_CONNECT_TIMEOUT_MS = int(os.getenv("MONGO_CONNECT_TIMEOUT_MS", "3000"))
MONGO_SERVER_SELECTION_TIMEOUT_MS = int(os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "3000"))

# --- Security & JWT ---
# Tokens are issued by the identity provider; we only verify them.
SECRET_KEY = os.getenv("SECRET_KEY", "a_very_secret_key_for_dev_only")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# --- Activity feed ---
FEED_DEFAULT_LIMIT = int(os.getenv("FEED_DEFAULT_LIMIT", "10"))
FEED_MAX_LIMIT = int(os.getenv("FEED_MAX_LIMIT", "50"))
# Websocket resync backoff after a failed feed snapshot (seconds)
FEED_RETRY_INITIAL_DELAY = float(os.getenv("FEED_RETRY_INITIAL_DELAY", "1"))
FEED_RETRY_MAX_DELAY = float(os.getenv("FEED_RETRY_MAX_DELAY", "30"))

# --- Dashboards ---
DASHBOARD_SECTION_SIZE = 5

# --- Candidate photos ---
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads/candidate_photos")
UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads/candidate_photos")

# --- HTTP ---
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
