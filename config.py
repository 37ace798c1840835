import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Application environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
DEBUG = ENVIRONMENT == "development"

# Database settings
DATABASE_URL = os.getenv("DATABASE_URL")
TESTING = os.getenv("TESTING", "false").lower() == "true"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Application settings
APP_NAME = "FanLink API"
APP_VERSION = "1.0.0"

# JWT settings
JWT_SECRET = os.getenv("JWT_SECRET", "your-secret-key")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_LEEWAY_SECONDS = int(os.getenv("JWT_LEEWAY_SECONDS", "60"))  # clock-skew tolerance
ACCESS_TOKEN_TTL_SECONDS = int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", str(7 * 24 * 3600)))

# Gem settings
MESSAGE_GEM_COST = int(os.getenv("MESSAGE_GEM_COST", "1"))  # Gems charged per fan-sent message
DEFAULT_FAN_GEMS = int(os.getenv("DEFAULT_FAN_GEMS", "100"))  # Starting balance for new fans
GEM_PURCHASE_MAX_AMOUNT = int(os.getenv("GEM_PURCHASE_MAX_AMOUNT", "10000"))

# Chat settings
CHAT_MAX_MESSAGE_LENGTH = int(os.getenv("CHAT_MAX_MESSAGE_LENGTH", "2000"))
CHAT_MAX_MESSAGES_PER_MINUTE = int(os.getenv("CHAT_MAX_MESSAGES_PER_MINUTE", "30"))
CONVERSATION_HISTORY_LIMIT = int(os.getenv("CONVERSATION_HISTORY_LIMIT", "500"))
MESSAGE_SANITIZE_ENABLED = os.getenv("MESSAGE_SANITIZE_ENABLED", "true").lower() == "true"

# WebSocket settings
WS_PUSH_TIMEOUT_SECONDS = float(os.getenv("WS_PUSH_TIMEOUT_SECONDS", "2.0"))  # Slow channels count as unreachable

# Redis settings
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
RATE_LIMIT_USE_REDIS = os.getenv("RATE_LIMIT_USE_REDIS", "true").lower() == "true"
