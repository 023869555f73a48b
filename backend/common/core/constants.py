from enum import Enum


class Environment(str, Enum):
    """Environment profiles."""

    LOCAL = "local"
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


# Header carrying shared-secret API keys (admin routes and the license API)
API_KEY_HEADER = "X-API-Key"
