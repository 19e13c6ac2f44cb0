"""GoHighLevel HTTP clients: OAuth token exchange and the v2 REST API."""

from .client import GHLAuthError, GHLClient, GHLError, GHLRateLimitError
from .oauth import OAuthClient, OAuthError, OAuthTokens

__all__ = [
    "GHLAuthError",
    "GHLClient",
    "GHLError",
    "GHLRateLimitError",
    "OAuthClient",
    "OAuthError",
    "OAuthTokens",
]
