import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_JWT_SECRET = "your-super-secret-key"


def _env(*names: str, default: Optional[str] = None) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


@dataclass
class GoogleOAuthConfig:
    """Credentials for the optional "Sign in with Google" flow."""
    client_id: str
    client_secret: str
    callback_url: str = "/api/auth/google/callback"
    authorize_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url: str = "https://oauth2.googleapis.com/token"
    userinfo_url: str = "https://openidconnect.googleapis.com/v1/userinfo"
    scope: str = "openid email profile"


def _google_oauth_from_env() -> Optional[GoogleOAuthConfig]:
    client_id = os.getenv("GOOGLE_CLIENT_ID")
    client_secret = os.getenv("GOOGLE_CLIENT_SECRET")
    if not (client_id and client_secret):
        return None
    return GoogleOAuthConfig(
        client_id=client_id,
        client_secret=client_secret,
        callback_url=os.getenv("GOOGLE_CALLBACK_URL", "/api/auth/google/callback"),
    )


@dataclass
class Settings:
    """
    Application settings.

    Every value defaults to the matching environment variable, so
    ``Settings()`` reads the process environment and tests can pass
    overrides as keyword arguments.
    """
    database_url: str = field(default_factory=lambda: _env("DATABASE_URL", default="sqlite:///./kirakira.db"))
    jwt_secret: str = field(default_factory=lambda: _env("JWT_SECRET", "NEXTAUTH_SECRET", default=DEFAULT_JWT_SECRET))
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = 7
    cookie_name: str = "token"
    environment: str = field(default_factory=lambda: _env("ENV", "NODE_ENV", default="development"))
    frontend_url: str = field(default_factory=lambda: _env("FRONTEND_URL", default="http://localhost:3003"))
    upload_dir: str = field(default_factory=lambda: _env("UPLOAD_DIR", default="uploads"))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", default="INFO"))
    google_oauth: Optional[GoogleOAuthConfig] = field(default_factory=_google_oauth_from_env)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def oauth_enabled(self) -> bool:
        return self.google_oauth is not None
