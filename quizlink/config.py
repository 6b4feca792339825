"""
Configuration module for the application.
All configuration values are read from environment variables.
"""
import os
import secrets
import warnings


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        # Flask Configuration
        self.SECRET_KEY: str = os.getenv("SECRET_KEY", "")
        self.FLASK_ENV: str = os.getenv("FLASK_ENV", "")
        self.FLASK_DEBUG: bool = os.getenv("FLASK_DEBUG", "").lower() == "true"

        # Generate a development SECRET_KEY if not set and in development mode
        if not self.SECRET_KEY and self.FLASK_ENV != "production":
            self.SECRET_KEY = secrets.token_urlsafe(32)
            warnings.warn(
                "SECRET_KEY not set. Generated a temporary key for development. "
                "Set SECRET_KEY in your .env file for production!",
                UserWarning
            )

        # Database Configuration
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "")
        self.DB_USER: str = os.getenv("DB_USER", "")
        self.DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
        self.DB_HOST: str = os.getenv("DB_HOST", "")
        self.DB_PORT: str = os.getenv("DB_PORT", "")
        self.DB_NAME: str = os.getenv("DB_NAME", "")

        # Blueprint URL Prefix
        self.QUIZ_URL_PREFIX: str = os.getenv("QUIZ_URL_PREFIX", "/quiz")

        # Public base URL used to build share links for teachers
        self.APP_BASE_URL: str = os.getenv("APP_BASE_URL", "http://localhost:5000")

        # Shareable link issuance
        link_length = os.getenv("SHAREABLE_LINK_LENGTH", "")
        self.SHAREABLE_LINK_LENGTH: int = int(link_length) if link_length else 12
        max_draws = os.getenv("SHAREABLE_LINK_MAX_DRAWS", "")
        self.SHAREABLE_LINK_MAX_DRAWS: int = int(max_draws) if max_draws else 20

        # Taking sessions
        token_age = os.getenv("SESSION_TOKEN_MAX_AGE_SECONDS", "")
        self.SESSION_TOKEN_MAX_AGE_SECONDS: int = int(token_age) if token_age else 24 * 3600
        grace = os.getenv("TIME_LIMIT_GRACE_SECONDS", "")
        self.TIME_LIMIT_GRACE_SECONDS: int = int(grace) if grace else 0

        # Identity headers set by the upstream auth service
        self.IDENTITY_USER_ID_HEADER: str = os.getenv("IDENTITY_USER_ID_HEADER", "X-User-Id")
        self.IDENTITY_USER_NAME_HEADER: str = os.getenv("IDENTITY_USER_NAME_HEADER", "X-User-Name")
        self.IDENTITY_USER_EMAIL_HEADER: str = os.getenv("IDENTITY_USER_EMAIL_HEADER", "X-User-Email")

        # Users allowed to read any quiz's results
        admin_ids = os.getenv("ADMIN_USER_IDS", "")
        self.ADMIN_USER_IDS: list[str] = [u.strip() for u in admin_ids.split(",") if u.strip()]

        # Rate limiting for taker endpoints
        taker_requests = os.getenv("RATE_LIMIT_TAKER_REQUESTS", "")
        self.RATE_LIMIT_TAKER_REQUESTS: int = int(taker_requests) if taker_requests else 60
        taker_window = os.getenv("RATE_LIMIT_TAKER_WINDOW_SECONDS", "")
        self.RATE_LIMIT_TAKER_WINDOW_SECONDS: int = int(taker_window) if taker_window else 60

        # Session Configuration
        session_secure = os.getenv("SESSION_COOKIE_SECURE", "")
        self.SESSION_COOKIE_SECURE: bool = session_secure.lower() == "true" if session_secure else False
        session_httponly = os.getenv("SESSION_COOKIE_HTTPONLY", "")
        self.SESSION_COOKIE_HTTPONLY: bool = session_httponly.lower() == "true" if session_httponly else True
        self.SESSION_COOKIE_SAMESITE: str = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")

        # SQLAlchemy Configuration
        self.SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
        sqlalchemy_echo = os.getenv("SQLALCHEMY_ECHO", "")
        self.SQLALCHEMY_ECHO: bool = sqlalchemy_echo.lower() == "true" if sqlalchemy_echo else False

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Construct database URI from environment variables."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @property
    def USES_MYSQL(self) -> bool:
        return self.SQLALCHEMY_DATABASE_URI.startswith("mysql")

    def validate(self) -> None:
        """
        Validate required configuration values.
        Only enforces SECRET_KEY in production environment.
        """
        if not self.SECRET_KEY:
            if self.FLASK_ENV == "production":
                raise ValueError(
                    "SECRET_KEY environment variable is required in production. "
                    "Set it in your .env file or environment variables."
                )
        if self.SHAREABLE_LINK_LENGTH < 8:
            raise ValueError("SHAREABLE_LINK_LENGTH must be at least 8 characters")
        if self.SHAREABLE_LINK_MAX_DRAWS < 1:
            raise ValueError("SHAREABLE_LINK_MAX_DRAWS must be at least 1")


# Global config instance - will be re-initialized after load_dotenv()
config = Config()
