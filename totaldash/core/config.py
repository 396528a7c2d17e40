"""Configuration settings for the TotalDash billing engine.

Wraps environment variables and provides defaults.
"""

from typing import Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pydantic settings class.

    Attributes:
    ----------
        PROJECT_NAME (str): The name of the project.
        ENVIRONMENT (str): The deployment environment (local, dev, test, prod).
        LOCAL_DEVELOPMENT (bool): Whether the application is running locally.
        DEBUG (bool): Whether debug mode is enabled.
        LOG_LEVEL (str): The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        POSTGRES_HOST (str): The PostgreSQL server hostname.
        POSTGRES_PORT (int): The PostgreSQL server port.
        POSTGRES_DB (str): The PostgreSQL database name.
        POSTGRES_USER (str): The PostgreSQL username.
        POSTGRES_PASSWORD (str): The PostgreSQL password.
        SQLALCHEMY_ASYNC_DATABASE_URI (Optional[str]): The SQLAlchemy async database URI.
        RUN_ALEMBIC_MIGRATIONS (bool): Whether to run the alembic migrations on startup.
        AUTH_ENABLED (bool): Whether bearer tokens are verified.
        AUTH_JWT_SECRET (Optional[str]): Shared secret used to verify caller tokens.
        AUTH_JWT_ALGORITHM (str): JWT signing algorithm.
        AUTH_JWT_AUDIENCE (Optional[str]): Expected token audience, if any.
        FIRST_SUPERUSER (str): Email of the system caller used when auth is disabled.
        STRIPE_SECRET_KEY (Optional[str]): Stripe API credential.
        STRIPE_WEBHOOK_SECRET (Optional[str]): Shared secret for webhook signatures.
        STRIPE_WEBHOOK_TOLERANCE_SECONDS (int): Allowed clock skew for webhook timestamps.
        STRIPE_TIMEOUT_SECONDS (float): Upper bound for a single Stripe call.
        STRIPE_ENABLED (bool): Derived from the presence of STRIPE_SECRET_KEY.
        TRIAL_PLAN_NAME (str): Name of the entry-level plan new tenants trial on.
        APP_FULL_URL (str): Public URL of the dashboard, used in notification links.
        SUPPORT_EMAIL (str): Support address passed to notification templates.
        NOTIFICATION_SERVICE_URL (Optional[str]): Endpoint of the notification collaborator.
        NOTIFICATION_SERVICE_TOKEN (Optional[str]): Bearer token for the notification service.
        NOTIFICATION_TIMEOUT_SECONDS (float): Timeout for a notification request.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "TotalDash Billing"
    ENVIRONMENT: str = "local"
    LOCAL_DEVELOPMENT: bool = False

    # Debug configuration
    DEBUG: bool = False

    # Logging configuration
    LOG_LEVEL: str = "INFO"

    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "totaldash"
    POSTGRES_USER: str = "totaldash"
    POSTGRES_PASSWORD: str = "totaldash"
    SQLALCHEMY_ASYNC_DATABASE_URI: Optional[str] = Field(default=None, validate_default=True)

    RUN_ALEMBIC_MIGRATIONS: bool = False

    # Caller authentication
    AUTH_ENABLED: bool = False
    AUTH_JWT_SECRET: Optional[str] = Field(default=None, validate_default=True)
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: Optional[str] = None
    FIRST_SUPERUSER: str = "admin@totaldash.local"

    # Stripe configuration
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300
    STRIPE_TIMEOUT_SECONDS: float = 10.0
    STRIPE_ENABLED: Optional[bool] = Field(default=None, validate_default=True)

    # Billing rules
    TRIAL_PLAN_NAME: str = "Starter"

    APP_FULL_URL: str = "http://localhost:5173"
    SUPPORT_EMAIL: str = "support@totaldash.com"

    # Notification collaborator
    NOTIFICATION_SERVICE_URL: Optional[str] = None
    NOTIFICATION_SERVICE_TOKEN: Optional[str] = None
    NOTIFICATION_TIMEOUT_SECONDS: float = 5.0

    @field_validator("AUTH_JWT_SECRET", mode="before")
    def validate_auth_secret(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Require a token secret when AUTH_ENABLED is True.

        Args:
            v: The configured secret.
            info: Validation context containing all field values.

        Raises:
            ValueError: If AUTH_ENABLED is True and the secret is empty.
        """
        if info.data.get("AUTH_ENABLED", False) and not v:
            raise ValueError("AUTH_JWT_SECRET must be set when AUTH_ENABLED is True")
        return v

    @field_validator("STRIPE_ENABLED", mode="before")
    def derive_stripe_enabled(cls, v: Optional[bool], info: ValidationInfo) -> bool:
        """Stripe is enabled whenever a secret key is configured."""
        if v is not None and v != "":
            return v
        return bool(info.data.get("STRIPE_SECRET_KEY"))

    @field_validator("SQLALCHEMY_ASYNC_DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> str:
        """Build the SQLAlchemy database URI.

        Args:
        ----
            v (Optional[str]): An explicit URI, e.g. for tests.
            info (ValidationInfo): The validation context containing all field values.

        Returns:
        -------
            str: The SQLAlchemy async database URI.

        """
        if isinstance(v, str) and v:
            return v

        return (
            f"postgresql+asyncpg://{info.data.get('POSTGRES_USER')}:"
            f"{info.data.get('POSTGRES_PASSWORD')}@{info.data.get('POSTGRES_HOST')}:"
            f"{info.data.get('POSTGRES_PORT')}/{info.data.get('POSTGRES_DB')}"
        )


settings = Settings()
