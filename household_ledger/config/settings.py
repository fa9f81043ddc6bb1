"""
Configuration Management for Household Ledger

Every knob is read from the environment (or .env) through pydantic-settings.

DESIGN DECISION: One module owns every setting.
Reading it shows every outside service the ledger talks to. Services that
are optional (Gemini, Google Sheets) are loaded lazily so the app can run
in a degraded, local-only mode when they are not configured.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet holding the household tables"
    )

    # Tenant tables; entity collections use their own collection names
    families_sheet_name: str = Field(
        default="families",
        description="Name of the sheet for family profiles"
    )
    members_sheet_name: str = Field(
        default="members",
        description="Name of the sheet for family members"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini settings for categorization, insights and receipt parsing."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        min_length=1,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class AppSettings(BaseSettings):
    """
    Ledger-wide settings that are not tied to one outside service.

    Read from plain environment variables (no prefix) and .env.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    backend: str = Field(
        default="google_sheets",
        pattern="^(google_sheets|memory)$",
        description="Remote store backend"
    )

    # Device-local cache
    data_dir: str = Field(
        default=".household_ledger",
        description="Directory for device-local profile and preference cache"
    )

    # Entry defaults
    default_category: str = Field(
        default="Other",
        min_length=1,
        description="Category used when AI categorization is unavailable"
    )
    default_receipt_store: str = Field(
        default="Store",
        min_length=1,
        description="Store name used when a scanned receipt has none"
    )

    # Offers
    offer_check_interval_hours: int = Field(
        default=24,
        ge=1,
        description="Rolling window between automatic flyer checks"
    )

    # Sanity thresholds
    max_expense_amount: float = Field(
        default=10000.0,
        description="Expense total above which entry shows a warning"
    )

    # Receipt upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum receipt image size in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp",
        description="Comma-separated list of supported image formats"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Lower-cased format names from the comma-separated setting."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def offer_check_interval_ms(self) -> int:
        return self.offer_check_interval_hours * 60 * 60 * 1000


class Settings(BaseSettings):
    """
    Root settings container.

    Each property builds its sub-settings on access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Return the process-wide Settings instance.

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Report which groups of settings load without errors.

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries describing what is missing. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("google_sheets", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
