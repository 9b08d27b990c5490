# envwatch/config/settings.py
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from the environment (and .env) once and
    passed explicitly to the app factory."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    app_name: str = "Smart Env Watch API"
    app_version: str = "1.0.0"

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db: str = Field(default="smart_env_watch", alias="MONGODB_DB")

    # Firebase Storage (mock mode when the credentials are absent)
    firebase_credentials: Optional[SecretStr] = Field(default=None, alias="FIREBASE_CREDENTIALS")
    firebase_storage_bucket: Optional[str] = Field(default=None, alias="FIREBASE_STORAGE_BUCKET")
    storage_folder: str = Field(default="smart-env-reports", alias="STORAGE_FOLDER")
    placeholder_image_url: str = Field(
        default="https://placehold.co/600x400?text=Smart+Env+Watch",
        alias="PLACEHOLDER_IMAGE_URL",
    )

    # Roboflow detection API (mock mode when the key is absent)
    roboflow_api_key: Optional[SecretStr] = Field(default=None, alias="ROBOFLOW_API_KEY")
    roboflow_model_id: str = Field(default="garbage-classification-3", alias="ROBOFLOW_MODEL_ID")
    roboflow_version: str = Field(default="1", alias="ROBOFLOW_VERSION")
    roboflow_base_url: str = Field(default="https://detect.roboflow.com", alias="ROBOFLOW_BASE_URL")
    classifier_timeout: float = Field(default=15.0, alias="CLASSIFIER_TIMEOUT")

    # Report workflow
    max_image_bytes: int = Field(default=5 * 1024 * 1024, alias="MAX_IMAGE_BYTES")
    ticket_id_attempts: int = Field(default=5, alias="TICKET_ID_ATTEMPTS")
    demo_mode: bool = Field(default=False, alias="DEMO_MODE")

    # Admin auth
    admin_username: str = Field(default="admin", alias="ADMIN_USERNAME")
    admin_password: Optional[SecretStr] = Field(default=None, alias="ADMIN_PASSWORD")
    credential_backend: Literal["mongo", "memory"] = Field(default="mongo", alias="CREDENTIAL_BACKEND")
    admin_auth_required: bool = Field(default=False, alias="ADMIN_AUTH_REQUIRED")

    # JWT signing for admin tokens
    secret_key: SecretStr = Field(default=SecretStr("change-me-smart-env-watch-dev-secret"), alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")
    port: int = Field(default=5000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("ticket_id_attempts", "access_token_expire_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @property
    def storage_configured(self) -> bool:
        return bool(self.firebase_credentials and self.firebase_credentials.get_secret_value())

    @property
    def classifier_configured(self) -> bool:
        return bool(self.roboflow_api_key and self.roboflow_api_key.get_secret_value())

    @property
    def allowed_cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
