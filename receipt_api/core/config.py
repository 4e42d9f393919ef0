
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("receipt-scan-api", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Vision LLM (OpenAI-compatible chat completions; Azure OpenAI when api version is set)
    llm_base_url: str | None = Field(default=None, alias="LLM_BASE_URL")
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")
    llm_deployment: str | None = Field(default="gpt-4o", alias="LLM_DEPLOYMENT")
    llm_api_version: str | None = Field(default=None, alias="LLM_API_VERSION")
    llm_timeout_seconds: float = Field(60.0, alias="LLM_TIMEOUT_SECONDS")

    # Azure Blob Storage
    az_storage_connection_string: str | None = Field(default=None, alias="AZ_STORAGE_CONNECTION_STRING")
    az_storage_container: str = Field("receipts", alias="AZ_STORAGE_CONTAINER")
    az_storage_sas_ttl_minutes: int = Field(0, alias="AZ_STORAGE_SAS_TTL_MINUTES")  # 0 = plain blob URL (public container)
    storage_timeout_seconds: float = Field(30.0, alias="STORAGE_TIMEOUT_SECONDS")

    # Local fallback storage (development only)
    local_media_dir: str = Field("./media", alias="LOCAL_MEDIA_DIR")

    # API Base URL (used to build local media URLs)
    api_base_url: str = Field("http://127.0.0.1:8000", alias="API_BASE_URL")

    # CORS allowed origins (comma-separated list for production deployment)
    cors_origins: str = Field("http://localhost:3000,http://127.0.0.1:3000", alias="CORS_ORIGINS")

    # Bearer tokens
    jwt_secret: str = Field("dev-secret-change-me", alias="JWT_SECRET")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_ttl_minutes: int = Field(60, alias="ACCESS_TOKEN_TTL_MINUTES")

    # Receipt persistence (empty = in-memory)
    receipts_db_path: str | None = Field(default=None, alias="RECEIPTS_DB_PATH")

    # Upload limits
    max_upload_bytes: int = Field(5 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

settings = Settings()
