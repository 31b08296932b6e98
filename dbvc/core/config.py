from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging import get_logger

logger = get_logger(__name__)

BACKUP_DIR_NAME = "revisr-backups"


class Settings(BaseSettings):
    """
    アプリケーション設定
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # 未定義のフィールドを無視
    )

    ENV_MODE: Literal["development", "production", "test"] = "development"

    DATABASE_URL: Optional[str] = None

    POSTGRES_USER: str = "user"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "main"
    POSTGRES_HOST: str = "db"
    POSTGRES_PORT: str = "5432"

    @field_validator("DATABASE_URL")
    @classmethod
    def database_url_can_be_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v.strip() == "":
            return None
        return v

    @property
    def database_uri(self) -> str:
        """データベース接続URL"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        # Kerberos設定済み環境だとタイムアウト待ちにハマるので、gssencmode=disableを設定
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            f"?gssencmode=disable"
        )

    REPO_PATH: str = "."
    BACKUP_BASE_DIR: str = "."

    @property
    def repo_path(self) -> Path:
        """gitワーキングツリーのパス"""
        return Path(self.REPO_PATH).resolve()

    @property
    def backup_dir(self) -> Path:
        """バックアップディレクトリのパス"""
        base = Path(self.BACKUP_BASE_DIR)
        if not base.is_absolute():
            base = self.repo_path / base
        return base.resolve() / BACKUP_DIR_NAME

    DB_DRIVER: Literal["sqlalchemy", "pg_dump"] = "sqlalchemy"
    PG_BIN_PATH: str = ""

    GIT_BINARY: str = "git"
    GIT_REMOTE: str = "origin"
    AUTO_PUSH: bool = False

    # インポート時にdev-urlを置き換える値
    SITE_URL: str = ""

    LOCK_TIMEOUT: float = 30.0

    @field_validator("LOCK_TIMEOUT")
    @classmethod
    def validate_lock_timeout(cls, v: float) -> float:
        """ロック待ち時間検証"""
        if v < 0:
            raise ValueError("LOCK_TIMEOUT must be zero or positive")
        return v

    LOG_LEVEL: str = "INFO"

    SENTRY_DSN: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = 1.0

    @field_validator("SENTRY_DSN")
    @classmethod
    def sentry_dsn_can_be_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        return v

    @property
    def is_development(self) -> bool:
        """開発環境かどうか"""
        return self.ENV_MODE == "development"

    @property
    def is_production(self) -> bool:
        """本番環境かどうか"""
        return self.ENV_MODE == "production"

    @property
    def is_test(self) -> bool:
        """テスト環境かどうか"""
        return self.ENV_MODE == "test"


@lru_cache
def get_settings() -> Settings:
    """
    アプリケーション設定を取得（キャッシュ）
    """
    return Settings()
