"""監視ツール（Sentry）の初期化"""

import sentry_sdk

from dbvc.core.config import Settings, get_settings
from dbvc.core.logging import get_logger

logger = get_logger(__name__)


def init_monitoring(settings: Settings | None = None) -> bool:
    """
    Sentryの初期化

    SENTRY_DSNが設定されていない場合はスキップされる

    Args:
        settings: アプリケーション設定（Noneの場合はget_settings()）

    Returns:
        bool: Sentryを有効化した場合True
    """
    settings = settings or get_settings()

    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENV_MODE,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        )
        logger.info(f"Sentry is enabled on {settings.ENV_MODE} mode")
        return True

    logger.info(
        f"Sentry is disabled on {settings.ENV_MODE} mode"
        if not settings.is_production
        else "Sentry DSN is not set"
    )
    return False
