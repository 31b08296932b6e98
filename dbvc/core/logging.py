"""アプリケーション用のロギングユーティリティ。"""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """
    ロガーインスタンスを取得する。

    Args:
        name: ロガー名、通常は呼び出し元モジュールの__name__を指定。

    Returns:
        logging.Logger: ロガーインスタンス。

    Examples:
        >>> logger = get_logger(__name__)  # dbvc.infrastructure.database.backup.coreロガーを返す
    """
    return logging.getLogger(name)


def setup_logging(level: str = "INFO") -> None:
    """
    CLI実行時のロギングを設定する。

    ルートロガーに標準エラー出力のハンドラを1つだけ設定する。
    複数回呼び出してもハンドラは重複しない。

    Args:
        level: ログレベル（"DEBUG", "INFO"など）
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if any(getattr(h, "_dbvc_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._dbvc_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
