"""トラッキング対象テーブルの決定"""

from typing import List, Optional, Set

from sqlalchemy import Engine

from dbvc.core.logging import get_logger
from dbvc.domain.exceptions.base import ConfigError
from dbvc.infrastructure.database.connection import get_table_sizes, get_tables
from dbvc.infrastructure.vcs.git import GitAdapter

from .models import Table, TrackingConfig, TrackingMode

logger = get_logger(__name__)

# git configのセクションとキー
TRACKING_SECTION = "revisr"
TRACKING_MODE_KEY = "db-tracking"
TRACKED_TABLES_KEY = "tracked-tables"
DEV_URL_KEY = "dev-url"


def load_tracking_config(git: GitAdapter) -> TrackingConfig:
    """
    git configからトラッキング設定を読み込む

    Args:
        git: gitアダプタ

    Returns:
        TrackingConfig: トラッキング設定
    """
    return TrackingConfig(
        mode=git.get_config(TRACKING_SECTION, TRACKING_MODE_KEY),
        tables=git.get_config_all(TRACKING_SECTION, TRACKED_TABLES_KEY),
        dev_url=git.get_config(TRACKING_SECTION, DEV_URL_KEY) or "",
    )


def save_tracking_config(git: GitAdapter, config: TrackingConfig) -> bool:
    """
    トラッキング設定をgit configに保存する

    カスタムテーブルのリストは既存のリストを置き換える。

    Returns:
        bool: すべて保存できた場合True
    """
    ok = True
    if config.mode is not None:
        ok = git.set_config(TRACKING_SECTION, TRACKING_MODE_KEY, config.mode) and ok
    ok = git.set_config_all(TRACKING_SECTION, TRACKED_TABLES_KEY, config.tables) and ok
    ok = git.set_config(TRACKING_SECTION, DEV_URL_KEY, config.dev_url) and ok
    return ok


def resolve_mode(mode: Optional[str]) -> TrackingMode:
    """
    設定値からトラッキングモードを決定する

    未設定または不明な値の場合は全テーブルをトラッキングする。
    """
    if mode is None or mode == "":
        return TrackingMode.ALL_TABLES

    try:
        return TrackingMode(mode)
    except ValueError:
        error = ConfigError(
            f"Unrecognized tracking mode {mode!r}; tracking all tables",
            details={"mode": mode},
        )
        logger.warning(error.message)
        return TrackingMode.ALL_TABLES


class TableTracker:
    """
    トラッキング対象のテーブルを決定する

    結果はキャッシュせず、呼び出しのたびに現在のテーブル一覧から計算する。

    Attributes:
        git: トラッキング設定を保持するgitアダプタ
        engine: テーブル一覧を取得するデータベースエンジン
    """

    def __init__(self, git: GitAdapter, engine: Engine) -> None:
        self.git = git
        self.engine = engine

    def load_config(self) -> TrackingConfig:
        """現在のトラッキング設定"""
        return load_tracking_config(self.git)

    def live_tables(self) -> List[str]:
        """データベースに存在するテーブル名"""
        return get_tables(self.engine)

    def tracked_tables(self, config: Optional[TrackingConfig] = None) -> Set[str]:
        """
        トラッキング対象のテーブル名を取得する

        カスタムモードでは設定されたテーブルのうち、
        現在データベースに存在するものだけを返す。

        Args:
            config: トラッキング設定（Noneの場合はgit configから読み込む）

        Returns:
            Set[str]: 現在のテーブル一覧の部分集合
        """
        config = config if config is not None else self.load_config()
        mode = resolve_mode(config.mode)

        if mode == TrackingMode.NONE:
            return set()

        live = set(self.live_tables())
        if mode == TrackingMode.CUSTOM:
            return {table for table in config.tables if table in live}
        return live

    def list_tables(self, config: Optional[TrackingConfig] = None) -> List[Table]:
        """
        全テーブルをトラッキング状態とサイズ付きで取得する
        """
        config = config if config is not None else self.load_config()
        tracked = self.tracked_tables(config)
        sizes = get_table_sizes(self.engine)

        return [
            Table(name=name, tracked=name in tracked, size_bytes=sizes.get(name, 0))
            for name in self.live_tables()
        ]
