"""
CLIから使用するサービスの組み立て

各コンポーネントはグローバル状態を持たず、ここで明示的に接続される。
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from ..core.config import Settings, get_settings
from ..infrastructure.database.backup.core import BackupEngine, ImportEngine
from ..infrastructure.database.backup.revert import RevertOrchestrator
from ..infrastructure.database.backup.store import SnapshotStore
from ..infrastructure.database.backup.tracker import TableTracker
from ..infrastructure.database.client import DatabaseClient, create_database_client
from ..infrastructure.database.connection import create_db_engine
from ..infrastructure.vcs.git import GitAdapter


@dataclass
class Services:
    settings: Settings
    engine: Engine
    git: GitAdapter
    tracker: TableTracker
    store: SnapshotStore
    client: DatabaseClient
    backup: BackupEngine
    importer: ImportEngine
    revert: RevertOrchestrator


def build_services(settings: Optional[Settings] = None) -> Services:
    """
    設定からサービス一式を作成する

    Args:
        settings: アプリケーション設定（Noneの場合はget_settings()）
    """
    settings = settings or get_settings()

    engine = create_db_engine(settings.database_uri)
    git = GitAdapter(settings.repo_path, settings.GIT_BINARY)
    tracker = TableTracker(git, engine)
    store = SnapshotStore(settings.backup_dir)
    client = create_database_client(settings, engine)

    backup = BackupEngine(
        git,
        tracker,
        store,
        client,
        auto_push=settings.AUTO_PUSH,
        remote=settings.GIT_REMOTE,
    )
    importer = ImportEngine(tracker, store, client, site_url=settings.SITE_URL)
    revert = RevertOrchestrator(
        git, tracker, store, backup, importer, lock_timeout=settings.LOCK_TIMEOUT
    )

    return Services(
        settings=settings,
        engine=engine,
        git=git,
        tracker=tracker,
        store=store,
        client=client,
        backup=backup,
        importer=importer,
        revert=revert,
    )
