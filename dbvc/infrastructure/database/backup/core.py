"""データベースバックアップ・インポートのコアロジック"""

from typing import Dict, Iterable, List, Optional

from dbvc.core.logging import get_logger
from dbvc.domain.exceptions.base import DumpFailure, ImportFailure
from dbvc.infrastructure.database.client import DatabaseClient
from dbvc.infrastructure.vcs.git import GitAdapter

from .models import BackupResult, ImportResult, Substitution, TrackingConfig
from .operations import OperationKind, create_operation
from .store import SnapshotStore
from .tracker import TableTracker

logger = get_logger(__name__)

DEFAULT_COMMIT_MESSAGE = "Backed up the database."


class BackupEngine:
    """
    テーブルをスナップショットにダンプし、gitにコミットする

    Attributes:
        git: gitアダプタ
        tracker: トラッキング対象テーブルの決定
        store: スナップショットの保存先
        client: データベースクライアント
        auto_push: コミット後にプッシュするかどうか
        remote: プッシュ先のリモート
    """

    def __init__(
        self,
        git: GitAdapter,
        tracker: TableTracker,
        store: SnapshotStore,
        client: DatabaseClient,
        auto_push: bool = False,
        remote: str = "origin",
    ) -> None:
        self.git = git
        self.tracker = tracker
        self.store = store
        self.client = client
        self.auto_push = auto_push
        self.remote = remote

    def resolve_tables(
        self, tables: Optional[Iterable[str]], config: TrackingConfig
    ) -> List[str]:
        """
        バックアップ対象のテーブルを決定する

        指定が無い場合はトラッキング対象、それも空の場合は全テーブル。
        """
        if tables:
            return list(dict.fromkeys(tables))

        tracked = self.tracker.tracked_tables(config)
        if tracked:
            return sorted(tracked)

        logger.info("No tracked tables; backing up every table")
        return self.tracker.live_tables()

    def backup(
        self,
        tables: Optional[Iterable[str]] = None,
        message: str = "",
        commit: bool = True,
        config: Optional[TrackingConfig] = None,
    ) -> BackupResult:
        """
        テーブルをバックアップする

        すべてのダンプが成功した場合だけコミットする。
        一部が失敗した場合、書き込み済みのファイルはそのまま残る。

        Args:
            tables: 対象テーブル（Noneの場合はトラッキング対象）
            message: コミットメッセージ（空の場合はデフォルト）
            commit: バックアップ後にコミットするかどうか
            config: トラッキング設定（Noneの場合はgit configから読み込む）

        Returns:
            BackupResult: バックアップ結果
        """
        config = config if config is not None else self.tracker.load_config()
        targets = self.resolve_tables(tables, config)

        self.store.ensure_directory()

        logger.info(f"Backing up {len(targets)} table(s) to {self.store.backup_dir}")
        status = create_operation(OperationKind.BACKUP, self.store, self.client).run(targets)

        failed = [table for table, ok in status.items() if not ok]
        if failed:
            error = DumpFailure(details={"tables": failed})
            logger.error(f"{error.message}: {', '.join(failed)}")
            return BackupResult(success=False, message=error.message, tables=status)

        if not commit:
            return BackupResult(
                success=True, message=f"Backed up {len(status)} table(s).", tables=status
            )

        return self._commit(status, message or DEFAULT_COMMIT_MESSAGE)

    def _commit(self, status: Dict[str, bool], message: str) -> BackupResult:
        paths = [self.store.snapshot_path(table) for table in status]

        for path in paths:
            if not self.git.add_file(path):
                logger.error(f"Failed to stage {path}")
                return BackupResult(
                    success=False, message=f"Failed to stage {path.name}", tables=status
                )

        committed = False
        if not paths or not self.git.has_staged_changes(paths):
            logger.info("No changes since the last backup; skipping commit")
        elif self.git.commit(message, paths):
            committed = True
            if self.auto_push:
                self.git.push(self.remote)
        else:
            return BackupResult(
                success=False, message="Failed to commit the database backup.", tables=status
            )

        commit_id = self.git.current_commit_id()
        if commit_id is None:
            return BackupResult(
                success=False, message="No commit available after backup.", tables=status
            )

        logger.info(f"Database backup committed as {commit_id[:8]}")
        return BackupResult(
            success=True,
            message=message,
            tables=status,
            commit_id=commit_id,
            committed=committed,
        )


class ImportEngine:
    """
    スナップショットをデータベースにロードする

    Attributes:
        tracker: トラッキング対象テーブルの決定
        store: スナップショットの保存先
        client: データベースクライアント
        site_url: dev-urlの置換後の値
    """

    def __init__(
        self,
        tracker: TableTracker,
        store: SnapshotStore,
        client: DatabaseClient,
        site_url: str = "",
    ) -> None:
        self.tracker = tracker
        self.store = store
        self.client = client
        self.site_url = site_url

    def default_tables(self, config: TrackingConfig) -> List[str]:
        """
        インポート対象のデフォルトのテーブル

        データベースに存在しないテーブルのスナップショットと
        トラッキング対象のテーブルの和集合（重複なし）。
        """
        orphans = self.store.list_orphan_tables(self.tracker.live_tables())
        tracked = self.tracker.tracked_tables(config)

        if orphans:
            logger.info(f"New tables found in backups: {', '.join(sorted(orphans))}")

        return sorted(orphans) + sorted(tracked - orphans)

    def import_tables(
        self,
        tables: Optional[Iterable[str]] = None,
        config: Optional[TrackingConfig] = None,
    ) -> ImportResult:
        """
        テーブルをインポートする

        途中でロードに失敗しても、ロード済みのテーブルは元に戻さない。

        Args:
            tables: 対象テーブル（Noneの場合はdefault_tables()）
            config: トラッキング設定（Noneの場合はgit configから読み込む）

        Returns:
            ImportResult: インポート結果
        """
        config = config if config is not None else self.tracker.load_config()
        targets = list(dict.fromkeys(tables)) if tables else self.default_tables(config)

        substitution = Substitution(search=config.dev_url, replace=self.site_url)
        if substitution.enabled:
            logger.info(f"Replacing {substitution.search!r} with {substitution.replace!r}")

        status = create_operation(
            OperationKind.IMPORT, self.store, self.client, substitution
        ).run(targets)

        failed = [table for table, ok in status.items() if not ok]
        if failed:
            error = ImportFailure(details={"tables": failed})
            logger.error(f"{error.message}: {', '.join(failed)}")
            return ImportResult(success=False, message=error.message, tables=status)

        return ImportResult(
            success=True, message=f"Imported {len(status)} table(s).", tables=status
        )
