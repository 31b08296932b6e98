"""
データベースを過去のコミットに戻す

1. 安全バックアップ（取り消し用のコミットを作成）
2. トラッキング対象テーブルのスナップショットを対象コミットからチェックアウト
3. 1つでも失敗した場合はインポートせずに中断
4. インポート
5. 安全バックアップへの取り消し参照を返す
"""

from pathlib import Path
from typing import Dict, List, Optional

import sentry_sdk
from filelock import FileLock, Timeout

from dbvc.core.logging import get_logger
from dbvc.domain.exceptions.base import (
    CheckoutFailure,
    ImportFailure,
    LockTimeoutError,
    RevertFatalError,
)
from dbvc.infrastructure.vcs.git import GitAdapter, is_revision

from .core import BackupEngine, ImportEngine
from .models import RevertResult, RevertStatus, TrackingConfig, UndoReference
from .store import SnapshotStore
from .tracker import TableTracker

logger = get_logger(__name__)

LOCK_FILENAME = "dbvc-restore.lock"
SAFETY_BACKUP_MESSAGE = "Database backup before revert to #{commit}."
SUCCESS_MESSAGE = "Successfully reverted the database to a previous commit."


class RevertOrchestrator:
    """
    リストア処理の調整

    同じリポジトリに対するリストアはファイルロックで1つずつ実行される。

    Attributes:
        git: gitアダプタ
        tracker: トラッキング対象テーブルの決定
        store: スナップショットの保存先
        backup_engine: 安全バックアップに使用するバックアップエンジン
        import_engine: インポートエンジン
        lock_timeout: ロック取得の待ち時間（秒）
    """

    def __init__(
        self,
        git: GitAdapter,
        tracker: TableTracker,
        store: SnapshotStore,
        backup_engine: BackupEngine,
        import_engine: ImportEngine,
        lock_path: Optional[Path] = None,
        lock_timeout: float = 30.0,
    ) -> None:
        self.git = git
        self.tracker = tracker
        self.store = store
        self.backup_engine = backup_engine
        self.import_engine = import_engine
        self.lock_path = lock_path
        self.lock_timeout = lock_timeout

    def _resolve_lock_path(self) -> Path:
        if self.lock_path is not None:
            return self.lock_path
        git_dir = self.git.git_dir()
        if git_dir is not None:
            return git_dir / LOCK_FILENAME
        return self.store.backup_dir.parent / f".{LOCK_FILENAME}"

    def restore(
        self, target_commit: str, config: Optional[TrackingConfig] = None
    ) -> RevertResult:
        """
        トラッキング対象テーブルを指定コミットの状態に戻す

        Args:
            target_commit: リストア先のコミットID
            config: トラッキング設定（Noneの場合はgit configから読み込む）

        Returns:
            RevertResult: 成功（取り消し参照付き）、中断、または致命的エラー
        """
        if not is_revision(target_commit):
            logger.error(f"Invalid commit id: {target_commit!r}")
            return RevertResult(
                status=RevertStatus.ABORTED,
                target_commit=target_commit,
                message=f"Invalid commit id: {target_commit}",
                error_code="invalid_revision",
            )

        lock = FileLock(str(self._resolve_lock_path()), timeout=self.lock_timeout)
        try:
            with lock:
                return self._restore(target_commit, config)
        except Timeout:
            error = LockTimeoutError(details={"lock": lock.lock_file})
            logger.error(f"{error.message} (lock: {lock.lock_file})")
            return RevertResult(
                status=RevertStatus.ABORTED,
                target_commit=target_commit,
                message=error.message,
                error_code=error.code,
            )

    def _restore(
        self, target_commit: str, config: Optional[TrackingConfig]
    ) -> RevertResult:
        # 以降のすべてのステップで同じ設定を使用する
        config = config if config is not None else self.tracker.load_config()

        logger.info(f"Reverting database to {target_commit}")

        # 1. 安全バックアップ
        backup = self.backup_engine.backup(
            message=SAFETY_BACKUP_MESSAGE.format(commit=target_commit), config=config
        )
        safety_commit_id = backup.commit_id if backup.success else None
        if not safety_commit_id:
            error = RevertFatalError(
                details={"target_commit": target_commit, "backup": backup.message}
            )
            logger.error(f"Safety backup failed: {backup.message}")
            sentry_sdk.capture_exception(error)
            return RevertResult(
                status=RevertStatus.FATAL,
                target_commit=target_commit,
                message=error.message,
                error_code=error.code,
            )

        tables = sorted(self.tracker.tracked_tables(config))
        if not tables:
            logger.warning("No tracked tables to revert")
            return RevertResult(
                status=RevertStatus.ABORTED,
                target_commit=target_commit,
                message="No tracked tables to revert.",
                error_code="no_tracked_tables",
                safety_commit_id=safety_commit_id,
            )

        # 2. チェックアウト
        checkout = self._checkout(target_commit, tables)

        # 3. 1つでも失敗した場合はインポートしない
        failed = [table for table, ok in checkout.items() if not ok]
        if failed:
            error = CheckoutFailure(details={"tables": failed})
            logger.error(f"{error.message}: {', '.join(failed)}")
            self._reset_files(safety_commit_id, [t for t, ok in checkout.items() if ok])
            return RevertResult(
                status=RevertStatus.ABORTED,
                target_commit=target_commit,
                message=error.message,
                error_code=error.code,
                safety_commit_id=safety_commit_id,
                checkout=checkout,
            )

        # 4. インポート
        imported = self.import_engine.import_tables(tables, config=config)
        if not imported.success:
            error = ImportFailure(details={"tables": imported.failed_tables})
            return RevertResult(
                status=RevertStatus.ABORTED,
                target_commit=target_commit,
                message=error.message,
                error_code=error.code,
                safety_commit_id=safety_commit_id,
                checkout=checkout,
                imported=imported,
            )

        # 5. 取り消し参照
        undo = UndoReference(commit_id=safety_commit_id)
        logger.info(f"{SUCCESS_MESSAGE} Undo with: {undo.command}")
        return RevertResult(
            status=RevertStatus.SUCCESS,
            target_commit=target_commit,
            message=SUCCESS_MESSAGE,
            safety_commit_id=safety_commit_id,
            checkout=checkout,
            imported=imported,
            undo=undo,
        )

    def _checkout(self, commit: str, tables: List[str]) -> Dict[str, bool]:
        return {
            table: self.git.checkout_path_at_commit(commit, self.store.snapshot_path(table))
            for table in tables
        }

    def _reset_files(self, commit: str, tables: List[str]) -> None:
        """チェックアウト済みのファイルを安全バックアップの内容に戻す"""
        for table in tables:
            if not self.git.checkout_path_at_commit(commit, self.store.snapshot_path(table)):
                logger.warning(f"Could not reset {table} snapshot to {commit}")
