"""バックアップエンジンの単体テスト"""

from pathlib import Path
from unittest.mock import Mock

import pytest

from dbvc.infrastructure.database.backup.core import DEFAULT_COMMIT_MESSAGE, BackupEngine
from dbvc.infrastructure.database.backup.models import TrackingConfig
from dbvc.infrastructure.database.backup.store import SnapshotStore
from dbvc.infrastructure.vcs.git import GitAdapter

from .conftest import FakeDatabaseClient, snapshot_bytes


@pytest.fixture
def repo_store(git: GitAdapter) -> SnapshotStore:
    """gitリポジトリ内のスナップショットストア"""
    return SnapshotStore(git.repo_path / "revisr-backups")


class TestResolveTables:
    """resolve_tablesのテスト"""

    def test_explicit_tables_are_deduplicated(self, mock_tracker: Mock) -> None:
        """明示されたテーブルは順序を保って重複を除くこと"""
        engine = BackupEngine(Mock(), mock_tracker, Mock(), Mock())
        assert engine.resolve_tables(["b", "a", "b"], TrackingConfig()) == ["b", "a"]

    def test_tracked_tables(self, mock_tracker: Mock) -> None:
        """指定が無い場合はトラッキング対象を返すこと"""
        mock_tracker.tracked_tables.return_value = {"users"}
        engine = BackupEngine(Mock(), mock_tracker, Mock(), Mock())

        assert engine.resolve_tables(None, TrackingConfig()) == ["users"]

    def test_falls_back_to_all_tables(self, mock_tracker: Mock) -> None:
        """トラッキング対象が空の場合は全テーブルを返すこと"""
        mock_tracker.tracked_tables.return_value = set()
        engine = BackupEngine(Mock(), mock_tracker, Mock(), Mock())

        assert engine.resolve_tables(None, TrackingConfig(mode="none")) == ["orders", "users"]


class TestBackup:
    """backupのテスト（実リポジトリ）"""

    def test_backup_commits_snapshots(
        self,
        git: GitAdapter,
        repo_store: SnapshotStore,
        mock_tracker: Mock,
        fake_client: FakeDatabaseClient,
    ) -> None:
        """全テーブルをダンプしてコミットすること"""
        engine = BackupEngine(git, mock_tracker, repo_store, fake_client)

        result = engine.backup(config=TrackingConfig())

        assert result.success is True
        assert result.tables == {"orders": True, "users": True}
        assert result.committed is True
        assert result.commit_id == git.current_commit_id()

        commit = git.get_commit(result.commit_id)
        assert commit is not None
        assert commit.message == DEFAULT_COMMIT_MESSAGE
        assert sorted(commit.files) == [
            "revisr-backups/revisr_orders.sql",
            "revisr-backups/revisr_users.sql",
        ]
        assert (repo_store.backup_dir / ".htaccess").exists()

    def test_backup_without_changes_returns_head(
        self,
        git: GitAdapter,
        repo_store: SnapshotStore,
        mock_tracker: Mock,
        fake_client: FakeDatabaseClient,
    ) -> None:
        """変更が無い場合はコミットせずHEADを返すこと"""
        engine = BackupEngine(git, mock_tracker, repo_store, fake_client)
        first = engine.backup(config=TrackingConfig())

        second = engine.backup(message="again", config=TrackingConfig())

        assert second.success is True
        assert second.committed is False
        assert second.commit_id == first.commit_id

    def test_partial_failure_does_not_commit(
        self,
        git: GitAdapter,
        repo_store: SnapshotStore,
        mock_tracker: Mock,
        fake_client: FakeDatabaseClient,
    ) -> None:
        """1テーブルでも失敗した場合はコミットしないこと"""
        fake_client.failing_dumps.add("orders")
        engine = BackupEngine(git, mock_tracker, repo_store, fake_client)

        result = engine.backup(config=TrackingConfig())

        assert result.success is False
        assert result.failed_tables == ["orders"]
        assert result.commit_id is None
        assert git.current_commit_id() is None
        # 成功したテーブルのファイルは残る
        assert repo_store.read("users") == snapshot_bytes("users")

    def test_no_commit(
        self,
        git: GitAdapter,
        repo_store: SnapshotStore,
        mock_tracker: Mock,
        fake_client: FakeDatabaseClient,
    ) -> None:
        """commit=Falseの場合はダンプだけ行うこと"""
        engine = BackupEngine(git, mock_tracker, repo_store, fake_client)

        result = engine.backup(tables=["users"], commit=False, config=TrackingConfig())

        assert result.success is True
        assert result.tables == {"users": True}
        assert git.current_commit_id() is None

    def test_other_staged_files_are_not_committed(
        self,
        git: GitAdapter,
        repo_store: SnapshotStore,
        mock_tracker: Mock,
        fake_client: FakeDatabaseClient,
    ) -> None:
        """ステージ済みの他のファイルはバックアップのコミットに含めないこと"""
        other: Path = git.repo_path / "README.md"
        other.write_text("readme\n")
        git.add_file(other)
        engine = BackupEngine(git, mock_tracker, repo_store, fake_client)

        result = engine.backup(config=TrackingConfig())

        commit = git.get_commit(result.commit_id or "")
        assert commit is not None
        assert "README.md" not in commit.files

    def test_config_is_loaded_once_when_not_given(
        self,
        git: GitAdapter,
        repo_store: SnapshotStore,
        mock_tracker: Mock,
        fake_client: FakeDatabaseClient,
    ) -> None:
        """設定を渡さない場合はトラッカーから1回だけ読み込むこと"""
        mock_tracker.load_config.return_value = TrackingConfig()
        engine = BackupEngine(git, mock_tracker, repo_store, fake_client)

        engine.backup()

        mock_tracker.load_config.assert_called_once_with()


class TestBackupCommitHandling:
    """コミット処理のテスト（gitをモック）"""

    def _engine(self, git: Mock, store: SnapshotStore, tracker: Mock, **kwargs) -> BackupEngine:
        return BackupEngine(
            git, tracker, store, FakeDatabaseClient({"users": snapshot_bytes("users")}), **kwargs
        )

    def test_auto_push(self, store: SnapshotStore, mock_tracker: Mock) -> None:
        """auto_pushの場合はコミット後にプッシュすること"""
        git = Mock()
        git.has_staged_changes.return_value = True
        git.current_commit_id.return_value = "abc"
        engine = self._engine(git, store, mock_tracker, auto_push=True, remote="backup")

        result = engine.backup(tables=["users"], config=TrackingConfig())

        assert result.success is True
        git.push.assert_called_once_with("backup")

    def test_stage_failure(self, store: SnapshotStore, mock_tracker: Mock) -> None:
        """ステージに失敗した場合は失敗を返すこと"""
        git = Mock()
        git.add_file.return_value = False
        engine = self._engine(git, store, mock_tracker)

        result = engine.backup(tables=["users"], config=TrackingConfig())

        assert result.success is False
        git.commit.assert_not_called()

    def test_commit_failure(self, store: SnapshotStore, mock_tracker: Mock) -> None:
        """コミットに失敗した場合はコミットIDを返さないこと"""
        git = Mock()
        git.has_staged_changes.return_value = True
        git.commit.return_value = False
        engine = self._engine(git, store, mock_tracker)

        result = engine.backup(tables=["users"], config=TrackingConfig())

        assert result.success is False
        assert result.commit_id is None
        git.push.assert_not_called()

    def test_no_head_after_backup(self, store: SnapshotStore, mock_tracker: Mock) -> None:
        """HEADを取得できない場合は失敗を返すこと"""
        git = Mock()
        git.has_staged_changes.return_value = False
        git.current_commit_id.return_value = None
        engine = self._engine(git, store, mock_tracker)

        result = engine.backup(tables=["users"], config=TrackingConfig())

        assert result.success is False
        assert result.commit_id is None
