"""
テーブル単位の操作の単体テスト
"""

from unittest.mock import Mock

import pytest

from dbvc.infrastructure.database.backup.models import Substitution
from dbvc.infrastructure.database.backup.operations import (
    BackupOperation,
    ImportOperation,
    OperationKind,
    TableOperation,
    create_operation,
)
from dbvc.infrastructure.database.backup.store import SnapshotStore

from .conftest import FakeDatabaseClient, snapshot_bytes


class TestCreateOperation:
    """create_operation関数のテスト"""

    def test_backup(self, store: SnapshotStore, fake_client: FakeDatabaseClient) -> None:
        """BACKUPはBackupOperationになること"""
        operation = create_operation(OperationKind.BACKUP, store, fake_client)
        assert isinstance(operation, BackupOperation)

    def test_import_with_substitution(
        self, store: SnapshotStore, fake_client: FakeDatabaseClient
    ) -> None:
        """IMPORTは置換設定付きのImportOperationになること"""
        sub = Substitution(search="a", replace="b")
        operation = create_operation(OperationKind.IMPORT, store, fake_client, sub)

        assert isinstance(operation, ImportOperation)
        assert operation.substitution == sub

    def test_unknown(self, store: SnapshotStore, fake_client: FakeDatabaseClient) -> None:
        """未知の操作はValueErrorになること"""
        with pytest.raises(ValueError):
            create_operation("restore", store, fake_client)  # type: ignore[arg-type]


class TestTableOperationRun:
    """run()メソッドの実行フロー"""

    def test_failure_does_not_stop_other_tables(
        self, store: SnapshotStore, fake_client: FakeDatabaseClient
    ) -> None:
        """1テーブルの失敗で残りのテーブルを止めないこと"""
        store.ensure_directory()
        fake_client.failing_dumps.add("orders")

        status = BackupOperation(store, fake_client).run(["orders", "users"])

        assert status == {"orders": False, "users": True}

    def test_hooks_are_called(
        self, store: SnapshotStore, fake_client: FakeDatabaseClient
    ) -> None:
        """成功・失敗のフックが呼ばれること"""
        store.ensure_directory()
        fake_client.failing_dumps.add("orders")
        operation = BackupOperation(store, fake_client)
        operation.on_success = Mock()  # type: ignore[method-assign]
        operation.on_failure = Mock()  # type: ignore[method-assign]

        operation.run(["orders", "users"])

        operation.on_success.assert_called_once_with("users")
        table, error = operation.on_failure.call_args.args
        assert table == "orders"
        assert error.code == "dump_failure"

    def test_os_error_is_reported_as_failure(self, store: SnapshotStore) -> None:
        """ファイル書き込みの失敗もテーブルの失敗として扱うこと"""

        class BrokenWrite(TableOperation):
            kind = OperationKind.BACKUP

            def execute(self, table: str) -> None:
                raise PermissionError("read-only")

        assert BrokenWrite(store, Mock()).run(["users"]) == {"users": False}

    def test_unexpected_error_propagates(self, store: SnapshotStore) -> None:
        """想定外の例外はそのまま送出すること"""

        class Buggy(TableOperation):
            kind = OperationKind.BACKUP

            def execute(self, table: str) -> None:
                raise KeyError(table)

        with pytest.raises(KeyError):
            Buggy(store, Mock()).run(["users"])


class TestBackupOperation:
    """BackupOperationのテスト"""

    def test_writes_snapshot(
        self, store: SnapshotStore, fake_client: FakeDatabaseClient
    ) -> None:
        """ダンプをスナップショットに書き込むこと"""
        store.ensure_directory()

        BackupOperation(store, fake_client).execute("users")

        assert store.read("users") == snapshot_bytes("users")

    def test_small_dump_is_failure(self, store: SnapshotStore) -> None:
        """100バイト未満のダンプは失敗として扱うこと"""
        store.ensure_directory()
        client = FakeDatabaseClient({"users": b"tiny"})

        assert BackupOperation(store, client).run(["users"]) == {"users": False}


class TestImportOperation:
    """ImportOperationのテスト"""

    def test_loads_snapshot(
        self, store: SnapshotStore, fake_client: FakeDatabaseClient
    ) -> None:
        """スナップショットをロードすること"""
        store.ensure_directory()
        store.write("users", snapshot_bytes("users", "v2"))

        status = ImportOperation(store, fake_client).run(["users"])

        assert status == {"users": True}
        assert fake_client.loaded["users"] == snapshot_bytes("users", "v2")

    def test_missing_snapshot(
        self, store: SnapshotStore, fake_client: FakeDatabaseClient
    ) -> None:
        """スナップショットが無い場合はロードしないこと"""
        status = ImportOperation(store, fake_client).run(["users"])

        assert status == {"users": False}
        assert fake_client.loaded == {}

    def test_substitution_is_applied(
        self, store: SnapshotStore, fake_client: FakeDatabaseClient
    ) -> None:
        """ロード前に置換を適用すること"""
        store.ensure_directory()
        store.write("users", b"http://dev.test/" + b"x" * 100)
        sub = Substitution(search="http://dev.test", replace="https://example.com")

        ImportOperation(store, fake_client, sub).run(["users"])

        assert fake_client.loaded["users"].startswith(b"https://example.com/")

    def test_load_failure(
        self, store: SnapshotStore, fake_client: FakeDatabaseClient
    ) -> None:
        """ロードの失敗はテーブルの失敗として扱うこと"""
        store.ensure_directory()
        store.write("users", snapshot_bytes("users"))
        fake_client.failing_loads.add("users")

        assert ImportOperation(store, fake_client).run(["users"]) == {"users": False}
