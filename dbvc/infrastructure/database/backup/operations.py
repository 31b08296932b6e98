"""テーブル単位の操作（バックアップ・インポート）"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Optional

from dbvc.core.logging import get_logger
from dbvc.domain.exceptions.base import (
    DatabaseClientError,
    DomainError,
    DumpFailure,
    ImportFailure,
    IntegrityFailure,
)
from dbvc.infrastructure.database.client import DatabaseClient

from .models import Substitution
from .store import MIN_SNAPSHOT_BYTES, SnapshotStore


class OperationKind(str, Enum):
    """テーブル単位の操作の種類"""

    BACKUP = "backup"
    IMPORT = "import"


class TableOperation(ABC):
    """
    テーブル単位の操作の基底クラス。

    サブクラスはexecute()を実装する。run()は各テーブルの失敗を
    例外ではなくテーブルごとの成否として返す。

    Example:
        >>> operation = create_operation(OperationKind.BACKUP, store, client)
        >>> operation.run(["users", "orders"])
        {'users': True, 'orders': True}
    """

    kind: OperationKind

    def __init__(self, store: SnapshotStore, client: DatabaseClient) -> None:
        self.store = store
        self.client = client
        self.logger = get_logger(__name__)

    @abstractmethod
    def execute(self, table: str) -> None:
        """
        1テーブルに対する処理。

        Raises:
            DomainError: 処理に失敗した場合
        """

    def on_success(self, table: str) -> None:
        """テーブル成功時のフック"""
        self.logger.info(f"- {table}: ok")

    def on_failure(self, table: str, error: Exception) -> None:
        """テーブル失敗時のフック"""
        self.logger.warning(f"- {table}: {error}")

    def run(self, tables: Iterable[str]) -> Dict[str, bool]:
        """
        全テーブルに対して順番に処理を実行する。

        1テーブルの失敗で残りのテーブルの処理は止めない。

        Returns:
            Dict[str, bool]: テーブル名をキー、成否を値とする辞書
        """
        start_time = datetime.now()
        name = self.kind.value.upper()
        status: Dict[str, bool] = {}

        self.logger.info(f"[{name}] start")
        for table in tables:
            try:
                self.execute(table)
            except (DomainError, OSError) as e:
                self.on_failure(table, e)
                status[table] = False
            else:
                self.on_success(table)
                status[table] = True

        elapsed = datetime.now() - start_time
        failed = sum(1 for ok in status.values() if not ok)
        self.logger.info(
            f"[{name}] completed: {len(status) - failed} ok, {failed} failed ({elapsed})"
        )
        return status


class BackupOperation(TableOperation):
    """テーブルをスナップショットファイルにダンプする"""

    kind = OperationKind.BACKUP

    def execute(self, table: str) -> None:
        try:
            data = self.client.dump_table(table)
        except DatabaseClientError as e:
            raise DumpFailure(e.message, details={"table": table}) from e

        self.store.write(table, data)

        if not self.store.verify(table):
            raise DumpFailure(
                f"Dump of {table} is smaller than {MIN_SNAPSHOT_BYTES} bytes",
                details={"table": table},
            )


class ImportOperation(TableOperation):
    """スナップショットファイルをテーブルにロードする"""

    kind = OperationKind.IMPORT

    def __init__(
        self,
        store: SnapshotStore,
        client: DatabaseClient,
        substitution: Optional[Substitution] = None,
    ) -> None:
        super().__init__(store, client)
        self.substitution = substitution or Substitution()

    def execute(self, table: str) -> None:
        if not self.store.verify(table):
            raise IntegrityFailure(
                f"Snapshot for {table} is missing or incomplete",
                details={"table": table, "path": str(self.store.snapshot_path(table))},
            )

        data = self.substitution.apply(self.store.read(table))

        try:
            self.client.load_table(table, data)
        except DatabaseClientError as e:
            raise ImportFailure(e.message, details={"table": table}) from e


def create_operation(
    kind: OperationKind,
    store: SnapshotStore,
    client: DatabaseClient,
    substitution: Optional[Substitution] = None,
) -> TableOperation:
    """
    操作の種類に対応するTableOperationを作成する

    Raises:
        ValueError: 未知の操作の場合
    """
    if kind == OperationKind.BACKUP:
        return BackupOperation(store, client)
    if kind == OperationKind.IMPORT:
        return ImportOperation(store, client, substitution)
    raise ValueError(f"Unknown operation: {kind!r}")
