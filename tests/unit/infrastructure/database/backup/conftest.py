"""バックアップ機能テスト用フィクスチャ"""

from typing import Dict
from unittest.mock import Mock

import pytest

from dbvc.domain.exceptions import DatabaseClientError
from dbvc.infrastructure.database.backup.models import TrackingConfig
from dbvc.infrastructure.database.client import DatabaseClient


class FakeDatabaseClient(DatabaseClient):
    """
    メモリ上のテーブル内容を返すテスト用クライアント

    failing_dumps / failing_loads に含まれるテーブルは失敗する。
    """

    def __init__(self, tables: Dict[str, bytes] | None = None) -> None:
        self.tables: Dict[str, bytes] = dict(tables or {})
        self.loaded: Dict[str, bytes] = {}
        self.failing_dumps: set[str] = set()
        self.failing_loads: set[str] = set()

    def dump_table(self, table: str) -> bytes:
        if table in self.failing_dumps or table not in self.tables:
            raise DatabaseClientError(f"cannot dump {table}", details={"table": table})
        return self.tables[table]

    def load_table(self, table: str, data: bytes) -> None:
        if table in self.failing_loads:
            raise DatabaseClientError(f"cannot load {table}", details={"table": table})
        self.loaded[table] = data


def snapshot_bytes(table: str, version: str = "v1") -> bytes:
    """100バイト以上のスナップショット内容"""
    return f"-- {table} {version}\n".encode() + b"-" * 120 + b"\n"


@pytest.fixture
def fake_client() -> FakeDatabaseClient:
    """users/ordersのダンプを返すクライアント"""
    return FakeDatabaseClient(
        {"users": snapshot_bytes("users"), "orders": snapshot_bytes("orders")}
    )


@pytest.fixture
def mock_tracker() -> Mock:
    """live = {orders, users}、全テーブルをトラッキングするトラッカー"""
    tracker = Mock()
    tracker.live_tables.return_value = ["orders", "users"]
    tracker.tracked_tables.return_value = {"orders", "users"}
    tracker.load_config.return_value = TrackingConfig()
    return tracker
