"""
pytest設定と共通フィクスチャ

データベースはtmp_path上のSQLite、gitリポジトリはtmp_path上に作成する。
"""

import shutil
import subprocess
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine

from dbvc.core.config import get_settings
from dbvc.infrastructure.database.backup.store import SnapshotStore
from dbvc.infrastructure.database.connection import create_db_engine
from dbvc.infrastructure.vcs.git import GitAdapter


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """テストごとに設定キャッシュをクリアする"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """
    テスト用のSQLiteデータベース

    usersとordersの2テーブルにデータを投入済み。
    """
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    with engine.begin() as conn:
        conn.execute(
            text("CREATE TABLE users (id INTEGER PRIMARY KEY, name VARCHAR(50) NOT NULL)")
        )
        conn.execute(
            text(
                "CREATE TABLE orders (id INTEGER PRIMARY KEY, user_id INTEGER, "
                "note VARCHAR(200))"
            )
        )
        conn.execute(text("INSERT INTO users (id, name) VALUES (1, 'alice'), (2, 'bob')"))
        conn.execute(
            text(
                "INSERT INTO orders (id, user_id, note) VALUES "
                "(1, 1, 'first; order'), (2, 2, 'see http://dev.example.test/item')"
            )
        )
    yield engine
    engine.dispose()


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """初期化済みのgitリポジトリ"""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = tmp_path / "repo"
    repo.mkdir()
    for args in (
        ["init", "--quiet"],
        ["config", "user.name", "Test User"],
        ["config", "user.email", "test@example.com"],
        ["config", "commit.gpgsign", "false"],
    ):
        subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True)
    return repo


@pytest.fixture
def git(git_repo: Path) -> GitAdapter:
    """テスト用リポジトリのgitアダプタ"""
    return GitAdapter(git_repo)


@pytest.fixture
def store(tmp_path: Path) -> SnapshotStore:
    """gitリポジトリの外に置いたスナップショットストア"""
    return SnapshotStore(tmp_path / "backups" / "revisr-backups")
