"""
スナップショットの保存先ディレクトリ

1テーブルにつき1ファイル（`revisr_<テーブル名>.sql`）を
単一のバックアップディレクトリ直下に保存する。
"""

from pathlib import Path
from typing import Iterable, List, Set
from urllib.parse import quote, unquote

from dbvc.core.logging import get_logger

logger = get_logger(__name__)

SNAPSHOT_PREFIX = "revisr_"
SNAPSHOT_EXTENSION = ".sql"

# これより小さいファイルは空または失敗したダンプとみなす
MIN_SNAPSHOT_BYTES = 100

# .sqlファイルへの直接アクセスを拒否
HTACCESS_CONTENT = (
    '<FilesMatch "\\.sql">\n'
    "Order allow,deny\n"
    "Deny from all\n"
    "Satisfy All\n"
    "</FilesMatch>\n"
)
# ディレクトリ一覧の表示を防ぐ
INDEX_CONTENT = "<?php // Silence is golden\n"

MARKER_FILES = {
    ".htaccess": HTACCESS_CONTENT,
    "index.php": INDEX_CONTENT,
}


def table_to_filename(table: str) -> str:
    """
    テーブル名をスナップショットのファイル名に変換する

    パス区切りなどファイル名に使えない文字はパーセントエンコードする。
    `%` 自体もエンコードされるため、異なるテーブル名が同じファイル名になることはない。
    """
    return f"{SNAPSHOT_PREFIX}{quote(table, safe='_-.$')}{SNAPSHOT_EXTENSION}"


def filename_to_table(filename: str) -> str | None:
    """スナップショットのファイル名からテーブル名を復元する（対象外の場合はNone）"""
    if not filename.startswith(SNAPSHOT_PREFIX) or not filename.endswith(SNAPSHOT_EXTENSION):
        return None
    encoded = filename[len(SNAPSHOT_PREFIX) : -len(SNAPSHOT_EXTENSION)]
    if not encoded:
        return None
    return unquote(encoded)


class SnapshotStore:
    """
    バックアップディレクトリの管理

    Attributes:
        backup_dir: バックアップディレクトリ
    """

    def __init__(self, backup_dir: Path | str) -> None:
        self.backup_dir = Path(backup_dir)

    def ensure_directory(self) -> bool:
        """
        バックアップディレクトリと保護用ファイルを作成する

        既に存在するファイルは上書きしない。何度呼び出しても結果は同じ。

        Returns:
            bool: 新しく何かを作成した場合True
        """
        created = False
        if not self.backup_dir.is_dir():
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created backup directory: {self.backup_dir}")
            created = True

        for name, content in MARKER_FILES.items():
            try:
                with open(self.backup_dir / name, "x", encoding="utf-8") as f:
                    f.write(content)
                created = True
            except FileExistsError:
                continue

        return created

    def snapshot_path(self, table: str) -> Path:
        """テーブルのスナップショットファイルのパス"""
        return self.backup_dir / table_to_filename(table)

    def verify(self, table: str) -> bool:
        """
        スナップショットが信頼できるかどうかを確認する

        ファイルが存在し、サイズがMIN_SNAPSHOT_BYTES以上の場合にTrue。
        内容のチェックサムは確認しない。
        """
        path = self.snapshot_path(table)
        try:
            return path.is_file() and path.stat().st_size >= MIN_SNAPSHOT_BYTES
        except OSError:
            return False

    def write(self, table: str, data: bytes) -> Path:
        """スナップショットを書き込む（既存のファイルは上書き）"""
        path = self.snapshot_path(table)
        path.write_bytes(data)
        return path

    def read(self, table: str) -> bytes:
        """スナップショットを読み込む"""
        return self.snapshot_path(table).read_bytes()

    def list_snapshot_tables(self) -> List[str]:
        """スナップショットが保存されているテーブル名の一覧"""
        if not self.backup_dir.is_dir():
            return []

        tables = []
        for entry in self.backup_dir.iterdir():
            if not entry.is_file():
                continue
            table = filename_to_table(entry.name)
            if table is not None:
                tables.append(table)
        return sorted(tables)

    def list_orphan_tables(self, live_tables: Iterable[str]) -> Set[str]:
        """
        スナップショットはあるがデータベースに存在しないテーブルを取得する

        テーブルが削除された、またはまだ作成されていない場合のインポートに使用する。

        Args:
            live_tables: 現在データベースに存在するテーブル名
        """
        return set(self.list_snapshot_tables()) - set(live_tables)
