"""
データベースクライアント

テーブル単位のダンプ（テーブル → SQLスクリプトのバイト列）と
ロード（SQLスクリプト → テーブル）を提供する。
"""

import os
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, List

from sqlalchemy import Engine, MetaData, Table, insert, literal, null, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateIndex, CreateTable
from sqlalchemy.types import TypeEngine, UserDefinedType

from dbvc.core.config import Settings
from dbvc.core.logging import get_logger
from dbvc.domain.exceptions.base import DatabaseClientError

logger = get_logger(__name__)


class DatabaseClient(ABC):
    """データベースクライアントの基底クラス"""

    @abstractmethod
    def dump_table(self, table: str) -> bytes:
        """
        テーブルをSQLスクリプトとしてダンプする

        Raises:
            DatabaseClientError: ダンプに失敗した場合
        """

    @abstractmethod
    def load_table(self, table: str, data: bytes) -> None:
        """
        SQLスクリプトをテーブルにロードする

        Raises:
            DatabaseClientError: ロードに失敗した場合
        """


def split_sql_statements(script: str, backslash_escapes: bool = False) -> List[str]:
    """
    SQLスクリプトを文単位に分割する

    引用符の中の `;` と `--` コメントは区切りとして扱わない。

    Args:
        script: SQLスクリプト
        backslash_escapes: 引用符の中でバックスラッシュをエスケープとして扱うか（MySQL）

    Returns:
        末尾の `;` を除いた文のリスト
    """
    statements: List[str] = []
    buf: List[str] = []
    quote = ""
    i = 0
    n = len(script)

    while i < n:
        ch = script[i]

        if quote:
            buf.append(ch)
            if backslash_escapes and ch == "\\" and i + 1 < n:
                buf.append(script[i + 1])
                i += 2
                continue
            if ch == quote:
                # 引用符の二重化はエスケープ
                if i + 1 < n and script[i + 1] == quote:
                    buf.append(script[i + 1])
                    i += 2
                    continue
                quote = ""
            i += 1
            continue

        if ch in ("'", '"', "`"):
            quote = ch
            buf.append(ch)
        elif script.startswith("--", i):
            end = script.find("\n", i)
            i = n if end == -1 else end
            continue
        elif ch == ";":
            statement = "".join(buf).strip()
            if statement:
                statements.append(statement)
            buf = []
        else:
            buf.append(ch)
        i += 1

    tail = "".join(buf).strip()
    if tail:
        statements.append(tail)
    return statements


class HexBinary(UserDefinedType):
    """
    バイナリ値を16進リテラルとしてレンダリングする型

    literal_bindsでINSERT文を生成する際に使用する。
    """

    cache_ok = True

    def get_col_spec(self, **kw: Any) -> str:
        return "BLOB"

    def literal_processor(self, dialect: Any) -> Callable[[Any], str]:
        def process(value: Any) -> str:
            if value is None:
                return "NULL"
            hex_value = bytes(value).hex()
            if dialect.name == "postgresql":
                return f"'\\x{hex_value}'::bytea"
            return f"X'{hex_value}'"

        return process


def _is_binary(type_: TypeEngine) -> bool:
    try:
        return type_.python_type is bytes
    except NotImplementedError:
        return False


class SqlAlchemyDatabaseClient(DatabaseClient):
    """
    SQLAlchemyによるプロセス内のダンプ・ロード

    テーブル定義をリフレクションし、DROP/CREATE/INSERT文を
    接続先のダイアレクトでレンダリングする。バイナリ値は16進リテラルになる。

    SQLiteではcreate_db_engine()で作成したエンジンを使用すること
    （DROP/CREATEをロード時のトランザクションに含めるため）。
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def dump_table(self, table: str) -> bytes:
        dialect = self.engine.dialect

        try:
            reflected = Table(table, MetaData(), autoload_with=self.engine)
            quoted = dialect.identifier_preparer.quote(table)

            statements = [
                f"DROP TABLE IF EXISTS {quoted}",
                str(CreateTable(reflected).compile(dialect=dialect)).strip(),
            ]
            for index in sorted(reflected.indexes, key=lambda i: i.name or ""):
                statements.append(str(CreateIndex(index).compile(dialect=dialect)).strip())

            with self.engine.connect() as conn:
                rows = conn.execute(
                    select(reflected).order_by(*reflected.primary_key.columns)
                ).mappings().all()

            binary_columns = {c.name for c in reflected.columns if _is_binary(c.type)}
            for row in rows:
                values: dict[str, Any] = {}
                for name, value in row.items():
                    if value is None:
                        values[name] = null()
                    elif name in binary_columns:
                        values[name] = literal(value, HexBinary())
                    else:
                        values[name] = value
                stmt = insert(reflected).values(values)
                statements.append(
                    str(stmt.compile(dialect=dialect, compile_kwargs={"literal_binds": True}))
                )
        except (SQLAlchemyError, NotImplementedError) as e:
            raise DatabaseClientError(
                f"Failed to dump table {table}: {e}", details={"table": table}
            ) from e

        header = (
            f"-- Table: {table}\n"
            f"-- Dialect: {dialect.name}\n"
            f"-- Rows: {len(rows)}\n\n"
        )
        body = "".join(f"{statement};\n" for statement in statements)
        return (header + body).encode("utf-8")

    def load_table(self, table: str, data: bytes) -> None:
        try:
            script = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DatabaseClientError(
                f"Snapshot for {table} is not valid UTF-8", details={"table": table}
            ) from e

        statements = split_sql_statements(
            script, backslash_escapes=self.engine.dialect.name in ("mysql", "mariadb")
        )
        if not statements:
            raise DatabaseClientError(
                f"Snapshot for {table} contains no statements", details={"table": table}
            )

        # テーブル単位で1トランザクション
        try:
            with self.engine.begin() as conn:
                for statement in statements:
                    conn.exec_driver_sql(statement)
        except SQLAlchemyError as e:
            raise DatabaseClientError(
                f"Failed to load table {table}: {e}", details={"table": table}
            ) from e


class PgDumpDatabaseClient(DatabaseClient):
    """
    pg_dump / psql によるダンプ・ロード

    Attributes:
        database_uri: PostgreSQLの接続URL
        bin_path: pg_dump/psqlのあるディレクトリ（空の場合はPATHから探す）
    """

    def __init__(self, database_uri: str, bin_path: str = "") -> None:
        self.url = make_url(database_uri)
        self.bin_path = bin_path

    def _binary(self, name: str) -> str:
        return str(Path(self.bin_path) / name) if self.bin_path else name

    def _connection_args(self) -> List[str]:
        args = [f"--dbname={self.url.database}"]
        if self.url.host:
            args.append(f"--host={self.url.host}")
        if self.url.port:
            args.append(f"--port={self.url.port}")
        if self.url.username:
            args.append(f"--username={self.url.username}")
        return args

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        if self.url.password:
            env["PGPASSWORD"] = str(self.url.password)
        return env

    def _run(self, cmd: List[str], table: str, input_data: bytes | None = None) -> bytes:
        try:
            run = subprocess.run(
                cmd,
                input=input_data,
                env=self._env(),
                check=True,
                capture_output=True,
            )
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.decode("utf-8", errors="replace").strip()
            logger.error(f"Error running {cmd[0]}: {stderr}")
            raise DatabaseClientError(
                f"{Path(cmd[0]).name} failed for table {table}: {stderr}",
                details={"table": table, "returncode": e.returncode},
            ) from e
        except OSError as e:
            raise DatabaseClientError(
                f"Failed to run {cmd[0]}: {e}", details={"table": table}
            ) from e
        return run.stdout

    def dump_table(self, table: str) -> bytes:
        quoted = '"' + table.replace('"', '""') + '"'
        return self._run(
            [
                self._binary("pg_dump"),
                *self._connection_args(),
                f"--table={quoted}",
                "--clean",
                "--if-exists",
                "--no-owner",
                "--format=plain",
            ],
            table,
        )

    def load_table(self, table: str, data: bytes) -> None:
        self._run(
            [
                self._binary("psql"),
                *self._connection_args(),
                "--quiet",
                "--single-transaction",
                "-v",
                "ON_ERROR_STOP=1",
            ],
            table,
            input_data=data,
        )


def create_database_client(settings: Settings, engine: Engine) -> DatabaseClient:
    """
    設定に応じたデータベースクライアントを作成する

    Args:
        settings: アプリケーション設定
        engine: SQLAlchemyエンジン（sqlalchemyドライバで使用）
    """
    if settings.DB_DRIVER == "pg_dump":
        return PgDumpDatabaseClient(settings.database_uri, settings.PG_BIN_PATH)
    return SqlAlchemyDatabaseClient(engine)
