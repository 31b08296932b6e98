from typing import Any, Dict, List

from sqlalchemy import Engine, create_engine, event, inspect, text

from dbvc.core.logging import get_logger

logger = get_logger(__name__)


def _enable_sqlite_transactional_ddl(engine: Engine) -> None:
    """
    SQLiteでDDLもトランザクションに含める

    pysqliteはDDLの前にトランザクションを開始しないため、
    BEGINの発行をドライバからSQLAlchemyに移す。
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def create_db_engine(database_uri: str) -> Engine:
    """
    データベースエンジンを作成する

    SQLiteの場合、engine.begin()のブロック内のDROP/CREATEも
    ロールバックの対象になるように設定する。

    Args:
        database_uri: SQLAlchemy形式の接続URL

    Returns:
        Engine: SQLAlchemyエンジン
    """
    engine = create_engine(database_uri, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_transactional_ddl(engine)
    logger.debug(f"Database engine created for {engine.url.get_backend_name()}")
    return engine


def get_tables(engine: Engine) -> List[str]:
    """
    データベースに存在するテーブル名の一覧を取得する

    呼び出しのたびにデータベースを参照する（キャッシュしない）。
    """
    return sorted(inspect(engine).get_table_names())


_SIZE_QUERIES = {
    "postgresql": (
        "SELECT c.relname, pg_total_relation_size(c.oid) "
        "FROM pg_class c JOIN pg_namespace n ON n.oid = c.relnamespace "
        "WHERE c.relkind = 'r' AND n.nspname = current_schema()"
    ),
    "mysql": (
        "SELECT table_name, COALESCE(data_length, 0) + COALESCE(index_length, 0) "
        "FROM information_schema.tables WHERE table_schema = DATABASE()"
    ),
}
_SIZE_QUERIES["mariadb"] = _SIZE_QUERIES["mysql"]


def get_table_sizes(engine: Engine) -> Dict[str, int]:
    """
    テーブルごとのサイズ（バイト）を取得する

    サイズを取得できないデータベースでは空の辞書を返す。
    表示用の情報なので、取得に失敗しても例外は送出しない。
    """
    query = _SIZE_QUERIES.get(engine.dialect.name)
    if query is None:
        return {}

    try:
        with engine.connect() as conn:
            rows = conn.execute(text(query)).fetchall()
    except Exception as e:
        logger.warning(f"Failed to get table sizes: {e}")
        return {}

    return {str(name): int(size or 0) for name, size in rows}
