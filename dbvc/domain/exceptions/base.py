"""
ドメイン層の例外クラス

バックアップ・リストア処理で発生するエラーを表現する純粋なPython例外。
フレームワークに依存しない。
"""

from typing import Any, Optional


class DomainError(Exception):
    """
    ドメイン層のベース例外

    Attributes:
        message: エラーメッセージ
        code: エラーコード（識別子）
        details: エラーの詳細情報（オプション）
    """

    def __init__(
        self,
        message: str,
        code: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Args:
            message: エラーメッセージ
            code: エラーコード
            details: エラーの詳細情報（オプション）
        """
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)


class ConfigError(DomainError):
    """トラッキング設定が不正な場合のエラー"""

    def __init__(
        self,
        message: str = "Invalid tracking configuration",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="config_error", details=details)


class DumpFailure(DomainError):
    """テーブルのダンプに失敗した場合のエラー"""

    def __init__(
        self,
        message: str = "Failed to dump one or more tables",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="dump_failure", details=details)


class CheckoutFailure(DomainError):
    """過去のスナップショットのチェックアウトに失敗した場合のエラー"""

    def __init__(
        self,
        message: str = "Error reverting one or more database tables",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="checkout_failure", details=details)


class ImportFailure(DomainError):
    """スナップショットのインポートに失敗した場合のエラー"""

    def __init__(
        self,
        message: str = "Failed to import one or more tables",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="import_failure", details=details)


class IntegrityFailure(DomainError):
    """スナップショットファイルが存在しない、または小さすぎる場合のエラー"""

    def __init__(
        self,
        message: str = "Snapshot is missing or incomplete",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="integrity_failure", details=details)


class RevertFatalError(DomainError):
    """
    リストアを継続できない致命的エラー

    安全バックアップのコミットIDが得られない場合など、
    元に戻す手段が無い状態でのリストアを防ぐ。
    """

    def __init__(
        self,
        message: str = "Something went wrong. Check your settings and try again.",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="revert_fatal", details=details)


class LockTimeoutError(DomainError):
    """リストア用ロックを取得できなかった場合のエラー"""

    def __init__(
        self,
        message: str = "Another restore is already running",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="lock_timeout", details=details)


class DatabaseClientError(DomainError):
    """データベースクライアントの実行に失敗した場合のエラー"""

    def __init__(
        self,
        message: str = "Database client failed",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message, code="database_client_error", details=details
        )
