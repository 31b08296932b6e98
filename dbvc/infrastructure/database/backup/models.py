"""バックアップ・リストアのモデル定義"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dbvc.domain.exceptions.base import (
    CheckoutFailure,
    DomainError,
    ImportFailure,
    LockTimeoutError,
    RevertFatalError,
)


class TrackingMode(str, Enum):
    """テーブルのトラッキングモード"""

    ALL_TABLES = "all_tables"
    CUSTOM = "custom"
    NONE = "none"


class TrackingConfig(BaseModel):
    """
    リポジトリごとのトラッキング設定

    git configの `revisr` セクションから読み込まれ、
    1回の操作の間は変更されない値として各ステップに渡される。

    Attributes:
        mode: トラッキングモード（未設定・不明な値の場合はそのまま保持）
        tables: カスタムモードで指定されたテーブル名（順序を保持）
        dev_url: インポート時に置き換える開発環境URL
    """

    model_config = ConfigDict(frozen=True)

    mode: Optional[str] = Field(default=None, description="トラッキングモード")
    tables: List[str] = Field(default_factory=list, description="カスタムテーブル")
    dev_url: str = Field(default="", description="インポート時に置き換えるURL")


class Table(BaseModel):
    """
    データベースのテーブル

    Attributes:
        name: テーブル名
        tracked: トラッキング対象かどうか
        size_bytes: テーブルサイズ（表示用）
    """

    name: str = Field(description="テーブル名")
    tracked: bool = Field(default=False, description="トラッキング対象かどうか")
    size_bytes: int = Field(default=0, description="テーブルサイズ（バイト）")

    @property
    def size_label(self) -> str:
        """MB単位のサイズ表記"""
        return f"({self.size_bytes / 1024 / 1024:.2f} MB)"


class BackupResult(BaseModel):
    """
    バックアップ結果

    Attributes:
        success: 成功フラグ
        message: メッセージ
        tables: テーブル名をキー、ダンプ成否を値とする辞書
        commit_id: バックアップ後のコミットID（コミットしない場合はNone）
        committed: 新しいコミットを作成したかどうか
    """

    success: bool = Field(description="成功フラグ")
    message: str = Field(description="メッセージ")
    tables: Dict[str, bool] = Field(default_factory=dict, description="テーブルごとの結果")
    commit_id: Optional[str] = Field(default=None, description="コミットID")
    committed: bool = Field(default=False, description="コミットを作成したかどうか")

    @property
    def failed_tables(self) -> List[str]:
        """失敗したテーブル"""
        return [name for name, ok in self.tables.items() if not ok]


class ImportResult(BaseModel):
    """
    インポート結果

    Attributes:
        success: 成功フラグ
        message: メッセージ
        tables: テーブル名をキー、ロード成否を値とする辞書
    """

    success: bool = Field(description="成功フラグ")
    message: str = Field(description="メッセージ")
    tables: Dict[str, bool] = Field(default_factory=dict, description="テーブルごとの結果")

    @property
    def failed_tables(self) -> List[str]:
        """失敗したテーブル"""
        return [name for name, ok in self.tables.items() if not ok]


class UndoReference(BaseModel):
    """
    リストアを取り消すための参照

    Attributes:
        commit_id: 安全バックアップのコミットID
        revert_type: 取り消し対象の種類
    """

    commit_id: str = Field(description="安全バックアップのコミットID")
    revert_type: str = Field(default="db", description="取り消し対象の種類")

    @property
    def command(self) -> str:
        """取り消し用のCLIコマンド"""
        return f"dbvc restore {self.commit_id}"


class RevertStatus(str, Enum):
    """リストアの終了状態"""

    SUCCESS = "success"
    ABORTED = "aborted"
    FATAL = "fatal"


class RevertResult(BaseModel):
    """
    リストア結果

    Attributes:
        status: 終了状態
        target_commit: リストア先のコミット
        message: メッセージ
        error_code: 失敗時のエラーコード
        safety_commit_id: 安全バックアップのコミットID
        checkout: テーブルごとのチェックアウト結果
        imported: インポート結果（インポートまで到達した場合）
        undo: 取り消し用の参照（成功時のみ）
    """

    status: RevertStatus = Field(description="終了状態")
    target_commit: str = Field(description="リストア先のコミット")
    message: str = Field(description="メッセージ")
    error_code: Optional[str] = Field(default=None, description="エラーコード")
    safety_commit_id: Optional[str] = Field(default=None, description="安全バックアップ")
    checkout: Dict[str, bool] = Field(default_factory=dict, description="チェックアウト結果")
    imported: Optional[ImportResult] = Field(default=None, description="インポート結果")
    undo: Optional[UndoReference] = Field(default=None, description="取り消し用の参照")

    @property
    def success(self) -> bool:
        return self.status == RevertStatus.SUCCESS

    def raise_for_status(self) -> None:
        """
        失敗した場合に対応するドメイン例外を送出する。

        Raises:
            RevertFatalError: 致命的エラーの場合
            LockTimeoutError: ロックを取得できなかった場合
            CheckoutFailure: チェックアウトに失敗した場合
            ImportFailure: インポートに失敗した場合
            DomainError: その他の中断
        """
        if self.status == RevertStatus.SUCCESS:
            return

        details = {"target_commit": self.target_commit}
        if self.status == RevertStatus.FATAL:
            raise RevertFatalError(self.message, details=details)

        error_types: dict[str, type[DomainError]] = {
            "lock_timeout": LockTimeoutError,
            "checkout_failure": CheckoutFailure,
            "import_failure": ImportFailure,
        }
        error_type = error_types.get(self.error_code or "")
        if error_type is not None:
            raise error_type(self.message, details=details)
        raise DomainError(self.message, code=self.error_code or "aborted", details=details)


class Substitution(BaseModel):
    """
    インポート時の文字列置換

    開発環境と本番環境の間でデータを移すために、
    ダンプ内の `search` を `replace` に置き換える。
    """

    model_config = ConfigDict(frozen=True)

    search: str = Field(default="", description="置換前の文字列")
    replace: str = Field(default="", description="置換後の文字列")

    @property
    def enabled(self) -> bool:
        return self.search != "" and self.search != self.replace

    def apply(self, data: bytes) -> bytes:
        """ダンプの内容に置換を適用する"""
        if not self.enabled:
            return data
        return data.replace(self.search.encode("utf-8"), self.replace.encode("utf-8"))
