"""バージョン管理のモデル定義"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class Commit(BaseModel):
    """
    バージョン管理上のコミット

    Attributes:
        hash: コミットハッシュ
        message: コミットメッセージ（件名）
        timestamp: コミット日時
        branch: コミットを含むブランチ（現在のブランチを優先）
        files: コミットに含まれるファイル
    """

    hash: str = Field(description="コミットハッシュ")
    message: str = Field(description="コミットメッセージ")
    timestamp: datetime = Field(description="コミット日時")
    branch: str = Field(default="", description="コミットを含むブランチ")
    files: List[str] = Field(default_factory=list, description="コミットされたファイル")
