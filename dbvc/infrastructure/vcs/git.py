"""
gitコマンドのラッパー

バックアップ処理が必要とする操作（add/commit/checkout/config/コミット情報の取得）
だけを提供する。コマンドの失敗は例外ではなく戻り値で報告し、
中断するかどうかは呼び出し側が判断する。
"""

import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from dbvc.core.logging import get_logger
from .models import Commit

logger = get_logger(__name__)

# git show で使用するフィールド区切り
_FIELD_SEP = "\x1f"


def is_revision(commit_id: str) -> bool:
    """オプションとして解釈されないリビジョン指定かどうか"""
    return bool(commit_id) and not commit_id.startswith("-")


@dataclass
class GitResult:
    """gitコマンドの実行結果"""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    args: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def lines(self) -> List[str]:
        """標準出力を行単位で返す（空行は除外）"""
        return [line for line in self.stdout.splitlines() if line.strip()]


class GitAdapter:
    """
    gitリポジトリの操作

    Attributes:
        repo_path: gitワーキングツリー
        binary: git実行ファイル
    """

    def __init__(self, repo_path: Path | str, binary: str = "git") -> None:
        self.repo_path = Path(repo_path)
        self.binary = binary

    def run(self, command: str, args: Sequence[str] = ()) -> GitResult:
        """
        gitコマンドを実行する。

        Args:
            command: サブコマンド（"add", "commit"など）
            args: 引数

        Returns:
            GitResult: 実行結果（実行ファイルが見つからない場合もreturncode!=0で返す）
        """
        cmd = [self.binary, command, *args]
        try:
            completed = subprocess.run(
                cmd,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            logger.error(f"Failed to run {' '.join(cmd)}: {e}")
            return GitResult(returncode=127, stderr=str(e), args=cmd)

        result = GitResult(
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            args=cmd,
        )
        if not result.success:
            logger.debug(
                f"git {command} exited with {result.returncode}: {result.stderr.strip()}"
            )
        return result

    # =========================================================================
    # Working tree
    # =========================================================================

    def add_file(self, path: Path | str) -> bool:
        """ファイルをステージする"""
        return self.run("add", ["--", str(path)]).success

    def has_staged_changes(self, paths: Sequence[Path | str] = ()) -> bool:
        """HEADに対してステージ済みの変更があるかどうか"""
        # 最初のコミット前などで比較できない場合も変更ありとみなす
        args = ["--cached", "--quiet"]
        if paths:
            args += ["--", *(str(p) for p in paths)]
        return self.run("diff", args).returncode != 0

    def commit(self, message: str, paths: Sequence[Path | str] = ()) -> bool:
        """
        ステージ済みの変更をコミットする

        pathsを指定した場合はそのファイルだけをコミットする。
        """
        args = ["-m", message]
        if paths:
            args += ["--", *(str(p) for p in paths)]
        result = self.run("commit", args)
        if not result.success:
            logger.error(f"git commit failed: {result.stderr.strip() or result.stdout.strip()}")
        return result.success

    def current_commit_id(self) -> Optional[str]:
        """HEADのコミットIDを取得する（コミットが無い場合はNone）"""
        result = self.run("rev-parse", ["--verify", "HEAD"])
        if not result.success or not result.lines:
            return None
        return result.lines[0].strip()

    def current_branch(self) -> str:
        """現在のブランチ名"""
        result = self.run("rev-parse", ["--abbrev-ref", "HEAD"])
        return result.lines[0].strip() if result.success and result.lines else ""

    def checkout_path_at_commit(self, commit_id: str, path: Path | str) -> bool:
        """
        指定コミット時点の内容でファイルを復元する。

        コミット履歴は変更しない。
        """
        if not is_revision(commit_id):
            logger.warning(f"Refusing to checkout invalid revision {commit_id!r}")
            return False

        result = self.run("checkout", [commit_id, "--", str(path)])
        if not result.success:
            logger.warning(
                f"Failed to checkout {path} at {commit_id}: {result.stderr.strip()}"
            )
        return result.success

    def push(self, remote: str = "origin") -> bool:
        """現在のブランチをリモートにプッシュする"""
        result = self.run("push", [remote, "HEAD"])
        if not result.success:
            logger.warning(f"git push to {remote} failed: {result.stderr.strip()}")
        return result.success

    def git_dir(self) -> Optional[Path]:
        """.gitディレクトリの絶対パス"""
        result = self.run("rev-parse", ["--absolute-git-dir"])
        if not result.success or not result.lines:
            return None
        return Path(result.lines[0].strip())

    # =========================================================================
    # Config
    # =========================================================================

    def get_config(self, section: str, key: str) -> Optional[str]:
        """設定値を取得する（未設定の場合はNone）"""
        result = self.run("config", ["--get", f"{section}.{key}"])
        if not result.success or not result.lines:
            return None
        return result.lines[0].strip()

    def get_config_all(self, section: str, key: str) -> List[str]:
        """複数値の設定を取得する（未設定の場合は空リスト）"""
        result = self.run("config", ["--get-all", f"{section}.{key}"])
        if not result.success:
            return []
        return [line.strip() for line in result.lines]

    def set_config(self, section: str, key: str, value: str) -> bool:
        """設定値を保存する"""
        return self.run("config", [f"{section}.{key}", value]).success

    def set_config_all(self, section: str, key: str, values: Sequence[str]) -> bool:
        """複数値の設定を置き換える"""
        name = f"{section}.{key}"
        unset = self.run("config", ["--unset-all", name])
        # exit code 5 = 設定が存在しない
        if not unset.success and unset.returncode != 5:
            return False
        for value in values:
            if not self.run("config", ["--add", name, value]).success:
                return False
        return True

    # =========================================================================
    # History
    # =========================================================================

    def get_commit(self, commit_id: str) -> Optional[Commit]:
        """
        コミットの詳細を取得する。

        branchには現在のブランチがコミットを含む場合はそのブランチ、
        含まない場合はコミットを含む最初のブランチを設定する。

        Args:
            commit_id: コミットID（短縮形も可）

        Returns:
            Optional[Commit]: コミット情報（存在しない場合はNone）
        """
        if not is_revision(commit_id):
            return None

        fmt = _FIELD_SEP.join(["%H", "%s", "%at"])
        result = self.run(
            "show", ["--name-only", f"--pretty=format:{fmt}", commit_id, "--"]
        )
        if not result.success or not result.lines:
            return None

        header, *files = result.stdout.splitlines()
        try:
            commit_hash, message, timestamp = header.split(_FIELD_SEP)
            committed_at = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
        except ValueError:
            logger.warning(f"Unexpected git show output for {commit_id}: {header!r}")
            return None

        return Commit(
            hash=commit_hash,
            message=message,
            timestamp=committed_at,
            branch=self._branch_containing(commit_hash),
            files=[f.strip() for f in files if f.strip()],
        )

    def branches_containing(self, commit_id: str) -> List[str]:
        """コミットを含むローカルブランチ"""
        if not is_revision(commit_id):
            return []
        result = self.run(
            "branch", ["--contains", commit_id, "--format=%(refname:short)"]
        )
        return [line.strip() for line in result.lines] if result.success else []

    def _branch_containing(self, commit_id: str) -> str:
        branches = self.branches_containing(commit_id)
        current = self.current_branch()
        if current in branches:
            return current
        return branches[0] if branches else ""
