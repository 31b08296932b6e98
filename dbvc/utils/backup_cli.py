"""データベースバージョン管理CLI"""

from typing import Optional, Tuple

import click

from dbvc.core.config import get_settings
from dbvc.core.logging import get_logger, setup_logging
from dbvc.core.monitoring import init_monitoring
from dbvc.domain.exceptions import DomainError
from dbvc.infrastructure.database.backup.models import TrackingConfig, TrackingMode
from dbvc.infrastructure.database.backup.store import filename_to_table
from dbvc.infrastructure.database.backup.tracker import save_tracking_config

from .deps import Services, build_services

logger = get_logger(__name__)


def get_services(ctx: click.Context) -> Services:
    """コンテキストのサービスを取得する（未作成の場合は作成する）"""
    if ctx.obj is None:
        ctx.obj = build_services()
        logger.debug(f"Using repository {ctx.obj.settings.repo_path}")
    return ctx.obj


@click.group()
def cli() -> None:
    """データベースバージョン管理CLI"""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    init_monitoring(settings)


@cli.command("backup")
@click.option("--table", "-t", "tables", multiple=True, help="対象テーブル（複数指定可）")
@click.option("--message", "-m", default="", help="コミットメッセージ")
@click.option("--no-commit", is_flag=True, help="コミットせずにダンプだけ行う")
@click.pass_context
def backup_command(
    ctx: click.Context, tables: Tuple[str, ...], message: str, no_commit: bool
) -> None:
    """テーブルをダンプしてコミットする"""
    services = get_services(ctx)

    click.echo("Starting database backup...")
    result = services.backup.backup(
        tables=list(tables) or None, message=message, commit=not no_commit
    )
    if not result.success:
        click.echo(f"✗ {result.message}", err=True)
        for table in result.failed_tables:
            click.echo(f"  - {table}", err=True)
        raise click.Abort()

    click.echo(f"✓ Backed up {len(result.tables)} table(s)")
    if result.commit_id:
        state = "committed" if result.committed else "no changes"
        click.echo(f"  Commit: {result.commit_id} ({state})")


@cli.command("import")
@click.option("--table", "-t", "tables", multiple=True, help="対象テーブル（複数指定可）")
@click.pass_context
def import_command(ctx: click.Context, tables: Tuple[str, ...]) -> None:
    """スナップショットをデータベースにインポートする"""
    services = get_services(ctx)

    result = services.importer.import_tables(tables=list(tables) or None)
    if not result.success:
        click.echo(f"✗ {result.message}", err=True)
        for table in result.failed_tables:
            click.echo(f"  - {table}", err=True)
        raise click.Abort()

    click.echo(f"✓ {result.message}")


@cli.command("restore")
@click.argument("commit")
@click.option("--yes", "-y", is_flag=True, help="確認をスキップ")
@click.pass_context
def restore_command(ctx: click.Context, commit: str, yes: bool) -> None:
    """
    データベースを指定コミットの状態に戻す

    COMMIT: リストア先のコミットID
    """
    services = get_services(ctx)

    if not yes:
        click.echo("⚠ WARNING: This will overwrite the tracked tables in the database!")
        click.confirm("Are you sure you want to continue?", abort=True)

    click.echo(f"Restoring database to {commit}...")
    result = services.revert.restore(commit)
    try:
        result.raise_for_status()
    except DomainError as e:
        click.echo(f"✗ {e.message} ({e.code})", err=True)
        if result.safety_commit_id:
            click.echo(f"  Safety backup: {result.safety_commit_id}", err=True)
        raise click.Abort()

    click.echo(f"✓ {result.message}")
    if result.undo is not None:
        click.echo(f"  Undo with: {result.undo.command}")


@cli.command("verify")
@click.argument("tables", nargs=-1)
@click.pass_context
def verify_command(ctx: click.Context, tables: Tuple[str, ...]) -> None:
    """
    スナップショットが有効かどうか検証する

    TABLES: 対象テーブル（省略時は全スナップショット）
    """
    services = get_services(ctx)
    targets = list(tables) or services.store.list_snapshot_tables()

    if not targets:
        click.echo("No snapshots found")
        return

    invalid = []
    for table in targets:
        if services.store.verify(table):
            click.echo(f"  ✓ {table}")
        else:
            click.echo(f"  ✗ {table}")
            invalid.append(table)

    if invalid:
        click.echo(f"✗ {len(invalid)} invalid snapshot(s)", err=True)
        raise click.Abort()
    click.echo(f"✓ All {len(targets)} snapshot(s) are valid")


@cli.command("tables")
@click.pass_context
def tables_command(ctx: click.Context) -> None:
    """データベースのテーブルとトラッキング状態を一覧表示する"""
    services = get_services(ctx)
    config = services.tracker.load_config()
    tables = services.tracker.list_tables(config)

    click.echo(f"Tracking mode: {config.mode or TrackingMode.ALL_TABLES.value}")
    if not tables:
        click.echo("No tables found")
        return

    for table in tables:
        mark = "*" if table.tracked else " "
        click.echo(f"  [{mark}] {table.name} {table.size_label}")


@cli.command("orphans")
@click.pass_context
def orphans_command(ctx: click.Context) -> None:
    """データベースに存在しないテーブルのスナップショットを一覧表示する"""
    services = get_services(ctx)
    orphans = services.store.list_orphan_tables(services.tracker.live_tables())

    if not orphans:
        click.echo("No new tables found in backups")
        return

    click.echo("Tables in backups but not in the database:")
    for table in sorted(orphans):
        click.echo(f"  - {table}")


@cli.command("track")
@click.argument("mode", type=click.Choice([m.value for m in TrackingMode]))
@click.option("--table", "-t", "tables", multiple=True, help="カスタムモードの対象テーブル")
@click.option("--dev-url", default=None, help="インポート時に置き換える開発環境URL")
@click.pass_context
def track_command(
    ctx: click.Context, mode: str, tables: Tuple[str, ...], dev_url: Optional[str]
) -> None:
    """
    トラッキング設定を変更する

    MODE: all_tables / custom / none
    """
    services = get_services(ctx)
    current = services.tracker.load_config()

    config = TrackingConfig(
        mode=mode,
        tables=list(tables) if tables else current.tables,
        dev_url=dev_url if dev_url is not None else current.dev_url,
    )
    if not save_tracking_config(services.git, config):
        click.echo("✗ Failed to save tracking settings", err=True)
        raise click.Abort()

    click.echo(f"✓ Tracking mode set to {mode}")
    if mode == TrackingMode.CUSTOM.value:
        click.echo(f"  Tables: {', '.join(config.tables) or '(none)'}")


@cli.command("show")
@click.argument("commit")
@click.pass_context
def show_command(ctx: click.Context, commit: str) -> None:
    """
    コミットの詳細と含まれるスナップショットを表示する

    COMMIT: コミットID
    """
    services = get_services(ctx)
    info = services.git.get_commit(commit)
    if info is None:
        click.echo(f"✗ Commit not found: {commit}", err=True)
        raise click.Abort()

    click.echo(f"Commit:  {info.hash}")
    click.echo(f"Date:    {info.timestamp.isoformat()}")
    if info.branch:
        click.echo(f"Branch:  {info.branch}")
    click.echo(f"Message: {info.message}")

    tables = [
        table
        for table in (filename_to_table(path.rsplit("/", 1)[-1]) for path in info.files)
        if table is not None
    ]
    if tables:
        click.echo("Tables:")
        for table in tables:
            click.echo(f"  - {table}")


if __name__ == "__main__":
    cli()
