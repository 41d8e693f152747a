"""
CLI: mandala
Read and edit the goal chart from the terminal.
"""
import sys
from pathlib import Path

import click

# make `core` importable when run as a script
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root))

from core.exceptions import MandalaError
from core.mandala_engine.engine import MandalaEngine, get_engine
from core.snapshot_manager import list_snapshots

STATUS_ICON = {
    "not_started": "⬜",
    "in_progress": "🔶",
    "achieved": "✅",
}


def _engine() -> MandalaEngine:
    return get_engine()


def _echo_celebrations(events) -> None:
    for event in events:
        click.echo(f"🎉 {event.tier.value} achieved: {event.goal_title or event.node_id}")


def _line(node: dict, indent: int = 0) -> str:
    icon = STATUS_ICON.get(node["status"], "?")
    metric = f" [{node['metric_binding']}]" if node.get("metric_binding") else ""
    title = node["title"] or "(untitled)"
    return f"{'  ' * indent}{icon} {node['id']:<28} {node['completion_percent']:>3}%  {title}{metric}"


@click.group()
def mandala():
    """Mandala goal chart commands"""
    pass


@mandala.command()
@click.option("--major", "major_id", default=None, help="Only this major node, e.g. major_2")
@click.option("--leaves", is_flag=True, help="Also list the minor leaves")
def show(major_id, leaves):
    """Print the chart with completion and status."""
    snapshot = _engine().snapshot()
    center = snapshot["center"]
    click.echo(f"🎯 {center['title'] or '(no center goal)'}")

    for major in snapshot["majors"]:
        if major_id and major["id"] != major_id:
            continue
        click.echo(_line(major, 1))
        for middle in major["middles"]:
            click.echo(_line(middle, 2))
            if leaves:
                for leaf in middle["leaves"]:
                    click.echo(_line(leaf, 3))


@mandala.command()
@click.argument("node_id")
@click.argument("text")
@click.option("--metric", default=None,
              type=click.Choice(["revenue", "grossProfit", "operatingProfit", "netWorth"]),
              help="Bind the node to a P/L metric instead of detecting it from the title")
def title(node_id, text, metric):
    """Set the title of NODE_ID."""
    engine = _engine()
    try:
        events = engine.set_node_title(node_id, text, metric)
    except MandalaError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)
    node = engine.get_node(node_id)
    click.echo(f"✏️  {node.id}: {node.title}")
    _echo_celebrations(events)


def _set_check(leaf_id: str, checked: bool) -> None:
    engine = _engine()
    try:
        events = engine.set_leaf_check(leaf_id, checked)
    except MandalaError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)
    parent = engine.store.parent_of(leaf_id)
    click.echo(f"{'☑️' if checked else '⬜'} {leaf_id} -> {parent.id} {parent.completion_percent}%")
    _echo_celebrations(events)


@mandala.command()
@click.argument("leaf_id")
def check(leaf_id):
    """Check a minor leaf."""
    _set_check(leaf_id, True)


@mandala.command()
@click.argument("leaf_id")
def uncheck(leaf_id):
    """Uncheck a minor leaf."""
    _set_check(leaf_id, False)


@mandala.command()
@click.argument("year", type=int)
@click.option("--revenue", type=float, default=None)
@click.option("--gross-profit", type=float, default=None)
@click.option("--operating-profit", type=float, default=None)
@click.option("--net-worth", type=float, default=None)
def actual(year, revenue, gross_profit, operating_profit, net_worth):
    """Record yearly P/L actuals and update metric-bound goals."""
    values = {
        "revenue_actual": revenue,
        "gross_profit_actual": gross_profit,
        "operating_profit_actual": operating_profit,
        "net_worth_actual": net_worth,
    }
    if all(v is None for v in values.values()):
        click.echo("❌ Give at least one figure, e.g. --revenue 30000000", err=True)
        sys.exit(1)

    engine = _engine()
    updated = engine.on_yearly_actual_metrics_changed(year, values)
    if updated:
        click.echo(f"📈 Year {year} actuals applied")
    else:
        click.echo(f"ℹ️ Year {year} actuals stored; no goal was updated")
    _echo_celebrations(engine.drain_celebrations())


@mandala.group()
def snapshot():
    """Backup snapshots of the chart"""
    pass


@snapshot.command("create")
def snapshot_create():
    """Write a backup of the current chart."""
    path = _engine().create_backup()
    click.echo(f"💾 Snapshot written: {path.name}")


@snapshot.command("list")
def snapshot_list():
    """List backups, newest first."""
    snapshots = list_snapshots(_engine().snapshot_dir)
    if not snapshots:
        click.echo("ℹ️ No snapshots yet")
        return
    for info in snapshots:
        click.echo(f"  {info['filename']}  {info['created_at']}  {info['size_bytes']} bytes")


@snapshot.command("restore")
@click.argument("path", required=False)
def snapshot_restore(path):
    """Restore PATH, or the latest backup."""
    try:
        _engine().restore_backup(path)
    except FileNotFoundError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    except MandalaError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)
    click.echo(f"♻️ Restored {path or 'latest snapshot'}")


if __name__ == "__main__":
    mandala()
