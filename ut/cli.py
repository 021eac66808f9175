"""usertimers command line — inspect and drive the persisted per-user timers."""

import click
from PySide6.QtCore import QCoreApplication, QTimer

from ut.common.logger import set_level
from ut.core.config import load_settings
from ut.core.storage import JsonFileStore, TimerPersistence
from ut.facade import TimersFacade
from ut.util.misc import format_duration


def _application():
    return QCoreApplication.instance() or QCoreApplication([])


@click.group()
@click.option("--storage", type=click.Path(dir_okay=False), default=None,
              help="Storage file to use instead of the default data directory.")
@click.pass_context
def cli(ctx, storage):
    """Per-user elapsed-time trackers that survive restarts."""
    settings = load_settings()
    set_level(settings["log_level"])
    _application()
    persistence = TimerPersistence(JsonFileStore(storage), key=settings["storage_key"])
    facade = TimersFacade(persistence=persistence, settings=settings)
    facade.initialize_all()
    ctx.obj = facade
    ctx.call_on_close(facade.shutdown)


@cli.command()
@click.pass_obj
def status(facade):
    """Show every timer and its current total."""
    mapping = facade.get_all_timers().value
    if not mapping:
        click.echo("No timers.")
        return
    for user_id in sorted(mapping):
        state = "running" if mapping[user_id].is_running else "stopped"
        click.echo(f"{user_id:>8}  {format_duration(facade.total(user_id))}  {state}")


@cli.command()
@click.argument("user_id", type=int)
@click.pass_obj
def start(facade, user_id):
    """Start USER_ID's timer."""
    facade.start(user_id)
    click.echo(f"{user_id} running at {format_duration(facade.total(user_id))}")


@cli.command()
@click.argument("user_id", type=int)
@click.pass_obj
def stop(facade, user_id):
    """Stop USER_ID's timer and bank the elapsed time."""
    facade.stop(user_id)
    click.echo(f"{user_id} stopped at {format_duration(facade.total(user_id))}")


@cli.command()
@click.argument("user_id", type=int)
@click.pass_obj
def reset(facade, user_id):
    """Zero USER_ID's timer."""
    facade.reset(user_id)
    click.echo(f"{user_id} reset")


@cli.command()
@click.argument("user_id", type=int)
@click.pass_obj
def forget(facade, user_id):
    """Remove USER_ID's timer entirely."""
    facade.forget(user_id)
    click.echo(f"{user_id} forgotten")


@cli.command()
@click.option("--seconds", type=click.IntRange(min=1), default=10, show_default=True,
              help="How long to keep printing ticks.")
@click.pass_obj
def watch(facade, seconds):
    """Print ticks of running timers for a while."""
    if not facade.scheduler.active_ids:
        click.echo("No running timers.")
        return
    app = _application()
    facade.store.ticked.connect(lambda user_id, total: click.echo(f"{user_id:>8}  {format_duration(total)}"))
    QTimer.singleShot(seconds * 1000, app.quit)
    app.exec()


def main():
    cli(prog_name="usertimers")
