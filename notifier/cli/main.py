"""
Notifier CLI entry point.

Main command group for the Bible Daily notifier CLI.
"""

import click

from notifier import __version__


@click.group()
@click.version_option(version=__version__, prog_name="bible-daily-notifier")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """
    Bible Daily notifier - Local notification scheduler.

    Keeps the daily Bible reading reminder and other local notifications
    on schedule. Run 'start' while the app is open and 'worker' in the
    background so notifications still fire when it is closed.

    Use 'bible-daily-notifier COMMAND --help' for more information on a command.
    """
    # Ensure context object exists for subcommands
    ctx.ensure_object(dict)


# Import and register subcommands
from notifier.cli.start import start  # noqa: E402
from notifier.cli.worker import worker  # noqa: E402
from notifier.cli.settings import settings  # noqa: E402
from notifier.cli.notifications import notifications  # noqa: E402
from notifier.cli.trigger import trigger  # noqa: E402
from notifier.cli.permission import permission  # noqa: E402

cli.add_command(start)
cli.add_command(worker)
cli.add_command(settings)
cli.add_command(notifications)
cli.add_command(trigger)
cli.add_command(permission)


def main() -> None:
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
