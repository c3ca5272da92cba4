"""CLI entrypoint for insights-feeder."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

import rich_click as click
from dotenv import find_dotenv, load_dotenv

from insights_feeder import __version__
from insights_feeder.config import parse_created_after
from insights_feeder.controllers import (
    FeederCliController,
    PendingCommand,
    RunCommand,
    StatusCommand,
)
from insights_feeder.errors import ConfigurationError, FeederError

logger = logging.getLogger(__name__)
T = TypeVar("T")

click.rich_click.USE_MARKDOWN = True
FEEDER_CONTROLLER = FeederCliController()


def _parse_created_after(
    _ctx: click.Context,
    _param: click.Parameter,
    value: str | None,
) -> datetime | None:
    if value is None:
        return None
    try:
        return parse_created_after(value, name="--created-after")
    except ConfigurationError as error:
        raise click.BadParameter(error.message) from error


created_after_option = click.option(
    "--created-after",
    callback=_parse_created_after,
    default=None,
    help="Only documents created at or after this ISO date/datetime (UTC if naive). "
    "Defaults to INSIGHTS_CREATED_AFTER.",
)


@click.group()
@click.version_option(version=__version__, prog_name="insights-feeder")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging.")
def insights_feeder(verbose: bool) -> None:
    """Feed stored meeting data to the insights agent, once per document.

    Settings are read from the environment and from a `.env` file in the
    working directory.
    """

    load_dotenv(find_dotenv(usecwd=True))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@insights_feeder.command("run")
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    default=None,
    help="Documents per batch. Defaults to BATCH_SIZE (5).",
)
@click.option(
    "--item-delay-ms",
    type=click.IntRange(min=0),
    default=None,
    help="Pause after each document. Defaults to DELAY_BETWEEN_REQUESTS_MS (1000).",
)
@click.option(
    "--batch-delay-ms",
    type=click.IntRange(min=0),
    default=None,
    help="Pause after each batch. Defaults to DELAY_BETWEEN_BATCHES_MS (120000).",
)
@created_after_option
@click.option(
    "--skip-final-batch-pause/--no-skip-final-batch-pause",
    default=False,
    show_default=True,
    help="Do not pause after the last batch.",
)
def run(
    batch_size: int | None,
    item_delay_ms: int | None,
    batch_delay_ms: int | None,
    created_after: datetime | None,
    skip_final_batch_pause: bool,
) -> None:
    """Submit every pending document and record the accepted ones."""

    _guard(
        lambda: FEEDER_CONTROLLER.run(
            RunCommand(
                batch_size=batch_size,
                item_delay_ms=item_delay_ms,
                batch_delay_ms=batch_delay_ms,
                created_after=created_after,
                skip_final_batch_pause=skip_final_batch_pause,
            ),
            emit=click.echo,
        ),
    )


@insights_feeder.command("pending")
@created_after_option
@click.option(
    "--limit",
    type=click.IntRange(min=0),
    default=20,
    show_default=True,
    help="How many pending ids to list.",
)
def pending(created_after: datetime | None, limit: int) -> None:
    """List pending documents without calling the endpoint."""

    _emit_lines(
        _guard(
            lambda: FEEDER_CONTROLLER.pending(
                PendingCommand(created_after=created_after, limit=limit),
            ),
        ),
    )


@insights_feeder.command("status")
@created_after_option
def status(created_after: datetime | None) -> None:
    """Show eligible, processed and pending counts."""

    _emit_lines(
        _guard(lambda: FEEDER_CONTROLLER.status(StatusCommand(created_after=created_after))),
    )


def _guard(action: Callable[[], T]) -> T:
    try:
        return action()
    except FeederError as error:
        logger.error("Run aborted (%s): %s", error.code, error.message)
        raise click.ClickException(error.message) from error
    except Exception as error:
        logger.exception("Fatal error")
        raise click.ClickException(f"Fatal error: {error}") from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    insights_feeder()
