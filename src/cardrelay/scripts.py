# filename : scripts.py
# created  : 10/16/2026


import logging

import click

from cardrelay.core.detect import MODES
from cardrelay.core.errors import ConfigError
from cardrelay.core.smartcard.logging import configure

lg = logging.getLogger(__name__)


@click.command()
@click.option(
    "-c",
    "--config",
    type=click.Path(dir_okay=False),
    envvar="CARDRELAY_CONFIG",
    default=None,
    help="YAML settings file (reloaded when it changes).",
)
@click.option(
    "-b",
    "--broker",
    envvar="CARDRELAY_BROKER",
    default=None,
    help="Broker WebSocket URL, or 'local' for this machine's PC/SC service.",
)
@click.option(
    "-m",
    "--mode",
    type=click.Choice(MODES),
    envvar="CARDRELAY_MODE",
    default=None,
    help="Detection mode.",
)
@click.option("-e", "--endpoint", envvar="CARDRELAY_ENDPOINT", default=None, help="URL to POST cards to.")
@click.option("--venue", envvar="CARDRELAY_VENUE", default=None, help="Venue id sent with each card.")
@click.option("--client-id", envvar="CARDRELAY_CLIENT_ID", default=None, help="Client id (generated if unset).")
@click.option(
    "--reconnect-each-poll",
    is_flag=True,
    default=None,
    help="Poll mode: reconnect every cycle instead of holding the card.",
)
@click.option("-v", "--verbose", is_flag=True, help="TRACE level (show raw broker messages).")
@click.option("-q", "--quiet", is_flag=True, help="Warnings and errors only.")
@click.option(
    "-i",
    "--interactive",
    is_flag=True,
    help="Interactive console.",
)
def cardrelay(config, broker, mode, endpoint, venue, client_id, reconnect_each_poll,
              verbose, quiet, interactive):

    configure(verbose, quiet)

    overrides = {
        "broker_url": broker,
        "detection_mode": mode,
        "endpoint_url": endpoint,
        "venue_id": venue,
        "client_id": client_id,
        "hold_card": False if reconnect_each_poll else None,
    }

    from cardrelay.app.main import main
    try:
        main(config=config, overrides=overrides, interactive=interactive)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@click.command()
@click.argument("atr", nargs=-1, required=True)
def cardrelay_atr(atr):
    """Decode an ATR given as hex (spaces and colons allowed)."""
    from cardrelay.app.display import format_atr_info
    from cardrelay.core.smartcard import parse_atr

    text = "".join(atr).replace(":", "").replace(" ", "")
    try:
        raw = bytes.fromhex(text)
    except ValueError as exc:
        raise click.BadParameter(f"not hex: {text}", param_hint="'ATR'") from exc
    info = parse_atr(raw)
    click.echo(format_atr_info(info) or "  (nothing decoded)")
