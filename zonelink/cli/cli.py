import time

import click
import requests
from rich.console import Console
from rich.table import Table

from zonelink import ZoneLink, ZoneLinkError
from zonelink.constants import DEFAULT_SUBSCRIPTION_TIMEOUT
from zonelink.upnp.subscriptions import SubscriptionOptions
from zonelink.utils import Scope, SubscriptionRenewalThread

CONTEXT_SETTINGS = {
    "max_content_width": 100,
    "help_option_names": ["--help"],
}

DEFAULT_LISTEN_SERVICES = ["AVTransport", "RenderingControl", "ZoneGroupTopology"]


@click.group()
def cli():
    """
    A commandline interface to zone players on the local network.
    """
    pass


@cli.command(context_settings=CONTEXT_SETTINGS)
@click.option(
    "--timeout",
    "-t",
    help="How long to search for zone players (seconds).",
    metavar="SECS",
    type=click.FLOAT,
    default=5,
    show_default=True,
)
def discover(timeout):
    """
    Find zone player group coordinators.

    Searches the local network for zone players using SSDP, and lists every
    group coordinator that responds within the timeout.
    """
    console = Console()

    with ZoneLink() as zonelink, Scope(timeout) as scope:
        with console.status("Searching for zone players..."):
            zonelink.search(lambda zone_player: None, scope)
            scope.wait()

        zone_players = sorted(
            zonelink.zone_players, key=lambda zone_player: zone_player.room_name or ""
        )

    if not zone_players:
        console.print("No zone players found")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Room")
    table.add_column("Model")
    table.add_column("Serial Number", style="dim")
    table.add_column("Location")

    for zone_player in zone_players:
        table.add_row(
            zone_player.room_name,
            zone_player.model_name,
            zone_player.serial_number,
            zone_player.location,
        )

    console.print(table)


@cli.command(context_settings=CONTEXT_SETTINGS)
@click.option(
    "--room",
    "-r",
    help="Room whose coordinator to listen to.",
    metavar="NAME",
    type=click.STRING,
    required=True,
)
@click.option(
    "--service",
    "-s",
    "services",
    help="Service to subscribe to (can be repeated).",
    metavar="NAME",
    type=click.STRING,
    multiple=True,
    default=DEFAULT_LISTEN_SERVICES,
    show_default=True,
)
@click.option(
    "--timeout",
    "-t",
    help="How long to search for the room (seconds).",
    metavar="SECS",
    type=click.FLOAT,
    default=5,
    show_default=True,
)
@click.option(
    "--duration",
    "-d",
    help="Stop listening after this long (seconds); listen until Ctrl-C otherwise.",
    metavar="SECS",
    type=click.FLOAT,
    default=None,
)
@click.option(
    "--subscription-timeout",
    help="Requested subscription timeout (seconds).",
    metavar="SECS",
    type=click.INT,
    default=DEFAULT_SUBSCRIPTION_TIMEOUT,
    show_default=True,
)
def listen(room, services, timeout, duration, subscription_timeout):
    """
    Print events from a room's coordinator.

    Finds the coordinator for ROOM, subscribes to events from each requested
    service, and prints every event as it arrives. Subscriptions are renewed
    before they lapse, and cancelled on exit.
    """
    console = Console()

    def print_event(event):
        console.print(f"[bold]{event.service}[/bold] {event.name}: {event!r}")

    def cancel(subscriptions):
        for options in subscriptions:
            try:
                zonelink.unsubscribe(options)
            except (ZoneLinkError, requests.RequestException) as e:
                console.print(f"Could not cancel {options.service.name}: {e}")

    with ZoneLink() as zonelink:
        subscriptions = []

        try:
            zone_player = zonelink.find_room(room, timeout=timeout)

            for service in services:
                options = SubscriptionOptions(
                    zone_player=zone_player,
                    service=zone_player.service(service),
                    handler=print_event,
                    timeout=subscription_timeout,
                )
                zonelink.subscribe(options)
                subscriptions.append(options)
        except (ZoneLinkError, requests.RequestException) as e:
            cancel(subscriptions)
            raise click.ClickException(str(e))

        console.print(
            f"Listening to {', '.join(services)} events from '{room}' "
            + f"({zone_player.serial_number}). Ctrl-C to stop."
        )

        renewal_thread = SubscriptionRenewalThread(zonelink, subscriptions)
        renewal_thread.start()

        try:
            if duration is None:
                while True:
                    time.sleep(1)
            else:
                time.sleep(duration)
        except KeyboardInterrupt:
            pass
        finally:
            renewal_thread.stop()
            cancel(subscriptions)
