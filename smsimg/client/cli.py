"""
Command-line interface for the SMS image client.

Usage:
    smsimg send +15550100 photo.jpg
    smsimg send +15550100 photo.jpg --passphrase secret
    smsimg listen --phone +15550100
    smsimg status
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from .client import Endpoint
from ..core.config import SmsImgConfig
from ..core.exceptions import BulkChannelNotConnectedError, SmsImgError
from ..engine.media import MediaError, ReconstructedImage
from ..network.bulk import BulkChannel
from ..network.narrow import witness_indices

logger = logging.getLogger(__name__)


def load_config(ctx: click.Context, relay: Optional[str]) -> SmsImgConfig:
    """Config from the group context, with an optional relay override."""
    config: SmsImgConfig = ctx.obj["config"]
    if relay:
        config.relay_url = relay
    return config


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, debug: bool):
    """SMS image transport - images over a relay, verified over SMS"""
    ctx.ensure_object(dict)

    config = SmsImgConfig()
    logging.basicConfig(
        level=logging.DEBUG if debug else config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    ctx.obj["config"] = config


@cli.command()
@click.argument("recipient")
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.option("--passphrase", "-k", default=None, help="Encrypt the payload with this passphrase")
@click.option("--relay", "-r", default=None, help="Relay URL (ws://host:port)")
@click.option("--sender", "-f", "phone", default="smsimg", help="Sender phone number")
@click.option("--yes", "-y", is_flag=True, help="Skip the SMS count confirmation")
@click.option("--timeout", default=10.0, help="Seconds to wait for the relay")
@click.pass_context
def send(
    ctx,
    recipient: str,
    image: str,
    passphrase: Optional[str],
    relay: Optional[str],
    phone: str,
    yes: bool,
    timeout: float
):
    """Send an image to a recipient."""
    config = load_config(ctx, relay)
    endpoint = Endpoint.over_relay(phone, config)
    endpoint.passphrase = passphrase

    async def show_progress(text: str):
        click.echo(click.style(f"  {text}", fg="bright_black"))

    async def confirm(total: int) -> bool:
        witnesses = len(witness_indices(total))
        click.echo(f"Payload: {total} fragment(s), {witnesses} sent by SMS")
        if yes:
            return True
        return await asyncio.to_thread(
            click.confirm, f"This image will be sent in {total} SMS. Continue?", default=True
        )

    endpoint.on_progress(show_progress)

    async def do_send():
        await endpoint.start()
        try:
            if not await endpoint.bulk.wait_connected(timeout):
                raise BulkChannelNotConnectedError(f"Relay not reachable at {config.relay_url}")
            return await endpoint.send(recipient, image, confirm=confirm)
        finally:
            await endpoint.stop()

    try:
        click.echo(f"Sending {Path(image).name} to {recipient}...")
        result = asyncio.run(do_send())
    except (SmsImgError, MediaError) as e:
        logger.debug(f"Send to {recipient} failed: {e!r}")
        click.echo(click.style(f"✗ Error: {e}", fg="red"))
        sys.exit(1)

    if result.cancelled:
        click.echo("Cancelled.")
        return

    click.echo(click.style("✓ Payload sent!", fg="green"))
    click.echo(f"  ID:       {result.id}")
    click.echo(f"  Checksum: {result.checksum[:16]}...")
    click.echo(f"  SMS:      {result.witnesses_sent}/{result.witnesses_attempted}")
    if not result.narrow_complete:
        click.echo(click.style("⚠ Some SMS parts were not sent", fg="yellow"))


@cli.command()
@click.option("--phone", "-p", required=True, help="Your phone number")
@click.option("--passphrase", "-k", default=None, help="Passphrase for encrypted images")
@click.option("--relay", "-r", default=None, help="Relay URL (ws://host:port)")
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), help="Where to save images")
@click.pass_context
def listen(
    ctx,
    phone: str,
    passphrase: Optional[str],
    relay: Optional[str],
    output_dir: Optional[str]
):
    """Receive images until interrupted."""
    config = load_config(ctx, relay)
    if output_dir:
        config.downloads_dir = Path(output_dir)

    endpoint = Endpoint.over_relay(phone, config)
    endpoint.passphrase = passphrase

    async def handle_image(image: ReconstructedImage):
        path = await asyncio.to_thread(image.save, config.downloads_dir)
        click.echo()
        click.echo(click.style("✓ Image received", fg="green", bold=True) +
                   (" (encrypted)" if image.encrypted else ""))
        click.echo(f"  Size:     {image.size_formatted}")
        click.echo(f"  Checksum: {image.checksum[:16]}...")
        click.echo(f"  Saved:    {path}")

    async def handle_error(error: SmsImgError):
        click.echo(click.style(f"✗ {error.message}", fg="red"))

    async def show_progress(text: str):
        click.echo(click.style(f"  {text}", fg="bright_black"))

    endpoint.on_image(handle_image)
    endpoint.on_error(handle_error)
    endpoint.on_progress(show_progress)

    async def run_listener():
        click.echo(f"Connecting to relay at {config.relay_url}...")
        await endpoint.start()

        click.echo()
        click.echo(click.style(f"Listening as {phone}...", fg="cyan", bold=True))
        click.echo(click.style("Press Ctrl+C to stop", fg="bright_black"))
        click.echo()

        try:
            while True:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass
        finally:
            await endpoint.stop()

    try:
        asyncio.run(run_listener())
    except KeyboardInterrupt:
        click.echo()
        click.echo("Stopped.")


@cli.command()
@click.option("--relay", "-r", default=None, help="Relay URL (ws://host:port)")
@click.option("--timeout", default=3.0, help="Seconds to wait for the relay")
@click.pass_context
def status(ctx, relay: Optional[str], timeout: float):
    """Show configuration and relay reachability."""
    config = load_config(ctx, relay)

    async def probe() -> bool:
        channel = BulkChannel(config.relay_url, config.reconnect_interval)
        await channel.start()
        try:
            return await channel.wait_connected(timeout)
        finally:
            await channel.stop()

    reachable = asyncio.run(probe())

    click.echo(click.style("Status", fg="cyan", bold=True))
    click.echo()
    if reachable:
        click.echo(f"  Relay:      {click.style('✓ Connected (Ready)', fg='green')}")
    else:
        click.echo(f"  Relay:      {click.style('✗ Unreachable', fg='red')}")
    click.echo(f"  URL:        {config.relay_url}")
    click.echo(f"  Prefix:     {config.prefix}")
    click.echo(f"  Fragment:   {config.fragment_size} chars")
    click.echo(f"  Settle:     {config.settle_delay}s")
    click.echo(f"  Downloads:  {config.downloads_dir}")
    click.echo()


def main():
    """Console entry point."""
    cli()


if __name__ == "__main__":
    main()
