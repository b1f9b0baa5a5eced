"""
Register the bot's webhook with Telegram.

Usage: TELEGRAM_BOT_TOKEN=xxx pdfbot-setup-webhook your-app.example.com
"""

import asyncio
import re

import click
from dotenv import load_dotenv

from .telegram import TelegramAPIError, TelegramClient

WEBHOOK_PATH = '/webhook'


def webhook_url(host: str) -> str:
    """Normalize a host (with or without scheme) into the public webhook URL."""
    host = re.sub(r'^https?://', '', host.strip()).rstrip('/')
    return f"https://{host}{WEBHOOK_PATH}"


async def register(client: TelegramClient, url: str) -> None:
    me = await client.get_me()
    if not me.get('ok'):
        raise click.ClickException(f"Invalid bot token: {me.get('description')}")
    bot = me.get('result') or {}
    click.echo(f"Bot: @{bot.get('username')} ({bot.get('first_name')})")

    result = await client.set_webhook(url, allowed_updates=['message', 'edited_message'],
                                      drop_pending_updates=True)
    if not result.get('ok'):
        raise click.ClickException(f"Failed to set webhook: {result.get('description')}")
    click.echo(f"Webhook set: {url}")

    info = await client.get_webhook_info()
    if info.get('ok'):
        details = info.get('result') or {}
        click.echo("Webhook info:")
        click.echo(f"  URL: {details.get('url')}")
        click.echo(f"  Pending updates: {details.get('pending_update_count')}")
        if details.get('last_error_message'):
            click.echo(f"  Last error: {details.get('last_error_message')}")


@click.command()
@click.argument('host', envvar='PUBLIC_HOST')
@click.option('--token', envvar='TELEGRAM_BOT_TOKEN', required=True, help='Telegram bot token')
def cli(host: str, token: str) -> None:
    """Point the Telegram bot's webhook at https://HOST/webhook."""
    url = webhook_url(host)
    click.echo(f"Setting webhook to: {url}")
    try:
        asyncio.run(register(TelegramClient(token), url))
    except TelegramAPIError as e:
        raise click.ClickException(str(e))


def main():
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
