from __future__ import annotations

import asyncio
import json

import click

from auth.commands import CommandResult, run_command
from auth.credential_store import KeyringCredentialStore
from auth.session import SessionCoordinator
from gtasks.constants import APP_VERSION
from gtasks.env import Settings, load_env, load_settings, setup_logging
from gtasks.tasks_api import list_tasks


def create_coordinator(settings: Settings) -> SessionCoordinator:
    store = KeyringCredentialStore(settings.keyring_service, settings.keyring_account)
    return SessionCoordinator(
        credential_store=store,
        scope=settings.scope,
        callback_timeout=settings.callback_timeout,
    )


def _settings(*, require_client: bool = True) -> Settings:
    try:
        return load_settings(require_client=require_client)
    except RuntimeError as error:
        raise click.ClickException(str(error))


def _emit(result: CommandResult) -> None:
    click.echo(json.dumps(result.to_dict(), indent=2, sort_keys=True))
    if not result.ok:
        raise click.exceptions.Exit(1)


@click.group()
@click.version_option(APP_VERSION)
@click.option("--show-secrets", is_flag=True, help="Print tokens instead of masking them.")
@click.pass_context
def cli(ctx: click.Context, show_secrets: bool) -> None:
    """Sign in to Google Tasks through a loopback redirect."""
    load_env()
    setup_logging()
    ctx.obj = {"redact": not show_secrets}


@cli.command()
@click.option("--scope", default=None, help="Space separated scopes to request.")
@click.pass_obj
def login(obj: dict, scope: str | None) -> None:
    """Open the browser and sign in."""
    settings = _settings()
    coordinator = create_coordinator(settings)
    result = asyncio.run(
        run_command(
            coordinator.start_new_session(
                settings.client_id,
                settings.client_secret,
                scope or settings.scope,
            ),
            redact=obj["redact"],
        )
    )
    _emit(result)


@cli.command()
@click.pass_obj
def restore(obj: dict) -> None:
    """Restore the previous session from the stored refresh token."""
    settings = _settings()
    coordinator = create_coordinator(settings)
    result = asyncio.run(
        run_command(
            coordinator.restore_session(settings.client_id, settings.client_secret),
            redact=obj["redact"],
        )
    )
    _emit(result)


@cli.command()
def logout() -> None:
    """Forget the stored refresh token."""
    coordinator = create_coordinator(_settings(require_client=False))
    _emit(asyncio.run(run_command(coordinator.sign_out())))


@cli.command()
@click.option("--access-token", envvar="GTASKS_ACCESS_TOKEN", default=None)
def tasks(access_token: str | None) -> None:
    """List the default task list, restoring the session when no token is given."""
    settings = None if access_token else _settings()

    async def _list() -> dict:
        token = access_token
        if token is None:
            coordinator = create_coordinator(settings)
            record = await coordinator.restore_session(
                settings.client_id, settings.client_secret
            )
            token = record.access_token
        return await list_tasks(token)

    _emit(asyncio.run(run_command(_list())))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
