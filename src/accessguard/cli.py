"""Command-line interface for AccessGuard.

This module provides the CLI commands for initializing and maintaining an
AccessGuard store.
"""

from typing import NoReturn

import click

from accessguard.application import AccessGuard
from accessguard.core.config import Settings, get_settings
from accessguard.core.logging import configure_logging, get_logger
from accessguard.domain.exceptions import AccessGuardError
from accessguard.infrastructure.persistence.schema import AUDIT_LOG, AUDIT_REPORT


def _load_settings() -> Settings:
    settings = get_settings()
    configure_logging(settings)
    return settings


@click.group()
@click.version_option(version="0.1.0", prog_name="AccessGuard")
def cli() -> None:
    """AccessGuard - role-based access control and audit.

    Settings are read from ACCESSGUARD_* environment variables and .env.
    """


@cli.command()
@click.option(
    "--force",
    is_flag=True,
    help="Skip confirmation prompt",
)
def init_store(force: bool) -> None:
    """Initialize the store.

    Creates every sheet, then seeds the default roles, permission catalog
    and permission matrix. Safe to run repeatedly.
    """
    settings = _load_settings()

    if settings.is_production and not force:
        click.echo("ERROR: Running in production mode. Re-run with --force.", err=True)
        raise SystemExit(1)

    guard = AccessGuard(settings)
    try:
        seeded = guard.open()
    finally:
        guard.close()

    click.echo(
        "Store initialized successfully.\n"
        f"  Roles added:        {seeded['roles']}\n"
        f"  Permissions added:  {seeded['permissions']}\n"
        f"  Grants written:     {seeded['grants']}"
    )


@cli.command()
def seed_permissions() -> None:
    """Seed default roles, catalog and matrix without touching existing grants."""
    settings = _load_settings()
    guard = AccessGuard(settings)
    try:
        guard.open(seed=False)
        seeded = guard.seeder.seed_all()
    finally:
        guard.close()

    if not seeded["grants"]:
        click.echo("Permission matrix already populated; existing grants left unchanged.")
    click.echo(
        f"Seeded {seeded['roles']} role(s), {seeded['permissions']} permission(s), "
        f"{seeded['grants']} grant(s)."
    )


@cli.command()
@click.option("--full-name", type=str, default=None, help="Display name (prompts if not provided)")
@click.option("--username", type=str, default=None, help="Login name (prompts if not provided)")
@click.option("--email", type=str, default=None, help="Email address (prompts if not provided)")
@click.option("--password", type=str, default=None, help="Password (prompts if not provided)")
@click.option(
    "--force",
    is_flag=True,
    help="Skip confirmation prompt if a superuser already exists",
)
def create_superadmin(
    full_name: str | None,
    username: str | None,
    email: str | None,
    password: str | None,
    force: bool,
) -> None:
    """Create a user holding the superuser role.

    Intended for bootstrapping an empty store; the creation is audited as
    performed by SYSTEM.
    """
    settings = _load_settings()
    logger = get_logger(__name__)

    guard = AccessGuard(settings)
    try:
        guard.open()

        if guard.lifecycle.has_superuser() and not force:
            if not click.confirm(
                f"An active {settings.superuser_role_id} user already exists. Create another one?",
                default=False,
            ):
                click.echo("Cancelled.")
                raise SystemExit(0)

        if full_name is None:
            full_name = click.prompt("Full name", type=str)
        if username is None:
            username = click.prompt("Username", type=str)
        if email is None:
            email = click.prompt("Email", type=str)
        if password is None:
            password = click.prompt("Password", hide_input=True, confirmation_prompt=True)

        try:
            created = guard.lifecycle.create_superuser(
                {
                    "full_name": full_name,
                    "username": username,
                    "email": email,
                    "password": password,
                }
            )
        except AccessGuardError as e:
            click.echo(f"Error: {e.message}", err=True)
            logger.error("Superuser creation failed", code=e.code, error=e.message)
            raise SystemExit(1)
    finally:
        guard.close()

    click.echo(
        f"\n{settings.superuser_role_id} user created successfully!\n"
        f"  User ID:   {created.user.user_id}\n"
        f"  Username:  {created.user.username}\n"
        f"  Email:     {created.user.email}\n"
    )
    logger.info("Superuser created via CLI", user_id=created.user.user_id)


@cli.command()
def verify_audit() -> None:
    """Re-check the checksum chains of both audit targets.

    Exits with status 1 when either chain is broken.
    """
    settings = _load_settings()
    guard = AccessGuard(settings)
    try:
        guard.open(seed=False)
        breaks = guard.audit.verify_chain()
    finally:
        guard.close()

    broken = False
    for sheet in (AUDIT_LOG, AUDIT_REPORT):
        audit_id = breaks.get(sheet)
        if audit_id:
            broken = True
            click.echo(f"{sheet}: chain broken at {audit_id}", err=True)
        else:
            click.echo(f"{sheet}: OK")

    if broken:
        raise SystemExit(1)


@cli.command()
def info() -> None:
    """Display AccessGuard configuration."""
    settings = get_settings()

    click.echo(f"""
AccessGuard v{settings.app_version}
{'=' * 40}

Configuration:
  Environment:   {settings.environment}
  Timezone:      {settings.timezone}

Store:
  URL:           {settings.store_url}
  Echo:          {settings.store_echo}
  Lock Timeout:  {settings.lock_timeout_seconds:g}s

Authorization:
  Superuser:     {settings.superuser_role_id}
  Delete Key:    {settings.delete_permission_key}
  Report Audit:  {"mandatory" if settings.audit_report_mandatory else "best-effort"}

Logging:
  Level:         {settings.log_level}
  Format:        {settings.log_format}
""")


def main() -> NoReturn:
    """Main entry point for the CLI.

    This function is called when the `accessguard` command is run
    or when using `python -m accessguard`.
    """
    cli()


if __name__ == "__main__":
    main()
