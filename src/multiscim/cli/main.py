import os
import sys
import asyncio
import click
from rich.table import Table
from rich.panel import Panel
from .manage_tokens import tokens_group
from .tenant import tenant_cli, console


@click.group()
@click.version_option(version="1.0.0", prog_name="MultiSCIM")
def cli():
    """MultiSCIM - multi-tenant SCIM 2.0 provisioning server

    Tenants are isolated customers; each identity provider connection is given an
    API token bound to one tenant.
    """
    pass


cli.add_command(tokens_group, name="token")
cli.add_command(tenant_cli, name="tenant")


@cli.group()
def run():
    """Run the SCIM server"""
    pass


@run.command()
@click.option('--host', '-h', default='0.0.0.0', help='Host to bind to')
@click.option('--port', '-p', default=8000, type=int, help='Port to bind to')
@click.option('--reload/--no-reload', default=True, help='Enable auto-reload')
def dev(host: str, port: int, reload: bool):
    """Run server in development mode"""
    from multiscim.config import settings

    console.print(Panel.fit(
        f"[bold green]Starting MultiSCIM Development Server[/bold green]\n\n"
        f"[yellow]Host:[/yellow] {host}:{port}\n"
        f"[yellow]Docs:[/yellow] http://localhost:{port}/docs\n"
        f"[yellow]API:[/yellow]  http://localhost:{port}{settings.api_prefix}\n"
        f"[yellow]Auth:[/yellow] {'bearer tokens' if settings.auth_enabled else f'disabled, tenant from {settings.tenant_header}'}\n\n"
        f"[dim]Press CTRL+C to stop[/dim]",
        title="MultiSCIM Dev Server"
    ))

    import uvicorn
    uvicorn.run(
        "multiscim.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
        access_log=True
    )


@run.command()
@click.option('--host', '-h', default='0.0.0.0', help='Host to bind to')
@click.option('--port', '-p', default=8000, type=int, help='Port to bind to')
@click.option('--workers', '-w', default=1, type=int, help='Number of worker processes')
def prod(host: str, port: int, workers: int):
    """Run server in production mode"""
    from multiscim.config import settings

    console.print(Panel.fit(
        f"[bold green]Starting MultiSCIM Production Server[/bold green]\n\n"
        f"[yellow]Host:[/yellow] {host}:{port}\n"
        f"[yellow]Workers:[/yellow] {workers}\n"
        f"[yellow]API:[/yellow]  http://{host}:{port}{settings.api_prefix}\n\n"
        f"[dim]Press CTRL+C to stop[/dim]",
        title="MultiSCIM Production Server"
    ))

    import uvicorn
    uvicorn.run(
        "multiscim.main:app",
        host=host,
        port=port,
        workers=workers,
        log_level="info",
        access_log=True
    )


def _masked_database_url(url: str) -> str:
    return url.split('@')[1] if '@' in url else url


@cli.command()
@click.option('--show-values', is_flag=True, help='Show all configuration values')
def config(show_values: bool):
    """Display current configuration"""
    from multiscim.config import settings

    console.print("\n[bold]MultiSCIM Configuration[/bold]\n")

    env_file = os.path.join(os.getcwd(), '.env')
    if os.path.exists(env_file):
        console.print(f"[green]✓[/green] Environment file: {env_file}")
    else:
        console.print(f"[yellow]⚠[/yellow]  No .env file found at: {env_file}")

    table = Table(title="Server Information")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    base_url = f"http://localhost:{settings.port}" if settings.host in ['0.0.0.0', '127.0.0.1'] else f"http://{settings.host}:{settings.port}"

    table.add_row("SCIM Base URL", f"{base_url}{settings.api_prefix}")
    table.add_row("Environment", settings.environment)
    table.add_row("Authentication", "Enabled" if settings.auth_enabled else f"Disabled ({settings.tenant_header} header)")
    table.add_row("Debug Mode", "On" if settings.debug else "Off")

    console.print(table)

    if show_values:
        console.print("\n[bold]Detailed Configuration:[/bold]\n")

        config_table = Table()
        config_table.add_column("Setting", style="cyan")
        config_table.add_column("Value")
        config_table.add_column("Description", style="dim")

        settings_groups = {
            "Server": ["host", "port", "reload", "api_prefix", "cors_origins"],
            "Database": ["database_url"],
            "Tenancy": ["auth_enabled", "tenant_header"],
            "Provisioning": ["validate_manager_reference_exists", "default_page_size", "max_page_size"],
            "Application": ["app_name", "environment", "debug", "log_level"],
        }

        for group_name, names in settings_groups.items():
            config_table.add_row(f"[bold]{group_name}[/bold]", "", "")
            for name in names:
                value = getattr(settings, name)
                if name == "database_url":
                    value = _masked_database_url(value)
                config_table.add_row(f"  {name}", str(value), _field_description(name))

        console.print(config_table)
    else:
        console.print("\n[dim]Tip: Use --show-values to see all configuration values[/dim]")
    console.print("[dim]Tip: Create a .env file to override default settings[/dim]\n")


def _field_description(name: str) -> str:
    from multiscim.config import Settings
    field = Settings.model_fields.get(name)
    return (field.description or "") if field else ""


@cli.group()
def db():
    """Database management commands"""
    pass


@db.command()
def init():
    """Initialize the database schema"""
    async def _init():
        from tortoise import Tortoise
        from multiscim.config import settings

        console.print("[yellow]Initializing database...[/yellow]")

        try:
            await Tortoise.init(config=settings.tortoise_orm_config)
            await Tortoise.generate_schemas(safe=True)

            console.print("[green]✓ Database initialized successfully![/green]")
            console.print(f"[dim]Connected to: {_masked_database_url(settings.database_url)}[/dim]")

        except Exception as e:
            console.print(f"[red]✗ Failed to initialize database: {e}[/red]")
            sys.exit(1)
        finally:
            await Tortoise.close_connections()

    asyncio.run(_init())


@db.command()
def status():
    """Check database connection status"""
    async def _status():
        from tortoise import Tortoise
        from multiscim.config import settings
        from multiscim.models import Tenant, User, Group, APIToken

        console.print("[yellow]Checking database connection...[/yellow]")

        try:
            await Tortoise.init(config=settings.tortoise_orm_config)

            table = Table(title="Database Status")
            table.add_column("Resource", style="cyan")
            table.add_column("Count", style="green")

            table.add_row("Tenants", str(await Tenant.all().count()))
            table.add_row("Users", str(await User.all().count()))
            table.add_row("Groups", str(await Group.all().count()))
            table.add_row("Active API Tokens", str(await APIToken.filter(active=True).count()))

            console.print("[green]✓ Database connection successful![/green]\n")
            console.print(table)

        except Exception as e:
            console.print(f"[red]✗ Database connection failed: {e}[/red]")
            console.print("[yellow]Check your DATABASE_URL in .env[/yellow]")
            sys.exit(1)
        finally:
            await Tortoise.close_connections()

    asyncio.run(_status())


if __name__ == '__main__':
    cli()
