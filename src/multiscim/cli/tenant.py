import asyncio
import functools
from typing import Optional
import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from tortoise import Tortoise

from ..config import settings
from ..services import TenantService
from ..exceptions import SCIMException


console = Console()


async def init_db():
    """Initialize database connection for CLI commands."""
    await Tortoise.init(config=settings.tortoise_orm_config)
    await Tortoise.generate_schemas(safe=True)


async def close_db():
    await Tortoise.close_connections()


def async_command(f):
    """Run an async click command inside its own database session."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        async def run():
            try:
                await init_db()
                return await f(*args, **kwargs)
            except SCIMException as e:
                console.print(f"[red]✗[/red] Error: {e.detail}")
                raise click.Abort()
            finally:
                await close_db()

        return asyncio.run(run())

    return wrapper


@click.group("tenant")
def tenant_cli():
    """Manage tenants."""
    pass


@tenant_cli.command("create")
@click.option("--key", "-k", "tenant_key", required=True, help="Tenant key sent by clients (e.g., 'acme-corp')")
@click.option("--display-name", "-d", required=True, help="Human-readable name (e.g., 'Acme Corporation')")
@click.option("--description", help="Free text description")
@click.option("--inactive", is_flag=True, help="Create the tenant disabled")
@async_command
async def create_tenant(tenant_key: str, display_name: str, description: Optional[str], inactive: bool):
    """Create a new tenant."""
    tenant = await TenantService.create_tenant(
        tenant_key=tenant_key,
        display_name=display_name,
        description=description,
        active=not inactive,
    )

    console.print(Panel(
        f"[green]✓[/green] Tenant created successfully!\n\n"
        f"[bold]ID:[/bold] {tenant.id}\n"
        f"[bold]Key:[/bold] {tenant.tenant_key}\n"
        f"[bold]Display Name:[/bold] {tenant.display_name}\n"
        f"[bold]Active:[/bold] {'Yes' if tenant.active else 'No'}\n\n"
        f"[dim]Send '{settings.tenant_header}: {tenant.tenant_key}' when authentication is disabled,\n"
        f"or issue a token with: multiscim token create --tenant {tenant.tenant_key} --name <name>[/dim]",
        title="Tenant Created",
        border_style="green"
    ))


@tenant_cli.command("list")
@click.option("--all", "-a", "show_all", is_flag=True, help="Show all tenants including inactive ones")
@click.option("--limit", "-l", default=100, help="Maximum number of results")
@async_command
async def list_tenants(show_all: bool, limit: int):
    """List tenants."""
    tenants = await TenantService.list_tenants(active_only=not show_all, limit=limit)

    if not tenants:
        console.print("[yellow]No tenants found.[/yellow]")
        return

    table = Table(title="Tenants", show_lines=True)
    table.add_column("ID", style="dim")
    table.add_column("Key", style="cyan")
    table.add_column("Display Name")
    table.add_column("Active", justify="center")
    table.add_column("Created", style="dim")

    for tenant in tenants:
        table.add_row(
            str(tenant.id),
            tenant.tenant_key,
            tenant.display_name,
            "✓" if tenant.active else "✗",
            tenant.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(tenants)} tenant(s)[/dim]")


@tenant_cli.command("info")
@click.argument("tenant_identifier")
@async_command
async def tenant_info(tenant_identifier: str):
    """Show a tenant and its resource counts (by ID or key)."""
    tenant = await TenantService.find_tenant(tenant_identifier)
    stats = await TenantService.get_tenant_stats(tenant.id)

    console.print(Panel(
        f"[bold]ID:[/bold] {tenant.id}\n"
        f"[bold]Key:[/bold] {tenant.tenant_key}\n"
        f"[bold]Display Name:[/bold] {tenant.display_name}\n"
        f"[bold]Description:[/bold] {tenant.description or 'None'}\n"
        f"[bold]Active:[/bold] {'Yes' if tenant.active else 'No'}\n"
        f"[bold]Created:[/bold] {tenant.created_at.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"[bold]Modified:[/bold] {tenant.modified_at.strftime('%Y-%m-%d %H:%M:%S')}",
        title=f"Tenant: {tenant.display_name}",
        border_style="cyan"
    ))

    counts_table = Table(title="Resource Counts", show_header=False)
    counts_table.add_column("Resource", style="bold")
    counts_table.add_column("Count", justify="right")

    counts_table.add_row("Users", str(stats["counts"]["users"]))
    counts_table.add_row("Groups", str(stats["counts"]["groups"]))
    counts_table.add_row("API Tokens", str(stats["counts"]["api_tokens"]))

    console.print(counts_table)


@tenant_cli.command("update")
@click.argument("tenant_identifier")
@click.option("--display-name", "-d", help="New display name")
@click.option("--description", help="New description")
@click.option("--active/--inactive", default=None, help="Set active status")
@async_command
async def update_tenant(
    tenant_identifier: str,
    display_name: Optional[str],
    description: Optional[str],
    active: Optional[bool]
):
    """Update a tenant (by ID or key)."""
    tenant = await TenantService.find_tenant(tenant_identifier)
    updated = await TenantService.update_tenant(
        tenant_id=tenant.id,
        display_name=display_name,
        description=description,
        active=active,
    )

    console.print(Panel(
        f"[green]✓[/green] Tenant updated successfully!\n\n"
        f"[bold]ID:[/bold] {updated.id}\n"
        f"[bold]Key:[/bold] {updated.tenant_key}\n"
        f"[bold]Display Name:[/bold] {updated.display_name}\n"
        f"[bold]Active:[/bold] {'Yes' if updated.active else 'No'}",
        title="Tenant Updated",
        border_style="green"
    ))


@tenant_cli.command("delete")
@click.argument("tenant_identifier")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
@async_command
async def delete_tenant(tenant_identifier: str, force: bool):
    """Delete a tenant with all of its users, groups and tokens."""
    tenant = await TenantService.find_tenant(tenant_identifier)
    stats = await TenantService.get_tenant_stats(tenant.id)

    console.print(Panel(
        f"[yellow]⚠️  WARNING[/yellow]\n\n"
        f"You are about to delete tenant '[bold]{tenant.display_name}[/bold]' ({tenant.tenant_key}).\n\n"
        f"This will permanently delete:\n"
        f"  • {stats['counts']['users']} users\n"
        f"  • {stats['counts']['groups']} groups\n"
        f"  • {stats['counts']['api_tokens']} API tokens\n\n"
        f"[bold red]This action cannot be undone![/bold red]",
        title="Delete Tenant",
        border_style="red"
    ))

    if not force and not click.confirm("Are you sure you want to proceed?", default=False):
        console.print("[yellow]Deletion cancelled.[/yellow]")
        return

    await TenantService.delete_tenant(tenant.id)
    console.print(f"[green]✓[/green] Tenant '{tenant.display_name}' deleted successfully.")
