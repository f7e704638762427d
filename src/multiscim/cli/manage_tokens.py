from typing import Optional
import click
from rich.table import Table
from rich.panel import Panel
from ..config import settings
from ..services import TenantService, TokenService
from .tenant import async_command, console


@click.group()
def tokens_group():
    """Manage SCIM API tokens"""
    pass


@tokens_group.command()
@click.option('--tenant', '-t', 'tenant_identifier', required=True, help='Tenant the token is bound to (ID or key)')
@click.option('--name', '-n', required=True, help='Name for the token (e.g., "Entra ID", "Okta")')
@click.option('--description', '-d', help='Description of the token usage')
@click.option('--expires-days', '-e', type=int, help='Number of days until token expires')
@click.option('--scopes', '-s', help='Comma-separated token scopes (default: scim:read,scim:write)')
@async_command
async def create(tenant_identifier: str, name: str, description: Optional[str], expires_days: Optional[int], scopes: Optional[str]):
    """Create a new API token for SCIM authentication."""
    tenant = await TenantService.find_tenant(tenant_identifier)
    token_scopes = [s.strip() for s in scopes.split(',') if s.strip()] if scopes else None

    api_token, raw_token = await TokenService.create_token(
        tenant,
        name=name,
        description=description,
        expires_days=expires_days,
        scopes=token_scopes,
    )

    console.print("\n[green]✓ API Token created successfully![/green]\n")
    console.print(f"[bold]Token Name:[/bold] {api_token.name}")
    console.print(f"[bold]Token ID:[/bold] {api_token.id}")
    console.print(f"[bold]Tenant:[/bold] {tenant.display_name} ({tenant.tenant_key})")
    console.print(f"[bold]Scopes:[/bold] {', '.join(api_token.scopes)}")
    if api_token.expires_at:
        console.print(f"[bold]Expires:[/bold] {api_token.expires_at.isoformat()}")

    console.print(Panel(
        f"[bold red]{raw_token}[/bold red]\n\n"
        f"[dim]Authorization: Bearer <token>[/dim]\n"
        f"[dim]SCIM endpoint: http://{settings.host}:{settings.port}{settings.api_prefix}[/dim]",
        title="⚠️  Save this token now, it will not be shown again",
        border_style="yellow"
    ))


@tokens_group.command("list")
@click.option('--tenant', '-t', 'tenant_identifier', help='Only show tokens of this tenant (ID or key)')
@click.option('--all', '-a', 'show_all', is_flag=True, help='Include revoked tokens')
@async_command
async def list_tokens(tenant_identifier: Optional[str], show_all: bool):
    """List API tokens."""
    tenant = await TenantService.find_tenant(tenant_identifier) if tenant_identifier else None
    tokens = await TokenService.list_tokens(tenant=tenant, active_only=not show_all)

    if not tokens:
        console.print("[yellow]No API tokens found.[/yellow]")
        return

    table = Table(title="API Tokens")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Tenant")
    table.add_column("Active", justify="center")
    table.add_column("Expires", style="dim")
    table.add_column("Last Used", style="dim")

    for token in tokens:
        table.add_row(
            str(token.id)[:8],
            token.name,
            token.tenant.tenant_key,
            "✓" if token.active else "✗",
            token.expires_at.strftime("%Y-%m-%d") if token.expires_at else "Never",
            token.last_used_at.strftime("%Y-%m-%d %H:%M") if token.last_used_at else "Never",
        )

    console.print(table)


@tokens_group.command()
@click.argument('token_id')
@click.option('--force', '-f', is_flag=True, help='Skip confirmation prompt')
@async_command
async def revoke(token_id: str, force: bool):
    """Revoke an API token by ID (or unambiguous ID prefix)."""
    if not force and not click.confirm(f"Revoke token '{token_id}'?", default=False):
        console.print("[yellow]Revocation cancelled.[/yellow]")
        return

    token = await TokenService.revoke_token(token_id)
    console.print(f"[green]✓ Token '{token.name}' revoked[/green] (tenant: {token.tenant.tenant_key})")
