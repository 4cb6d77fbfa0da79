"""Typer CLI for the tenant orchestrator."""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tenant_orchestrator.common.exceptions import OrchestratorError

app = typer.Typer(name="tenantctl", help="Tenant Orchestrator: provision and manage tenant stacks")
console = Console()


def _run(operation):
    """Run ``operation(orchestrator)`` against an initialized database."""
    from tenant_orchestrator.common.config import get_settings
    from tenant_orchestrator.common.logging import setup_logging
    from tenant_orchestrator.deps import get_db, get_orchestrator

    setup_logging(get_settings().log_level)

    async def _main():
        db = get_db()
        await db.init()
        await db.create_all()
        try:
            return await operation(get_orchestrator())
        finally:
            await db.close()

    try:
        return asyncio.run(_main())
    except OrchestratorError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)


def _print_warnings(warnings) -> None:
    for w in warnings:
        console.print(f"[yellow]warning[/yellow] {w.step}: [bold]{w.code}[/bold] — {w.message}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (default from settings)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default from settings)"),
):
    """Start the orchestrator API server."""
    import uvicorn
    from tenant_orchestrator.app import create_app
    from tenant_orchestrator.common.config import get_settings
    from tenant_orchestrator.common.logging import setup_logging

    settings = get_settings()
    setup_logging(settings.log_level)
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting Tenant Orchestrator on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command("create-tenant")
def create_tenant(
    name: str = typer.Argument(..., help="Display name of the tenant"),
    plan: str = typer.Argument("starter", help="Plan tier"),
):
    """Create a tenant and bring up its stack."""
    tenant = _run(lambda orch: orch.create_tenant(name, plan))

    colour = "green" if tenant.status == "active" else "yellow"
    console.print(f"[bold {colour}]{tenant.status.upper()}[/bold {colour}] — {tenant.name}")
    console.print(f"  ID:        {tenant.id}")
    console.print(f"  Subdomain: {tenant.subdomain}")
    console.print(f"  Plan:      {tenant.plan}")
    console.print(f"  URL:       {tenant.url}")
    _print_warnings(tenant.warnings)


@app.command("delete-tenant")
def delete_tenant(
    tenant_id: str = typer.Argument(..., help="Tenant ID"),
):
    """Tear down a tenant's stack and soft delete its record."""
    result = _run(lambda orch: orch.delete_tenant(tenant_id))
    console.print(f"[bold green]DELETED[/bold green] — {result.name} ({result.id})")
    _print_warnings(result.warnings)


@app.command("status-tenant")
def status_tenant(
    tenant_id: str = typer.Argument(..., help="Tenant ID"),
):
    """Show a tenant's record, container states and recent executions."""
    view = _run(lambda orch: orch.get_tenant_status(tenant_id))

    console.print(f"[bold]{view.name}[/bold] — {view.status}")
    console.print(f"  Plan: {view.plan}  URL: {view.url}")

    table = Table(title="Containers")
    table.add_column("Role")
    table.add_column("State")
    for role, state in view.containers.items():
        style = "green" if state == "running" else "red"
        table.add_row(role, f"[{style}]{state}[/{style}]")
    console.print(table)

    m = view.metrics
    console.print(
        f"  Executions ({m.window_days}d): {m.total_executions} total, "
        f"{m.successful_executions} ok, {m.failed_executions} failed"
    )


@app.command("list-tenants")
def list_tenants(
    status: Optional[str] = typer.Option(None, help="Filter by status"),
    plan: Optional[str] = typer.Option(None, help="Filter by plan tier"),
    all_: bool = typer.Option(False, "--all", help="Include deleted tenants"),
):
    """List tenants, newest first."""
    from tenant_orchestrator.tenants.models import TENANT_STATUSES

    if status is not None and status not in TENANT_STATUSES:
        console.print(
            f"[bold red]Unknown status {status!r}[/bold red], expected one of: "
            + ", ".join(TENANT_STATUSES)
        )
        raise typer.Exit(2)

    tenants = _run(
        lambda orch: orch.list_tenants(status=status, plan=plan, include_deleted=all_)
    )

    table = Table(title=f"Tenants ({len(tenants)})")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Subdomain")
    table.add_column("Plan")
    table.add_column("Status")
    table.add_column("Created")
    for t in tenants:
        table.add_row(t.id, t.name, t.subdomain, t.plan, t.status, t.created_at.isoformat())
    console.print(table)


@app.command()
def plans():
    """Show the plan catalog (no DB required)."""
    from tenant_orchestrator.plans.catalog import PlanCatalog

    table = Table(title="Plans")
    table.add_column("Tier")
    table.add_column("Workflows", justify="right")
    table.add_column("Executions/month", justify="right")
    table.add_column("Content/week", justify="right")
    table.add_column("Price", justify="right")
    for tier, limits in PlanCatalog():
        table.add_row(
            tier,
            str(limits.max_workflows),
            str(limits.max_executions_per_month),
            str(limits.max_content_units_per_week),
            f"${limits.price}",
        )
    console.print(table)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check orchestrator server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    colour = "green" if data["status"] == "ok" else "red"
    console.print(f"[bold {colour}]{data['status']}[/bold {colour}] — v{data['version']}")
    console.print(f"Database: {data.get('database', 'unknown')}")
    if data["status"] != "ok":
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
