#!/usr/bin/env python3
"""
Command-line interface for clientdesk.
"""
import sys
import json
import click
from typing import Any, Dict

from clientdesk.app import create_registry
from clientdesk.config import STORAGE_BACKENDS, Settings, configure_logging
from clientdesk.constants import PROJECT_TYPES, ClientType, Priority, ProjectStatus
from clientdesk.exceptions import ServiceError
from clientdesk.services import ClientService, ProjectService
from clientdesk.storage import StoreRegistry


def format_json(data: Any) -> str:
    """Format data as JSON."""
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def format_client(client: Dict[str, Any]) -> str:
    """Format client for display."""
    lines = [
        f"Client {client['id']}: {client.get('companyName', 'N/A')}",
        f"  Contact: {client.get('contactPerson', 'N/A')}",
        f"  Email: {client.get('email', 'N/A')}",
        f"  Phone: {client.get('phone', 'N/A')}",
        f"  Type: {client.get('clientType', 'N/A')}",
        f"  Status: {client.get('status', 'N/A')}",
    ]

    if client.get('website'):
        lines.append(f"  Website: {client['website']}")

    if client.get('createdAt'):
        lines.append(f"  Created: {client['createdAt']}")

    return "\n".join(lines)


def format_project(project: Dict[str, Any]) -> str:
    """Format project for display."""
    lines = [
        f"Project {project.get('projectNumber', 'N/A')} ({project['id']}): {project.get('projectTitle', 'N/A')}",
        f"  Client: {project.get('clientId', 'N/A')}",
        f"  Type: {project.get('projectType', 'N/A')}",
        f"  Status: {project.get('status', 'N/A')}",
        f"  Priority: {project.get('priority', 'medium')}",
        f"  Progress: {project.get('progress', 0)}%",
    ]

    if project.get('assignee'):
        lines.append(f"  Assigned to: {project['assignee']}")

    if project.get('startDate') or project.get('endDate'):
        lines.append(f"  Schedule: {project.get('startDate') or '?'} -> {project.get('endDate') or '?'}")

    return "\n".join(lines)


def get_registry(ctx) -> StoreRegistry:
    """Build the registry for this invocation on first use."""
    if ctx.obj.get('registry') is None:
        ctx.obj['registry'] = create_registry(ctx.obj['settings'])
    return ctx.obj['registry']


def fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.option('--data-dir', envvar='CLIENTDESK_DATA_DIR', default=None,
              help='Directory for persisted stores (default: ./data)')
@click.option('--backend', type=click.Choice(STORAGE_BACKENDS), default=None,
              help='Persistence backend (default: directory)')
@click.pass_context
def cli(ctx, data_dir, backend):
    """clientdesk CLI tool for managing clients and projects."""
    overrides = {}
    if data_dir:
        overrides['data_dir'] = data_dir
    if backend:
        overrides['storage_backend'] = backend

    settings = Settings(**overrides)
    configure_logging(settings)

    ctx.ensure_object(dict)
    ctx.obj['settings'] = settings
    ctx.obj['registry'] = None


# ============================================================================
# Whole-registry commands
# ============================================================================

@cli.command('export')
@click.option('--output', 'output_file', type=click.Path(dir_okay=False),
              help='Output file path (defaults to stdout)')
@click.pass_context
def export_data(ctx, output_file):
    """Export every store as JSON."""
    snapshot = get_registry(ctx).export_all()

    if output_file:
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(format_json(snapshot))
        click.echo(f"Exported {len(snapshot['storages'])} store(s) to {output_file}")
    else:
        click.echo(format_json(snapshot))


@cli.command('import')
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--merge', is_flag=True, help='Keep existing records and add only new ids')
@click.pass_context
def import_data(ctx, input_file, merge):
    """Import a JSON export produced by the export command."""
    try:
        with open(input_file, 'r', encoding='utf-8') as f:
            snapshot = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        fail(f"Invalid JSON in {input_file}: {e}")

    try:
        reports = get_registry(ctx).import_all(snapshot, merge=merge)
    except ServiceError as e:
        fail(e.message)

    if not reports:
        click.echo("No stores imported.")
        return

    for name, report in reports.items():
        line = f"{name}: {report.imported_count} imported"
        if report.conflicts:
            line += f", {len(report.conflicts)} conflict(s) skipped"
        click.echo(line)


@cli.command('clear')
@click.confirmation_option('--yes', prompt='Delete every record in every store?')
@click.pass_context
def clear_data(ctx):
    """Clear all stores."""
    try:
        get_registry(ctx).clear_all()
    except ServiceError as e:
        fail(e.message)
    click.echo("All stores cleared.")


@cli.command('stats')
@click.pass_context
def stats(ctx):
    """Show client and project statistics."""
    registry = get_registry(ctx)
    project_service = ProjectService(registry)
    click.echo(format_json({
        "clients": ClientService(registry).get_overall_stats(),
        "projects": project_service.get_project_stats(),
        "workload": project_service.get_workload_by_assignee(),
    }))


# ============================================================================
# Clients
# ============================================================================

@cli.group()
def clients():
    """Manage clients."""


@clients.command('list')
@click.option('--query', help='Match company, contact or email')
@click.option('--type', 'client_type', type=click.Choice([t.value for t in ClientType]),
              help='Filter by client type')
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']),
              default='table', help='Output format')
@click.pass_context
def list_clients(ctx, query, client_type, output_format):
    """List clients with optional filters."""
    results = ClientService(get_registry(ctx)).search_clients(query=query, client_type=client_type)

    if output_format == 'json':
        click.echo(format_json(results))
        return

    if not results:
        click.echo("No clients found.")
        return

    for client in results:
        click.echo(format_client(client))
        click.echo()


@clients.command('add')
@click.option('--company', required=True, help='Company name')
@click.option('--contact', required=True, help='Contact person')
@click.option('--email', required=True, help='Email address')
@click.option('--phone', required=True, help='Phone number')
@click.option('--type', 'client_type', type=click.Choice([t.value for t in ClientType]),
              default=ClientType.CORPORATE.value, help='Client type (default: corporate)')
@click.option('--website', help='Website')
@click.option('--address', help='Address')
@click.option('--notes', help='Optional notes')
@click.pass_context
def add_client(ctx, company, contact, email, phone, client_type, website, address, notes):
    """Create a new client."""
    data = {
        'companyName': company,
        'contactPerson': contact,
        'email': email,
        'phone': phone,
        'clientType': client_type,
    }

    if website:
        data['website'] = website
    if address:
        data['address'] = address
    if notes:
        data['notes'] = notes

    try:
        client = ClientService(get_registry(ctx)).create_client(data)
    except ServiceError as e:
        fail(e.message)

    click.echo("Client created successfully!")
    click.echo(format_client(client))


@clients.command('show')
@click.argument('client_id')
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']),
              default='table', help='Output format')
@click.pass_context
def show_client(ctx, client_id, output_format):
    """Show client details and statistics."""
    service = ClientService(get_registry(ctx))
    client = service.get_client(client_id)
    if client is None:
        fail(f"Client with ID '{client_id}' not found")

    client_stats = service.get_client_stats(client_id)
    if output_format == 'json':
        click.echo(format_json({"client": client, "stats": client_stats}))
        return

    click.echo(format_client(client))
    if client.get('address'):
        click.echo(f"\nAddress: {client['address']}")
    if client.get('notes'):
        click.echo(f"\nNotes: {client['notes']}")
    click.echo(f"\nProjects: {client_stats['totalProjects']} "
               f"(active {client_stats['activeProjects']}, completed {client_stats['completedProjects']})")
    click.echo(f"Revenue: {client_stats['totalRevenue']}")


@clients.command('remove')
@click.argument('client_id')
@click.pass_context
def remove_client(ctx, client_id):
    """Delete a client without active projects."""
    try:
        deleted = ClientService(get_registry(ctx)).delete_client(client_id)
    except ServiceError as e:
        fail(e.message)

    if not deleted:
        fail(f"Client with ID '{client_id}' not found")
    click.echo(f"Client {client_id} deleted")


# ============================================================================
# Projects
# ============================================================================

@cli.group()
def projects():
    """Manage projects."""


@projects.command('list')
@click.option('--status', type=click.Choice([s.value for s in ProjectStatus]), help='Filter by status')
@click.option('--client-id', 'client_id', help='Filter by client ID')
@click.option('--assignee', help='Filter by assignee')
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']),
              default='table', help='Output format')
@click.pass_context
def list_projects(ctx, status, client_id, assignee, output_format):
    """List projects with optional filters."""
    results = ProjectService(get_registry(ctx)).search_projects(
        status=status,
        client_id=client_id,
        assignee=assignee
    )

    if output_format == 'json':
        click.echo(format_json(results))
        return

    if not results:
        click.echo("No projects found.")
        return

    for project in results:
        click.echo(format_project(project))
        click.echo()


@projects.command('add')
@click.option('--client-id', 'client_id', required=True, help='Client ID')
@click.option('--title', required=True, help='Project title')
@click.option('--description', required=True, help='Project description')
@click.option('--type', 'project_type', required=True, type=click.Choice(PROJECT_TYPES), help='Project type')
@click.option('--priority', type=click.Choice([p.value for p in Priority]),
              default=Priority.MEDIUM.value, help='Priority (default: medium)')
@click.option('--assignee', help='Assignee')
@click.option('--start', 'start_date', help='Start date (ISO format)')
@click.option('--end', 'end_date', help='End date (ISO format)')
@click.option('--budget', type=float, help='Budget amount')
@click.pass_context
def add_project(ctx, client_id, title, description, project_type, priority,
                assignee, start_date, end_date, budget):
    """Create a new project."""
    data = {
        'clientId': client_id,
        'projectTitle': title,
        'projectDescription': description,
        'projectType': project_type,
        'priority': priority,
    }

    if assignee:
        data['assignee'] = assignee
    if start_date:
        data['startDate'] = start_date
    if end_date:
        data['endDate'] = end_date
    if budget is not None:
        data['budget'] = budget

    try:
        project = ProjectService(get_registry(ctx)).create_project(data)
    except ServiceError as e:
        fail(e.message)

    click.echo("Project created successfully!")
    click.echo(format_project(project))


@projects.command('status')
@click.argument('project_id')
@click.argument('status', type=click.Choice([s.value for s in ProjectStatus]))
@click.pass_context
def set_status(ctx, project_id, status):
    """Change a project's status."""
    try:
        project = ProjectService(get_registry(ctx)).update_project(project_id, {'status': status})
    except ServiceError as e:
        fail(e.message)

    click.echo(f"Project {project_id} is now {project['status']}")


@projects.command('progress')
@click.argument('project_id')
@click.argument('percent', type=float)
@click.pass_context
def set_progress(ctx, project_id, percent):
    """Set a project's progress percentage."""
    try:
        project = ProjectService(get_registry(ctx)).update_progress(project_id, percent)
    except ServiceError as e:
        fail(e.message)

    click.echo(f"Project {project_id} progress: {project['progress']}% ({project['status']})")


@projects.command('remove')
@click.argument('project_id')
@click.pass_context
def remove_project(ctx, project_id):
    """Delete a project no document references."""
    try:
        deleted = ProjectService(get_registry(ctx)).delete_project(project_id)
    except ServiceError as e:
        fail(e.message)

    if not deleted:
        fail(f"Project with ID '{project_id}' not found")
    click.echo(f"Project {project_id} deleted")


if __name__ == '__main__':
    cli()
