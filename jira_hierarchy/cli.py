"""
Command-line interface for Jira hierarchy reports.
"""

import os
import sys
import logging
import functools
import click

from .generator import ReportGenerator
from .jira_client import build_filter_clause
from .models import ReportSelection

CREDENTIAL_ENV = {'jira_url': 'JIRA_URL', 'user': 'JIRA_USER', 'token': 'JIRA_TOKEN'}


# Setup logging
def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def _split(value):
    if not value:
        return []
    return [part.strip() for part in value.split(',') if part.strip()]


def jira_options(func):
    """Connection, scope and selection options shared by every report command."""
    options = [
        click.option('--jira-url', default=lambda: os.getenv('JIRA_URL'), help='Jira instance URL'),
        click.option('--user', default=lambda: os.getenv('JIRA_USER'), help='Jira account name or email'),
        click.option('--token', default=lambda: os.getenv('JIRA_TOKEN'), help='Jira API token'),
        click.option('--projects', required=True, help='Comma-separated list of project names'),
        click.option('--initiatives/--no-initiatives', 'include_initiatives', default=True,
                     help='Group epics under their initiatives'),
        click.option('--initiative', 'initiatives', multiple=True, help='Initiative key to include (repeatable)'),
        click.option('--epic', 'epics', multiple=True, help='Epic key to include (repeatable)'),
        click.option('--sprint', 'sprints', multiple=True, help='Sprint name to include (repeatable)'),
        click.option('--label', 'labels', multiple=True, help='Label to include (repeatable)'),
        click.option('--workers', type=int, default=6, help='Concurrent initiative queries'),
        click.option('--task-timeout', type=float, default=None, help='Seconds to wait for initiative queries'),
        click.option('--changelog/--no-changelog', 'include_changelog', default=True,
                     help='Load change history (needed for points added mid-sprint)'),
        click.option('--verbose', is_flag=True, help='Verbose output'),
    ]
    for option in reversed(options):
        func = option(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        setup_logging(kwargs['verbose'])

        missing = [env for name, env in CREDENTIAL_ENV.items() if not kwargs[name]]
        if missing:
            names = ", ".join(missing)
            click.echo(f"Error: Jira credentials required. Set {names} or pass the matching options", err=True)
            sys.exit(1)

        return func(*args, **kwargs)

    return wrapper


def load_report(jira_url, user, token, projects, include_initiatives, initiatives, epics, sprints,
                labels, workers, task_timeout, include_changelog, verbose, presence_checks=()):
    """Create a generator, load the hierarchy and build the selection."""
    generator = ReportGenerator(
        jira_url=jira_url,
        username=user,
        token=token,
        max_workers=workers,
        task_timeout=task_timeout,
        include_changelog=include_changelog,
        verbose=verbose
    )

    generator.load(
        projects=_split(projects),
        include_initiatives=include_initiatives,
        filter_clause=build_filter_clause(epics=epics, labels=labels, sprints=sprints)
    )

    selection = ReportSelection(
        initiatives=initiatives,
        epics=epics,
        sprints=sprints,
        labels=labels,
        presence_checks=presence_checks
    )
    return generator, selection


@click.group()
@click.version_option(version='1.0.0')
def cli():
    """Jira Initiative / Epic / Story rollup and sprint velocity reports."""
    pass


@cli.command()
@jira_options
@click.option('--presence', 'presence_checks', multiple=True, help='Label to report a presence column for (repeatable)')
@click.option('--format', 'output_format', type=click.Choice(['csv', 'json']), default='csv', help='Export format')
@click.option('--output', default='report.csv', help='Output file path')
def report(presence_checks, output_format, output, **kwargs):
    """
    Export the issue summary rows to CSV or JSON.

    Example:
        jira-rollup report --projects "Apollo,Gemini" --label urgent --presence reviewed
    """
    try:
        import pandas as pd

        generator, selection = load_report(presence_checks=presence_checks, **kwargs)
        result = generator.generate(selection)
        generator.close()

        records = result['projection'].to_records()
        if not records:
            click.echo("No data to export", err=True)
            sys.exit(1)

        df = pd.DataFrame(records)

        if output_format == 'csv':
            df.to_csv(output, index=False)
            click.echo(f"\n✓ Exported {len(df)} rows to {output} (CSV)")
        else:
            df.to_json(output, orient='records', indent=2)
            click.echo(f"\n✓ Exported {len(df)} rows to {output} (JSON)")

    except Exception as e:
        click.echo(f"\n✗ Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@jira_options
def velocity(**kwargs):
    """Show per-developer and team sprint velocity."""
    try:
        import pandas as pd

        generator, selection = load_report(**kwargs)
        result = generator.generate(selection)
        generator.close()

        rows = result['velocity'] + result['team']
        if not rows:
            click.echo("No results")
            return

        df = pd.DataFrame(rows)
        df['start_date'] = pd.to_datetime(df['start_date'], utc=True).dt.strftime('%Y-%m-%d')
        click.echo(f"\n{df.round(2).to_string(index=False)}")
        click.echo(f"\n({len(result['velocity'])} developer rows, {len(result['team'])} team rows)")

    except Exception as e:
        click.echo(f"\n✗ Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@jira_options
def completion(**kwargs):
    """Show completion percentages of initiatives and epics."""
    try:
        generator, selection = load_report(**kwargs)
        summary = generator.completion_summary(selection)
        generator.close()

        if not summary:
            click.echo("No results")
            return

        click.echo("\n" + "=" * 80)
        click.echo("COMPLETION")
        click.echo("=" * 80)
        for initiative in summary:
            click.echo(f"{initiative['key']}  {_percent(initiative)}  {initiative['summary']}")
            for epic in initiative['epics']:
                click.echo(f"  {epic['key']}  {_percent(epic)}  {epic['summary']}")
        click.echo("=" * 80)

    except Exception as e:
        click.echo(f"\n✗ Error: {e}", err=True)
        sys.exit(1)


def _percent(entry) -> str:
    if entry['percent_complete'] is None:
        return entry['status'] or 'N/A'
    return f"{entry['percent_complete'] * 100:.0f}%"


if __name__ == '__main__':
    cli()
