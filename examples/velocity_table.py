#!/usr/bin/env python3
"""
Example: Analyze sprint velocity with pandas.

This script loads a Jira hierarchy once and runs several views over the
per-developer and team velocity rows.

Usage:
    JIRA_PROJECTS="Apollo" python velocity_table.py
"""

import os
import sys
from pathlib import Path

import pandas as pd

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from jira_hierarchy import ReportGenerator


def print_header(title):
    """Print a formatted header."""
    print()
    print(f"{'=' * 80}")
    print(f"  {title}")
    print(f"{'=' * 80}")
    print()


def show(title, df):
    """Display a DataFrame under a header."""
    print_header(title)

    if df.empty:
        print("No results found.")
        return

    print(df.round(2).to_string(index=False))
    print(f"\n({len(df)} rows)")


def main():
    """Main velocity demonstration."""
    JIRA_URL = os.getenv('JIRA_URL')
    JIRA_USER = os.getenv('JIRA_USER')
    JIRA_TOKEN = os.getenv('JIRA_TOKEN')
    PROJECTS = [p.strip() for p in os.getenv('JIRA_PROJECTS', 'Apollo').split(',') if p.strip()]

    if not (JIRA_URL and JIRA_USER and JIRA_TOKEN):
        print("Error: JIRA_URL, JIRA_USER and JIRA_TOKEN environment variables are required")
        sys.exit(1)

    print(f"Loading Jira hierarchy for: {', '.join(PROJECTS)}")

    generator = ReportGenerator(jira_url=JIRA_URL, username=JIRA_USER, token=JIRA_TOKEN)
    try:
        generator.load(PROJECTS)
        result = generator.generate()
    finally:
        generator.close()

    developers = pd.DataFrame(result['velocity'])
    team = pd.DataFrame(result['team'])

    # View 1: Team velocity per sprint
    show(
        "1. Team Velocity",
        team[['sprint', 'issue_count', 'starting_commitment', 'points_added', 'points_completed', 'delta']]
        if not team.empty else team
    )

    if developers.empty:
        return

    # View 2: Completed points per developer across sprints
    show(
        "2. Points Completed by Developer",
        developers.pivot_table(
            index='assignee', columns='sprint', values='points_completed', aggfunc='sum', fill_value=0
        ).reset_index()
    )

    # View 3: Scope added after sprint start
    show(
        "3. Mid-Sprint Additions",
        developers[developers['points_added'] > 0][['assignee', 'sprint', 'points_added']]
    )

    # View 4: Average delta per developer
    show(
        "4. Average Delta by Developer",
        developers.groupby('assignee', as_index=False)['delta'].mean().sort_values('delta')
    )


if __name__ == '__main__':
    main()
