#!/usr/bin/env python3
"""
Example: Build a Jira hierarchy and export its report rows.

This script demonstrates how to use the ReportGenerator to:
1. Connect to Jira
2. Load initiatives, epics and stories for some projects
3. Print the completion of each initiative
4. Export the report rows to CSV

Usage:
    JIRA_PROJECTS="Apollo,Gemini" python generate_report.py
"""

import os
import sys
from pathlib import Path

import pandas as pd

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from jira_hierarchy import ReportGenerator, ReportSelection


def main():
    """Main report script."""
    # Configuration
    JIRA_URL = os.getenv('JIRA_URL')
    JIRA_USER = os.getenv('JIRA_USER')
    JIRA_TOKEN = os.getenv('JIRA_TOKEN')
    PROJECTS = [p.strip() for p in os.getenv('JIRA_PROJECTS', 'Apollo').split(',') if p.strip()]
    LABELS = [l.strip() for l in os.getenv('JIRA_LABELS', '').split(',') if l.strip()]
    OUTPUT = os.getenv('OUTPUT', 'report.csv')

    if not (JIRA_URL and JIRA_USER and JIRA_TOKEN):
        print("Error: JIRA_URL, JIRA_USER and JIRA_TOKEN environment variables are required")
        print("Set them with: export JIRA_TOKEN='your-token-here'")
        sys.exit(1)

    print(f"Jira Hierarchy Report")
    print(f"=" * 60)
    print(f"Jira URL:        {JIRA_URL}")
    print(f"Projects:        {', '.join(PROJECTS)}")
    print(f"Labels:          {', '.join(LABELS) or 'all'}")
    print(f"Output:          {OUTPUT}")
    print(f"=" * 60)
    print()

    print("Initializing generator...")
    generator = ReportGenerator(jira_url=JIRA_URL, username=JIRA_USER, token=JIRA_TOKEN, verbose=True)

    try:
        stats = generator.load(PROJECTS)
        if not stats['success']:
            print("No issues found.")
            sys.exit(1)

        result = generator.generate(ReportSelection(labels=LABELS))
    finally:
        generator.close()

    print()
    print("Completion")
    print(f"=" * 60)
    for initiative in result['completion']:
        ratio = initiative['percent_complete']
        shown = f"{ratio * 100:.0f}%" if ratio is not None else initiative['status']
        print(f"{initiative['key']:<12} {shown:>12}  {initiative['summary']}")
    print(f"=" * 60)

    df = pd.DataFrame(result['projection'].to_records())
    df.to_csv(OUTPUT, index=False)

    print()
    print(f"Rows:            {len(df)}")
    print(f"Groups:          {len(result['projection'].groups)}")
    print(f"Data saved to:   {OUTPUT}")
    print()
    print("Next steps:")
    print(f"  - Velocity:     jira-rollup velocity --projects \"{','.join(PROJECTS)}\"")
    print(f"  - JSON export:  jira-rollup report --projects \"{','.join(PROJECTS)}\" --format json")


if __name__ == '__main__':
    main()
