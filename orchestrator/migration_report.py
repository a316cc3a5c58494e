"""
Migration report generator for run summaries.

This module turns the RunSummary of an import into a report dictionary and
formats it for console display, JSON export and a CSV list of every item
that was not created.
"""

import csv
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from models import EntityKind, RunSummary

logger = logging.getLogger('confluence_bookstack_migrator.orchestrator.report')


class MigrationReport:
    """Generates migration reports from a run summary."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize migration report generator.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger('confluence_bookstack_migrator.orchestrator.report')

    def generate_report(self, summary: RunSummary, dry_run: bool = False) -> Dict[str, Any]:
        """
        Generate migration report.

        Args:
            summary: RunSummary of the finished run
            dry_run: Whether remote calls were only simulated

        Returns:
            Migration report dictionary
        """
        duration = self._duration(summary)
        report = {
            'summary': {
                'export_id': summary.export_id,
                'dry_run': dry_run,
                'cancelled': summary.cancelled,
                'duration_seconds': duration,
                'duration_formatted': self._format_duration(duration),
                'total_created': sum(summary.created(kind) for kind in EntityKind),
                'total_not_created': len(self._not_created(summary)),
                'unresolved_links': len(summary.unresolved_links)
            },
            'entities': {
                kind.value: {
                    'created': entity.created,
                    'not_created': len(entity.not_created),
                    'skipped': len(entity.skipped)
                }
                for kind, entity in summary.entities.items()
            },
            'not_created': self._not_created(summary),
            'skipped': {
                kind.value: list(entity.skipped)
                for kind, entity in summary.entities.items() if entity.skipped
            },
            'unresolved_links': [link.to_dict() for link in summary.unresolved_links],
            'timestamp': datetime.now().isoformat()
        }

        self.logger.info(
            f"Report generated: {report['summary']['total_created']} created, "
            f"{report['summary']['total_not_created']} not created"
        )
        return report

    @staticmethod
    def _not_created(summary: RunSummary) -> List[Dict[str, str]]:
        return [
            {'type': kind.value, 'name': item.name, 'reason': item.reason}
            for kind, entity in summary.entities.items()
            for item in entity.not_created
        ]

    @staticmethod
    def _duration(summary: RunSummary) -> float:
        if not summary.finished_at:
            return 0.0
        started = datetime.fromisoformat(summary.started_at)
        finished = datetime.fromisoformat(summary.finished_at)
        return max((finished - started).total_seconds(), 0.0)

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        else:
            hours = int(seconds // 3600)
            minutes = int((seconds % 3600) // 60)
            secs = int(seconds % 60)
            return f"{hours}h {minutes}m {secs}s"

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Migration report dictionary

        Returns:
            Formatted console string
        """
        sections = []
        summary = report.get('summary', {})

        sections.append("=" * 60)
        title = "MIGRATION REPORT (DRY RUN)" if summary.get('dry_run') else "MIGRATION REPORT"
        sections.append(title)
        sections.append("=" * 60)
        sections.append("")

        sections.append("Summary:")
        sections.append(f"  Export:      {summary.get('export_id', 'unknown')}")
        sections.append(f"  Duration:    {summary.get('duration_formatted', '0s')}")
        sections.append(f"  Created:     {summary.get('total_created', 0)}")
        sections.append(f"  Not created: {summary.get('total_not_created', 0)}")
        if summary.get('unresolved_links'):
            sections.append(f"  Unresolved links: {summary['unresolved_links']}")
        if summary.get('cancelled'):
            sections.append("  Status:      CANCELLED")
        sections.append("")

        sections.append("Entities:")
        sections.append("-" * 60)
        for kind, counts in report.get('entities', {}).items():
            sections.append(
                f"  {kind.capitalize():<8} {counts['created']} created, "
                f"{counts['not_created']} not created, {counts['skipped']} skipped"
            )
        sections.append("")

        not_created = report.get('not_created', [])
        if not_created:
            sections.append("Not created:")
            sections.append("-" * 60)
            for item in not_created:
                sections.append(f"  [{item['type']}] {item['name']}: {item['reason']}")
            sections.append("")

        skipped = report.get('skipped', {})
        if skipped:
            sections.append("Skipped after cancellation:")
            sections.append("-" * 60)
            for kind, names in skipped.items():
                sections.append(f"  {kind}: {len(names)}")
            sections.append("")

        sections.append("=" * 60)
        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Migration report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=str)

            self.logger.info(f"JSON report exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {str(e)}")

    def export_csv_summary(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export the not-created items to CSV.

        Args:
            report: Migration report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)
                writer.writerow(['type', 'name', 'reason'])
                for item in report.get('not_created', []):
                    writer.writerow([item['type'], item['name'], item['reason']])

            self.logger.info(f"CSV summary exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export CSV summary: {str(e)}")


__all__ = ['MigrationReport']
