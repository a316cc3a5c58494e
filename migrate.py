#!/usr/bin/env python3
"""
Confluence Export to BookStack Migration Tool - Main CLI Entry Point

This script provides the command-line interface for migrating an exported
Confluence space (HTML export directory or XML export) into BookStack,
inferring the shelf/book/chapter/page hierarchy and carrying attachments
across in separate stages.
"""

import argparse
import json
import logging
import os
import signal
import sys

from config_loader import ConfigLoader, get_nested
from logger import setup_logging, log_section, log_config
from fetchers import MigrationError
from importers import ShelfNameMismatchError
from orchestrator import MigrationOrchestrator, MigrationReport, logging_subscriber

# Version
__version__ = "1.0.0"

COMMANDS = ('import', 'xml-import', 'sort', 'attachments', 'fix-links', 'delete-shelf')


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Migrate a Confluence HTML or XML export into BookStack",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show how an export would be classified
  python migrate.py sort --folder ITDocs

  # Import an HTML export
  python migrate.py import --folder ITDocs

  # Preview an import without touching BookStack
  python migrate.py import --folder ITDocs --dry-run

  # Import an XML export (entities.xml)
  python migrate.py xml-import --folder ITDocs-xml

  # Upload attachments, then point links at them
  python migrate.py attachments --folder ITDocs
  python migrate.py fix-links --folder ITDocs

  # Remove a shelf and its books after a failed run
  python migrate.py delete-shelf --shelf-id 12 --confirm-name "IT Docs"
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        'command',
        choices=COMMANDS,
        help='Migration stage to run'
    )

    parser.add_argument(
        '-c', '--config',
        type=str,
        default='config.yaml',
        help='Path to configuration YAML file (default: config.yaml)'
    )

    parser.add_argument(
        '--export-path',
        type=str,
        help='Directory holding the export folders (overrides export.path)'
    )

    parser.add_argument(
        '--folder',
        type=str,
        help='Export folder name, also used as the export identifier (overrides export.folder)'
    )

    parser.add_argument(
        '--manifest',
        type=str,
        help='Attachment manifest path (overrides export.manifest_path)'
    )

    parser.add_argument(
        '--page-delay',
        type=float,
        help='Seconds to wait between page creations'
    )

    parser.add_argument(
        '--dry-run',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Log remote calls instead of issuing them'
    )

    parser.add_argument(
        '--shelf-id',
        type=int,
        help='Shelf to delete (delete-shelf only)'
    )

    parser.add_argument(
        '--confirm-name',
        type=str,
        help='Exact name of the shelf to delete (delete-shelf only)'
    )

    parser.add_argument(
        '--report',
        type=str,
        help='Write the JSON migration report to this path'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def load_configuration(args: argparse.Namespace) -> dict:
    """Load the config file (defaults only for ``sort`` without one) and apply CLI overrides."""
    if args.command == 'sort' and not os.path.exists(args.config):
        config = ConfigLoader.apply_defaults({})
    else:
        config = ConfigLoader.load(args.config)

    if args.command == 'xml-import':
        args.mode = 'xml'
    elif args.command == 'import':
        args.mode = 'html'
    else:
        args.mode = None

    return ConfigLoader.merge_with_args(config, args)


def _install_interrupt_handler(orchestrator: MigrationOrchestrator, logger: logging.Logger) -> None:
    """First Ctrl+C stops the run after the current item, a second one aborts."""
    def handle_interrupt(signum, frame):
        logger.warning("Interrupt received; finishing the current item (press Ctrl+C again to abort)")
        orchestrator.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    signal.signal(signal.SIGINT, handle_interrupt)


def _print_classification(classified) -> None:
    """Print the partitions of a classified export."""
    print("\n" + "=" * 60)
    print("EXPORT CLASSIFICATION")
    print("=" * 60)
    for key, value in classified.get_statistics().items():
        print(f"  {key.replace('_', ' ').capitalize():<18} {value}")
    print("=" * 60)
    print(json.dumps(classified.to_dict(), indent=2))


def run_import(orchestrator: MigrationOrchestrator, config: dict, args: argparse.Namespace,
               logger: logging.Logger) -> int:
    """Run an HTML or XML import and report the outcome."""
    _install_interrupt_handler(orchestrator, logger)
    summary = orchestrator.run()

    report_generator = MigrationReport(logger)
    report = report_generator.generate_report(summary, dry_run=orchestrator.dry_run)
    print("\n" + report_generator.format_console_report(report))

    report_path = args.report or get_nested(config, 'migration.report_path')
    if report_path:
        report_generator.export_json_report(report, report_path)
        if report['not_created']:
            report_generator.export_csv_summary(report, os.path.splitext(report_path)[0] + '_not_created.csv')

    if summary.cancelled:
        logger.warning("Migration cancelled before completion")
        return 130
    if summary.has_failures():
        logger.warning(f"Migration completed with {report['summary']['total_not_created']} items not created")
        return 1

    logger.info("Migration completed successfully")
    return 0


def run_command(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Dispatch one CLI command to the orchestrator."""
    orchestrator = MigrationOrchestrator(config, logger)
    orchestrator.progress.subscribe(logging_subscriber())

    if args.command in ('import', 'xml-import'):
        return run_import(orchestrator, config, args, logger)

    if args.command == 'sort':
        _print_classification(orchestrator.sort())
        return 0

    if args.command == 'attachments':
        stats = orchestrator.upload_attachments()
        print(f"\nUploaded: {stats['uploaded']}, failed: {stats['failed']}, skipped: {stats['skipped']}")
        for failure in stats['failures']:
            print(f"  - {failure['name']}: {failure['error']}")
        return 1 if stats['failed'] else 0

    if args.command == 'fix-links':
        stats = orchestrator.fix_attachment_links()
        print(
            f"\nPages checked: {stats['pages_checked']}, updated: {stats['pages_updated']}, "
            f"links fixed: {stats['links_fixed']}, not matched: {len(stats['not_found'])}"
        )
        return 0

    if args.command == 'delete-shelf':
        if args.shelf_id is None or not args.confirm_name:
            logger.error("delete-shelf requires --shelf-id and --confirm-name")
            print("\nAvailable shelves:")
            for shelf in orchestrator.list_shelves():
                print(f"  {shelf['id']:>6}  {shelf.get('name', '')}")
            return 2
        result = orchestrator.delete_shelf(args.shelf_id, args.confirm_name)
        print(f"\nShelf '{result['shelf']}': {len(result['deleted_books'])} books deleted, "
              f"{len(result['failed_books'])} failed")
        return 1 if result['failed_books'] else 0

    logger.error(f"Unknown command: {args.command}")
    return 2


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        # Minimal logging until the configuration is known
        setup_logging(verbosity=args.verbose)
        logger = logging.getLogger('confluence_bookstack_migrator.cli')

        log_section("Confluence Export to BookStack Migration Tool")
        logger.info(f"Version: {__version__}")

        logger.info(f"Loading configuration from {args.config}")
        config = load_configuration(args)

        # Reconfigure logging with config file settings
        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=None if args.verbose else get_nested(config, 'logging.level')
        )
        log_config(config)

        return run_command(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ShelfNameMismatchError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except MigrationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nMigration interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
