"""
Orchestration package for coordinating migration pipeline phases.

This package provides the core orchestration layer that sequences all migration
phases: Classify → Rewrite → Create → Reconcile attachments, plus the
independent upload, link fixing and cleanup stages. It also carries the
run-scoped context, cancellation and progress events.
"""

from .progress import ProgressReporter, logging_subscriber
from .run_context import CancellationToken, MigrationContext
from .migration_orchestrator import MigrationOrchestrator
from .migration_report import MigrationReport

__all__ = [
    'ProgressReporter',
    'logging_subscriber',
    'CancellationToken',
    'MigrationContext',
    'MigrationOrchestrator',
    'MigrationReport'
]
