"""
Management command to purge stored document blobs nothing points at any more.
A blob is kept while a current document row or any submission snapshot references it,
and while it is younger than the grace period: an upload writes its blob before
its document row commits.

Usage:
    python manage.py purge_orphaned_documents --dry-run  # Preview
    python manage.py purge_orphaned_documents            # Execute
    python manage.py purge_orphaned_documents --older-than 48
"""
from datetime import timedelta

from django.core.files.storage import default_storage
from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.verification.models import VerificationDocument, VerificationRequest

ROOT = 'verifications'


def _walk(storage, directory):
    directories, files = storage.listdir(directory)
    for name in files:
        yield f"{directory}/{name}"
    for sub in directories:
        yield from _walk(storage, f"{directory}/{sub}")


class Command(BaseCommand):
    help = 'Delete verification document blobs not referenced by any document or request'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Preview deletions without actually deleting',
        )
        parser.add_argument(
            '--older-than',
            type=int,
            default=24,
            help='Only delete blobs last modified more than this many hours ago (default: 24)',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        hours = options['older_than']
        cutoff = timezone.now() - timedelta(hours=hours)

        referenced = set(VerificationDocument.objects.values_list('content', flat=True))
        for documents in VerificationRequest.objects.values_list('documents', flat=True):
            referenced.update(entry.get('content') for entry in documents or [])

        if not default_storage.exists(ROOT):
            self.stdout.write('No stored documents.')
            return

        orphaned = [
            name for name in _walk(default_storage, ROOT)
            if name not in referenced and default_storage.get_modified_time(name) <= cutoff
        ]

        if dry_run:
            self.stdout.write(
                self.style.WARNING(f'DRY RUN: Would delete {len(orphaned)} orphaned document blobs older than {hours} hours')
            )
            for name in orphaned[:10]:  # Show first 10
                self.stdout.write(f'  - {name}')
            if len(orphaned) > 10:
                self.stdout.write(f'  ... and {len(orphaned) - 10} more')
            return

        deleted_count = 0
        for name in orphaned:
            try:
                default_storage.delete(name)
                deleted_count += 1
            except OSError as e:
                self.stdout.write(self.style.ERROR(f'Error deleting {name}: {e}'))

        self.stdout.write(
            self.style.SUCCESS(f'Successfully deleted {deleted_count} orphaned document blobs')
        )
