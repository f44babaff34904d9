"""
UniTask - V13 migration command line

Runs the V13 migration jobs directly against DATABASE_URL, without Celery.

Usage:
    unitask-v13 migrate [--dry-run] [--batch-size N]
    unitask-v13 validate
    unitask-v13 rollback [--grace-seconds N]
    unitask-v13 finalize --force-finalize
"""

import argparse
import logging
import sys
from typing import List, Optional

from unitask.config import MIGRATION_BATCH_SIZE, ROLLBACK_BATCH_SIZE, ROLLBACK_GRACE_SECONDS
from unitask.database import SessionLocal
from unitask.logging_config import setup_logging
from unitask.migrations import (
    FinalizeLockedError,
    MAX_REPORTED_ERRORS,
    finalize_v13,
    migrate_shadow,
    rollback_shadow,
    validate_v13,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='unitask-v13',
        description='UniTask V13 shadow migration',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  unitask-v13 migrate --dry-run        # Show what would be written
  unitask-v13 migrate                  # Write progress_v13 and hierarchy fields
  unitask-v13 validate                 # Exit 1 if any task is not V13-ready
  unitask-v13 rollback                 # Emergency: drop every V13 field
  unitask-v13 finalize --force-finalize
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    migrate = subparsers.add_parser('migrate', help='Write V13 shadow fields, preserving legacy progress')
    migrate.add_argument('--dry-run', action='store_true', help='Log intended updates without writing')
    migrate.add_argument('--batch-size', type=int, default=MIGRATION_BATCH_SIZE)

    subparsers.add_parser('validate', help='Check every task against the V13 contract')

    rollback = subparsers.add_parser('rollback', help='Drop every V13 field from every task')
    rollback.add_argument('--batch-size', type=int, default=ROLLBACK_BATCH_SIZE)
    rollback.add_argument(
        '--grace-seconds', type=int, default=ROLLBACK_GRACE_SECONDS,
        help='Seconds to wait before writing; press Ctrl+C to abort'
    )

    finalize = subparsers.add_parser('finalize', help='Fold progress_v13 into progress (destructive)')
    finalize.add_argument(
        '--force-finalize', action='store_true',
        help='Required: confirms legacy progress values may be destroyed'
    )
    finalize.add_argument('--batch-size', type=int, default=MIGRATION_BATCH_SIZE)

    return parser


def run_command(args: argparse.Namespace) -> int:
    """Run one job and return the process exit code."""
    db = SessionLocal()
    try:
        if args.command == 'migrate':
            result = migrate_shadow(db, dry_run=args.dry_run, batch_size=args.batch_size)
            print(f"Migration complete. Scanned: {result['scanned']}, "
                  f"Processed: {result['processed']}, Skipped (already migrated): {result['skipped']}")
            if result['dry_run']:
                print("(No changes made to DB)")
            return 0

        if args.command == 'validate':
            result = validate_v13(db)
            print(f"Total tasks: {result['total']}, Valid V13 tasks: {result['valid']}")
            if result['ok']:
                print("All checks passed. Data is ready for V13.")
                return 0
            errors = result['errors']
            print(f"Found {len(errors)} errors:", file=sys.stderr)
            for message in errors[:MAX_REPORTED_ERRORS]:
                print(f"   {message}", file=sys.stderr)
            if len(errors) > MAX_REPORTED_ERRORS:
                print(f"   ...and {len(errors) - MAX_REPORTED_ERRORS} more.", file=sys.stderr)
            return 1

        if args.command == 'rollback':
            print(f"Rolling back all V13 fields in {args.grace_seconds}s. Press Ctrl+C to abort.")
            result = rollback_shadow(db, batch_size=args.batch_size, grace_seconds=args.grace_seconds)
            print(f"Rollback complete. {result['updated']} tasks cleaned.")
            return 0

        if args.command == 'finalize':
            result = finalize_v13(db, force=args.force_finalize, batch_size=args.batch_size)
            print(f"Finalization complete. {result['finalized']} tasks finalized.")
            return 0

        raise ValueError(f"Unknown command: {args.command}")
    except FinalizeLockedError as e:
        db.rollback()
        print(f"Safety lock: {e}", file=sys.stderr)
        print("Pass --force-finalize to execute this destructive action.", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        db.rollback()
        print("Aborted.", file=sys.stderr)
        return 130
    except Exception as e:
        db.rollback()
        logger.exception(f"{args.command} failed: {e}", extra={"operation": args.command})
        return 1
    finally:
        db.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point with argument parsing"""
    args = build_parser().parse_args(argv)
    setup_logging()
    return run_command(args)


if __name__ == '__main__':
    sys.exit(main())
