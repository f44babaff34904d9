from .v13 import (
    FinalizeLockedError,
    JobCancelled,
    MAX_REPORTED_ERRORS,
    MigrationError,
    finalize_v13,
    migrate_shadow,
    rollback_shadow,
    validate_v13,
)

__all__ = [
    'MigrationError',
    'FinalizeLockedError',
    'JobCancelled',
    'MAX_REPORTED_ERRORS',
    'migrate_shadow',
    'validate_v13',
    'rollback_shadow',
    'finalize_v13',
]
