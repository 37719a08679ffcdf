"""AccessGuard - role-based access control and audit for tabular ERP stores.

Scope-aware permission evaluation, user lifecycle operations, sessions and
a checksum-chained audit trail over a spreadsheet-like tabular store.
"""

__version__ = "0.1.0"

from accessguard.application import AccessGuard, OperationResult

__all__ = ["AccessGuard", "OperationResult", "__version__"]
