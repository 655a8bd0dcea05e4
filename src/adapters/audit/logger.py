"""
Audit logger adapter - Implements AuditLogger protocol.

Holder data access is recorded on the dedicated "audit" logger so
deployments can route it separately from application logs.
"""

import logging

from src.domain.ports import CrudOperation

audit_logger = logging.getLogger("audit")


class LoggingAuditLogger:
    """Writes one audit entry per holder data operation."""

    def log(self, holder_id: str, operation: CrudOperation) -> None:
        audit_logger.info("holder=%s operation=%s", holder_id, operation.value)
