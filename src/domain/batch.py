"""
Batch pre-registration - bulk registration code issuance with abort policy.

A batch takes holder rows (parsed from an uploaded list), parks them in the
organization's batch queue, issues one registration code per row and
notifies each holder.

Processing Model
================

1. Build a registration code document for every queued row
2. Create all buildable documents in a single bulk call
3. Walk the items in source order:
   - creation failed -> item failure (conflicts re-labelled by the resolver)
   - holder notification enabled -> send the code, failure is an item failure
   - otherwise the item succeeds immediately
4. Success deletes the queue item and writes a CREATE audit entry. Failure
   writes the reason onto the queue item for later inspection.
5. When the failure count reaches the batch threshold, the remaining items
   are left untouched and the batch reports an abort message.

Items are processed sequentially; the failure counter and abort decision are
evaluated after each item completes. Codes created before an abort stay
persisted and usable.
"""

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .codes import generate_registration_codes
from .conflicts import ConflictResolver
from .documents import PREREG_BATCH_REPORT_TYPE, PREREG_ITEM_TYPE, BatchItem, RegistrationCodeDocument
from .entities import hash_strings
from .exceptions import DocumentConflict, InvalidCodeFormat
from .notifications import HolderNotifier, RegistrationTexts
from .organization import OrganizationConfig
from .policy import CodePolicy
from .ports import AuditLogger, BulkItemResult, CodeOutcome, CodeResult, CrudOperation, DocumentStore
from .registration_codes import RegistrationCodeService

logger = logging.getLogger(__name__)

# Bookkeeping fields stripped from rows reported back as failed
FAILED_ROW_EXCLUDED = frozenset(
    {
        "_id",
        "_rev",
        "batchID",
        "type",
        "rowID",
        "status",
        "createdTimestamp",
        "updatedTimestamp",
        "expirationTimestamp",
        "invalidMessage",
        "uid",
        "registerCode",
    }
)


@dataclass
class BatchResult:
    """Counters and per-item outcomes of one process_batch run."""

    success_count: int = 0
    failure_count: int = 0
    processed: int = 0
    docs: list[RegistrationCodeDocument] = field(default_factory=list)
    failures: dict[int, str] = field(default_factory=dict)
    batch_failure_messages: list[str] = field(default_factory=list)
    aborted: bool = False

    @property
    def outcome(self) -> CodeOutcome:
        return CodeOutcome.THRESHOLD_ABORT if self.aborted else CodeOutcome.SUCCESS

    @property
    def message(self) -> str:
        if self.aborted:
            return self.batch_failure_messages[-1]
        return f"Processed {self.processed} pre-registration items: {self.success_count} succeeded"


@dataclass
class BatchProcessor:
    """Drives bulk pre-registration for an organization."""

    store: DocumentStore
    registration: RegistrationCodeService
    resolver: ConflictResolver
    notifier: HolderNotifier
    audit: AuditLogger
    policy: CodePolicy = field(default_factory=CodePolicy)
    generate_codes: Callable[..., list[str]] = generate_registration_codes

    def validate_user_list(self, users: Any, org: OrganizationConfig) -> CodeResult:
        """
        Check a pre-registration user list before anything is stored.

        Returns:
            SUCCESS, or VALIDATION naming the first problem found
        """
        if not isinstance(users, list):
            problem = "Must supply a list of users"
        elif not users:
            problem = "User list cannot be empty"
        elif len(users) > self.policy.user_list_row_max:
            problem = f"User list exceeds the maximum of {self.policy.user_list_row_max} rows"
        else:
            problem = ""
            for index, user in enumerate(users):
                if not isinstance(user, dict):
                    problem = f"Row {index} is not an object"
                    break
                missing = [name for name in org.pre_reg_required_fields if not user.get(name)]
                if missing:
                    problem = f"Row {index} is missing required fields: {', '.join(missing)}"
                    break
                if not org.identity.validate_holder_id(user):
                    problem = f"Row {index} has no valid holder id in field {org.identity.holder_id_field}"
                    break

        if problem:
            message = f"Error processing user list: {problem}"
            logger.warning(message)
            return CodeResult(CodeOutcome.VALIDATION, message)
        return CodeResult(CodeOutcome.SUCCESS, "User list is valid")

    def assign_codes(
        self, users: list[dict[str, Any]], policy: CodePolicy | None = None
    ) -> list[dict[str, Any]]:
        """
        Copy rows and give each one a registration code.

        Rows that already carry a registerCode keep it. The holder uid is
        derived from id and clientName, and given/family names are folded
        into a single name object.
        """
        rows = copy.deepcopy(users)
        missing = [row for row in rows if not row.get("registerCode")]
        codes = self.generate_codes(len(missing), (policy or self.policy).code_length)
        for row, code in zip(missing, codes):
            row["registerCode"] = code

        for row in rows:
            if row.get("id") and row.get("clientName"):
                row["uid"] = hash_strings([row["id"], row["clientName"]])
            if "givenName" in row or "familyName" in row:
                row["name"] = {
                    "givenName": row.pop("givenName", None),
                    "familyName": row.pop("familyName", None),
                }
        return rows

    def enqueue(
        self, org: OrganizationConfig, batch_id: str, rows: list[dict[str, Any]]
    ) -> list[BatchItem]:
        """
        Park rows in the organization's batch queue.

        Rows the store rejects are returned unqueued; they are still
        processed but leave no queue trace.
        """
        documents: list[tuple[str, dict[str, Any]]] = []
        for index, row in enumerate(rows):
            body = copy.deepcopy(row)
            body["type"] = PREREG_ITEM_TYPE
            body["batchID"] = batch_id
            body.setdefault("rowID", index)
            documents.append((f"{batch_id}-{body['rowID']}", body))

        results = self.store.create_bulk(documents, org.batch_queue_collection)
        items: list[BatchItem] = []
        for (key, body), res in zip(documents, results):
            if res.ok:
                items.append(BatchItem(record=body, key=key, rev=res.rev))
                holder_id = org.holder_id(body)
                if holder_id:
                    self.audit.log(holder_id, CrudOperation.CREATE)
            else:
                logger.warning("Failed to queue batch item %s: %s", key, res.reason)
                items.append(BatchItem(record=body))

        logger.info("Queued %d items with batchID=%s in %s", len(items), batch_id, org.batch_queue_collection)
        return items

    def process_batch(
        self,
        org: OrganizationConfig,
        items: list[BatchItem],
        expiration: int,
        texts: RegistrationTexts | None = None,
    ) -> BatchResult:
        """
        Issue registration codes for queued items.

        Args:
            org: Organization the batch belongs to
            items: Queue items in source order
            expiration: Expiration timestamp for every issued code
            texts: SMS templates for registration code delivery

        Returns:
            BatchResult; an abort is reported through its outcome and
            batch_failure_messages, never raised
        """
        logger.debug("process_batch() for %s: %d items", org.entity, len(items))
        policy = self.policy.for_organization(org)
        rows = self.assign_codes([item.record for item in items], policy)

        docs: list[RegistrationCodeDocument | None] = []
        build_errors: dict[int, str] = {}
        for index, row in enumerate(rows):
            try:
                docs.append(self.registration.build(row, expiration, policy=policy))
            except InvalidCodeFormat as e:
                docs.append(None)
                build_errors[index] = str(e)

        built = [doc for doc in docs if doc is not None]
        created = self.store.create_bulk(
            [(doc.key, doc.to_body()) for doc in built], org.register_collection
        )
        creation = {id(doc): res for doc, res in zip(built, created)}

        result = BatchResult()
        for index, (item, doc) in enumerate(zip(items, docs)):
            result.processed += 1
            if doc is None:
                reason = build_errors[index]
            else:
                reason = self._process_item(org, doc, creation[id(doc)], texts)

            if reason is None:
                self._complete_item(org, item, doc)
                result.docs.append(doc)
                result.success_count += 1
            else:
                message = f"Failed to process pre-registration : {reason}"
                logger.error(message)
                self._fail_item(org, item, message)
                result.failures[index] = message
                result.failure_count += 1

            if result.failure_count >= policy.batch_max_error_threshold:
                abort = f"Batch processing abandoned after {result.failure_count} failures"
                logger.error(abort)
                result.batch_failure_messages.append(abort)
                result.aborted = True
                break

        logger.info(
            "Batch for %s done: %d succeeded, %d failed, %d skipped",
            org.entity,
            result.success_count,
            result.failure_count,
            len(items) - result.processed,
        )
        return result

    def failed_rows(self, items: list[BatchItem], result: BatchResult) -> list[dict[str, Any]]:
        """Source rows of failed items, annotated with failureReasons."""
        rows = []
        for index, message in sorted(result.failures.items()):
            row = {
                k: v for k, v in items[index].record.items() if k not in FAILED_ROW_EXCLUDED
            }
            row["failureReasons"] = [message]
            rows.append(row)
        logger.debug("failedRows %d", len(rows))
        return rows

    def save_report(
        self,
        org: OrganizationConfig,
        batch_id: str,
        file_name: str | None,
        row_count: int,
        result: BatchResult,
        failed_rows: list[dict[str, Any]],
    ) -> CodeResult:
        """Persist the summary of a finished batch to the batch collection."""
        report = {
            "type": PREREG_BATCH_REPORT_TYPE,
            "batchID": batch_id,
            "fileName": file_name,
            "rowCount": row_count,
            "successCount": result.success_count,
            "failureCount": result.failure_count,
            "failedRows": failed_rows,
            "batchFailureMessages": list(result.batch_failure_messages),
            "submittedTimestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.store.create(batch_id, report, org.batch_collection)
        except DocumentConflict:
            message = f"Batch report {batch_id} already exists in {org.batch_collection}"
            logger.error(message)
            return CodeResult(CodeOutcome.CONFLICT, message, report)
        logger.info("Saved batch report %s to %s", batch_id, org.batch_collection)
        return CodeResult(CodeOutcome.SUCCESS, "Batch report saved", report)

    def _process_item(
        self,
        org: OrganizationConfig,
        doc: RegistrationCodeDocument,
        created: BulkItemResult,
        texts: RegistrationTexts | None,
    ) -> str | None:
        """Return the failure reason for one created document, None on success."""
        if not created.ok:
            if created.error == "conflict":
                return self.resolver.resolve(org, doc.key)
            return created.reason or created.error or "Failed to create registration code doc"
        doc.rev = created.rev

        if not org.holder_notification:
            return None
        sent = self.notifier.send_registration_code(org, doc.holder, doc.register_code, texts)
        return None if sent.ok else sent.message

    def _complete_item(self, org: OrganizationConfig, item: BatchItem, doc: RegistrationCodeDocument) -> None:
        if item.is_queued:
            try:
                self.store.delete(item.key, item.rev, org.batch_queue_collection)
            except DocumentConflict:
                logger.warning("Batch item %s changed before it could be removed", item.key)
        holder_id = org.holder_id(doc.holder)
        if holder_id:
            self.audit.log(holder_id, CrudOperation.CREATE)

    def _fail_item(self, org: OrganizationConfig, item: BatchItem, message: str) -> None:
        item.error_message = message
        if not item.is_queued:
            return
        try:
            item.rev = self.store.update(item.key, item.rev, item.to_body(), org.batch_queue_collection)
        except DocumentConflict:
            logger.warning("Batch item %s changed before its error could be recorded", item.key)
