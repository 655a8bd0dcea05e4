"""
Organization provider adapter - Implements OrganizationProvider protocol.

Organization documents are kept in the document store's "organizations"
collection, keyed by lowercase organization id.
"""

import logging

from src.domain.organization import OrganizationConfig
from src.domain.ports import DocumentStore

logger = logging.getLogger(__name__)

ORGANIZATIONS_COLLECTION = "organizations"


class StoreOrganizationProvider:
    """Reads and parses organization documents from a DocumentStore."""

    def __init__(self, store: DocumentStore, collection: str = ORGANIZATIONS_COLLECTION) -> None:
        self._store = store
        self._collection = collection

    def get(self, entity: str) -> OrganizationConfig | None:
        """
        Load an organization's configuration.

        Returns:
            Parsed OrganizationConfig, or None if no document exists

        Raises:
            UnknownEntityType: If the document names an unregistered entity type
            MalformedDocument: If the document cannot be parsed
        """
        key = entity.lower()
        result = self._store.read_safe(key, self._collection)
        if result.status != 200:
            logger.warning("Organization %s not found (status %s)", key, result.status)
            return None
        return OrganizationConfig.from_document(key, result.document.body)
