"""
Unit tests for code documents.

Tests conversion between document dataclasses and stored JSON bodies.
"""

import pytest

from src.domain.documents import (
    BatchItem,
    RegistrationCodeDocument,
    VerificationCodeDocument,
    is_verification_body,
)
from src.domain.exceptions import MalformedDocument
from src.domain.ports import CodeStatus, StoredDocument


def registration_doc(**overrides) -> RegistrationCodeDocument:
    fields = {
        "register_code": "ABCDE12345",
        "status": CodeStatus.NEW,
        "created_timestamp": 100,
        "updated_timestamp": 100,
        "expiration_timestamp": 200,
        "holder": {"id": "h1", "mobile": "+15550100", "rowID": 3, "batchID": "b1"},
    }
    fields.update(overrides)
    return RegistrationCodeDocument(**fields)


class TestRegistrationCodeDocument:
    """Tests for RegistrationCodeDocument."""

    def test_key_is_the_code(self) -> None:
        assert registration_doc().key == "ABCDE12345"

    def test_body_uses_stored_field_names(self) -> None:
        body = registration_doc().to_body()
        assert body["registerCode"] == "ABCDE12345"
        assert body["status"] == "new"
        assert body["expirationTimestamp"] == 200
        assert body["mobile"] == "+15550100"
        assert "verificationCode" not in body

    def test_body_carries_verification_reference(self) -> None:
        body = registration_doc(verification_code="12345678").to_body()
        assert body["verificationCode"] == "12345678"

    def test_from_stored_splits_holder_fields(self) -> None:
        doc = registration_doc(verification_code="42")
        stored = StoredDocument(key=doc.key, rev="1-abc", body=doc.to_body())

        loaded = RegistrationCodeDocument.from_stored(stored)

        assert loaded.status is CodeStatus.NEW
        assert loaded.verification_code == "42"
        assert loaded.holder == doc.holder
        assert loaded.rev == "1-abc"

    def test_from_stored_rejects_unknown_status(self) -> None:
        body = registration_doc().to_body()
        body["status"] = "revoked"
        with pytest.raises(MalformedDocument):
            RegistrationCodeDocument.from_stored(StoredDocument("ABCDE12345", "1-a", body))

    def test_from_stored_rejects_missing_timestamps(self) -> None:
        with pytest.raises(MalformedDocument):
            RegistrationCodeDocument.from_stored(
                StoredDocument("ABCDE12345", "1-a", {"status": "new"})
            )

    def test_reg_info_drops_bookkeeping_fields(self) -> None:
        info = registration_doc().reg_info()
        assert info == {"id": "h1", "mobile": "+15550100"}

    def test_is_global(self) -> None:
        assert registration_doc(status=CodeStatus.GLOBAL).is_global
        assert not registration_doc().is_global


class TestVerificationCodeDocument:
    """Tests for VerificationCodeDocument."""

    def test_key_is_string_of_int(self) -> None:
        doc = VerificationCodeDocument(
            verification_code=1234,
            verification_status=CodeStatus.NEW,
            register_code="ABCDE12345",
            registration_doc_id="ABCDE12345",
            created_timestamp=1,
            expiration_timestamp=2,
        )
        assert doc.key == "1234"
        assert is_verification_body(doc.to_body())

    def test_round_trip_through_store_body(self) -> None:
        doc = VerificationCodeDocument(
            verification_code=99,
            verification_status=CodeStatus.USED,
            register_code="ABCDE12345",
            registration_doc_id="ABCDE12345",
            created_timestamp=1,
            expiration_timestamp=2,
        )
        loaded = VerificationCodeDocument.from_stored(StoredDocument("99", "2-b", doc.to_body()))
        assert loaded.verification_status is CodeStatus.USED
        assert loaded.rev == "2-b"

    def test_registration_body_is_not_verification_body(self) -> None:
        assert not is_verification_body(registration_doc().to_body())


class TestBatchItem:
    """Tests for BatchItem."""

    def test_error_message_written_to_body(self) -> None:
        item = BatchItem(record={"id": "h1"}, key="b-0", rev="1-a", error_message="boom")
        assert item.to_body() == {"id": "h1", "errorMessage": "boom"}

    def test_queued_item(self) -> None:
        assert BatchItem(record={"id": "h1"}, key="b-0", rev="1-a").is_queued

    def test_unqueued_item(self) -> None:
        assert not BatchItem(record={"id": "h1"}).is_queued
