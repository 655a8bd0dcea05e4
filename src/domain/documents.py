"""
Code documents - registration codes, verification codes and batch items.

Documents are plain dataclasses converted to and from the JSON bodies kept
by the document store. Stored keys use the camelCase names shared with the
rest of the platform. The revision token travels with each document so the
next write can be checked against it.
"""

from dataclasses import dataclass, field
from typing import Any

from .exceptions import MalformedDocument
from .ports import CodeStatus, StoredDocument

REGISTRATION_FIELDS = frozenset(
    {
        "registerCode",
        "status",
        "createdTimestamp",
        "updatedTimestamp",
        "expirationTimestamp",
        "verificationCode",
    }
)

# Bookkeeping fields never returned to holders as registration info
HOLDER_INFO_EXCLUDED = frozenset({"rowID", "type", "batchID", "uid", "errorMessage", "_id", "_rev"})

PREREG_ITEM_TYPE = "PreRegItem"
PREREG_BATCH_REPORT_TYPE = "PreRegBatchReport"


def is_verification_body(body: dict[str, Any]) -> bool:
    return "verificationStatus" in body


@dataclass
class RegistrationCodeDocument:
    """A registration code and the holder fields it was issued with."""

    register_code: str
    status: CodeStatus
    created_timestamp: int
    updated_timestamp: int
    expiration_timestamp: int
    verification_code: str | None = None
    holder: dict[str, Any] = field(default_factory=dict)
    rev: str | None = None

    @property
    def key(self) -> str:
        return self.register_code

    @property
    def is_global(self) -> bool:
        return self.status is CodeStatus.GLOBAL

    def to_body(self) -> dict[str, Any]:
        body = dict(self.holder)
        body.update(
            {
                "registerCode": self.register_code,
                "status": self.status.value,
                "createdTimestamp": self.created_timestamp,
                "updatedTimestamp": self.updated_timestamp,
                "expirationTimestamp": self.expiration_timestamp,
            }
        )
        if self.verification_code is not None:
            body["verificationCode"] = self.verification_code
        return body

    def reg_info(self) -> dict[str, Any]:
        """Holder fields with bookkeeping removed."""
        return {k: v for k, v in self.holder.items() if k not in HOLDER_INFO_EXCLUDED}

    @classmethod
    def from_stored(cls, stored: StoredDocument) -> "RegistrationCodeDocument":
        body = stored.body
        try:
            verification_code = body.get("verificationCode")
            return cls(
                register_code=body.get("registerCode", stored.key),
                status=CodeStatus(body["status"]),
                created_timestamp=int(body["createdTimestamp"]),
                updated_timestamp=int(body.get("updatedTimestamp", body["createdTimestamp"])),
                expiration_timestamp=int(body["expirationTimestamp"]),
                verification_code=str(verification_code) if verification_code is not None else None,
                holder={k: v for k, v in body.items() if k not in REGISTRATION_FIELDS},
                rev=stored.rev,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedDocument(f"Invalid registration code document {stored.key}: {e}") from e


@dataclass
class VerificationCodeDocument:
    """A short-lived numeric code bound to one registration code."""

    verification_code: int
    verification_status: CodeStatus
    register_code: str
    registration_doc_id: str
    created_timestamp: int
    expiration_timestamp: int
    rev: str | None = None

    @property
    def key(self) -> str:
        return str(self.verification_code)

    def to_body(self) -> dict[str, Any]:
        return {
            "verificationCode": self.verification_code,
            "verificationStatus": self.verification_status.value,
            "registerCode": self.register_code,
            "registrationDocID": self.registration_doc_id,
            "createdTimestamp": self.created_timestamp,
            "expirationTimestamp": self.expiration_timestamp,
        }

    @classmethod
    def from_stored(cls, stored: StoredDocument) -> "VerificationCodeDocument":
        body = stored.body
        try:
            return cls(
                verification_code=int(body.get("verificationCode", stored.key)),
                verification_status=CodeStatus(body["verificationStatus"]),
                register_code=body["registerCode"],
                registration_doc_id=body.get("registrationDocID", body["registerCode"]),
                created_timestamp=int(body["createdTimestamp"]),
                expiration_timestamp=int(body["expirationTimestamp"]),
                rev=stored.rev,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedDocument(f"Invalid verification code document {stored.key}: {e}") from e


@dataclass
class BatchItem:
    """A pre-registration source row waiting in the batch queue."""

    record: dict[str, Any]
    key: str | None = None
    rev: str | None = None
    error_message: str | None = None

    @property
    def is_queued(self) -> bool:
        return self.key is not None and self.rev is not None

    def to_body(self) -> dict[str, Any]:
        body = dict(self.record)
        if self.error_message is not None:
            body["errorMessage"] = self.error_message
        return body
