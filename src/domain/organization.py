"""
Organization configuration - typed view of an organization document.

Parsing resolves the organization's holder identity from the entity-type
registry, so every later operation works with a statically known
implementation.
"""

from dataclasses import dataclass, field
from typing import Any

from .entities import HolderIdentity, resolve_holder_identity
from .exceptions import MalformedDocument

DEFAULT_PRE_REG_REQUIRED_FIELDS = ["id", "clientName", "givenName", "familyName", "location"]

REG_CODE_TEXT_ANDROID = "notifyTextRegistrationCodeAndroid"
REG_CODE_TEXT_IOS = "notifyTextRegistrationCodeiOS"
VERIFICATION_CODE_TEXT = "notifyTextVerificationCode"


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    content: str


@dataclass(frozen=True)
class OrganizationConfig:
    """Organization settings consumed by the code lifecycle."""

    entity: str
    identity: HolderIdentity
    entity_type: str | None = None
    mfa_auth: bool = False
    holder_notification: bool = True
    global_reg_code_allowed: bool = False
    notify_texts: dict[str, str] = field(default_factory=dict)
    email_templates: dict[str, EmailTemplate] = field(default_factory=dict)
    code_min_length: int | None = None
    code_max_length: int | None = None
    batch_max_error_threshold: int | None = None
    pre_reg_required_fields: list[str] = field(
        default_factory=lambda: list(DEFAULT_PRE_REG_REQUIRED_FIELDS)
    )

    @property
    def register_collection(self) -> str:
        return f"{self.entity}-register"

    @property
    def batch_queue_collection(self) -> str:
        return f"{self.entity}-batch-queue"

    @property
    def batch_collection(self) -> str:
        return f"{self.entity}-batch"

    def holder_id(self, record: dict[str, Any]) -> str | None:
        return self.identity.get_holder_id(record)

    @classmethod
    def from_document(cls, entity: str, body: dict[str, Any]) -> "OrganizationConfig":
        """
        Build a config from a stored organization document.

        Raises:
            UnknownEntityType: If the entity type is not registered
            MalformedDocument: If typed fields hold unusable values
        """
        entity_type = body.get("entityType")
        identity = resolve_holder_identity(entity_type)

        flow = (body.get("userRegistrationConfig") or {}).get("flow") or {}
        # holderNotification defaults to enabled when absent
        holder_notification = flow.get("holderNotification")
        if holder_notification is None:
            holder_notification = True

        required_fields = list(body.get("preRegRequiredFields") or DEFAULT_PRE_REG_REQUIRED_FIELDS)
        for name in identity.get_required_fields(body):
            if name not in required_fields:
                required_fields.append(name)

        try:
            templates = {
                name: EmailTemplate(subject=tpl["subject"], content=tpl["content"])
                for name, tpl in (body.get("emailTemplate") or {}).items()
            }
            code_bounds = body.get("registrationCode") or {}
            min_length = code_bounds.get("minLength")
            max_length = code_bounds.get("maxLength")
            threshold = body.get("batchMaxErrorThreshold")
            if threshold is not None and int(threshold) < 1:
                raise ValueError(f"batchMaxErrorThreshold must be positive, got {threshold}")
            config = cls(
                entity=entity.lower(),
                identity=identity,
                entity_type=entity_type,
                mfa_auth=bool(flow.get("mfaAuth", False)),
                holder_notification=bool(holder_notification),
                global_reg_code_allowed=body.get("globalRegCodeAllowed") is True,
                notify_texts={
                    key: body[key]
                    for key in (REG_CODE_TEXT_ANDROID, REG_CODE_TEXT_IOS, VERIFICATION_CODE_TEXT)
                    if key in body
                },
                email_templates=templates,
                code_min_length=int(min_length) if min_length is not None else None,
                code_max_length=int(max_length) if max_length is not None else None,
                batch_max_error_threshold=int(threshold) if threshold is not None else None,
                pre_reg_required_fields=required_fields,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedDocument(f"Invalid organization document for {entity}: {e}") from e
        return config
