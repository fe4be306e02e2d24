from __future__ import annotations

from dataclasses import replace
from typing import Any
import hashlib
import logging
import secrets

from .catalog import LoggingNotifier, Notifier, ServiceCatalog
from .config import SchedulingConfig
from .errors import AlreadyCancelledError, CredentialNotFoundError, ValidationError
from .models import ConsumedCredential, ReservationRecord, ReservationStatus, ReservationSummary

logger = logging.getLogger(__name__)

CREDENTIAL_BYTES = 48
MAX_CANCEL_REASON_LENGTH = 500
INVALID_LINK_MESSAGE = "This cancellation link is invalid or has already been used."
ALREADY_CANCELLED_MESSAGE = "This reservation has already been cancelled or can no longer be cancelled."


def hash_credential(plaintext: str) -> str:
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def generate_credential() -> tuple[str, str]:
    """Return a new (plaintext, sha256 hex digest) pair. Only the digest is ever stored."""
    plaintext = secrets.token_urlsafe(CREDENTIAL_BYTES)
    return plaintext, hash_credential(plaintext)


def normalize_cancel_reason(reason: Any) -> str | None:
    if reason is None:
        return None
    if not isinstance(reason, str):
        raise ValidationError("Cancellation reason must be text.", field="cancel_reason")
    trimmed = reason.strip()
    if len(trimmed) > MAX_CANCEL_REASON_LENGTH:
        raise ValidationError("Cancellation reason must be 500 characters or fewer.", field="cancel_reason")
    return trimmed or None


class CancellationService:
    """Resolves cancellation credentials and performs confirmed -> cancelled.

    A credential is looked up by its hash. Unknown and already used
    credentials are reported the same way so callers cannot probe which
    links once existed.
    """

    def __init__(
        self,
        repository: Any,
        catalog: ServiceCatalog,
        config: SchedulingConfig | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.repository = repository
        self.catalog = catalog
        self.config = config or SchedulingConfig()
        self.notifier = notifier or LoggingNotifier()

    def _find(self, credential: str | None) -> ReservationRecord:
        if not credential or not str(credential).strip():
            raise CredentialNotFoundError(INVALID_LINK_MESSAGE)
        record = self.repository.find_by_token_hash(hash_credential(str(credential).strip()))
        if record is None:
            raise CredentialNotFoundError(INVALID_LINK_MESSAGE)
        return record

    def _summary(self, record: ReservationRecord) -> ReservationSummary:
        service = self.catalog.get_service(record.service_id)
        return ReservationSummary.from_record(record, service.name if service else None)

    def resolve(self, credential: str | None) -> ReservationSummary:
        return self._summary(self._find(credential))

    def cancel(self, credential: str | None, reason: Any = None) -> ReservationSummary:
        record = self._find(credential)
        normalized_reason = normalize_cancel_reason(reason)

        if not record.is_confirmed:
            raise AlreadyCancelledError(ALREADY_CANCELLED_MESSAGE, summary=self._summary(record))

        now = self.config.local_now()
        cancelled = replace(
            record,
            status=ReservationStatus.CANCELLED,
            credential=ConsumedCredential(consumed_at=now),
            cancelled_at=now,
            cancel_reason=normalized_reason,
            updated_at=now,
        )
        applied = self.repository.replace_reservation_if_status(
            cancelled,
            ReservationStatus.CONFIRMED,
            "RESERVATION_CANCELLED",
        )
        if not applied:
            current = self.repository.get_reservation(record.reservation_id)
            if current is None:
                raise CredentialNotFoundError(INVALID_LINK_MESSAGE)
            raise AlreadyCancelledError(ALREADY_CANCELLED_MESSAGE, summary=self._summary(current))

        logger.info("Cancelled reservation %s", cancelled.reservation_code)
        summary = self._summary(cancelled)
        try:
            self.notifier.reservation_cancelled(summary)
        except Exception:
            logger.warning("Cancellation notice for %s could not be sent", cancelled.reservation_code, exc_info=True)
        return summary
