from .booking import CandidateSlot, ConflictChecker, can_reserve, has_time_overlap, normalize_hhmm
from .business_hours import BusinessHourResolver, Closed, DaySchedule, OperatingHours, week_of_month
from .cancellation import CancellationService, generate_credential, hash_credential
from .catalog import LoggingNotifier, Notifier, Service, ServiceCatalog
from .config import SchedulingConfig
from .engine import AvailabilityResult, ReservationEngine
from .errors import (
	AlreadyCancelledError,
	CredentialNotFoundError,
	PersistenceError,
	ReservationConflictError,
	ReservationError,
	ValidationError,
)
from .lifecycle import CreatedReservation, ReservationLifecycle, ReservationRequest
from .models import (
	BusinessHourRecord,
	ConsumedCredential,
	DayOfWeek,
	ReservationRecord,
	ReservationStatus,
	ReservationSummary,
	UnusedCredential,
)
from .slots import SlotGenerator, earliest_bookable_start
from .yaml_store import ReservationYamlRepository

__all__ = [
	"CandidateSlot",
	"ConflictChecker",
	"can_reserve",
	"has_time_overlap",
	"normalize_hhmm",
	"BusinessHourResolver",
	"Closed",
	"DaySchedule",
	"OperatingHours",
	"week_of_month",
	"CancellationService",
	"generate_credential",
	"hash_credential",
	"LoggingNotifier",
	"Notifier",
	"Service",
	"ServiceCatalog",
	"SchedulingConfig",
	"AvailabilityResult",
	"ReservationEngine",
	"AlreadyCancelledError",
	"CredentialNotFoundError",
	"PersistenceError",
	"ReservationConflictError",
	"ReservationError",
	"ValidationError",
	"CreatedReservation",
	"ReservationLifecycle",
	"ReservationRequest",
	"BusinessHourRecord",
	"ConsumedCredential",
	"DayOfWeek",
	"ReservationRecord",
	"ReservationStatus",
	"ReservationSummary",
	"UnusedCredential",
	"SlotGenerator",
	"earliest_bookable_start",
	"ReservationYamlRepository",
]
