# parcel_router/app/importer.py
"""
Container import and reconciliation.

One call handles one manifest, strictly in document order:

* parse the manifest (``ValidationError`` on malformed input);
* if the business id is already stored, compare the deduplicated manifest
  against it and either return the stored container unchanged or raise
  ``IntegrityConflictError`` on the first mismatch;
* otherwise persist the container, then each unique parcel (persist, assign
  departments, update, append), and finally update the container.

A failure while processing parcels deletes the freshly created container.
Parcels already written stay written. Looking up a business id and creating
it is not atomic: two concurrent imports of the same new id race, and the
store decides the outcome (duplicate error or last write wins).
"""

import threading
from decimal import Decimal
from pathlib import Path
from typing import Callable, List, Optional, TypeVar, Union

import structlog

from .constants import DEFAULT_COUNTRY, DEFAULT_NEIGHBORHOOD, DEFAULT_STATE
from .errors import (ImportCancelledError, IntegrityConflictError, NotFoundError, ParcelRouterError,
                     StorageFailureError, ValidationError)
from .manifest import ContainerManifest, ParcelIn, parse_manifest
from .models import Address, Container, ContainerStatus, Customer, Parcel, department_names
from .rules import DepartmentRuleEngine
from .schemas import ImportResult
from .stores import ContainerStore, ParcelStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# stored Numeric columns round; anything closer than this is the same amount
AMOUNT_TOLERANCE = Decimal("0.01")


def check_integrity(existing: Container, stored_parcels: List[Parcel],
                    manifest: ContainerManifest, unique_parcels: List[ParcelIn]):
    """Raise IntegrityConflictError for the first field where the stored container differs."""
    business_id = existing.business_id
    if existing.shipping_date != manifest.shipping_date:
        raise IntegrityConflictError(business_id, "shipping_date",
                                     existing.shipping_date.isoformat(),
                                     manifest.shipping_date.isoformat())

    if len(stored_parcels) != len(unique_parcels):
        raise IntegrityConflictError(business_id, "parcel_count", len(stored_parcels), len(unique_parcels))

    for position, (stored, incoming) in enumerate(zip(stored_parcels, unique_parcels), start=1):
        if stored.recipient.name != incoming.recipient.name:
            raise IntegrityConflictError(business_id, "recipient_name", stored.recipient.name,
                                         incoming.recipient.name, position)
        if abs(stored.weight - incoming.weight) > AMOUNT_TOLERANCE:
            raise IntegrityConflictError(business_id, "weight", stored.weight, incoming.weight, position)
        if abs(stored.value - incoming.value) > AMOUNT_TOLERANCE:
            raise IntegrityConflictError(business_id, "value", stored.value, incoming.value, position)


def build_parcel(item: ParcelIn) -> Parcel:
    address = Address(
        street=item.recipient.address.street,
        number=item.recipient.address.house_number,
        complement="",
        neighborhood=DEFAULT_NEIGHBORHOOD,
        city=item.recipient.address.city,
        state=DEFAULT_STATE,
        postal_code=item.recipient.address.postal_code,
        country=DEFAULT_COUNTRY,
    )
    customer = Customer(name=item.recipient.name, address=address)
    return Parcel(recipient=customer, weight=item.weight, value=item.value)


class ContainerImporter:
    def __init__(self, containers: ContainerStore, parcels: ParcelStore, rule_engine: DepartmentRuleEngine):
        self.containers = containers
        self.parcels = parcels
        self.rule_engine = rule_engine

    def validate(self, raw: Union[bytes, str]) -> bool:
        """Parse and check the minimal structure only; never touches storage."""
        try:
            manifest = parse_manifest(raw)
        except ValidationError as e:
            logger.warning("manifest_invalid", reason=e.message)
            return False
        valid = bool(manifest.id.strip()) and len(manifest.parcels) > 0
        logger.info("manifest_validated", valid=valid, container_id=manifest.id,
                    parcel_count=len(manifest.parcels))
        return valid

    def import_file(self, path: Union[str, Path],
                    cancel_event: Optional[threading.Event] = None) -> ImportResult:
        path = Path(path)
        if not path.is_file():
            raise NotFoundError("Manifest file", path)
        return self.import_manifest(path.read_bytes(), cancel_event=cancel_event)

    def import_manifest(self, raw: Union[bytes, str],
                        cancel_event: Optional[threading.Event] = None) -> ImportResult:
        manifest = parse_manifest(raw)
        log = logger.bind(container_id=manifest.id)
        log.info("import_started", parcel_count=len(manifest.parcels))

        unique_parcels, duplicates = manifest.unique_parcels()
        if duplicates:
            log.warning("duplicate_parcels_skipped", duplicates=duplicates, unique=len(unique_parcels))

        existing = self._call(cancel_event, manifest.id, self.containers.get_by_business_id, manifest.id)
        if existing is not None:
            return self._reconcile(existing, manifest, unique_parcels, cancel_event)

        container = Container(business_id=manifest.id, shipping_date=manifest.shipping_date)
        container = self._call(cancel_event, manifest.id, self.containers.add, container)
        container.update_status(ContainerStatus.PROCESSING)

        try:
            for position, item in enumerate(unique_parcels, start=1):
                parcel = self._import_parcel(item, manifest.id, cancel_event)
                container.add_parcel(parcel)
                log.debug("parcel_imported", position=position, parcel_id=parcel.id)
            container.update_status(ContainerStatus.PROCESSED)
            self._call(cancel_event, manifest.id, self.containers.update, container)
        except Exception as e:
            kind = e.kind.value if isinstance(e, ParcelRouterError) else type(e).__name__
            log.error("import_failed", kind=kind, error=str(e))
            self._rollback(container)
            raise

        result = ImportResult.from_container(container)
        log.info("import_completed", created=True, total_parcels=result.total_parcels,
                 duplicates=duplicates, parcels_requiring_insurance=result.parcels_requiring_insurance)
        return result

    # ---------------------------
    # internals
    # ---------------------------
    def _reconcile(self, existing: Container, manifest: ContainerManifest,
                   unique_parcels: List[ParcelIn], cancel_event) -> ImportResult:
        log = logger.bind(container_id=manifest.id)
        stored = self._call(cancel_event, manifest.id, self.parcels.get_by_container, existing.id)
        try:
            check_integrity(existing, stored, manifest, unique_parcels)
        except IntegrityConflictError as e:
            log.warning("integrity_conflict", field=e.field, position=e.position, error=e.message)
            raise
        log.info("container_already_imported", created=False, total_parcels=len(stored))
        return ImportResult.from_container(existing)

    def _import_parcel(self, item: ParcelIn, business_id: str, cancel_event) -> Parcel:
        parcel = build_parcel(item)
        parcel = self._call(cancel_event, business_id, self.parcels.add, parcel)
        departments = self._call(cancel_event, business_id, self.rule_engine.assign_departments, parcel)
        parcel = self._call(cancel_event, business_id, self.parcels.update, parcel)
        logger.debug("parcel_routed", parcel_id=parcel.id, departments=department_names(departments))
        return parcel

    def _call(self, cancel_event: Optional[threading.Event], business_id: str,
              operation: Callable[..., T], *args) -> T:
        # storage boundary: cancellation point + wrapping of store errors
        if cancel_event is not None and cancel_event.is_set():
            raise ImportCancelledError(business_id)
        try:
            return operation(*args)
        except ParcelRouterError:
            raise
        except Exception as e:
            name = getattr(operation, "__name__", repr(operation))
            raise StorageFailureError(f"{name} failed for container {business_id}: {e}",
                                      {"container_id": business_id, "operation": name}) from e

    def _rollback(self, container: Container):
        logger.error("import_rolled_back", container_id=container.business_id)
        try:
            self.containers.delete(container.id)
        except Exception:
            logger.exception("rollback_failed", container_id=container.business_id)
