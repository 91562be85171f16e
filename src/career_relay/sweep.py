# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Reconciliation sweep over CRM contacts.

One pass pages through the CRM's contacts, classifies every tracked file field,
relays ephemeral references, repairs or clears broken ones, and writes each
changed record back with a single partial update.
"""

import functools
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from loguru import logger

from career_relay.classifier import ReferenceClassifier
from career_relay.crm import BITRIX_PAGE_SIZE, BitrixClient
from career_relay.errors import CrmError, CrmListFailed, SweepAlreadyRunning
from career_relay.models.classification import ReferenceKind
from career_relay.models.crm import IDENTITY_FIELDS, CrmRecord
from career_relay.models.fields import FieldName
from career_relay.models.report import SweepReport
from career_relay.relay import FileRelayService
from career_relay.storage import DurableStorage, find_owner_file

RecordFilter = Callable[[CrmRecord], bool]


@dataclass
class RecordDiff:
    """Changes decided for one record before they are written."""

    fields: dict[str, str] = field(default_factory=dict)
    converted: int = 0
    repaired: int = 0
    cleared: int = 0
    has_files: bool = False
    failures: list[tuple[str, str]] = field(default_factory=list)


class ReconciliationSweep:
    """Detects and repairs broken or unconverted file links on CRM contacts.

    Records are processed by a bounded pool of workers; the CRM and file API
    rate limits are enforced by the limiters held by the clients, so the
    concurrency degree and the external rate are independent knobs.
    Only one run may be in flight per instance.
    """

    def __init__(
        self,
        crm: BitrixClient,
        relay: FileRelayService,
        storage: DurableStorage,
        classifier: ReferenceClassifier,
        field_codes: dict[str, str],
        page_size: int = BITRIX_PAGE_SIZE,
        concurrency: int = 4,
    ):
        """Initializes the ReconciliationSweep.

        Args:
            crm: CRM client used to list and update contacts.
            relay: Service converting ephemeral references.
            storage: Durable store searched when repairing broken references.
            classifier: Classifier applied to every tracked field.
            field_codes: Logical field name -> CRM user-field code.
            page_size: Expected size of a full list page.
            concurrency: Number of records processed at once.
        """
        self.crm = crm
        self.relay = relay
        self.storage = storage
        self.classifier = classifier
        self.field_codes = dict(field_codes)
        self.page_size = page_size
        self.concurrency = max(1, concurrency)
        self._running = False
        self._cancel_scope: anyio.CancelScope | None = None

    @property
    def running(self) -> bool:
        return self._running

    def abort(self) -> bool:
        """Cancel the sweep in flight. Returns False when nothing is running."""
        if self._cancel_scope is None:
            return False
        logger.warning("Sweep abort requested")
        self._cancel_scope.cancel()
        return True

    def tracked_fields(self, fields: Iterable[FieldName | str] | None = None) -> list[tuple[FieldName, str]]:
        """Resolve logical field names to ``(field, crm_code)`` pairs.

        Raises:
            ValueError: If a field is unknown or has no CRM code configured.
        """
        names = list(fields) if fields is not None else list(self.field_codes)
        tracked: list[tuple[FieldName, str]] = []
        for name in names:
            field_name = FieldName(name)
            code = self.field_codes.get(field_name.value)
            if not code:
                raise ValueError(f"Field {field_name.value!r} has no CRM field code configured")
            tracked.append((field_name, code))
        if not tracked:
            raise ValueError("At least one field must be tracked")
        return tracked

    async def run(
        self,
        fields: Iterable[FieldName | str] | None = None,
        crm_filter: dict[str, Any] | None = None,
        record_filter: RecordFilter | None = None,
        deadline: float | None = None,
    ) -> SweepReport:
        """Run one full reconciliation pass.

        Args:
            fields: Logical fields to track. Defaults to every configured field.
            crm_filter: Filter passed to the CRM list call (e.g. ``{"ID": [...]}``).
            record_filter: Predicate selecting which listed records to process.
            deadline: Optional time budget in seconds for the whole run.

        Returns:
            SweepReport: Final counters. ``aborted`` is set when the run was
            cancelled or hit its deadline.

        Raises:
            SweepAlreadyRunning: If another run of this sweep is in flight.
            CrmListFailed: If a list page cannot be fetched; ``report`` holds the partial report.
            ValueError: If ``fields`` names an untracked field.
        """
        tracked = self.tracked_fields(fields)
        if self._running:
            raise SweepAlreadyRunning("A reconciliation sweep is already running")
        self._running = True

        report = SweepReport()
        select = IDENTITY_FIELDS + [code for _, code in tracked]
        logger.info(
            f"Starting reconciliation sweep over {[f.value for f, _ in tracked]} "
            f"(concurrency={self.concurrency}, filter={crm_filter or {}})"
        )

        try:
            with anyio.CancelScope() as scope:
                self._cancel_scope = scope
                if deadline is not None:
                    scope.deadline = anyio.current_time() + deadline
                await self._run_pipeline(select, crm_filter, record_filter, tracked, report)
            if scope.cancel_called or scope.cancelled_caught:
                report.aborted = True
        except CrmListFailed as e:
            report.finish()
            logger.error(f"Sweep stopped, contacts could not be listed: {e}. Partial report: {report.summary()}")
            e.report = report
            raise
        finally:
            self._running = False
            self._cancel_scope = None

        report.finish()
        logger.info(f"Sweep finished in {report.duration:.1f}s: {report.summary()}")
        for error in report.errors:
            logger.warning(f"  contact {error.record_id} {error.field_name or '-'}: {error.message}")
        return report

    async def _run_pipeline(
        self,
        select: list[str],
        crm_filter: dict[str, Any] | None,
        record_filter: RecordFilter | None,
        tracked: list[tuple[FieldName, str]],
        report: SweepReport,
    ) -> None:
        lock = anyio.Lock()
        failures: list[CrmListFailed] = []
        send, receive = anyio.create_memory_object_stream[CrmRecord](max_buffer_size=self.concurrency)

        async with anyio.create_task_group() as tg:
            tg.start_soon(self._produce, send, select, crm_filter, failures, tg.cancel_scope)
            for _ in range(self.concurrency):
                tg.start_soon(self._consume, receive.clone(), tracked, record_filter, report, lock)
            receive.close()

        if failures:
            raise failures[0]

    async def _produce(
        self,
        send: MemoryObjectSendStream[CrmRecord],
        select: list[str],
        crm_filter: dict[str, Any] | None,
        failures: list[CrmListFailed],
        group_scope: anyio.CancelScope,
    ) -> None:
        async with send:
            try:
                async for record in self.crm.iter_contacts(select, filter=crm_filter, page_size=self.page_size):
                    await send.send(record)
            except CrmListFailed as e:
                failures.append(e)
                group_scope.cancel()

    async def _consume(
        self,
        receive: MemoryObjectReceiveStream[CrmRecord],
        tracked: list[tuple[FieldName, str]],
        record_filter: RecordFilter | None,
        report: SweepReport,
        lock: anyio.Lock,
    ) -> None:
        async with receive:
            async for record in receive:
                await self._process_record(record, tracked, record_filter, report, lock)

    async def _process_record(
        self,
        record: CrmRecord,
        tracked: list[tuple[FieldName, str]],
        record_filter: RecordFilter | None,
        report: SweepReport,
        lock: anyio.Lock,
    ) -> None:
        async with lock:
            report.records_scanned += 1
        if record_filter is not None and not record_filter(record):
            return

        try:
            diff = await self.reconcile_record(record, tracked)
        except Exception as e:
            logger.error(f"Contact {record.external_id}: reconciliation failed: {e}")
            async with lock:
                report.add_error(record.external_id, f"{type(e).__name__}: {e}")
            return

        async with lock:
            if diff.has_files:
                report.records_with_files += 1
            for field_name, message in diff.failures:
                report.add_error(record.external_id, message, field_name)

        if not diff.fields:
            return

        # A write that reached the CRM is always credited, even when the run is cancelled meanwhile.
        with anyio.CancelScope(shield=True):
            try:
                await self.crm.update_contact(record.external_id, diff.fields)
            except CrmError as e:
                logger.error(f"Contact {record.external_id}: update failed: {e}")
                async with lock:
                    report.add_error(record.external_id, f"{type(e).__name__}: {e}")
                return

            logger.info(f"Contact {record.external_id} ({record.display_name}): updated {sorted(diff.fields)}")
            async with lock:
                report.records_updated += 1
                report.fields_converted += diff.converted
                report.fields_repaired += diff.repaired
                report.fields_cleared += diff.cleared

    async def reconcile_record(self, record: CrmRecord, tracked: list[tuple[FieldName, str]]) -> RecordDiff:
        """Decide the changes for one record without writing them."""
        diff = RecordDiff()
        owner_id = record.external_id

        for field_name, code in tracked:
            current = record.file_field(field_name, code)
            classification = self.classifier.classify(current.raw_value)
            kind = classification.kind
            if kind is ReferenceKind.EMPTY:
                continue

            if kind is ReferenceKind.UNKNOWN:
                logger.warning(
                    f"Contact {owner_id} {field_name.value}: unknown format {classification.value[:80]!r}, left as is"
                )
                continue

            diff.has_files = True
            if not classification.needs_action:
                continue

            if kind is ReferenceKind.BROKEN:
                filename = await find_owner_file(self.storage, owner_id, field_name)
                if filename:
                    diff.fields[code] = self.storage.public_url(filename)
                    diff.repaired += 1
                    logger.info(f"Contact {owner_id} {field_name.value}: broken link repaired with {filename}")
                else:
                    diff.fields[code] = ""
                    diff.cleared += 1
                    logger.info(
                        f"Contact {owner_id} {field_name.value}: broken link "
                        f"(marker {classification.marker!r}) cleared, no stored file found"
                    )
                continue

            result = await self.relay.relay(classification.value, field_name, owner_id)
            if result.ok:
                diff.fields[code] = result.value
                diff.converted += 1
            else:
                diff.failures.append((field_name.value, result.error or "relay failed"))

        return diff


def run_sweep(sweep: ReconciliationSweep, **kwargs: Any) -> SweepReport:
    """Run a sweep synchronously, for scripts and schedulers.

    Keyword arguments are passed to ``ReconciliationSweep.run``.
    """
    return anyio.run(functools.partial(sweep.run, **kwargs))
