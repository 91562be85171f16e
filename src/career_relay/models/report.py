# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from datetime import datetime, timezone

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SweepError(BaseModel):
    """One isolated failure recorded during a sweep."""

    record_id: str
    field_name: str | None = None
    message: str


class SweepReport(BaseModel):
    """Aggregate counters for one reconciliation sweep run."""

    records_scanned: int = 0
    records_with_files: int = 0
    records_updated: int = 0
    fields_converted: int = 0
    fields_repaired: int = 0
    fields_cleared: int = 0
    errors: list[SweepError] = Field(default_factory=list)
    aborted: bool = False
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: datetime | None = None

    def add_error(self, record_id: str, message: str, field_name: str | None = None) -> None:
        self.errors.append(SweepError(record_id=record_id, field_name=field_name, message=message))

    def finish(self) -> "SweepReport":
        self.finished_at = _utcnow()
        return self

    @property
    def duration(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> str:
        return (
            f"scanned={self.records_scanned} with_files={self.records_with_files} "
            f"updated={self.records_updated} converted={self.fields_converted} "
            f"repaired={self.fields_repaired} cleared={self.fields_cleared} "
            f"errors={len(self.errors)}" + (" aborted" if self.aborted else "")
        )
