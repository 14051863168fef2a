"""Audit Trail Implementations

Sinks for "record processed" events. None of them raise: an audit failure
is logged and never fails the invoice write it describes.
"""

import asyncio
import logging
import os
from datetime import datetime
from typing import Optional
from src.app.services.audit_trail import AuditTrail, ProcessedRecordEvent

logger = logging.getLogger(__name__)

SUMMARY_FILE_NAME = "processed-flights-summary.txt"
SUMMARY_HEADER = "Flight ID | Status | Result Type | Ref ID | Message"


class LoggingAuditTrail(AuditTrail):
    """Audit trail that only logs events"""

    async def record_processed(self, event: ProcessedRecordEvent) -> None:
        logger.info(
            f"[PROCESSED] Flight: {event.flight_id}, Status: {event.status.value}, "
            f"Type: {event.result_type}, Ref: {event.reference_id or '-'}"
        )


class DailyFileAuditTrail(AuditTrail):
    """
    Audit trail that appends pipe-delimited lines to a per-day summary file

    Layout:
        <base_dir>/<d>-<month>-<yyyy>/processed-flights-summary.txt

    The file starts with a header row and a separator line.
    """

    def __init__(self, base_dir: str):
        """
        Initialize daily file audit trail

        Args:
            base_dir: Root directory for the per-day folders
        """
        self.base_dir = base_dir
        self._write_lock = asyncio.Lock()

    @staticmethod
    def folder_name_for(moment: datetime) -> str:
        return f"{moment.day}-{moment.strftime('%B').lower()}-{moment.year}"

    def path_for(self, moment: datetime) -> str:
        return os.path.join(self.base_dir, self.folder_name_for(moment), SUMMARY_FILE_NAME)

    @staticmethod
    def format_line(event: ProcessedRecordEvent) -> str:
        message = (event.message or "").replace("\n", " ").replace("|", "/")
        return " | ".join(
            [
                event.flight_id,
                event.status.value,
                event.result_type,
                event.reference_id or "-",
                message,
            ]
        )

    def _append(self, path: str, line: str) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        is_new = not os.path.exists(path)
        with open(path, "a", encoding="utf-8") as summary:
            if is_new:
                summary.write(SUMMARY_HEADER + "\n")
                summary.write("-" * len(SUMMARY_HEADER) + "\n")
            summary.write(line + "\n")

    async def record_processed(self, event: ProcessedRecordEvent) -> None:
        path = self.path_for(event.occurred_at)
        try:
            async with self._write_lock:
                await asyncio.to_thread(self._append, path, self.format_line(event))
        except Exception as e:
            logger.error(f"Failed to write audit line for flight {event.flight_id} to {path}: {e}")


class CompositeAuditTrail(AuditTrail):
    """Audit trail that delegates to multiple sinks"""

    def __init__(self, sinks: list[AuditTrail]):
        self.sinks = sinks

    async def record_processed(self, event: ProcessedRecordEvent) -> None:
        for sink in self.sinks:
            try:
                await sink.record_processed(event)
            except Exception as e:
                logger.error(f"Audit trail {type(sink).__name__} failed: {e}")


def create_audit_trail(base_dir: Optional[str] = None) -> AuditTrail:
    """
    Factory function to create the audit trail

    Args:
        base_dir: Optional summary directory. If provided, creates composite
                  trail with logging + daily file. Otherwise, just logging.
    """
    sinks: list[AuditTrail] = [LoggingAuditTrail()]

    if base_dir:
        sinks.append(DailyFileAuditTrail(base_dir))

    if len(sinks) == 1:
        return sinks[0]

    return CompositeAuditTrail(sinks)
