"""Report submission and triage.

Creating a report is a fixed sequence: upload the photo, classify it,
derive a category, persist, respond. Storage and persistence failures abort
the request. A classification failure does not: the report is saved with an
``AI_Error`` analysis and left for manual verification.
"""

import io
import logging
import math
import random
import string
import time
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional

from PIL import Image, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from envwatch.categorization import categorize
from envwatch.exceptions import (
    DuplicateTicketError,
    InvalidReportError,
    PersistenceError,
    ReportNotFoundError,
    StorageUploadError,
)
from envwatch.models.report import AIAnalysis, Location, Report
from envwatch.models.status import VALID_CATEGORIES, VALID_STATUSES, ReportCategory, ReportStatus

logger = logging.getLogger(__name__)

DEMO_TICKET_ID = "TEST-123"
TICKET_ALPHABET = string.digits + string.ascii_uppercase

_random = random.SystemRandom()


def generate_ticket_id(now_ms: Optional[int] = None) -> str:
    """RPT-<epoch millis>-<5 uppercase base36 characters>."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(_random.choice(TICKET_ALPHABET) for _ in range(5))
    return f"RPT-{now_ms}-{suffix}"


def demo_report() -> Report:
    return Report(
        id="demo",
        ticket_id=DEMO_TICKET_ID,
        image_url="https://placehold.co/600x400?text=TEST-123",
        location=Location(lat=-6.2, lng=106.816666),
        description="Tumpukan sampah di pinggir jalan (data contoh)",
        status=ReportStatus.IN_PROGRESS,
        category=ReportCategory.SAMPAH,
        ai_analysis=AIAnalysis(detected=True, class_="Sampah (Mock)", confidence=0.95),
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def inspect_image(data: bytes):
    """Return (content_type, extension) for an image buffer, or raise
    InvalidReportError if Pillow cannot read it."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = (image.format or "JPEG").lower()
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidReportError("Uploaded file is not a valid image") from e
    extension = "jpg" if image_format == "jpeg" else image_format
    return Image.MIME.get(image_format.upper(), f"image/{image_format}"), extension


class CreatedReport(NamedTuple):
    report: Report
    ai_status: bool


class ReportWorkflow:
    def __init__(self, store, storage, classifier, max_image_bytes: int = 5 * 1024 * 1024,
                 ticket_id_attempts: int = 5, demo_mode: bool = False):
        self.store = store
        self.storage = storage
        self.classifier = classifier
        self.max_image_bytes = max_image_bytes
        self.ticket_id_attempts = ticket_id_attempts
        self.demo_mode = demo_mode

    @classmethod
    def from_settings(cls, settings, store, storage, classifier) -> "ReportWorkflow":
        return cls(
            store,
            storage,
            classifier,
            max_image_bytes=settings.max_image_bytes,
            ticket_id_attempts=settings.ticket_id_attempts,
            demo_mode=settings.demo_mode,
        )

    async def submit_report(self, image: Optional[bytes], lat: float, lng: float, description: str,
                            address: Optional[str] = None) -> CreatedReport:
        if not image:
            raise InvalidReportError("No image file uploaded")
        if len(image) > self.max_image_bytes:
            raise InvalidReportError(f"Image exceeds the {self.max_image_bytes // (1024 * 1024)}MB limit")
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise InvalidReportError("Latitude and longitude must be finite numbers")
        if not description or not description.strip():
            raise InvalidReportError("Description is required")
        content_type, extension = inspect_image(image)

        try:
            image_url = await run_in_threadpool(self.storage.upload, image, content_type, extension)
        except Exception as e:
            logger.exception("Image upload failed")
            raise StorageUploadError("Image upload failed") from e

        analysis = await self._classify(image_url)
        category, ai_status = categorize(analysis)
        logger.info("Categorized as %s (ai_status=%s)", category.value, ai_status)

        report = Report(
            ticket_id=generate_ticket_id(),
            image_url=image_url,
            location=Location(lat=lat, lng=lng, address=address or None),
            description=description,
            status=ReportStatus.PENDING,
            category=category,
            ai_analysis=analysis,
        )
        saved = await self._persist(report)
        logger.info("Report %s saved", saved.ticket_id)
        return CreatedReport(saved, ai_status)

    async def _classify(self, image_url: str) -> AIAnalysis:
        try:
            return await run_in_threadpool(self.classifier.analyze_image, image_url)
        except Exception as e:
            # Degraded result, the report is still saved
            logger.error("Classification failed, continuing without AI result: %s", e)
            return AIAnalysis(detected=False, class_="AI_Error", confidence=0.0, raw_result={"error": str(e)})

    async def _persist(self, report: Report) -> Report:
        for attempt in range(1, self.ticket_id_attempts + 1):
            try:
                return await self.store.insert(report)
            except DuplicateTicketError:
                logger.warning("Ticket %s collided (attempt %d)", report.ticket_id, attempt)
                report = report.model_copy(update={"ticket_id": generate_ticket_id()})
        raise PersistenceError("Could not allocate a unique ticket ID")

    async def get_by_ticket(self, ticket_id: str) -> Report:
        if self.demo_mode and ticket_id == DEMO_TICKET_ID:
            return demo_report()
        report = await self.store.find_by_ticket(ticket_id)
        if report is None:
            raise ReportNotFoundError("Report not found")
        return report

    async def list_reports(self) -> List[Report]:
        return await self.store.list_all()

    async def update_report(self, report_id: str, status: Optional[str] = None,
                            category: Optional[str] = None) -> Report:
        if status is None and category is None:
            raise InvalidReportError("Nothing to update, send status and/or category")
        if status is not None and status not in VALID_STATUSES:
            raise InvalidReportError(f"Invalid status, must be one of {VALID_STATUSES}")
        if category is not None and category not in VALID_CATEGORIES:
            raise InvalidReportError(f"Invalid category, must be one of {VALID_CATEGORIES}")

        fields = {"updatedAt": datetime.now(timezone.utc)}
        if status is not None:
            fields["status"] = status
        if category is not None:
            fields["category"] = category

        updated = await self.store.update_fields(report_id, fields)
        if updated is None:
            raise ReportNotFoundError("Report not found")
        logger.info("Report %s updated: %s", updated.ticket_id, {k: v for k, v in fields.items() if k != "updatedAt"})
        return updated
