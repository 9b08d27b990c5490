import logging
from typing import List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from envwatch.exceptions import DuplicateTicketError, PersistenceError
from envwatch.models.report import Report

logger = logging.getLogger(__name__)


class ReportStore:
    """Persistence interface used by the report workflow."""

    async def ensure_indexes(self) -> None:
        pass

    async def insert(self, report: Report) -> Report:
        raise NotImplementedError

    async def find_by_ticket(self, ticket_id: str) -> Optional[Report]:
        raise NotImplementedError

    async def list_all(self) -> List[Report]:
        raise NotImplementedError

    async def update_fields(self, report_id: str, fields: dict) -> Optional[Report]:
        raise NotImplementedError


def _identifier_query(report_id: str) -> dict:
    # Reports are addressed by Mongo id from the admin table, by ticket elsewhere
    if ObjectId.is_valid(report_id):
        return {"_id": ObjectId(report_id)}
    return {"ticketId": report_id}


class MongoReportStore(ReportStore):
    def __init__(self, collection):
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await self.collection.create_index("ticketId", unique=True)
        await self.collection.create_index([("createdAt", DESCENDING)])
        logger.info("Report indexes ensured")

    async def insert(self, report: Report) -> Report:
        doc = report.to_document()
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            raise DuplicateTicketError(f"Ticket {report.ticket_id} already exists") from e
        except PyMongoError as e:
            logger.exception("Insert failed for ticket %s", report.ticket_id)
            raise PersistenceError("Could not save report") from e
        return report.model_copy(update={"id": str(result.inserted_id)})

    async def find_by_ticket(self, ticket_id: str) -> Optional[Report]:
        doc = await self.collection.find_one({"ticketId": ticket_id})
        return Report.from_document(doc) if doc else None

    async def list_all(self) -> List[Report]:
        reports = []
        async for doc in self.collection.find().sort("createdAt", DESCENDING):
            reports.append(Report.from_document(doc))
        return reports

    async def update_fields(self, report_id: str, fields: dict) -> Optional[Report]:
        try:
            doc = await self.collection.find_one_and_update(
                _identifier_query(report_id),
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.exception("Update failed for report %s", report_id)
            raise PersistenceError("Could not update report") from e
        return Report.from_document(doc) if doc else None
