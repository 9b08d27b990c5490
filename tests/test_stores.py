"""
Tests for the Mongo-backed stores against a mocked motor collection:
- Report insert, lookup, newest-first listing and partial updates.
- Driver errors mapped to domain exceptions.
- Admin credential lookup and seeding.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from envwatch.exceptions import DuplicateTicketError, PersistenceError
from envwatch.models.report import AIAnalysis, Location, Report
from envwatch.models.user import AdminUser
from envwatch.stores.admins import MongoCredentialStore, hash_password
from envwatch.stores.reports import MongoReportStore, _identifier_query


def run(coro):
    return asyncio.run(coro)


class FakeCursor:
    """Async cursor returning documents in the order given."""

    def __init__(self, docs):
        self.docs = list(docs)
        self.sort_args = None

    def sort(self, *args):
        self.sort_args = args
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self.docs:
            yield doc


def make_collection():
    collection = MagicMock()
    collection.insert_one = AsyncMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.create_index = AsyncMock()
    return collection


def make_report(ticket_id="RPT-1700000000000-ABCDE", **kwargs):
    return Report(
        ticket_id=ticket_id,
        image_url="https://cdn.example.com/reports/photo.png",
        location=Location(lat=-6.2, lng=106.8, address="Jl. Sudirman"),
        description="Sampah menumpuk",
        ai_analysis=AIAnalysis(
            detected=True,
            class_="plastic bottle",
            confidence=0.87,
            raw_result={"predictions": [{"class": "plastic bottle", "confidence": 0.87}]},
        ),
        created_at=datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc),
        **kwargs,
    )


def stored_document(report, object_id=None):
    doc = report.to_document()
    doc["_id"] = object_id or ObjectId()
    return doc


def test_document_round_trip():
    object_id = ObjectId()
    doc = stored_document(make_report(), object_id)

    assert "id" not in doc
    assert doc["ticketId"] == "RPT-1700000000000-ABCDE"
    assert doc["aiAnalysis"]["class"] == "plastic bottle"
    assert doc["aiAnalysis"]["rawResult"]["predictions"][0]["confidence"] == 0.87
    assert doc["status"] == "Pending"
    assert doc["category"] == "Butuh Verifikasi"

    report = Report.from_document(doc)
    assert report.id == str(object_id)
    assert report.ai_analysis.class_ == "plastic bottle"
    assert report.ai_analysis.raw_result == {"predictions": [{"class": "plastic bottle", "confidence": 0.87}]}
    assert report.location.address == "Jl. Sudirman"


def test_identifier_query():
    object_id = ObjectId()
    assert _identifier_query(str(object_id)) == {"_id": object_id}
    assert _identifier_query("RPT-1700000000000-ABCDE") == {"ticketId": "RPT-1700000000000-ABCDE"}


def test_ensure_report_indexes():
    collection = make_collection()
    run(MongoReportStore(collection).ensure_indexes())
    collection.create_index.assert_any_await("ticketId", unique=True)
    collection.create_index.assert_any_await([("createdAt", DESCENDING)])


def test_insert_returns_report_with_id():
    collection = make_collection()
    object_id = ObjectId()
    collection.insert_one.return_value = MagicMock(inserted_id=object_id)
    report = make_report()

    saved = run(MongoReportStore(collection).insert(report))

    assert saved.id == str(object_id)
    assert saved.ticket_id == report.ticket_id
    inserted = collection.insert_one.await_args.args[0]
    assert inserted["ticketId"] == report.ticket_id
    assert "_id" not in inserted


def test_insert_duplicate_ticket():
    collection = make_collection()
    collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key error")
    with pytest.raises(DuplicateTicketError):
        run(MongoReportStore(collection).insert(make_report()))


def test_insert_driver_error_is_persistence_error():
    collection = make_collection()
    collection.insert_one.side_effect = PyMongoError("connection refused by db.internal:27017")
    with pytest.raises(PersistenceError) as exc_info:
        run(MongoReportStore(collection).insert(make_report()))
    assert not isinstance(exc_info.value, DuplicateTicketError)
    assert "db.internal" not in exc_info.value.message


def test_find_by_ticket():
    collection = make_collection()
    report = make_report()
    collection.find_one.return_value = stored_document(report)
    store = MongoReportStore(collection)

    found = run(store.find_by_ticket(report.ticket_id))
    assert found.ticket_id == report.ticket_id
    collection.find_one.assert_awaited_with({"ticketId": report.ticket_id})

    collection.find_one.return_value = None
    assert run(store.find_by_ticket("RPT-1-ZZZZZ")) is None


def test_list_all_sorts_newest_first():
    newer = make_report("RPT-2-BBBBB")
    older = make_report("RPT-1-AAAAA")
    cursor = FakeCursor([stored_document(newer), stored_document(older)])
    collection = make_collection()
    collection.find.return_value = cursor

    reports = run(MongoReportStore(collection).list_all())

    assert cursor.sort_args == ("createdAt", DESCENDING)
    assert [r.ticket_id for r in reports] == ["RPT-2-BBBBB", "RPT-1-AAAAA"]


def test_update_fields_by_object_id():
    object_id = ObjectId()
    updated = make_report(status="Resolved")
    collection = make_collection()
    collection.find_one_and_update.return_value = stored_document(updated, object_id)

    result = run(MongoReportStore(collection).update_fields(str(object_id), {"status": "Resolved"}))

    assert result.id == str(object_id)
    assert result.status == "Resolved"
    collection.find_one_and_update.assert_awaited_once_with(
        {"_id": object_id},
        {"$set": {"status": "Resolved"}},
        return_document=ReturnDocument.AFTER,
    )


def test_update_fields_by_ticket_id():
    collection = make_collection()
    collection.find_one_and_update.return_value = stored_document(make_report(category="Sampah"))

    result = run(MongoReportStore(collection).update_fields("RPT-1700000000000-ABCDE", {"category": "Sampah"}))

    assert result.category == "Sampah"
    query = collection.find_one_and_update.await_args.args[0]
    assert query == {"ticketId": "RPT-1700000000000-ABCDE"}


def test_update_fields_unknown_report():
    collection = make_collection()
    assert run(MongoReportStore(collection).update_fields(str(ObjectId()), {"status": "Resolved"})) is None


def test_update_fields_driver_error():
    collection = make_collection()
    collection.find_one_and_update.side_effect = PyMongoError("write concern timeout on shard-a")
    with pytest.raises(PersistenceError) as exc_info:
        run(MongoReportStore(collection).update_fields("RPT-1-AAAAA", {"status": "Resolved"}))
    assert "shard-a" not in exc_info.value.message


def test_credential_store_get_and_authenticate():
    collection = make_collection()
    collection.find_one.return_value = {
        "_id": ObjectId(),
        "username": "admin",
        "hashed_password": hash_password("rahasia-admin-123"),
        "role": "admin",
        "disabled": False,
    }
    store = MongoCredentialStore(collection)

    user = run(store.get_user("admin"))
    assert user.username == "admin"
    collection.find_one.assert_awaited_with({"username": "admin"})

    assert run(store.authenticate("admin", "rahasia-admin-123")).username == "admin"
    assert run(store.authenticate("admin", "wrong-password")) is None


def test_credential_store_unknown_user():
    store = MongoCredentialStore(make_collection())
    assert run(store.get_user("nobody")) is None
    assert run(store.authenticate("nobody", "whatever")) is None


def test_credential_store_add_user():
    collection = make_collection()
    store = MongoCredentialStore(collection)
    user = AdminUser(username="admin", hashed_password=hash_password("rahasia-admin-123"))

    assert run(store.add_user(user)) is True
    assert collection.insert_one.await_args.args[0]["username"] == "admin"

    collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key error")
    assert run(store.add_user(user)) is False


def test_ensure_credential_indexes():
    collection = make_collection()
    run(MongoCredentialStore(collection).ensure_indexes())
    collection.create_index.assert_awaited_once_with("username", unique=True)
