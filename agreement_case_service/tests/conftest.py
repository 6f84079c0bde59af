from unittest.mock import MagicMock

import mongomock
import pytest

from agreement_case_service.app.service import notification_dispatcher
from agreement_case_service.app.service.access import Actor, EndUserType, Role
from agreement_case_service.infrastructure.kafka.producer import KafkaProducerService
from agreement_case_service.tests.factories import (
    OWNER_ID, PARTNER_ID, MANAGER_ID, OUTSIDER_ID, LAWYER_1, LAWYER_2, build_case,
)


# --- mongomock exposed through the subset of the motor API the stores use ---

class AsyncMongoMockCursor:
    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def skip(self, count):
        self._cursor = self._cursor.skip(count)
        return self

    def limit(self, count):
        self._cursor = self._cursor.limit(count)
        return self

    async def to_list(self, length=None):
        docs = list(self._cursor)
        return docs if length is None else docs[:length]


class AsyncMongoMockCollection:
    def __init__(self, collection):
        self.sync = collection

    async def find_one(self, *args, **kwargs):
        return self.sync.find_one(*args, **kwargs)

    def find(self, *args, **kwargs):
        return AsyncMongoMockCursor(self.sync.find(*args, **kwargs))

    async def insert_one(self, document):
        return self.sync.insert_one(document)

    async def insert_many(self, documents):
        return self.sync.insert_many(documents)

    async def replace_one(self, *args, **kwargs):
        return self.sync.replace_one(*args, **kwargs)

    async def update_one(self, *args, **kwargs):
        return self.sync.update_one(*args, **kwargs)

    async def count_documents(self, *args, **kwargs):
        return self.sync.count_documents(*args, **kwargs)

    async def create_index(self, *args, **kwargs):
        return self.sync.create_index(*args, **kwargs)


class AsyncMongoMockDatabase:
    def __init__(self, database):
        self.sync = database

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return AsyncMongoMockCollection(self.sync[name])

    def __getitem__(self, name):
        return AsyncMongoMockCollection(self.sync[name])

    async def command(self, *args, **kwargs):
        return {"ok": 1.0}


@pytest.fixture
def mongo_db():
    client = mongomock.MongoClient()
    yield AsyncMongoMockDatabase(client["agreement_cases_test"])
    client.close()


@pytest.fixture
def directory(mongo_db):
    """Seeds the read-only user and lawyer directories."""
    mongo_db.sync.users.insert_many([
        {"id": OWNER_ID, "email": "owner@example.com", "first_name": "Olivia", "last_name": "Owner",
         "role": "end_user", "end_user_type": "user1"},
        {"id": PARTNER_ID, "email": "partner@example.com", "first_name": "Paul", "last_name": "Partner",
         "role": "end_user", "end_user_type": "user2"},
        {"id": MANAGER_ID, "email": "manager@example.com", "first_name": "Mia", "last_name": "Manager",
         "phone": "+44 20 0000 0000", "role": "case_manager"},
    ])
    mongo_db.sync.lawyers.insert_many([
        {"id": LAWYER_1, "name": "Lena Law", "direct_email": "lena@lawfirm.example", "public_email": "info@lawfirm.example",
         "public_phone": "+44 20 1111 1111"},
        {"id": LAWYER_2, "name": "Leo Legal", "public_email": "leo@legal.example"},
    ])
    return mongo_db


@pytest.fixture
def mock_kafka_producer():
    return MagicMock(spec=KafkaProducerService)


@pytest.fixture(autouse=True)
def reset_outbox_delivery_state():
    notification_dispatcher._in_flight.clear()
    notification_dispatcher._delivery_tasks.clear()
    yield
    notification_dispatcher._in_flight.clear()
    notification_dispatcher._delivery_tasks.clear()


# --- actors ---

@pytest.fixture
def owner():
    return Actor(id=OWNER_ID, role=Role.END_USER, end_user_type=EndUserType.USER1)

@pytest.fixture
def partner():
    return Actor(id=PARTNER_ID, role=Role.END_USER, end_user_type=EndUserType.USER2)

@pytest.fixture
def manager():
    return Actor(id=MANAGER_ID, role=Role.CASE_MANAGER)

@pytest.fixture
def outsider():
    return Actor(id=OUTSIDER_ID, role=Role.END_USER)


# --- case builders ---

@pytest.fixture
def case_factory():
    return build_case


@pytest.fixture
def stored_case(mongo_db):
    """Builds a case and writes it straight into the mongomock `cases` collection."""
    def _store(**kwargs):
        case = build_case(**kwargs)
        mongo_db.sync.cases.insert_one(case.model_dump())
        return case
    return _store
