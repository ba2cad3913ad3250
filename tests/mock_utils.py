"""Mock utilities for Firestore."""

import datetime
import unittest.mock
from typing import Any, Optional

from google.api_core.exceptions import InvalidArgument
from mockfirestore import CollectionReference, MockFirestore, Query
from mockfirestore.document import DocumentReference

SERVER_TIMESTAMP = datetime.datetime(2025, 1, 1, tzinfo=datetime.timezone.utc)

# Firestore rejects larger batches
MAX_BATCH_WRITES = 500


class MockFieldFilter:
    def __init__(self, field_path: str, op_string: str, value: Any) -> None:
        self.field_path = field_path
        self.op_string = op_string
        self.value = value


class MockBatch:
    """Collects writes and applies them on commit."""

    def __init__(self, db: Any) -> None:
        self.db = db
        self.writes: list[tuple[str, Any, Any]] = []
        self.commit = unittest.mock.MagicMock(side_effect=self._real_commit)

    def update(self, ref: Any, data: Any) -> None:
        self.writes.append(("update", ref, data))

    def set(self, ref: Any, data: Any, merge: bool = False) -> None:
        self.writes.append(("set", ref, data))

    def delete(self, ref: Any) -> None:
        self.writes.append(("delete", ref, None))

    def _real_commit(self) -> None:
        if len(self.writes) > MAX_BATCH_WRITES:
            raise InvalidArgument("maximum 500 writes allowed per request")
        self.db.committed_batch_sizes.append(len(self.writes))
        for op, ref, data in self.writes:
            if op == "delete":
                ref.delete()
            elif op == "set":
                ref.set(data)
            else:
                ref.update(data)
        self.writes = []


class MockTransaction:
    """Applies transactional writes immediately, recording each call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any, Any]] = []

    def get(self, ref_or_query: Any) -> Any:
        if isinstance(ref_or_query, DocumentReference):
            return ref_or_query.get()
        return ref_or_query.stream()

    def update(self, ref: Any, data: Any) -> None:
        self.calls.append(("update", ref, data))
        ref.update(data)

    def set(self, ref: Any, data: Any, merge: bool = False) -> None:
        self.calls.append(("set", ref, data))
        ref.set(data, merge=merge)

    def delete(self, ref: Any) -> None:
        self.calls.append(("delete", ref, None))
        ref.delete()


class MockFirestoreBuilder:
    """Builder to modularize mockfirestore and firebase_admin patching."""

    @staticmethod
    def patch_db_read() -> None:
        """Apply monkeypatches to mockfirestore to support FieldFilter and equality."""

        def collection_where(
            self: Any,
            field_path: Optional[str] = None,
            op_string: Optional[str] = None,
            value: Any = None,
            filter: Any = None,
        ) -> Any:
            if filter:
                return self._where(filter.field_path, filter.op_string, filter.value)
            return self._where(field_path, op_string, value)

        if not hasattr(CollectionReference, "_where"):
            CollectionReference._where = CollectionReference.where
            CollectionReference.where = collection_where

        def query_where(
            self: Any,
            field_path: Optional[str] = None,
            op_string: Optional[str] = None,
            value: Any = None,
            filter: Any = None,
        ) -> Any:
            if filter:
                return self._where(filter.field_path, filter.op_string, filter.value)
            return self._where(field_path, op_string, value)

        if not hasattr(Query, "_where"):
            Query._where = Query.where
            Query.where = query_where

        def doc_ref_eq(self: Any, other: Any) -> bool:
            if not isinstance(other, DocumentReference):
                return False
            return self._path == other._path

        if not hasattr(DocumentReference, "_orig_eq"):
            DocumentReference._orig_eq = DocumentReference.__eq__
            DocumentReference.__eq__ = doc_ref_eq
            DocumentReference.__hash__ = lambda self: hash(tuple(self._path))

        # Patch DocumentReference.get to handle transaction argument
        if not hasattr(DocumentReference, "_orig_get"):
            DocumentReference._orig_get = DocumentReference.get

            def doc_ref_get(self: Any, transaction: Any = None) -> Any:
                """Handle transaction argument in get."""
                return self._orig_get()

            DocumentReference.get = doc_ref_get

    @staticmethod
    def firestore_module(db: MockFirestore) -> unittest.mock.MagicMock:
        """A stand-in for firebase_admin.firestore bound to a mock client.

        Transactions run their function directly against a MockTransaction.
        """
        module = unittest.mock.MagicMock()
        module.client.return_value = db
        module.FieldFilter = MockFieldFilter
        module.SERVER_TIMESTAMP = SERVER_TIMESTAMP
        module.transactional = lambda func: func
        return module

    @staticmethod
    def mock_db() -> MockFirestore:
        """A MockFirestore whose batches and transactions behave like the real ones."""
        db = MockFirestore()
        db.committed_batch_sizes = []
        db.batch = unittest.mock.MagicMock(side_effect=lambda: MockBatch(db))
        db.transaction = unittest.mock.MagicMock(side_effect=MockTransaction)
        return db


def patch_mockfirestore() -> None:
    """Apply all mockfirestore monkeypatches."""
    MockFirestoreBuilder.patch_db_read()
