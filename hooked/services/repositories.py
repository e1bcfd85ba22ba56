"""
Repository layer abstracting storage (SQLAlchemy vs Firebase Firestore).

Both backends expose the same generic record-store contract: create,
update-by-id and filter-by-field-equality over a handful of record kinds.
There are no transactions and no joins; callers consume full result sets.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from google.api_core import exceptions as google_exceptions
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hooked.core.config import settings
from hooked.core.exceptions import RecordNotFoundError, StoreError
from hooked.models import ContactShare, Event, EventFeedback, EventProfile, Like, Message
from hooked.models.event import new_id
from hooked.services.firebase_client import get_firestore_client
from hooked.utils.clock import as_naive_utc

logger = logging.getLogger(__name__)

SQL_MODELS = {
    "Event": Event,
    "EventProfile": EventProfile,
    "Like": Like,
    "Message": Message,
    "ContactShare": ContactShare,
    "EventFeedback": EventFeedback,
}

FIRESTORE_COLLECTIONS = {
    "Event": "events",
    "EventProfile": "event_profiles",
    "Like": "likes",
    "Message": "messages",
    "ContactShare": "contact_shares",
    "EventFeedback": "event_feedback",
}


def use_firestore() -> bool:
    return settings.USE_FIREBASE is True


class RecordStore:
    """Generic keyed-record store"""

    def create(self, kind: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def update(self, kind: str, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def filter(self, kind: str, criteria: Dict[str, Any], order_by: Optional[str] = None) -> List[Dict[str, Any]]:
        """Exact-match conjunction over ``criteria``; a list value means "one of".

        ``order_by`` names a field, prefixed with ``-`` for descending order.
        """
        raise NotImplementedError

    def get(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def delete(self, kind: str, record_id: str) -> None:
        raise NotImplementedError


def _split_order(order_by: Optional[str]):
    if not order_by:
        return None, False
    if order_by.startswith("-"):
        return order_by[1:], True
    return order_by, False


# -------- SQLAlchemy backend --------

class SqlRecordStore(RecordStore):
    def __init__(self, db: Session):
        self.db = db

    def _model(self, kind: str):
        try:
            return SQL_MODELS[kind]
        except KeyError:
            raise ValueError(f"Unknown record kind: {kind}")

    @staticmethod
    def _to_dict(obj) -> Dict[str, Any]:
        return {column.name: getattr(obj, column.name) for column in obj.__table__.columns}

    def _columns(self, model, fields: Dict[str, Any]) -> Dict[str, Any]:
        known = set(model.__table__.columns.keys())
        return {key: value for key, value in fields.items() if key in known}

    def create(self, kind, fields):
        model = self._model(kind)
        try:
            obj = model(**self._columns(model, fields))
            self.db.add(obj)
            self.db.commit()
            self.db.refresh(obj)
            return self._to_dict(obj)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create {kind}: {e}")
            raise StoreError(f"Could not create {kind}", kind=kind) from e

    def update(self, kind, record_id, fields):
        model = self._model(kind)
        try:
            obj = self.db.query(model).filter(model.id == record_id).first()
            if obj is None:
                raise RecordNotFoundError(f"{kind} {record_id} not found", kind=kind)
            for key, value in self._columns(model, fields).items():
                setattr(obj, key, value)
            self.db.commit()
            self.db.refresh(obj)
            return self._to_dict(obj)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update {kind} {record_id}: {e}")
            raise StoreError(f"Could not update {kind}", kind=kind) from e

    def filter(self, kind, criteria, order_by=None):
        model = self._model(kind)
        try:
            query = self.db.query(model)
            for field, value in criteria.items():
                column = getattr(model, field)
                if isinstance(value, (list, tuple, set)):
                    query = query.filter(column.in_(list(value)))
                else:
                    query = query.filter(column == value)
            field, descending = _split_order(order_by)
            if field:
                column = getattr(model, field)
                query = query.order_by(column.desc() if descending else column.asc())
            return [self._to_dict(obj) for obj in query.all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to filter {kind}: {e}")
            raise StoreError(f"Could not load {kind}", kind=kind) from e

    def get(self, kind, record_id):
        model = self._model(kind)
        try:
            obj = self.db.query(model).filter(model.id == record_id).first()
            return self._to_dict(obj) if obj else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to get {kind} {record_id}: {e}")
            raise StoreError(f"Could not load {kind}", kind=kind) from e

    def delete(self, kind, record_id):
        model = self._model(kind)
        try:
            deleted = self.db.query(model).filter(model.id == record_id).delete()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete {kind} {record_id}: {e}")
            raise StoreError(f"Could not delete {kind}", kind=kind) from e
        if not deleted:
            raise RecordNotFoundError(f"{kind} {record_id} not found", kind=kind)


# -------- Firestore backend --------

class FirestoreRecordStore(RecordStore):
    """Records live in one top-level collection per kind, document id == record id"""

    def __init__(self, client):
        self.client = client

    def _collection(self, kind: str):
        try:
            return self.client.collection(FIRESTORE_COLLECTIONS[kind])
        except KeyError:
            raise ValueError(f"Unknown record kind: {kind}")

    @staticmethod
    def _to_dict(doc) -> Dict[str, Any]:
        data = doc.to_dict() or {}
        data["id"] = doc.id
        for key, value in data.items():
            # Firestore hands back timezone-aware datetimes
            if isinstance(value, datetime):
                data[key] = as_naive_utc(value)
        return data

    def create(self, kind, fields):
        collection = self._collection(kind)
        record_id = fields.get("id") or new_id()
        data = {key: value for key, value in fields.items() if key != "id"}
        try:
            collection.document(record_id).set(data)
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to create {kind}: {e}")
            raise StoreError(f"Could not create {kind}", kind=kind) from e
        return {"id": record_id, **data}

    def update(self, kind, record_id, fields):
        ref = self._collection(kind).document(record_id)
        data = {key: value for key, value in fields.items() if key != "id"}
        try:
            ref.update(data)
            return self._to_dict(ref.get())
        except google_exceptions.NotFound as e:
            raise RecordNotFoundError(f"{kind} {record_id} not found", kind=kind) from e
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to update {kind} {record_id}: {e}")
            raise StoreError(f"Could not update {kind}", kind=kind) from e

    def filter(self, kind, criteria, order_by=None):
        query = self._collection(kind)
        for field, value in criteria.items():
            if isinstance(value, (list, tuple, set)):
                if not value:
                    return []
                query = query.where(field, "in", list(value))
            else:
                query = query.where(field, "==", value)
        try:
            results = [self._to_dict(doc) for doc in query.get()]
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to filter {kind}: {e}")
            raise StoreError(f"Could not load {kind}", kind=kind) from e
        # Ordered client-side, no composite indexes needed
        field, descending = _split_order(order_by)
        if field:
            results.sort(key=lambda item: (item.get(field) is None, item.get(field)), reverse=descending)
        return results

    def get(self, kind, record_id):
        try:
            doc = self._collection(kind).document(record_id).get()
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to get {kind} {record_id}: {e}")
            raise StoreError(f"Could not load {kind}", kind=kind) from e
        return self._to_dict(doc) if doc.exists else None

    def delete(self, kind, record_id):
        ref = self._collection(kind).document(record_id)
        try:
            if not ref.get().exists:
                raise RecordNotFoundError(f"{kind} {record_id} not found", kind=kind)
            ref.delete()
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to delete {kind} {record_id}: {e}")
            raise StoreError(f"Could not delete {kind}", kind=kind) from e


def get_record_store(db: Optional[Session] = None) -> RecordStore:
    """Pick the configured backend"""
    if use_firestore():
        return FirestoreRecordStore(get_firestore_client())
    if db is None:
        raise RuntimeError("A database session is required for the SQL record store")
    return SqlRecordStore(db)
