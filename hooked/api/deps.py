"""
Shared FastAPI dependencies
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from hooked.core.db import get_db
from hooked.services.repositories import RecordStore, get_record_store

def get_store(db: Session = Depends(get_db)) -> RecordStore:
    """Record store for the configured backend, bound to this request"""
    return get_record_store(db)
