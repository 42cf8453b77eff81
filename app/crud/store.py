"""
CRUD operations for Store model.

Only the lookups the sign-up flow needs live here.
"""

from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StorageError
from app.models.store import Store


def get_by_email(db: Session, email: str) -> Optional[Store]:
    """
    Retrieve a store by its email address.

    Args:
        db: Database session
        email: Store email

    Returns:
        Store instance if found, None otherwise
    """
    return db.query(Store).filter(Store.email == email).first()


def email_exists(db: Session, email: str) -> bool:
    """
    Check whether a store account already uses this email.

    Raises:
        StorageError: If the lookup fails
    """
    try:
        return get_by_email(db, email) is not None
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(f"Failed to check existing stores: {e}")
