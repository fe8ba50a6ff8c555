import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from receiptdesk.errors import ConflictError, PersistenceError
from receiptdesk.models.user import User
from receiptdesk.schemas.payment_schemas import clean_phone

logger = logging.getLogger(__name__)


def get_user_by_email(session: Session, email: str) -> Optional[User]:
    return session.exec(select(User).where(User.email == email)).first()


def get_user_by_mobile(session: Session, mobile: str) -> Optional[User]:
    mobile = clean_phone(mobile)
    return session.exec(
        select(User).where(User.mobile == mobile).order_by(User.updated_at.desc())
    ).first()


def _apply_contact_fields(user: User, *, name=None, phone=None, address=None):
    if name is not None:
        user.name = name
    if phone is not None:
        # mobile mirrors phone on every write
        user.phone = phone
        user.mobile = phone
    if address is not None:
        user.address = address
    user.updated_at = datetime.utcnow()


def _save(session: Session, user: User, context: str) -> User:
    try:
        session.add(user)
        session.commit()
        session.refresh(user)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Failed to {context} for {user.email}: {e}")
        raise PersistenceError(f"Failed to {context}", detail=str(e)) from e
    return user


def find_or_create_user(
    session: Session,
    *,
    email: str,
    name: str,
    phone: Optional[str] = None,
    address: Optional[str] = None,
) -> User:
    """
    Resolve the customer for a payment by email, creating the row on first use.

    A concurrent insert of the same email surfaces as an IntegrityError on the
    unique index; that case falls back to updating the row that won.
    """
    if phone is not None:
        phone = clean_phone(phone)

    try:
        user = get_user_by_email(session, email)
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to look up user", detail=str(e)) from e

    if user:
        logger.info(f"User exists with id {user.id}, updating information")
        _apply_contact_fields(user, name=name, phone=phone, address=address)
        return _save(session, user, "update user information")

    user = User(email=email, name=name)
    _apply_contact_fields(user, phone=phone, address=address)
    try:
        return _insert_user(session, user)
    except ConflictError:
        logger.info(f"Duplicate email detected for {email}, re-reading existing user")
        existing = get_user_by_email(session, email)
        if existing is None:
            raise PersistenceError("Failed to create or find user with duplicate email")
        _apply_contact_fields(existing, name=name, phone=phone, address=address)
        return _save(session, existing, "update existing user")


def _insert_user(session: Session, user: User) -> User:
    """Insert a new row; a lost race on the unique email is a ConflictError."""
    email = user.email
    session.add(user)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError(f"User {email} already exists", detail=str(e)) from e
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError("Failed to create user", detail=str(e)) from e

    session.refresh(user)
    logger.info(f"Created user {user.id} for {email}")
    return user


def update_user(session: Session, user: User, **fields) -> User:
    """Admin edit of a user row; phone and mobile stay in lockstep."""
    if fields.get("email"):
        user.email = fields["email"]
    phone = fields.get("phone")
    _apply_contact_fields(
        user,
        name=fields.get("name"),
        phone=clean_phone(phone) if phone else None,
        address=fields.get("address"),
    )
    return _save(session, user, "update user")
