"""
Per-role visibility of document records.

Each role maps to an ``AccessPolicy``. A policy answers two questions for
the calling user: may this user see a given record (``permits``), and
which records does a listing or aggregate range over (``scope``).
"""

from fastapi import Depends
from sqlalchemy.orm import Query, Session

from . import crud, models
from .auth import get_current_user
from .database import get_db
from .exceptions import AuthorizationError, DocumentNotFoundError


class AccessPolicy:
    def permits(self, user: models.User, document: models.Document) -> bool:
        raise NotImplementedError

    def scope(self, query: Query, user: models.User) -> Query:
        raise NotImplementedError


class AdminPolicy(AccessPolicy):
    def permits(self, user, document):
        return True

    def scope(self, query, user):
        return query


class OwnerPolicy(AccessPolicy):
    def permits(self, user, document):
        return document.uploaded_by == user.id

    def scope(self, query, user):
        return query.filter(models.Document.uploaded_by == user.id)


POLICIES = {"admin": AdminPolicy()}
DEFAULT_POLICY = OwnerPolicy()


def policy_for(user: models.User) -> AccessPolicy:
    return POLICIES.get(user.role, DEFAULT_POLICY)


def scoped_documents(db: Session, user: models.User) -> Query:
    return policy_for(user).scope(db.query(models.Document), user)


def get_owned_document(
    doc_id: str,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> models.Document:
    document = crud.get_document(db, doc_id)
    if document is None:
        raise DocumentNotFoundError(doc_id)
    if not policy_for(current_user).permits(current_user, document):
        raise AuthorizationError()
    return document
