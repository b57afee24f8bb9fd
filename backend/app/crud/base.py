"""Generic owner-scoped CRUD operations.

Every read and write takes the owning user's id and filters on it here, so a record
that belongs to another user behaves exactly like a record that does not exist.
"""

from typing import Any, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from backend.app.core.errors import NotFoundError
from backend.app.db.base_class import Base

ModelType = TypeVar("ModelType", bound=Base)


def as_update_dict(obj_in: BaseModel | dict[str, Any]) -> dict[str, Any]:
    if isinstance(obj_in, BaseModel):
        return obj_in.model_dump(exclude_unset=True)
    return dict(obj_in)


def commit_or_rollback(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


class CRUDBase(Generic[ModelType]):
    entity_name = "Record"

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def scoped_query(self, db: Session, owner_id: int) -> Query:
        return db.query(self.model).filter(self.model.owner_id == owner_id)

    def get(self, db: Session, *, id: int, owner_id: int) -> Optional[ModelType]:
        return self.scoped_query(db, owner_id).filter(self.model.id == id).first()

    def get_or_raise(self, db: Session, *, id: int, owner_id: int) -> ModelType:
        obj = self.get(db, id=id, owner_id=owner_id)
        if obj is None:
            raise NotFoundError(self.entity_name)
        return obj

    def get_multi(self, db: Session, *, owner_id: int) -> List[ModelType]:
        return self.scoped_query(db, owner_id).order_by(self.model.id.asc()).all()

    def create(self, db: Session, *, obj_in: BaseModel | dict[str, Any], owner_id: int) -> ModelType:
        data = as_update_dict(obj_in)
        obj = self.model(owner_id=owner_id, **data)
        db.add(obj)
        commit_or_rollback(db)
        db.refresh(obj)
        return obj

    def update(self, db: Session, *, id: int, owner_id: int, obj_in: BaseModel | dict[str, Any]) -> ModelType:
        db_obj = self.get_or_raise(db, id=id, owner_id=owner_id)
        for field, value in as_update_dict(obj_in).items():
            setattr(db_obj, field, value)
        commit_or_rollback(db)
        db.refresh(db_obj)
        return db_obj

    def delete(self, db: Session, *, id: int, owner_id: int) -> bool:
        db_obj = self.get(db, id=id, owner_id=owner_id)
        if db_obj is None:
            return False
        db.delete(db_obj)
        commit_or_rollback(db)
        return True
