from typing import Any, Dict, Generic, Optional, Sequence, Type, TypeVar, Union
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
from app.core.database import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


def dialect_insert(db: Session, model):
    """INSERT construct supporting ON CONFLICT for the bound database."""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """Generic data access.

    Writes flush but never commit; the request-scoped transaction owns the
    commit so a whole learning operation succeeds or rolls back together.
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return db.query(self.model).filter(self.model.id == id).first()

    def create(self, db: Session, *, obj_in: Union[CreateSchemaType, Dict[str, Any]]) -> ModelType:
        obj_in_data = obj_in if isinstance(obj_in, dict) else jsonable_encoder(obj_in)
        db_obj = self.model(**obj_in_data)
        db.add(db_obj)
        db.flush() # Populate ID
        db.refresh(db_obj)
        return db_obj

    def update(
        self, db: Session, *, db_obj: ModelType, obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        db.add(db_obj)
        db.flush()
        db.refresh(db_obj)
        return db_obj

    def insert_if_absent(
        self, db: Session, *, values: Dict[str, Any], conflict_columns: Sequence[str]
    ) -> bool:
        """Insert a row unless the unique key already exists. Returns True if inserted."""
        stmt = dialect_insert(db, self.model).values(**values).on_conflict_do_nothing(
            index_elements=list(conflict_columns)
        )
        result = db.execute(stmt)
        return result.rowcount == 1

    def conditional_update(self, db: Session, *criteria, values: Dict[str, Any]) -> int:
        """Single UPDATE ... WHERE <criteria>; returns the number of rows changed."""
        return (
            db.query(self.model)
            .filter(*criteria)
            .update(values, synchronize_session=False)
        )
