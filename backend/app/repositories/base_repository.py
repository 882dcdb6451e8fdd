from contextlib import contextmanager
from typing import Generic, TypeVar, Type, Optional, List, Any, Dict, Iterator
from sqlalchemy.orm import Session
from app.db import Base

ModelType = TypeVar("ModelType", bound=Base)

_DEFER_COMMIT = "defer_commit"

class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations"""
    
    def __init__(self, model: Type[ModelType], db: Session):
        self.model = model
        self.db = db
    
    def get(self, id: Any) -> Optional[ModelType]:
        """Get by primary key"""
        return self.db.get(self.model, id)
    
    def create(self, obj_in: Dict[str, Any]) -> ModelType:
        """Create new object"""
        db_obj = self.model(**obj_in)
        self.db.add(db_obj)
        self.commit()
        self.db.refresh(db_obj)
        return db_obj
    
    def update(self, db_obj: ModelType, obj_in: Dict[str, Any]) -> ModelType:
        """Update object"""
        for field, value in obj_in.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        self.commit()
        return db_obj
    
    def filter_by(self, **kwargs) -> List[ModelType]:
        """Filter by multiple conditions"""
        return self.db.query(self.model).filter_by(**kwargs).all()
    
    def filter_one_by(self, **kwargs) -> Optional[ModelType]:
        """Filter by multiple conditions and return first"""
        return self.db.query(self.model).filter_by(**kwargs).first()

    # ------------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------------

    def commit(self) -> None:
        """Commit, or only flush while an outer transaction() is open on this session"""
        if self.db.info.get(_DEFER_COMMIT):
            self.db.flush()
        else:
            self.db.commit()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group several repository writes into one commit (shared by repositories on the same session)"""
        if self.db.info.get(_DEFER_COMMIT):
            yield
            return
        self.db.info[_DEFER_COMMIT] = True
        try:
            yield
            self.db.info[_DEFER_COMMIT] = False
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        finally:
            self.db.info[_DEFER_COMMIT] = False
