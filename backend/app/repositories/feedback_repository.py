from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Tuple
import numpy as np
from sqlalchemy.orm import Session
from app.repositories.base_repository import BaseRepository
from app.repositories.user_repository import UserProfileRepository
from app.models.user_feedback import UserFeedback
from app.models.user_hidden_game import UserHiddenGame
from app.core.enums import FeedbackLabel
from app.core.identifiers import AppId
from app.core.interfaces import FeedbackEvent, FeedbackRepositoryInterface, HiddenItem, LearnedVectorRecord
from app.core.timeutil import as_utc
from app.core.vectors import to_list

class FeedbackRepository(BaseRepository[UserFeedback], FeedbackRepositoryInterface):
    """Feedback events plus the learned-vector columns of user_profiles"""
    
    def __init__(self, db: Session):
        super().__init__(UserFeedback, db)
        self.profiles = UserProfileRepository(db)
    
    @contextmanager
    def user_transaction(self, user_id: str) -> Iterator[None]:
        """Row-lock the user's profile and commit every write on exit"""
        with self.transaction():
            self.profiles.lock(user_id)
            yield
    
    # ------------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------------
    
    def upsert_event(self, user_id: str, app_id: AppId, label: FeedbackLabel, now: datetime) -> FeedbackEvent:
        """Replace the label of the active event; first-submission time is kept"""
        row = self.filter_one_by(user_id=user_id, app_id=int(app_id))
        if row and row.applied:
            row = self.update(row, {"label": label.value, "updated_at": now})
        elif row:
            # Submitted again after a reset: counts as a new nudge
            row = self.update(row, {"label": label.value, "created_at": now, "updated_at": now, "applied": True})
        else:
            self.profiles.get_or_create(user_id)
            row = self.create({
                "user_id": user_id,
                "app_id": int(app_id),
                "label": label.value,
                "created_at": now,
                "updated_at": now,
                "applied": True
            })
        return self._to_event(row)

    def mark_events_unapplied(self, user_id: str) -> int:
        updated = (
            self.db.query(UserFeedback)
            .filter(UserFeedback.user_id == user_id, UserFeedback.applied.is_(True))
            .update({UserFeedback.applied: False}, synchronize_session="fetch")
        )
        self.commit()
        return int(updated)
    
    def delete_event(self, user_id: str, app_id: AppId) -> bool:
        row = self.filter_one_by(user_id=user_id, app_id=int(app_id))
        if not row:
            return False
        self.db.delete(row)
        self.commit()
        return True
    
    def delete_all_events(self, user_id: str) -> int:
        deleted = self.db.query(UserFeedback).filter(UserFeedback.user_id == user_id).delete(synchronize_session=False)
        self.commit()
        return int(deleted)
    
    def list_events(self, user_id: str, limit: Optional[int] = None) -> List[FeedbackEvent]:
        query = (
            self.db.query(UserFeedback)
            .filter(UserFeedback.user_id == user_id)
            .order_by(UserFeedback.updated_at.desc(), UserFeedback.app_id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_event(row) for row in query.all()]
    
    def list_events_in_submission_order(self, user_id: str) -> List[FeedbackEvent]:
        rows = (
            self.db.query(UserFeedback)
            .filter(UserFeedback.user_id == user_id)
            .order_by(UserFeedback.created_at, UserFeedback.app_id)
            .all()
        )
        return [self._to_event(row) for row in rows]
    
    def app_ids_with_label(self, user_id: str, label: FeedbackLabel) -> List[AppId]:
        rows = (
            self.db.query(UserFeedback.app_id)
            .filter(UserFeedback.user_id == user_id, UserFeedback.label == label.value)
            .all()
        )
        return [AppId(r[0]) for r in rows]

    # ------------------------------------------------------------------------
    # Hidden items
    # ------------------------------------------------------------------------

    def hide_item(self, user_id: str, app_id: AppId, now: datetime) -> HiddenItem:
        """Idempotent; the first hide time is kept"""
        row = self.db.query(UserHiddenGame).filter_by(user_id=user_id, app_id=int(app_id)).first()
        if row is None:
            self.profiles.get_or_create(user_id)
            row = UserHiddenGame(user_id=user_id, app_id=int(app_id), hidden_at=now)
            self.db.add(row)
            self.commit()
        return self._to_hidden(row)

    def unhide_item(self, user_id: str, app_id: AppId) -> bool:
        deleted = (
            self.db.query(UserHiddenGame)
            .filter(UserHiddenGame.user_id == user_id, UserHiddenGame.app_id == int(app_id))
            .delete(synchronize_session=False)
        )
        self.commit()
        return deleted > 0

    def list_hidden(self, user_id: str) -> List[HiddenItem]:
        rows = (
            self.db.query(UserHiddenGame)
            .filter(UserHiddenGame.user_id == user_id)
            .order_by(UserHiddenGame.hidden_at.desc(), UserHiddenGame.app_id.desc())
            .all()
        )
        return [self._to_hidden(row) for row in rows]

    # ------------------------------------------------------------------------
    # Learned vector
    # ------------------------------------------------------------------------
    
    def get_learned_vector(self, user_id: str) -> Optional[LearnedVectorRecord]:
        profile = self.profiles.get(user_id)
        if not profile or profile.learned_vector is None:
            return None
        seed = profile.learned_seed_vector if profile.learned_seed_vector is not None else profile.learned_vector
        return LearnedVectorRecord(
            user_id=user_id,
            vector=np.asarray(profile.learned_vector, dtype=np.float64),
            seed_vector=np.asarray(seed, dtype=np.float64),
            updated_at=as_utc(profile.learned_updated_at),
        )
    
    def save_learned_vector(self, record: LearnedVectorRecord) -> None:
        profile = self.profiles.get_or_create(record.user_id)
        self.profiles.update(profile, {
            "learned_vector": to_list(record.vector),
            "learned_seed_vector": to_list(record.seed_vector),
            "learned_updated_at": record.updated_at
        })
    
    def clear_learned_vector(self, user_id: str) -> None:
        profile = self.profiles.get(user_id)
        if not profile:
            return
        self.profiles.update(profile, {
            "learned_vector": None,
            "learned_seed_vector": None,
            "learned_updated_at": None
        })
    
    def get_feedback_counts(self, user_id: str) -> Tuple[int, int]:
        profile = self.profiles.get(user_id)
        if not profile:
            return 0, 0
        return profile.feedback_likes_count or 0, profile.feedback_dislikes_count or 0
    
    def set_feedback_counts(self, user_id: str, likes: int, dislikes: int) -> None:
        profile = self.profiles.get_or_create(user_id)
        self.profiles.update(profile, {
            "feedback_likes_count": likes,
            "feedback_dislikes_count": dislikes
        })
    
    @staticmethod
    def _to_event(row: UserFeedback) -> FeedbackEvent:
        return FeedbackEvent(
            user_id=row.user_id,
            app_id=AppId(row.app_id),
            label=FeedbackLabel(row.label),
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
            applied=bool(row.applied),
        )

    @staticmethod
    def _to_hidden(row: UserHiddenGame) -> HiddenItem:
        return HiddenItem(user_id=row.user_id, app_id=AppId(row.app_id), hidden_at=as_utc(row.hidden_at))
