from datetime import date
from typing import List, Optional, Sequence
import numpy as np
from sqlalchemy.orm import Session
from app.repositories.base_repository import BaseRepository
from app.repositories.user_repository import UserProfileRepository
from app.models.user_daily_pick import UserDailyPick
from app.models.user_game import UserGame
from app.core.identifiers import AppId
from app.core.interfaces import DailyPickRecord, OwnedItemSignal, PreferenceRepositoryInterface, PreferenceVectorRecord
from app.core.timeutil import as_utc
from app.core.vectors import to_list

class PreferenceRepository(BaseRepository[UserGame], PreferenceRepositoryInterface):
    """Owned-item signals and the derived preference vector"""
    
    def __init__(self, db: Session):
        super().__init__(UserGame, db)
        self.profiles = UserProfileRepository(db)
    
    def get_signals(self, user_id: str) -> List[OwnedItemSignal]:
        rows = (
            self.db.query(UserGame)
            .filter(UserGame.user_id == user_id)
            .order_by(UserGame.app_id)
            .all()
        )
        return [self._to_signal(row) for row in rows]
    
    def replace_signals(self, user_id: str, signals: Sequence[OwnedItemSignal]) -> None:
        """Upsert present signals and delete absent ones in one transaction"""
        with self.transaction():
            self.profiles.get_or_create(user_id)
            existing = {row.app_id: row for row in self.filter_by(user_id=user_id)}
            incoming = {int(s.app_id): s for s in signals}
            
            for app_id, row in existing.items():
                if app_id not in incoming:
                    self.db.delete(row)
            
            for app_id, signal in incoming.items():
                fields = {
                    "playtime_minutes": int(signal.playtime_minutes),
                    "last_played": signal.last_played,
                    "achievements_earned": signal.achievements_earned,
                    "achievements_total": signal.achievements_total,
                    "genres": list(signal.genres),
                }
                row = existing.get(app_id)
                if row:
                    for field, value in fields.items():
                        setattr(row, field, value)
                else:
                    self.db.add(UserGame(user_id=user_id, app_id=app_id, **fields))
            self.commit()
    
    def delete_signals(self, user_id: str) -> int:
        deleted = self.db.query(UserGame).filter(UserGame.user_id == user_id).delete(synchronize_session=False)
        self.commit()
        return int(deleted)
    
    def owned_app_ids(self, user_id: str) -> List[AppId]:
        rows = (
            self.db.query(UserGame.app_id)
            .filter(UserGame.user_id == user_id)
            .order_by(UserGame.app_id)
            .all()
        )
        return [AppId(r[0]) for r in rows]
    
    def get_preference_vector(self, user_id: str) -> Optional[PreferenceVectorRecord]:
        profile = self.profiles.get(user_id)
        if not profile or profile.preference_vector is None:
            return None
        return PreferenceVectorRecord(
            user_id=user_id,
            vector=np.asarray(profile.preference_vector, dtype=np.float64),
            last_updated=as_utc(profile.preference_updated_at),
            items_analyzed=profile.items_analyzed or 0,
            total_playtime_hours=profile.total_playtime_hours or 0.0,
        )
    
    def save_preference_vector(self, record: PreferenceVectorRecord) -> None:
        """Vector, timestamp and counts are written together"""
        with self.transaction():
            profile = self.profiles.get_or_create(record.user_id)
            profile.preference_vector = to_list(record.vector)
            profile.preference_updated_at = record.last_updated
            profile.items_analyzed = record.items_analyzed
            profile.total_playtime_hours = record.total_playtime_hours
            self.commit()
    
    def clear_preference_vector(self, user_id: str) -> None:
        profile = self.profiles.get(user_id)
        if not profile:
            return
        self.profiles.update(profile, {
            "preference_vector": None,
            "preference_updated_at": None,
            "items_analyzed": 0,
            "total_playtime_hours": 0.0
        })
    
    def get_daily_pick(self, user_id: str, pick_date: date) -> Optional[DailyPickRecord]:
        row = self.db.get(UserDailyPick, user_id)
        if row is None or row.pick_date != pick_date:
            return None
        return DailyPickRecord(
            user_id=user_id,
            pick_date=row.pick_date,
            app_id=AppId(row.app_id),
            similarity=row.similarity,
            pool_size=row.pool_size,
        )

    def save_daily_pick(self, record: DailyPickRecord) -> None:
        with self.transaction():
            self.profiles.get_or_create(record.user_id)
            row = self.db.get(UserDailyPick, record.user_id)
            if row is None:
                row = UserDailyPick(user_id=record.user_id)
                self.db.add(row)
            row.pick_date = record.pick_date
            row.app_id = int(record.app_id)
            row.similarity = float(record.similarity)
            row.pool_size = int(record.pool_size)
            self.commit()

    @staticmethod
    def _to_signal(row: UserGame) -> OwnedItemSignal:
        return OwnedItemSignal(
            user_id=row.user_id,
            app_id=AppId(row.app_id),
            playtime_minutes=row.playtime_minutes or 0,
            last_played=as_utc(row.last_played),
            achievements_earned=row.achievements_earned,
            achievements_total=row.achievements_total,
            genres=list(row.genres or []),
        )
