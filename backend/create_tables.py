import sys
import os
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from app.db import engine, Base
# Tüm modelleri tek seferde import et
from app.models import ItemEmbedding, UserDailyPick, UserFeedback, UserGame, UserHiddenGame, UserProfile  # noqa: F401

def main():
    """Tüm veritabanı tablolarını oluşturur"""
    Base.metadata.create_all(bind=engine)
    print(f"Tablolar oluşturuldu: {', '.join(sorted(Base.metadata.tables))}")

if __name__ == "__main__":
    main()
