import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.routers import health, library, recommendations, feedback, search
from app.core.config import get_settings
from app.core.exceptions import BaseAppException
from app.db import Base, SessionLocal, engine
from app.dependencies import build_catalog_service, get_dimension, get_vector_store
from app.repositories import EmbeddingRepository
from app import models  # ensure models are imported

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="PlayMatch API",
    description="Oyun kütüphanesi tabanlı kişiselleştirilmiş öneri sistemi",
    version="1.0.0"
)

# CORS middleware yapılandırması
origins_env = settings.CORS_ALLOW_ORIGINS or ""
origins = [o.strip() for o in origins_env.split(",") if o.strip()] or [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(library.router)
app.include_router(recommendations.router)
app.include_router(feedback.router)
app.include_router(search.router)

@app.exception_handler(BaseAppException)
async def app_exception_handler(request: Request, exc: BaseAppException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "detail": exc.to_dict()})

@app.on_event("startup")
async def init_vector_index():
    # İlk deploy için otomatik tablo oluşturma (idempotent)
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        loaded = get_vector_store().hydrate(EmbeddingRepository(db, get_dimension()).iter_items())
        logger.info(f"Vector index hydrated with {loaded} items")
        # Boyut uyuşmazlığında servis başlamaz
        build_catalog_service(db).verify_dimension()
    finally:
        db.close()
