import os
import uvicorn
from app.core.config import get_settings


def main() -> None:
    settings = get_settings()
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(
        "app.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=port,
        reload=settings.ENVIRONMENT == "development",
        log_level="debug" if settings.DEBUG else "info",
    )


if __name__ == "__main__":
    main()
