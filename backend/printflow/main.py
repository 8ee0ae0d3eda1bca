import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from printflow.api import admin, ordering, tracking
from printflow.api.deps import get_engine
from printflow.config import CORS_ORIGINS, HOST, LOG_LEVEL, PORT, PRINTSHOP_API_URL, setup_logging

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Campus Print Ordering")

# CORS for frontend dev
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(ordering.router, prefix="/ordering", tags=["ordering"])
app.include_router(tracking.router, prefix="/track", tags=["tracking"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.on_event("startup")
def on_startup():
    # Fail at boot, not on the first quote, when PRICE_* overrides are bad.
    engine = get_engine()
    logger.info(
        "Print ordering service started backend=%s monochrome=%s colored=%s delivery=%s",
        PRINTSHOP_API_URL,
        engine.table.monochrome_rate,
        engine.table.colored_rate,
        engine.table.delivery_rate,
    )


@app.get("/")
async def root():
    return {"status": "ok", "service": "campus-print-ordering"}


def main():
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
