from fastapi import FastAPI
from retention.config import settings
from retention.database import engine, Base
from retention.routers import progress, attendance, risk
import retention.models  # noqa: F401  registers tables on Base.metadata
import logging
from sqlalchemy import exc as sa_exc

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Trainee Retention Engine", version="1.0")

# Include Routers
app.include_router(progress.router)
app.include_router(attendance.router)
app.include_router(risk.router)

# Create DB Tables (no migrations are shipped with the engine)
@app.on_event("startup")
async def startup_event():
    # create tables (async). ignore duplicate-object errors from previous partial runs.
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "duplicate key value violates unique constraint" in msg or "already exists" in msg:
                logging.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise

@app.get("/")
def read_root():
    return {"message": "Trainee Retention Engine"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("retention.main:app", host="0.0.0.0", port=8000, reload=True)
