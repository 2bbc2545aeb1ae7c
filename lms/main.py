import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from lms import config
from lms.progression.database_setup import create_progression_indexes
from lms.progression.instructor_router import router as instructor_router
from lms.progression.student_router import router as student_router
from lms.system.health_router import router as health_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Course Progression Service")

# MongoDB
client = AsyncIOMotorClient(config.MONGO_URL)
db = client[config.MONGO_DB_NAME]


@app.on_event("startup")
async def startup_event():
    await create_progression_indexes(db)
    logger.info("Course progression service started")


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PyMongoError)
async def persistence_error_handler(request: Request, exc: PyMongoError):
    # no retry: the caller gets a generic failure
    logger.exception("Persistence failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ==================== ROUTER REGISTRATION ====================
app.include_router(student_router)
app.include_router(instructor_router)
app.include_router(health_router)
# ============================================================


@app.get("/")
def read_root():
    return {"message": "Course Progression API Running"}


if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
