from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.endpoints import auth, bookmarks, contracts, jobs, messages, notifications, posts, proposals, users
from .config import settings
from .core.errors import register_error_handlers
from .core.logging import setup_logger
from .db.database import create_tables

logger = setup_logger("main")

app = FastAPI(title="GigPanda Marketplace API")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# routers
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
app.include_router(proposals.router, prefix="/api/proposals", tags=["proposals"])
app.include_router(contracts.router, prefix="/api/contracts", tags=["contracts"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])
app.include_router(messages.router, prefix="/api/messages", tags=["messages"])
app.include_router(posts.router, prefix="/api/posts", tags=["posts"])
app.include_router(bookmarks.router, prefix="/api/bookmarks", tags=["bookmarks"])

@app.get("/")
async def root():
    return {"message": "GigPanda Marketplace API"}

@app.get("/health")
async def health():
    return {"status": "healthy"}

@app.on_event("startup")
async def startup_event():
    create_tables()
    logger.info("Database tables ready")
