from fastapi import FastAPI, Depends, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager
import logging
from typing import List, Optional

from . import config, engagement, events, interests, notifications, schemas, tags
from .database import Database
from .dependencies import get_db, get_current_organizer, get_current_student, verify_token
from .exceptions import NotFoundError, StorageError, ValidationError
from .matcher import publish_event_notifications

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message, "field": exc.field},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Temporary storage failure, please try again"},
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables on startup, release pooled connections on shutdown
    app.state.database.create_all()
    logger.info("Database tables created")
    yield
    app.state.database.engine.dispose()


def create_app(database: Database = None) -> FastAPI:
    app = FastAPI(
        title="Campus Events API",
        lifespan=lifespan,
        description="Interest-matched event notifications and engagement metrics",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )
    app.state.database = database or Database()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/", tags=["System"])
    def read_root():
        return {
            "message": "Campus Events API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health"
        }

    @app.get("/health", tags=["System"])
    def health_check():
        try:
            app.state.database.ping()
        except SQLAlchemyError as e:
            raise HTTPException(status_code=503, detail=f"Service unhealthy: {e}")
        return {"status": "healthy", "service": "campus-events", "database": "connected"}

    @app.get("/tags", response_model=schemas.TagCatalog, tags=["Tags"])
    def read_tags():
        return {"categories": tags.TAG_CATEGORIES}

    # Interests
    @app.get("/users/me/interests", response_model=schemas.Interests, tags=["Interests"])
    def read_interests(
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_student)
    ):
        return {"interests": sorted(interests.get_interests(db, current_user["user_id"]))}

    @app.put("/users/me/interests", response_model=schemas.InterestsUpdated, tags=["Interests"])
    def update_interests(
        payload: schemas.InterestsUpdate,
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_student)
    ):
        saved = interests.replace_interests(db, current_user["user_id"], payload.interests)
        return {"interests": sorted(saved)}

    # Events
    @app.post("/events/", response_model=schemas.Event, status_code=201, tags=["Events"])
    def create_event(
        event: schemas.EventCreate,
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_organizer)
    ):
        logger.info(f"Creating event '{event.title}' for organizer {current_user['user_id']}")
        db_event = events.create_event(db, event, current_user["user_id"])
        created = schemas.Event.model_validate(db_event)

        publish_event_notifications(db, db_event)
        return created

    @app.get("/events/", response_model=List[schemas.Event], tags=["Events"])
    def read_upcoming_events(
        skip: int = Query(0, ge=0),
        limit: int = Query(100, ge=1, le=1000),
        tag: Optional[str] = None,
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_student)
    ):
        return events.list_upcoming_events(db, skip=skip, limit=limit, tag=tag)

    @app.get("/events/mine", response_model=List[schemas.Event], tags=["Events"])
    def read_my_events(
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_organizer)
    ):
        return events.get_events_by_organizer(db, current_user["user_id"])

    @app.get("/events/{event_id}", response_model=schemas.EventDetail, tags=["Events"])
    def read_event(
        event_id: int,
        db: Session = Depends(get_db),
        current_user: dict = Depends(verify_token)
    ):
        db_event = events.get_event(db, event_id)
        if db_event is None:
            raise HTTPException(status_code=404, detail="Event not found")

        detail = schemas.EventDetail.model_validate(db_event)
        if current_user.get("role") == "student":
            detail.is_saved = engagement.is_saved(db, event_id, current_user["user_id"])
        return detail

    @app.put("/events/{event_id}", response_model=schemas.Event, tags=["Events"])
    def update_event(
        event_id: int,
        event_update: schemas.EventUpdate,
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_organizer)
    ):
        db_event = events.get_owned_event(db, event_id, current_user["user_id"])
        db_event, tags_changed = events.update_event(db, db_event, event_update)
        updated = schemas.Event.model_validate(db_event)

        if tags_changed:
            publish_event_notifications(db, db_event)
        return updated

    # Notifications
    @app.get("/notifications/", response_model=schemas.NotificationList, tags=["Notifications"])
    def read_notifications(
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_student)
    ):
        rows = notifications.list_notifications(db, current_user["user_id"])
        return {"notifications": [schemas.Notification.model_validate(row) for row in rows]}

    @app.post("/notifications/mark-read", response_model=schemas.MarkReadResult, tags=["Notifications"])
    def mark_notifications_read(
        payload: schemas.MarkReadRequest = None,
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_student)
    ):
        student_id = current_user["user_id"]
        if payload is not None and payload.ids:
            updated = notifications.mark_read(db, student_id, payload.ids)
        else:
            updated = notifications.mark_all_read(db, student_id)
        return {"updated": updated}

    @app.get("/notifications/unread-count", response_model=schemas.UnreadCount, tags=["Notifications"])
    def read_unread_count(
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_student)
    ):
        return {"count": notifications.get_unread_count(db, current_user["user_id"])}

    # Engagement
    @app.post("/engagement/view/{event_id}", response_model=schemas.ViewTracked, tags=["Engagement"])
    def track_view(
        event_id: int,
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_student)
    ):
        is_new_view = engagement.track_view(db, event_id, current_user["user_id"])
        return {"is_new_view": is_new_view}

    @app.post("/engagement/save/{event_id}", response_model=schemas.SaveState, tags=["Engagement"])
    def track_save(
        event_id: int,
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_student)
    ):
        saved = engagement.track_save(db, event_id, current_user["user_id"])
        return {"message": "Save tracked successfully", "saved": saved}

    @app.delete("/engagement/save/{event_id}", response_model=schemas.SaveState, tags=["Engagement"])
    def remove_save(
        event_id: int,
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_student)
    ):
        saved = engagement.remove_save(db, event_id, current_user["user_id"])
        return {"message": "Save removed successfully", "saved": saved}

    @app.get("/engagement/saved", response_model=List[schemas.Event], tags=["Engagement"])
    def read_saved_events(
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_student)
    ):
        return engagement.get_saved_events(db, current_user["user_id"])

    @app.get("/engagement/metrics/{event_id}", response_model=schemas.EventMetricsResponse, tags=["Engagement"])
    def read_event_metrics(
        event_id: int,
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_organizer)
    ):
        metrics = engagement.get_metrics(db, event_id, current_user["user_id"])
        return {"event_id": event_id, "metrics": metrics}

    @app.get("/engagement/summary", response_model=schemas.OrganizerSummary, tags=["Engagement"])
    def read_engagement_summary(
        db: Session = Depends(get_db),
        current_user: dict = Depends(get_current_organizer)
    ):
        return engagement.get_organizer_summary(db, current_user["user_id"])

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
