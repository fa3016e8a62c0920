import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from hospital_ops.config import Settings
from hospital_ops.core.exceptions import register_exception_handlers
from hospital_ops.core.scheduler import setup_scheduler, shutdown_scheduler
from hospital_ops.core.websocket import WebSocketManager
from hospital_ops.dashboard.service import DashboardService
from hospital_ops.database import build_engine, build_session_factory, create_tables
from hospital_ops.notifications.service import NotificationService
from hospital_ops.resources.service import ResourceService
from hospital_ops.storage.service import SqlKeyValueStore

# Import all models so Base.metadata knows about them
import hospital_ops.storage.models  # noqa: F401

logger = logging.getLogger(__name__)


def _forward(websocket_manager: WebSocketManager, event_name: str):
    """Listener that relays a service broadcast to the WebSocket clients."""

    def listener(items: list) -> None:
        websocket_manager.publish(
            event_name, [item.model_dump(mode="json", by_alias=True) for item in items]
        )

    return listener


@asynccontextmanager
async def lifespan(application: FastAPI):
    settings: Settings = application.state.settings

    engine = build_engine(settings.database_url)

    # Auto-create tables for SQLite in development
    if settings.is_sqlite:
        await create_tables(engine)

    application.state.engine = engine
    application.state.session_factory = build_session_factory(engine)
    store = SqlKeyValueStore(application.state.session_factory)

    notification_service = NotificationService(store, settings)
    resource_service = ResourceService(store, settings)
    application.state.notification_service = notification_service
    application.state.resource_service = resource_service
    application.state.dashboard_service = DashboardService(
        notification_service, resource_service
    )

    websocket_manager: WebSocketManager = application.state.websocket_manager
    unsubscribers = [
        notification_service.subscribe(_forward(websocket_manager, "notifications")),
        resource_service.subscribe(_forward(websocket_manager, "resources")),
    ]

    await notification_service.load()
    await resource_service.load()
    logger.info(
        "Loaded %d notifications and %d resources",
        len(notification_service.get_notifications()),
        len(resource_service.get_resources()),
    )

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = setup_scheduler(notification_service, settings)

    yield

    shutdown_scheduler(scheduler)
    for unsubscribe in unsubscribers:
        unsubscribe()
    await notification_service.drain()
    await websocket_manager.drain()
    await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()

    fastapi_app = FastAPI(
        title="Hospital Ops",
        description="Hospital notification dispatch & resource tracking",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.settings = settings
    websocket_manager = WebSocketManager()
    fastapi_app.state.websocket_manager = websocket_manager

    # CORS
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    from hospital_ops.dashboard.router import router as dashboard_router
    from hospital_ops.notifications.router import router as notifications_router
    from hospital_ops.resources.router import router as resources_router

    fastapi_app.include_router(notifications_router, prefix="/api/notifications", tags=["notifications"])
    fastapi_app.include_router(resources_router, prefix="/api/resources", tags=["resources"])
    fastapi_app.include_router(dashboard_router, prefix="/api/dashboard", tags=["dashboard"])

    # WebSocket endpoint
    @fastapi_app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket_manager.connect(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            websocket_manager.disconnect(websocket)

    # System endpoints
    @fastapi_app.get("/api/system/health")
    async def health():
        return {
            "data": {
                "status": "healthy",
                "websocket_connections": websocket_manager.connection_count,
            }
        }

    # Register exception handlers
    register_exception_handlers(fastapi_app)

    return fastapi_app


app = create_app()
