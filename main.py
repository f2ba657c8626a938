from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from app.api.v1.api import api_router
from app.core.config import settings
import logging

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

import os

from app.core.firebase import init_firebase
from app.providers.documents import (
    DocumentStore,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    MongoDocumentStore,
)
from app.providers.identity import FirebaseIdentityProvider, IdentityProvider, InMemoryIdentityProvider
from app.services.session_sync import SessionSynchronizer
from app.services.user_service import UserService
from app.stores.app_store import AppStore


def build_identity_provider(firebase_app) -> IdentityProvider:
    if settings.IDENTITY_BACKEND == "memory":
        logger.info("Using in-memory identity provider")
        return InMemoryIdentityProvider()
    if not settings.FIREBASE_API_KEY:
        raise RuntimeError("FIREBASE_API_KEY is required for the firebase identity backend")
    return FirebaseIdentityProvider(
        api_key=settings.FIREBASE_API_KEY,
        emulator_host=settings.FIREBASE_AUTH_EMULATOR_HOST,
        request_uri=settings.GOOGLE_OAUTH_REQUEST_URI,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        firebase_app=firebase_app,
    )


def build_document_store(firebase_app) -> DocumentStore:
    if settings.DOCUMENT_BACKEND == "memory":
        logger.info("Using in-memory document store")
        return InMemoryDocumentStore()
    if settings.DOCUMENT_BACKEND == "firestore":
        if firebase_app is None:
            raise RuntimeError("Firestore backend needs Firebase Admin credentials")
        return FirestoreDocumentStore(firebase_app)
    return MongoDocumentStore(settings.MONGO_URI, settings.MONGO_DB_NAME)


def create_app(
    identity_provider: IdentityProvider = None,
    document_store: DocumentStore = None,
) -> FastAPI:
    """
    Build the application. The store, the synchronizer and the adapters are
    created at startup and shared through `app.state`.
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Session and dashboard state service for the AI content studio",
        version="1.0.0",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json"
    )

    @app.on_event("startup")
    async def startup_session():
        firebase_app = None
        needs_admin = identity_provider is None and settings.IDENTITY_BACKEND == "firebase"
        needs_admin = needs_admin or (document_store is None and settings.DOCUMENT_BACKEND == "firestore")
        if needs_admin:
            firebase_app = init_firebase()

        identity = identity_provider or build_identity_provider(firebase_app)
        documents = document_store or build_document_store(firebase_app)
        if isinstance(documents, MongoDocumentStore):
            await documents.connect_to_database()

        store = AppStore()
        user_service = UserService(documents)
        synchronizer = SessionSynchronizer(store, identity, user_service)
        synchronizer.start()

        app.state.identity_provider = identity
        app.state.document_store = documents
        app.state.store = store
        app.state.user_service = user_service
        app.state.synchronizer = synchronizer
        logger.info("Application session started")

    @app.on_event("shutdown")
    async def shutdown_session():
        await app.state.synchronizer.stop()
        app.state.store.reset()
        if isinstance(app.state.document_store, MongoDocumentStore):
            await app.state.document_store.close_database_connection()
        logger.info("Application session closed")

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL, "http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": f"Welcome to {settings.PROJECT_NAME} API",
            "docs": "/docs",
            "version": "1.0.0"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        store = app.state.store
        return {"status": "healthy", "authenticated": store.is_authenticated, "loading": store.is_loading}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)
