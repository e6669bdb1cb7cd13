"""
FastAPI application serving the library catalog GraphQL API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient
from strawberry.fastapi import GraphQLRouter

from accounts.credentials import CredentialStore
from catalog.database import CatalogStore
from library_api.config import config
from library_api.context import build_context
from library_api.schema import schema
from utilities.logger import clear_operation, get_logger, setup_logging

logger = get_logger(__name__)

# Stores shared by every request; set up in lifespan
catalog_store: Optional[CatalogStore] = None
credential_store: Optional[CredentialStore] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global catalog_store, credential_store

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )
    logger.info("Starting library API")

    client = AsyncIOMotorClient(config.mongodb_url)
    try:
        database = client[config.mongodb_database]
        await database.command("ping")
        logger.info("Database connection established", database=config.mongodb_database)

        catalog_store = CatalogStore(database)
        credential_store = CredentialStore(
            database,
            secret_key=config.secret_key,
            algorithm=config.algorithm,
            token_expire_minutes=config.access_token_expire_minutes,
            bcrypt_rounds=config.bcrypt_rounds
        )
        await catalog_store.create_indexes()
        await credential_store.create_indexes()

    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        client.close()
        raise

    yield

    logger.info("Shutting down library API")
    client.close()


async def get_context(request: Request) -> Dict[str, Any]:
    """Resolve the current user for each GraphQL request."""
    clear_operation()
    return await build_context(
        request.headers.get("authorization"),
        catalog_store,
        credential_store
    )


graphql_app = GraphQLRouter(schema, context_getter=get_context)

app = FastAPI(
    title=config.api_title,
    description="""
    GraphQL API for a book catalog.

    ## Authentication

    Obtain a token with the `login` mutation and send it on every request:

    ```
    Authorization: Bearer your_token_here
    ```

    `addBook` and `editAuthor` require a token; queries do not.
    """,
    version=config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=config.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(graphql_app, prefix="/graphql")


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle errors raised outside the GraphQL resolvers."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "code": "INTERNAL_SERVER_ERROR"
        }
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if catalog_store:
        health_info = await catalog_store.health_check()
        db_status = health_info.get("status", "unknown")

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": config.api_version,
        "database_status": db_status
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "library_api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )
