"""
FastAPI application for the storefront cart and catalogs.
"""
import time
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import APIRouter, Depends, FastAPI, Header, Query
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.config import Config
from storefront.models import (
    AddItemRequest,
    CatalogItemCreate,
    CatalogItemUpdate,
    DecrementItemRequest,
    PositionUpdate,
    SourceKind,
)
from storefront.cart_service import CartService
from storefront.catalog_service import CatalogLookup, CatalogRepository
from storefront.exceptions import (
    CartException,
    CartNotFoundError,
    ConfigurationError,
    InvalidRequestError,
    ItemNotFoundError,
    ItemNotInCartError,
    StorageError,
    UnauthorizedError,
)
from storefront.middleware import USER_HEADER, RequestLoggingMiddleware
from storefront.redis_client import get_redis_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Builds the client, which validates configuration before serving
    redis_client = get_redis_client()
    if not await redis_client.ping():
        logger.warning("Redis is not reachable at startup")
    yield
    await redis_client.close()


app = FastAPI(
    title="Storefront Cart API",
    description="Cart and catalog service backed by Redis",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


def get_cart_service() -> CartService:
    return CartService(get_redis_client())


def get_user_id(
    user_id: Optional[str] = Header(None, alias=USER_HEADER, description="Authenticated user identifier")
) -> str:
    """Identity set by the authenticating gateway"""
    if not user_id or not user_id.strip():
        raise UnauthorizedError("Missing user identity")
    return user_id.strip()


# Health check endpoint
@app.get("/health")
async def health_check():
    """
    Always returns HTTP 200 if the application is running.
    Reports Redis connectivity without failing on it.
    """
    redis_status = "healthy"
    redis_latency_ms = None

    try:
        redis_client = get_redis_client()
        ping_start = time.time()
        ping_result = await redis_client.ping()
        redis_latency_ms = round((time.time() - ping_start) * 1000, 2)
        if not ping_result:
            redis_status = "unhealthy"
    except (CartException, ConfigurationError, OSError) as e:
        logger.warning(f"Health check could not reach Redis: {e}")
        redis_status = "unhealthy"

    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "service": Config.PROJECT_NAME,
            "redis": {
                "status": redis_status,
                "latency_ms": redis_latency_ms
            },
            "timestamp": time.time()
        }
    )


# Cart endpoints
@app.get("/cart")
async def get_cart(
    user_id: str = Depends(get_user_id),
    cart_service: CartService = Depends(get_cart_service),
):
    """Current user's cart; an empty cart if nothing was added yet"""
    cart = await cart_service.get_cart(user_id)
    return {"success": True, "cart": cart.model_dump()}


@app.post("/cart/add", status_code=201)
async def add_cart_item(
    request: AddItemRequest,
    user_id: str = Depends(get_user_id),
    cart_service: CartService = Depends(get_cart_service),
):
    """Add an item, merging with a line of the same item and variant"""
    cart = await cart_service.add_item(
        user_id=user_id,
        item_id=request.item_id,
        quantity=request.quantity,
        selected_size=request.selected_size,
        selected_color=request.selected_color,
    )
    return {"success": True, "message": "Added to cart", "cart": cart.model_dump()}


@app.post("/cart/decrement")
async def decrement_cart_item(
    request: DecrementItemRequest,
    user_id: str = Depends(get_user_id),
    cart_service: CartService = Depends(get_cart_service),
):
    """Decrement a line by one, removing it at zero"""
    cart = await cart_service.decrement_item(
        user_id=user_id,
        line_id=request.line_id,
        item_id=request.item_id,
        selected_size=request.selected_size,
        selected_color=request.selected_color,
    )
    return {"success": True, "message": "Cart updated", "cart": cart.model_dump()}


# Catalog endpoints
def catalog_router(kind: SourceKind, prefix: str) -> APIRouter:
    """CRUD routes for one catalog collection"""
    router = APIRouter(prefix=prefix, tags=[kind.value])

    def get_repository() -> CatalogRepository:
        return CatalogLookup(get_redis_client()).repository(kind)

    if kind is SourceKind.TOP_SELLER:
        @router.get("")
        async def list_items(
            search: Optional[str] = Query(None, description="Match any word of name or description"),
            active: Optional[bool] = Query(None, description="Only listed or only unlisted items"),
            repo: CatalogRepository = Depends(get_repository),
        ):
            items = await repo.list_all(search=search, active=active)
            return {"success": True, "items": [item.model_dump() for item in items]}

        @router.patch("/{item_id}/toggle-status")
        async def toggle_status(item_id: str, repo: CatalogRepository = Depends(get_repository)):
            item = await repo.toggle_status(item_id)
            state = "activated" if item.is_active else "deactivated"
            return {"success": True, "message": f"Top seller {state}", "item": item.model_dump()}

        @router.patch("/{item_id}/position")
        async def set_position(
            item_id: str,
            request: PositionUpdate,
            repo: CatalogRepository = Depends(get_repository),
        ):
            item = await repo.set_position(item_id, request.position)
            return {"success": True, "message": "Position updated", "item": item.model_dump()}
    elif kind is SourceKind.PRODUCT:
        @router.get("")
        async def list_items(
            search: Optional[str] = Query(None, description="Match any word of name or description"),
            repo: CatalogRepository = Depends(get_repository),
        ):
            items = await repo.list_all(search=search)
            return {"success": True, "items": [item.model_dump() for item in items]}
    else:
        @router.get("")
        async def list_items(repo: CatalogRepository = Depends(get_repository)):
            items = await repo.list_all()
            return {"success": True, "items": [item.model_dump() for item in items]}

    @router.post("", status_code=201)
    async def create_item(
        request: CatalogItemCreate,
        repo: CatalogRepository = Depends(get_repository),
    ):
        item = await repo.create(request)
        return {"success": True, "item": item.model_dump()}

    @router.get("/{item_id}")
    async def get_item(item_id: str, repo: CatalogRepository = Depends(get_repository)):
        item = await repo.get(item_id)
        return {"success": True, "item": item.model_dump()}

    @router.put("/{item_id}")
    async def update_item(
        item_id: str,
        request: CatalogItemUpdate,
        repo: CatalogRepository = Depends(get_repository),
    ):
        item = await repo.update(item_id, request)
        return {"success": True, "item": item.model_dump()}

    @router.delete("/{item_id}")
    async def delete_item(item_id: str, repo: CatalogRepository = Depends(get_repository)):
        await repo.delete(item_id)
        return {"success": True, "message": f"{kind.value} deleted"}

    return router


app.include_router(catalog_router(SourceKind.PRODUCT, "/products"))
app.include_router(catalog_router(SourceKind.TOP_SELLER, "/topsellers"))
app.include_router(catalog_router(SourceKind.DRESS_STYLE, "/dressstyles"))


# Error handlers
STATUS_CODES = {
    InvalidRequestError: 400,
    ItemNotFoundError: 404,
    CartNotFoundError: 404,
    ItemNotInCartError: 404,
    UnauthorizedError: 401,
    StorageError: 500,
}


@app.exception_handler(CartException)
async def cart_error_handler(request, exc):
    status_code = STATUS_CODES.get(type(exc), 400)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": exc.error, "message": exc.message}
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request, exc):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": "HTTP error", "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request, exc):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request", "message": str(exc.errors())}
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=exc
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "message": str(exc),
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Config.APP_PORT)
