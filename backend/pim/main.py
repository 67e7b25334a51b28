from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pim import __version__
from pim.api.health import router as health_router
from pim.api.routes_catalogue import router as catalogue_router
from pim.api.routes_product_types import router as product_types_router
from pim.api.routes_variants import router as variants_router
from pim.config import settings
from pim.db import init_db
from pim.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    configure_logging()
    # RESET_DB=1 in tests/CI drops and recreates every table
    init_db(reset=settings.RESET_DB)
    logger.info("app.started", version=__version__)
    yield
    logger.info("app.stopped")


app = FastAPI(title="PIM Catalog Core", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/api", tags=["health"])

# product-type routes first so /bundle-components/{row_id} etc. never reach /{product_id}
app.include_router(product_types_router)

app.include_router(catalogue_router, prefix="/api/products", tags=["catalogue"])

app.include_router(variants_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("pim.main:app", host=settings.APP_HOST, port=settings.APP_PORT, reload=False)
