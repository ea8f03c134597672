"""FastAPI app: column classification and persistence API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routes import router
from column_governance import config
from column_governance.keyvault_loader import load_env

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load env (Key Vault or .env), configure logging, then yield."""
    load_env()
    config.configure_logging()
    if not config.openai_api_key():
        logger.warning("OPENAI_API_KEY is not set; classification requests will fail")
    yield


app = FastAPI(title="Column Classification API", lifespan=lifespan)
app.include_router(router)
