from fastapi import FastAPI

from payment_intents import models  # noqa: F401  registers tables on Base
from payment_intents.config import get_settings
from payment_intents.database import Base, engine
from payment_intents.logging_config import configure_logging
from payment_intents.routes import router
from payment_intents.webhooks import router as webhook_router

configure_logging(get_settings().log_level)

app = FastAPI(title="Payment Intent Lifecycle Service")

app.include_router(router)
app.include_router(webhook_router)

Base.metadata.create_all(bind=engine)
