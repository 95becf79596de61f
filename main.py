import asyncio

from fastapi import FastAPI

from shared.config import settings
from shared.config.database import engine, Base
from shared.observability import setup_observability

# IMPORTANT: import models so they register with Base
from services.product_service import models as product_models
from services.cart_service import models as cart_models
from services.order_service import models as order_models
from shared.idempotency import models as idempotency_models

from services.cart_service.main import cart_app
from services.order_service.main import order_app
from services.order_service.tasks import maintenance_loop

app = FastAPI(title="Commerce Core", version="2.0.0")

# --- OBSERVABILITY BOOTSTRAP (once, on the root app) ---
setup_observability(app, "commerce_core", app.version)

@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.MAINTENANCE_INTERVAL_SECONDS > 0:
        app.state.maintenance_task = asyncio.create_task(
            maintenance_loop(settings.MAINTENANCE_INTERVAL_SECONDS)
        )

@app.on_event("shutdown")
async def shutdown_event():
    task = getattr(app.state, "maintenance_task", None)
    if task is not None:
        task.cancel()
    await engine.dispose()

# Service roots live at "/order/" and "/cart/"; a bare "/order" gets a 307 to "/order/", which keeps the method and body
app.mount("/order", order_app)
app.mount("/cart", cart_app)
