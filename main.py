from fastapi import FastAPI
from shared.config.database import engine, Base

# IMPORTANT: import models so they register with Base
from services.product_service import models as product_models
from services.order_service import models as order_models

from services.product_service.main import product_app
from services.order_service.main import order_app
from services.notification_service.main import notification_app

app = FastAPI(title="POS Cluster")

@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

app.mount("/products", product_app)
app.mount("/orders", order_app)
app.mount("/realtime", notification_app)
