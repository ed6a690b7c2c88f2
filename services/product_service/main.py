from fastapi import FastAPI
from shared.exceptions import register_error_handlers
from shared.observability import setup_observability
from .router import router, public_router
from .models import Product # Import to register with Base

product_app = FastAPI(
    title="Product Service",
    version="1.0.0"
)

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(product_app, "product_service")
register_error_handlers(product_app)

product_app.include_router(public_router)
product_app.include_router(router)
