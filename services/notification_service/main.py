from fastapi import FastAPI
from shared.observability import setup_observability
from .router import router, public_router

notification_app = FastAPI(title="Realtime Order Channel", version="1.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(notification_app, "notification_service")

notification_app.include_router(public_router)
notification_app.include_router(router)
