from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from database.conexion import Base, engine
import models  # 👈 asegura que todos los modelos estén registrados
from services.auto_dispatcher import get_dispatch_scheduler
from services.notifications import shutdown_side_effects
from utils.rate_limiter import setup_rate_limiting


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        Base.metadata.create_all(bind=engine)
        print("[OK] Tablas creadas (o ya existian)")
    except Exception as e:
        print(f"[ERROR] Error creando tablas: {e}")

    if not config.is_notification_configured():
        print("[WARN] NOTIFICATION_WEBHOOK_URL vacío: las notificaciones al staff solo se loguean")
    if not config.is_previo_configured():
        print("[WARN] Credenciales de Previo no configuradas: el push de estado al PMS va a fallar")

    scheduler = get_dispatch_scheduler()
    if config.AUTO_DISPATCH_ENABLED:
        scheduler.start()

    yield

    await scheduler.stop()
    shutdown_side_effects()


app = FastAPI(title="Hotel Ops", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],         # GET, POST, PUT, DELETE...
    allow_headers=["*"],
)
setup_rate_limiting(app)

from endpoints import tickets, housekeeping, minibar, dispatch
app.include_router(tickets.router)
app.include_router(housekeeping.router)
app.include_router(minibar.router)
app.include_router(dispatch.router)


@app.get("/")
def read_root():
    return {"message": "Hotel Ops API"}
