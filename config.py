"""
Configuración operativa: dispatch automático, minibar e integraciones externas
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Timezone del grupo hotelero (cada hotel puede sobrescribirlo)
HOTEL_TIMEZONE = os.getenv("HOTEL_TIMEZONE", "America/Argentina/Buenos_Aires")

# Auto dispatch de tickets
AUTO_DISPATCH_ENABLED = os.getenv("AUTO_DISPATCH_ENABLED", "true").lower() == "true"
AUTO_DISPATCH_INTERVAL_SECONDS = int(os.getenv("AUTO_DISPATCH_INTERVAL_SECONDS", "300"))  # 5 minutes
STALE_TICKET_HOURS = int(os.getenv("STALE_TICKET_HOURS", "4"))
DISPATCH_MAX_CANDIDATES = 5

# Minibar
MAX_STAY_LOOKBACK_DAYS = int(os.getenv("MAX_STAY_LOOKBACK_DAYS", "30"))
GUEST_MAX_QUANTITY = int(os.getenv("GUEST_MAX_QUANTITY", "50"))

# Notificaciones (webhook de mensajería interna)
NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL", "")

# PMS Previo
PREVIO_API_URL = os.getenv("PREVIO_API_URL", "https://api.previo.app/rest/housekeeping/room-status")
PREVIO_API_USER = os.getenv("PREVIO_API_USER", "")
PREVIO_API_PASSWORD = os.getenv("PREVIO_API_PASSWORD", "")

SIDE_EFFECT_TIMEOUT_SECONDS = float(os.getenv("SIDE_EFFECT_TIMEOUT_SECONDS", "10"))
SIDE_EFFECT_WORKERS = int(os.getenv("SIDE_EFFECT_WORKERS", "4"))

# Rate limiting
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")
GUEST_RATE_LIMIT = os.getenv("GUEST_RATE_LIMIT", "10/minute")
REDIS_URL = os.getenv("REDIS_URL", "memory://")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]


def is_notification_configured() -> bool:
    """Verifica si hay un webhook de notificaciones configurado"""
    return bool(NOTIFICATION_WEBHOOK_URL)


def is_previo_configured() -> bool:
    """Verifica si las credenciales de Previo están cargadas"""
    return bool(PREVIO_API_USER and PREVIO_API_PASSWORD)
