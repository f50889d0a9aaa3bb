"""
Rate limiting del endpoint público de carga por QR.
El límite va por (IP, QR de la habitación): un huésped no agota el cupo de
otra habitación detrás del mismo NAT del hotel.
"""
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request

from config import RATE_LIMIT_DEFAULT, RATE_LIMIT_ENABLED, REDIS_URL


def guest_qr_key(request: Request) -> str:
    qr_token = request.path_params.get("qr_token", "")
    return f"{get_remote_address(request)}:{qr_token}"


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[RATE_LIMIT_DEFAULT],
    storage_uri=REDIS_URL,  # Usar Redis en producción
    strategy="fixed-window",
    enabled=RATE_LIMIT_ENABLED,
)


def setup_rate_limiting(app):
    """Registra el limiter y el handler de 429 en la app"""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    return limiter
