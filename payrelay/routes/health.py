from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from payrelay.config import missing_required, settings
from payrelay.db import db_ping
from payrelay.redis_client import redis_ping

router = APIRouter(tags=["health"])

@router.get("/health")
def health() -> dict:
    missing = missing_required(settings)
    return {
        "ok": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {"payment_processor": "MERCADO_PAGO_ACCESS_TOKEN" not in missing},
        "warnings": [f"{key} not configured" for key in missing],
    }

# readiness probe
@router.get("/ready")
def ready():
    checks: dict[str, bool] = {}
    errors: dict[str, str] = {}

    for name, fn in (("db", db_ping), ("redis", redis_ping)):
        try:
            checks[name] = bool(fn())
        except Exception as e:
            checks[name] = False
            msg = str(e).strip()
            errors[name] = f"{e.__class__.__name__}{(': ' + msg) if msg else ''}"

    ok = all(checks.values())

    body: dict = {"status": "ok" if ok else "unready", "checks": checks}
    if errors:
        body["errors"] = errors

    # 200 only when db + redis are reachable, 503 with details otherwise
    return JSONResponse(status_code=200 if ok else 503, content=body)
