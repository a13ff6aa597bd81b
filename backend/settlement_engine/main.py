from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from settlement_engine.core.config import settings
from settlement_engine.routers import audit_logs, finance, orders, settlement_groups, settlements

OPENAPI_TAGS = [
    {"name": "Finance", "description": "Provider, platform and regional financial summaries."},
    {"name": "Settlements", "description": "Create settlements and manage their lifecycle."},
    {"name": "Orders", "description": "Hold and release orders before settlement."},
    {"name": "Audit Logs", "description": "Query and verify the settlement audit trail."},
    {
        "name": "Settlement Groups",
        "description": "Group providers by automatic settlement cadence.",
    },
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Commission reconciliation and settlement engine for a delivery marketplace. "
        "Computes what each provider owes or is owed per period, tracks settlement "
        "payments and disputes, and keeps a tamper-evident audit trail."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count", "Retry-After"],
)


@app.middleware("http")
async def options_handler(request: Request, call_next):  # type: ignore[no-untyped-def]
    if request.method == "OPTIONS":
        origin = request.headers.get("origin", "*")
        return Response(
            status_code=200,
            headers={
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Methods": "*",
                "Access-Control-Allow-Headers": "*",
                "Access-Control-Allow-Credentials": "true",
                "Access-Control-Max-Age": "86400",
            },
        )
    return await call_next(request)


app.include_router(finance.router, prefix="/v1/finance", tags=["Finance"])
app.include_router(settlements.router, prefix="/v1/settlements", tags=["Settlements"])
app.include_router(orders.router, prefix="/v1/orders", tags=["Orders"])
app.include_router(audit_logs.router, prefix="/v1/audit_logs", tags=["Audit Logs"])
app.include_router(
    settlement_groups.router, prefix="/v1/settlement_groups", tags=["Settlement Groups"]
)


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
