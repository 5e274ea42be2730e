"""Layer tracing example for fastapi-layer-tracing.

Prints one span per router, middleware and handler to the console.

Requires opentelemetry-sdk.
Run with: uvicorn main:app --reload
"""
import re
import time

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

from fastapi_layer_tracing import InstrumentationConfig, create_traced_router

provider = TracerProvider()
provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
trace.set_tracer_provider(provider)


async def timing(request, call_next):
    start = time.monotonic()
    response = await call_next(request)
    response.headers["X-Response-Time"] = f"{time.monotonic() - start:.4f}"
    return response


async def audit(request, call_next):
    return await call_next(request)


config = InstrumentationConfig(
    # audit runs on every request and adds nothing to the trace
    ignore_layers=["middleware - audit", re.compile(r"^router - /internal")],
)

users = create_traced_router(prefix="/users", middleware=[timing, audit], config=config)


@users.get("")
async def list_users():
    return [{"id": "1"}]


@users.get("/{user_id}")
async def get_user(user_id: str):
    return {"id": user_id}


internal = create_traced_router(prefix="/internal", config=config)


@internal.get("/health")
async def health():
    return {"status": "ok"}


app = FastAPI(title="Layer Tracing Example")
app.include_router(users)
app.include_router(internal)
