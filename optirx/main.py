from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
import logging, uuid

from .config import settings
from .logging_conf import configure_logging, request_id_var
from .routes.billing import router as billing_router
from .routes.prescriptions import router as prescriptions_router
from .routes.visual_acuity import router as visual_acuity_router

configure_logging()
log = logging.getLogger(__name__)

app = FastAPI(title="OptiRx Prescription Service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.allow_origin] if settings.allow_origin != "*" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
            log.debug(f"{request.method} {request.url.path} -> {response.status_code}")
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response

app.add_middleware(RequestIdMiddleware)

app.include_router(prescriptions_router, prefix="/prescriptions", tags=["prescriptions"])
app.include_router(visual_acuity_router, prefix="/visual-acuity", tags=["visual-acuity"])
app.include_router(billing_router, prefix="/billing", tags=["billing"])

@app.get("/")
def root():
    return {"ok": True, "service": "optirx", "data_dir": settings.data_dir}

@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "optirx", "version": "1.0.0"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("optirx.main:app", host="0.0.0.0", port=8000)
