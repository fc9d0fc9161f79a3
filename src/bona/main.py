from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from bona.api.errors import register_exception_handlers
from bona.api.routes.members import router as members_router
from bona.api.routes.admission_control import router as admission_control_router
from bona.api.routes.invitations import router as invitations_router
from bona.api.routes.audit import router as audit_router
import bona.models  # ensure models load for Alembic
from bona.logging_config import configure_logging
from prometheus_fastapi_instrumentator import Instrumentator
from bona.tracing import configure_tracing
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

# ------------------------------------------------------------------
# Configure Observability
# ------------------------------------------------------------------
configure_logging()
configure_tracing()

app = FastAPI(title="Bona")

app.include_router(members_router, prefix="/api")
app.include_router(admission_control_router, prefix="/api")
app.include_router(invitations_router, prefix="/api")
app.include_router(audit_router, prefix="/api")

register_exception_handlers(app)

# ------------------------------------------------------------------
# Observability
# ------------------------------------------------------------------
FastAPIInstrumentor.instrument_app(app)
Instrumentator().instrument(app).expose(app)

# ------------------------------------------------------------------
# Health Check
# ------------------------------------------------------------------
@app.get("/health")
def health_check():
    return {"status": "ok"}
