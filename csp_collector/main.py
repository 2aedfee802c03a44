from contextlib import asynccontextmanager

from fastapi import FastAPI
from csp_collector.routes.report import router as report_router
from csp_collector.routes.summary import router as summary_router
from csp_collector.routes.metrics import router as metrics_router
from csp_collector.services import metrics as metrics_service
from csp_collector.services import report_store
from csp_collector.services import rotation


@asynccontextmanager
async def lifespan(_app: FastAPI):
    report_store.ensure_storage_dir()
    metrics_service.rehydrate()
    rotation.ensure_rotation_scheduled()
    yield


app = FastAPI(title="CSP Report Collector", lifespan=lifespan)

app.include_router(report_router)
app.include_router(summary_router)
app.include_router(metrics_router)

@app.get("/health")
def health():
    return {"ok": True}
