from fastapi import APIRouter
from fastapi.responses import Response

from services.metrics import render_prometheus

router = APIRouter(tags=["metrics"])


@router.get("/metrics", include_in_schema=False)
def metrics():
    return Response(content=render_prometheus(), media_type="text/plain; version=0.0.4")
