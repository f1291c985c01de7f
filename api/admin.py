"""API-key protected admin export routes."""
from __future__ import annotations

import hmac
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response

from api.schemas import ExportResp
from storage.export import to_csv
from storage.results import ResultRecord, list_results


admin_router = APIRouter(prefix="/api/admin")


def require_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(default=None),
    api_key: Optional[str] = Query(default=None),
) -> None:
    expected = request.app.state.settings.REPORT_API_KEY
    supplied = x_api_key or api_key or ""
    if not expected or not hmac.compare_digest(supplied.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="unauthorized")


def _filtered(
    from_ts: Optional[int] = Query(default=None, alias="from"),
    to_ts: Optional[int] = Query(default=None, alias="to"),
    candidate: Optional[str] = Query(default=None),
    tg_id: Optional[str] = Query(default=None),
) -> List[ResultRecord]:
    return list_results(from_ts=from_ts, to_ts=to_ts, candidate=candidate, tg_id=tg_id)


@admin_router.get("/results", response_model=ExportResp, dependencies=[Depends(require_api_key)])
def export_results(results: List[ResultRecord] = Depends(_filtered)) -> ExportResp:
    return ExportResp(count=len(results), results=results)


@admin_router.get("/results.csv", dependencies=[Depends(require_api_key)])
def export_results_csv(results: List[ResultRecord] = Depends(_filtered)) -> Response:
    return Response(
        content=to_csv(results),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="results.csv"'},
    )
