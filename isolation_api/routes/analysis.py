"""Modal analysis routes — gate, run the engine, count usage."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from isolation_api.middleware.tier_check import CalculationGate, calculation_gate
from isolation_api.models import (
    ModalAnalysisRequest,
    ModalAnalysisResponse,
    ModeOut,
    ReportFormat,
    UsageResponse,
)
from isolation_engine.errors import ComputationError, InvalidInput
from isolation_engine.modal import ModalResult, compute_modal_result
from isolation_engine.parameters import RigidBodyParameters, parse_parameters
from isolation_engine.report import export_csv, export_json

logger = logging.getLogger(__name__)

router = APIRouter()


def _run_engine(request: ModalAnalysisRequest) -> tuple[RigidBodyParameters, ModalResult]:
    """Parse and solve, mapping engine errors to HTTP errors."""
    try:
        params = parse_parameters(request.to_form_data())
        result = compute_modal_result(params)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ComputationError as e:
        logger.warning("Modal computation failed: %s", e.reason)
        raise HTTPException(status_code=422, detail=str(e))
    return params, result


@router.get("/usage", response_model=UsageResponse)
async def get_usage(gate: CalculationGate = Depends(calculation_gate)):
    """Remaining free-tier calculations for the caller."""
    return await gate.status()


@router.post("/modal-analysis", response_model=ModalAnalysisResponse)
async def modal_analysis(
    request: ModalAnalysisRequest,
    gate: CalculationGate = Depends(calculation_gate),
):
    """Compute natural frequencies of a rigid body on elastic mounts.

    Failed calculations do not count against the free tier.
    """
    await gate.ensure_allowed()
    params, result = _run_engine(request)
    usage = await gate.record()

    logger.info(
        "Modal analysis: %d mounts, mass=%g, frequencies=%s",
        len(params.mounting_points), params.mass,
        ", ".join(f"{f:.2f}" for f in result.natural_frequencies),
    )

    return ModalAnalysisResponse(
        natural_frequencies=list(result.natural_frequencies),
        mode_descriptions=list(result.mode_descriptions),
        modes=[ModeOut(**m) for m in result.modes()],
        usage=usage,
    )


@router.post("/modal-analysis/report")
async def modal_analysis_report(
    request: ModalAnalysisRequest,
    format: ReportFormat = Query(ReportFormat.CSV),
    gate: CalculationGate = Depends(calculation_gate),
):
    """Run the analysis and return a downloadable CSV or JSON report."""
    await gate.ensure_allowed()
    params, result = _run_engine(request)
    await gate.record()

    if format == ReportFormat.JSON:
        content = export_json(params, result)
        media_type = "application/json"
    else:
        content = export_csv(params, result)
        media_type = "text/csv"

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="modal_analysis.{format.value}"'},
    )
