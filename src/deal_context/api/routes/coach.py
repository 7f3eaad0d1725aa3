"""Coach endpoints: prompt assembly and raw context inspection."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from deal_context.pipeline.aggregator import AggregationReport, ContextAggregator
from deal_context.pipeline.coach import DealCoach
from deal_context.pipeline.insights import generate_context_insights
from deal_context.prompts.coach_prompts import generate_context_summary

from ..auth import verify_worker_token

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/coach")


def _raise_if_deal_missing(report: AggregationReport, deal_id: str) -> None:
    if "deal.record" in report.failed_branches:
        raise HTTPException(status_code=503, detail="Deal record unavailable")
    if not report.deal_found:
        raise HTTPException(status_code=404, detail=f"Deal {deal_id} not found")


class CoachPromptRequest(BaseModel):
    """One coaching turn for a deal."""

    deal_id: str = Field(..., min_length=1)
    tenant_id: str = Field(..., min_length=1)
    user_id: str | None = None
    message: str = Field(..., min_length=1)


@router.post("/prompt")
async def coach_prompt(
    body: CoachPromptRequest,
    request: Request,
    _auth: None = Depends(verify_worker_token),
):
    """Aggregate the deal context and return the coaching prompt bundle."""
    log = logger.bind(tenant_id=body.tenant_id, deal_id=body.deal_id)
    log.info("coach.prompt_received")

    coach = DealCoach(store=request.app.state.store)
    prompt = await coach.prepare(body.deal_id, body.tenant_id, body.user_id, body.message)

    if not prompt.report.deal_found:
        log.warning("coach.deal_not_found", degraded=prompt.report.degraded)
    _raise_if_deal_missing(prompt.report, body.deal_id)

    log.info(
        "coach.prompt_complete",
        branches=prompt.report.branch_count,
        failed=prompt.report.failure_count,
    )
    return {**prompt.to_dict(), "messages": prompt.messages()}


@router.get("/context/{tenant_id}/{deal_id}")
async def deal_context(
    tenant_id: str,
    deal_id: str,
    request: Request,
    user_id: str | None = None,
    _auth: None = Depends(verify_worker_token),
):
    """Return the aggregated context with its summary, insights and branch report."""
    aggregator = ContextAggregator(request.app.state.store)
    result = await aggregator.aggregate(deal_id, tenant_id, user_id)

    _raise_if_deal_missing(result.report, deal_id)

    context = result.context
    return {
        "summary": generate_context_summary(context),
        "insights": generate_context_insights(context).to_dict(),
        "counts": context.counts(),
        "context": context.model_dump(mode="json"),
        "report": result.report.to_dict(),
    }
