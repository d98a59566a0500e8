import time
import uuid

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Header
from fastapi import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from api.schemas import (
    CombinedSummaryRequest,
    CombinedSummaryResponse,
    EntrySummaryRequest,
    ProjectEntryRequest,
    StageItem,
    ValidateContentRequest,
    ValidateContentResponse,
)
from journal_digest.agents.output_models import SummaryOptions, SummaryResult
from journal_digest.agents.summarizer import get_summary_orchestrator
from journal_digest.config.logger import configure_logging, get_logger
from journal_digest.content.validator import ensure_valid_content, validate_content
from journal_digest.errors import (
    JournalDigestError,
    ProviderTimeout,
    ProviderUnavailable,
    RateLimited,
    ValidationFailed,
)
from journal_digest.graph.builder import generate_combined_summary
from journal_digest.runtime.progress import (
    TERMINAL_EVENTS,
    complete_run,
    fail_run,
    get_run,
    next_event,
    subscribe,
    to_sse,
    unsubscribe,
)
from journal_digest.security.audit import record_audit
from journal_digest.security.rate_limit import get_rate_limiter
from journal_digest.security.scope import ShareScope, project
from journal_digest.services.models import DigestOptions

app = FastAPI(title="Journal Digest")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

configure_logging()
logger = get_logger(__name__)

_STATUS_BY_ERROR: list[tuple[type[JournalDigestError], int]] = [
    (ValidationFailed, 422),
    (RateLimited, 429),
    (ProviderUnavailable, 503),
    (ProviderTimeout, 504),
]


def _http_error(exc: JournalDigestError) -> HTTPException:
    """Map a core error onto an HTTP error carrying only its generic message."""
    status_code = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    headers = None
    if isinstance(exc, RateLimited):
        retry_after = max(0, int(exc.reset_time - time.time()))
        headers = {"Retry-After": str(retry_after)}
    return HTTPException(status_code=status_code, detail=exc.message, headers=headers)


def _require_user(user_id: str | None) -> str:
    user_id = (user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


@app.middleware("http")
async def log_requests(request, call_next):
    start = time.perf_counter()
    logger.info("[request.start] %s %s", request.method, request.url.path)
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "[request.end] %s %s status=%s elapsed=%.1fms",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


@app.get("/api/health")
async def health():
    return {"ok": True}


@app.post("/api/content/validate", response_model=ValidateContentResponse)
async def validate_document(payload: ValidateContentRequest):
    return ValidateContentResponse(valid=validate_content(payload.content))


@app.post("/api/entries/summary", response_model=SummaryResult)
async def summarize_entry(
    payload: EntrySummaryRequest,
    x_user_id: str | None = Header(None, alias="X-User-Id"),
):
    user_id = _require_user(x_user_id)
    try:
        if isinstance(payload.content, dict):
            ensure_valid_content(payload.content)
        await get_rate_limiter("summary_generation").enforce(user_id)
        result = await get_summary_orchestrator().generate_entry_summary(
            payload.title,
            payload.content,
            payload.mood,
            payload.tags,
            SummaryOptions(include_mood_analysis=payload.include_mood_analysis),
        )
    except JournalDigestError as exc:
        logger.warning("[summarize_entry] failed error=%s", exc.__class__.__name__)
        raise _http_error(exc) from exc

    await record_audit(
        "CREATE",
        "entry_summary",
        resource_id=payload.entry_id,
        user_id=user_id,
        details={
            "word_count": result.word_count,
            "risk_flags": [flag.value for flag in result.risk_flags],
            "mood_analysis": result.mood_analysis is not None,
        },
    )
    return result


@app.post("/api/summaries/combined", response_model=CombinedSummaryResponse)
async def summarize_combined(
    payload: CombinedSummaryRequest,
    x_user_id: str | None = Header(None, alias="X-User-Id"),
):
    user_id = _require_user(x_user_id)
    run_id = (payload.run_id or "").strip() or str(uuid.uuid4())
    logger.info(
        "[summarize_combined] started run=%s entries=%s period=%s",
        run_id,
        len(payload.entries),
        payload.period,
    )
    options = DigestOptions(
        include_overview=payload.include_overview,
        reuse_cached=payload.reuse_cached,
        group_size=payload.group_size,
        user_id=user_id,
    )
    try:
        await get_rate_limiter("combined_summary").enforce(user_id)
        result = await generate_combined_summary(
            payload.entries,
            period=payload.period,
            options=options,
            orchestrator=get_summary_orchestrator(),
            rate_limiter=get_rate_limiter("digest_entry"),
            run_id=run_id,
        )
    except JournalDigestError as exc:
        logger.warning("[summarize_combined] failed error=%s", exc.__class__.__name__)
        await fail_run(run_id, exc.message)
        raise _http_error(exc) from exc
    except Exception as exc:
        logger.exception("[summarize_combined] digest pipeline failed")
        await fail_run(run_id, JournalDigestError.user_message)
        raise HTTPException(status_code=500, detail=JournalDigestError.user_message) from exc

    snapshot = await get_run(run_id)
    stages = [StageItem(**stage) for stage in (snapshot or {}).get("stages", [])]
    response_payload = CombinedSummaryResponse(run_id=run_id, result=result, stages=stages)
    await complete_run(run_id, response_payload.model_dump(mode="json"))

    await record_audit(
        "CREATE",
        "combined_summary",
        resource_id=run_id,
        user_id=user_id,
        details={
            "period": payload.period,
            "succeeded": result.succeeded,
            "failed": result.failed,
            "overview": bool(result.summary and result.summary.overview),
            "hierarchy_levels": result.summary.hierarchy_levels if result.summary else 0,
        },
    )
    logger.info(
        "[summarize_combined] finished run=%s succeeded=%s failed=%s",
        run_id,
        result.succeeded,
        result.failed,
    )
    return response_payload


@app.get("/api/summaries/events/{run_id}")
async def stream_run_events(run_id: str):
    queue = await subscribe(run_id)

    async def event_generator():
        try:
            snapshot = await get_run(run_id)
            if snapshot:
                yield to_sse("snapshot", snapshot)
                if snapshot.get("done"):
                    return
            while True:
                event = await next_event(queue, timeout=15.0)
                if event is None:
                    yield "event: ping\ndata: {}\n\n"
                    latest = await get_run(run_id)
                    if latest and latest.get("done"):
                        break
                    continue
                yield to_sse(event["event"], event["data"])
                if event["event"] in TERMINAL_EVENTS:
                    break
        finally:
            await unsubscribe(run_id, queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@app.post("/api/entries/project")
async def project_entry(
    payload: ProjectEntryRequest,
    x_user_id: str | None = Header(None, alias="X-User-Id"),
):
    user_id = _require_user(x_user_id)
    projected = project(payload.entry, payload.scope)
    await record_audit(
        "DENY" if payload.scope == ShareScope.NONE else "SHARE",
        "journal_entry",
        resource_id=payload.entry.id,
        user_id=user_id,
        details={"scope": payload.scope.value, "fields": sorted(projected)},
    )
    return projected


def run() -> None:
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=8000)
