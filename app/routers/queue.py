# app/routers/queue.py
"""Entry queue — plates typed at the entry desk, and assignments waiting for an operator."""

from fastapi import APIRouter, Depends, status
from app.dependencies import get_engine
from app.schemas.queue import AmbiguousOut, AssignRequest, EnqueueRequest, PendingEntryOut
from app.schemas.session import SessionOut
from app.services.orchestrator import ReconciliationEngine

router = APIRouter()


@router.get("/queue", response_model=list[PendingEntryOut], summary="Vehicles waiting to be matched to a spot")
def list_queue(engine: ReconciliationEngine = Depends(get_engine)):
    """Oldest first, the order a single candidate is matched in."""
    return engine.queue.entries()


@router.post("/queue", response_model=PendingEntryOut, status_code=status.HTTP_201_CREATED,
             summary="Register a plate at the entry and open the entry barrier")
async def enqueue_plate(body: EnqueueRequest, engine: ReconciliationEngine = Depends(get_engine)):
    return await engine.enqueue(body.plate)


@router.delete("/queue/{entry_id}", summary="Remove a queued vehicle that never parked")
async def remove_pending(entry_id: int, engine: ReconciliationEngine = Depends(get_engine)):
    await engine.remove_pending(entry_id)
    return {"id": entry_id, "status": "removed"}


@router.post("/queue/prompt/dismiss", summary="Close the entry prompt without queueing a plate")
def dismiss_entry_prompt(engine: ReconciliationEngine = Depends(get_engine)):
    engine.dismiss_entry_prompt()
    return {"status": "dismissed"}


@router.get("/queue/ambiguous", response_model=list[AmbiguousOut],
            summary="Occupied spots waiting for an operator to pick the vehicle")
def list_ambiguous(engine: ReconciliationEngine = Depends(get_engine)):
    return engine.resolver.pending_disambiguations()


@router.post("/queue/{entry_id}/assign", response_model=SessionOut, summary="Assign a queued vehicle to a spot")
async def assign_entry(entry_id: int, body: AssignRequest, engine: ReconciliationEngine = Depends(get_engine)):
    """
    Operator resolution of an ambiguous assignment. Re-sending the same
    assignment returns the session already opened for it.
    """
    return await engine.resolve_ambiguous(entry_id, body.spot_id, body.detected_at)


@router.delete("/queue/ambiguous/{spot_id}", summary="Drop a pending ambiguous assignment")
def dismiss_ambiguous(spot_id: int, engine: ReconciliationEngine = Depends(get_engine)):
    engine.resolver.dismiss(spot_id)
    return {"spot_id": spot_id, "status": "dismissed"}
