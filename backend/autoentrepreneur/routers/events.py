from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from autoentrepreneur.deps import get_current_user
from autoentrepreneur.events import broker

router = APIRouter(tags=["events"])


@router.get("/events")
async def stream_events(user=Depends(get_current_user)):
    """Flux SSE des créations / modifications / suppressions de l'utilisateur."""
    return StreamingResponse(
        broker.stream(user["id"]),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
