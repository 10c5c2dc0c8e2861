import time
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import NODE_ID, PORT
from .errors import BallotError
from .events import publish_to_sinks
from .log import get_logger
from .models import (
    BallotEvent,
    BallotInfo,
    BallotRecord,
    BallotResults,
    CreateBallotIn,
    CreateBallotOut,
    VoteIn,
    VotingEndedEvent,
)
from .state import BallotRegistry, registry

logger = get_logger("api")

app = FastAPI(title=f"Ballot Node ({NODE_ID})")


def get_registry() -> BallotRegistry:
    return registry


def get_clock() -> int:
    return int(time.time() * 1000)


def get_identity(x_identity: Optional[str] = Header(None)) -> str:
    if not x_identity:
        raise HTTPException(status_code=401, detail="X-Identity header required")
    return x_identity


@app.exception_handler(BallotError)
async def ballot_error_handler(request: Request, exc: BallotError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": str(exc)},
    )


@app.post("/ballots", status_code=201)
async def create_ballot(
    body: CreateBallotIn,
    creator: str = Depends(get_identity),
    now: int = Depends(get_clock),
    reg: BallotRegistry = Depends(get_registry),
) -> CreateBallotOut:
    ballot, capability, event = reg.create_ballot(
        body.title, body.description, body.options, body.duration_ms, now, creator
    )
    await publish_to_sinks(event)
    return CreateBallotOut(
        ballot_id=ballot.ballot_id,
        capability=capability.token,
        end_time=ballot.end_time,
    )


@app.get("/ballots")
def list_ballots(reg: BallotRegistry = Depends(get_registry)) -> List[BallotInfo]:
    return reg.list_ballots()


@app.get("/ballots/{ballot_id}")
def get_info(ballot_id: str, reg: BallotRegistry = Depends(get_registry)) -> BallotInfo:
    return reg.get(ballot_id).info()


@app.get("/ballots/{ballot_id}/options")
def get_options(ballot_id: str, reg: BallotRegistry = Depends(get_registry)):
    return {"ballot_id": ballot_id, "options": reg.get(ballot_id).get_options()}


@app.get("/ballots/{ballot_id}/votes/{option_index}")
def get_vote_count(ballot_id: str, option_index: int, reg: BallotRegistry = Depends(get_registry)):
    count = reg.get(ballot_id).get_vote_count(option_index)
    return {"ballot_id": ballot_id, "option_index": option_index, "votes": count}


@app.get("/ballots/{ballot_id}/voters/{identity}")
def has_voted(ballot_id: str, identity: str, reg: BallotRegistry = Depends(get_registry)):
    return {"ballot_id": ballot_id, "identity": identity, "voted": reg.get(ballot_id).has_voted(identity)}


@app.get("/ballots/{ballot_id}/active")
def is_active(
    ballot_id: str,
    at: Optional[int] = None,
    now: int = Depends(get_clock),
    reg: BallotRegistry = Depends(get_registry),
):
    at = now if at is None else at
    return {"ballot_id": ballot_id, "at": at, "active": reg.get(ballot_id).is_active(at)}


@app.get("/ballots/{ballot_id}/results")
def get_results(ballot_id: str, reg: BallotRegistry = Depends(get_registry)) -> BallotResults:
    return reg.get(ballot_id).get_results()


@app.post("/ballots/{ballot_id}/vote")
async def vote(
    ballot_id: str,
    v: VoteIn,
    voter: str = Depends(get_identity),
    now: int = Depends(get_clock),
    reg: BallotRegistry = Depends(get_registry),
):
    event = reg.cast_vote(ballot_id, v.option_index, now, voter)
    await publish_to_sinks(event)
    return {"ok": True, "node": NODE_ID, "event": event.model_dump()}


@app.post("/ballots/{ballot_id}/end")
async def end_voting(
    ballot_id: str,
    x_capability: str = Header(""),
    now: int = Depends(get_clock),
    reg: BallotRegistry = Depends(get_registry),
) -> VotingEndedEvent:
    event = reg.end_voting(ballot_id, x_capability, now)
    await publish_to_sinks(event)
    return event


@app.get("/events")
def recent_events(reg: BallotRegistry = Depends(get_registry)) -> List[BallotEvent]:
    return reg.bus.recent()


# ----------- storage sync -----------

@app.get("/internal/state/{ballot_id}")
def internal_state(ballot_id: str, reg: BallotRegistry = Depends(get_registry)) -> BallotRecord:
    return reg.export_ballot(ballot_id)


@app.post("/internal/state", status_code=201)
def internal_import(record: BallotRecord, reg: BallotRegistry = Depends(get_registry)):
    try:
        ballot = reg.import_ballot(record)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {"ok": True, "node": NODE_ID, "ballot_id": ballot.ballot_id}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("ballotbox.main:app", host="0.0.0.0", port=PORT, log_level="info")
