import functools

import httpx

from ballotbox import events, main

DAY_MS = 86_400_000
OPTIONS = ["Yes", "No", "Abstain"]


def create(client, identity="creator", **overrides):
    body = {
        "title": "Charter",
        "description": "Adopt the charter?",
        "options": OPTIONS,
        "duration_ms": DAY_MS,
    }
    body.update(overrides)
    return client.post("/ballots", json=body, headers={"X-Identity": identity})


def vote(client, ballot_id, identity, option_index):
    return client.post(
        f"/ballots/{ballot_id}/vote",
        json={"option_index": option_index},
        headers={"X-Identity": identity},
    )


def end(client, ballot_id, capability):
    return client.post(f"/ballots/{ballot_id}/end", headers={"X-Capability": capability})


def test_create_ballot(client, clock):
    res = create(client)
    assert res.status_code == 201
    body = res.json()
    assert body["end_time"] == clock.now + DAY_MS
    assert body["capability"]

    info = client.get(f"/ballots/{body['ballot_id']}").json()
    assert info["title"] == "Charter"
    assert info["start_time"] == clock.now
    assert info["total_votes"] == 0


def test_create_requires_identity(client):
    res = client.post("/ballots", json={"title": "t", "options": ["x"], "duration_ms": 1})
    assert res.status_code == 401


def test_create_validation_errors(client):
    res = create(client, duration_ms=0)
    assert res.status_code == 422
    assert res.json()["error"] == "invalid_duration"

    res = create(client, options=[])
    assert res.status_code == 422
    assert res.json()["error"] == "no_options"


def test_full_scenario(client, clock):
    created = create(client).json()
    ballot_id, capability = created["ballot_id"], created["capability"]

    for voter, choice in [("v1", 0), ("v2", 1), ("v3", 0), ("v4", 2)]:
        assert vote(client, ballot_id, voter, choice).status_code == 200

    results = client.get(f"/ballots/{ballot_id}/results").json()
    assert results["options"] == OPTIONS
    assert results["vote_counts"] == [2, 1, 1]
    assert results["total_votes"] == 4

    res = end(client, ballot_id, capability)
    assert res.status_code == 409
    assert res.json()["error"] == "voting_not_ended"

    clock.advance(DAY_MS + 1)
    res = end(client, ballot_id, capability)
    assert res.status_code == 200
    assert res.json()["winning_option"] == "Yes"
    assert res.json()["winning_votes"] == 2
    assert res.json()["total_votes"] == 4


def test_vote_errors(client, clock):
    ballot_id = create(client).json()["ballot_id"]

    res = vote(client, ballot_id, "alice", 7)
    assert res.status_code == 422
    assert res.json()["error"] == "invalid_option"

    assert vote(client, ballot_id, "alice", 0).status_code == 200
    res = vote(client, ballot_id, "alice", 1)
    assert res.status_code == 409
    assert res.json()["error"] == "already_voted"

    clock.advance(DAY_MS)
    res = vote(client, ballot_id, "bob", 0)
    assert res.status_code == 409
    assert res.json()["error"] == "voting_ended"

    assert client.get(f"/ballots/{ballot_id}/results").json()["vote_counts"] == [1, 0, 0]


def test_end_requires_matching_capability(client, clock):
    first = create(client).json()
    second = create(client, identity="mallory").json()
    clock.advance(DAY_MS)

    res = end(client, first["ballot_id"], second["capability"])
    assert res.status_code == 403
    assert res.json()["error"] == "not_authorized"

    res = client.post(f"/ballots/{first['ballot_id']}/end")
    assert res.status_code == 403


def test_queries(client, clock):
    ballot_id = create(client).json()["ballot_id"]
    vote(client, ballot_id, "alice", 2)

    assert client.get(f"/ballots/{ballot_id}/options").json()["options"] == OPTIONS
    assert client.get(f"/ballots/{ballot_id}/votes/2").json()["votes"] == 1
    assert client.get(f"/ballots/{ballot_id}/votes/9").json()["votes"] == 0
    assert client.get(f"/ballots/{ballot_id}/voters/alice").json()["voted"] is True
    assert client.get(f"/ballots/{ballot_id}/voters/bob").json()["voted"] is False

    assert client.get(f"/ballots/{ballot_id}/active").json()["active"] is True
    at = clock.now + DAY_MS
    assert client.get(f"/ballots/{ballot_id}/active", params={"at": at}).json()["active"] is False

    listed = client.get("/ballots").json()
    assert [b["ballot_id"] for b in listed] == [ballot_id]


def test_unknown_ballot(client):
    res = client.get("/ballots/missing/results")
    assert res.status_code == 404
    assert res.json()["error"] == "ballot_not_found"


def test_events_endpoint(client):
    ballot_id = create(client).json()["ballot_id"]
    vote(client, ballot_id, "alice", 1)

    events = client.get("/events").json()
    assert [e["kind"] for e in events] == ["ballot_created", "vote_cast"]
    assert events[1]["option"] == "No"


def test_state_export_import(client, registry):
    ballot_id = create(client).json()["ballot_id"]
    vote(client, ballot_id, "alice", 0)

    record = client.get(f"/internal/state/{ballot_id}").json()
    assert record["voted_identities"] == ["alice"]

    registry.ballots.clear()
    res = client.post("/internal/state", json=record)
    assert res.status_code == 201
    assert client.get(f"/ballots/{ballot_id}/results").json()["vote_counts"] == [1, 0, 0]

    record["total_votes"] = 3
    assert client.post("/internal/state", json=record).status_code == 422


def test_state_import_refuses_live_ballot(client):
    ballot_id = create(client).json()["ballot_id"]
    vote(client, ballot_id, "alice", 0)

    record = client.get(f"/internal/state/{ballot_id}").json()
    record.update(options=["Mallory"], vote_counts={"0": 0}, voted_identities=[], total_votes=0)
    res = client.post("/internal/state", json=record)
    assert res.status_code == 409
    assert res.json()["error"] == "ballot_exists"

    results = client.get(f"/ballots/{ballot_id}/results").json()
    assert results["options"] == OPTIONS
    assert results["vote_counts"] == [1, 0, 0]


def test_failing_sinks_do_not_fail_operations(client, clock, monkeypatch):
    def handler(request):
        if request.url.host == "down":
            raise httpx.ConnectError("unreachable", request=request)
        return httpx.Response(503)

    monkeypatch.setattr(main, "publish_to_sinks", functools.partial(
        events.publish_to_sinks,
        sinks=["http://down:9000", "http://broken:9000"],
        transport=httpx.MockTransport(handler),
    ))

    created = create(client)
    assert created.status_code == 201
    ballot_id, capability = created.json()["ballot_id"], created.json()["capability"]

    assert vote(client, ballot_id, "alice", 1).status_code == 200
    assert client.get(f"/ballots/{ballot_id}/results").json()["vote_counts"] == [0, 1, 0]

    clock.advance(DAY_MS)
    res = end(client, ballot_id, capability)
    assert res.status_code == 200
    assert res.json()["winning_option"] == "No"
