from __future__ import annotations

from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from oraculo import (
    DAILY,
    HORIZON_ORDER,
    CapacityExceeded,
    InvalidSelection,
    NotFound,
    Session,
    activity_level,
)
from oraculo.heatmap import PERIODS
from oraculo.streaks import habit_grid


app = FastAPI(title="Oraculo", version="0.1.0")


def get_session() -> Session:
    """A fresh session per request, loaded from the workspace on disk."""
    return Session.open()


def _changed(session: Session, **extra: Any) -> dict[str, Any]:
    """Save and return the new snapshot so clients re-render without reloading."""
    warning = session.save()
    return {"ok": True, **extra, "snapshot": session.snapshot_dict(), "warning": warning}


def _horizon(horizon_id: str) -> str:
    if horizon_id not in HORIZON_ORDER:
        raise HTTPException(status_code=404, detail=f"Unknown horizon: {horizon_id}")
    return horizon_id


# ── Error mapping ─────────────────────────────────────────────


@app.exception_handler(NotFound)
async def _not_found(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"ok": False, "error": str(exc)})


@app.exception_handler(CapacityExceeded)
async def _capacity(request: Request, exc: CapacityExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"ok": False, "error": str(exc), "horizon": exc.horizon_id, "limit": exc.limit},
    )


@app.exception_handler(InvalidSelection)
async def _selection(request: Request, exc: InvalidSelection) -> JSONResponse:
    return JSONResponse(status_code=422, content={"ok": False, "error": str(exc), "field": exc.field})


@app.exception_handler(ValueError)
async def _bad_value(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"ok": False, "error": str(exc)})


# ── Horizons ──────────────────────────────────────────────────


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/api/snapshot")
def api_snapshot(session: Session = Depends(get_session)) -> dict[str, Any]:
    return {
        "snapshot": session.snapshot_dict(),
        "needsDailySetup": session.needs_daily_setup(),
        "today": session.clock.today(),
    }


@app.post("/api/horizons/{horizon_id}/tasks")
def api_add_task(
    horizon_id: str,
    payload: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    task = session.horizons.add_task(
        _horizon(horizon_id),
        str(payload.get("text", "")),
        project_id=payload.get("projectId"),
        notes=str(payload.get("notes", "")),
    )
    return _changed(session, task=task.to_dict())


@app.put("/api/horizons/{horizon_id}/tasks/{task_id}")
def api_edit_task(
    horizon_id: str,
    task_id: str,
    payload: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"text": payload.get("text"), "notes": payload.get("notes")}
    if "projectId" in payload:
        kwargs["project_id"] = payload["projectId"]
    task = session.horizons.edit_task(task_id, _horizon(horizon_id), **kwargs)
    return _changed(session, task=task.to_dict())


@app.post("/api/tasks/{task_id}/move")
def api_move_task(
    task_id: str,
    payload: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    to_id = _horizon(str(payload.get("to", "")))
    from_id = payload.get("from") or session.horizons.find_horizon_of(task_id)
    if from_id is None:
        raise NotFound("task", task_id)
    task = session.horizons.move_task(task_id, _horizon(from_id), to_id)
    return _changed(session, task=task.to_dict())


@app.post("/api/horizons/{horizon_id}/tasks/{task_id}/complete")
def api_toggle_complete(
    horizon_id: str,
    task_id: str,
    payload: dict[str, Any] = Body(default={}),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    completed = bool(payload.get("completed", True))
    task = session.horizons.toggle_complete(task_id, _horizon(horizon_id), completed)
    return _changed(session, task=task.to_dict())


@app.post("/api/horizons/{horizon_id}/primary")
def api_set_primary(
    horizon_id: str,
    payload: dict[str, Any] = Body(default={}),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    horizon_id = _horizon(horizon_id)
    task_id = payload.get("taskId")
    if not task_id and horizon_id == DAILY:
        session.clear_primary()
    elif not task_id:
        session.horizons.clear_primary(horizon_id)
    elif horizon_id == DAILY:
        session.set_primary(task_id)
    else:
        session.horizons.set_primary(task_id, horizon_id)
    return _changed(session)


@app.delete("/api/horizons/{horizon_id}/tasks/{task_id}")
def api_delete_task(
    horizon_id: str,
    task_id: str,
    confirm: bool = False,
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    """Two-step delete: without ?confirm=true only the confirmation is returned."""
    pending = session.horizons.request_removal(task_id, _horizon(horizon_id))
    if not confirm:
        return {"ok": False, "pendingConfirmation": {"action": pending.action, "message": pending.message}}
    pending.confirm()
    return _changed(session, taskId=task_id)


# ── Daily setup ───────────────────────────────────────────────


@app.post("/api/daily-setup")
def api_daily_setup(payload: dict[str, Any] = Body(...), session: Session = Depends(get_session)) -> Any:
    planner = session.planner()
    if payload.get("time"):
        planner.select_time(str(payload["time"]))
    if payload.get("energy"):
        planner.select_energy(str(payload["energy"]))
    for task_id in payload.get("moveOut") or []:
        planner.stage_move_out(task_id)
    for task_id in payload.get("moveIn") or []:
        planner.stage_move_in(task_id)
    result = planner.commit(
        potential_obstacle=payload.get("potentialObstacle"),
        contingency_plan=payload.get("contingencyPlan"),
    )
    if not result.ok:
        # Moves that did go through are real; keep them.
        warning = session.save()
        return JSONResponse(status_code=409, content={**result.to_dict(), "warning": warning})
    return _changed(session, result=result.to_dict(), limit=planner.current_limit())


@app.post("/api/daily-setup/skip")
def api_skip_daily_setup(session: Session = Depends(get_session)) -> dict[str, Any]:
    setup = session.planner().skip()
    return _changed(session, setup=setup.to_dict())


# ── Habits, journal, projects ─────────────────────────────────


@app.post("/api/habits/{habit_id}/checkin")
def api_check_in(
    habit_id: str,
    payload: dict[str, Any] = Body(default={}),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    entry = session.check_in(habit_id, payload.get("date"))
    warning = session.save()
    return {
        "ok": True,
        "created": entry is not None,
        "streak": session.streak(habit_id),
        "warning": warning,
    }


@app.post("/api/habits/{habit_id}/activate")
def api_activate_habit(habit_id: str, session: Session = Depends(get_session)) -> dict[str, Any]:
    session.set_active_habit(habit_id)
    return {"ok": True, "warning": session.save()}


@app.get("/api/habits/{habit_id}")
def api_habit(habit_id: str, days: int = 90, session: Session = Depends(get_session)) -> dict[str, Any]:
    today = session.clock.today()
    return {
        "habitId": habit_id,
        "streak": session.streak(habit_id),
        "grid": habit_grid(habit_id, session.document.check_ins, today, days),
    }


@app.post("/api/journal")
def api_journal(payload: dict[str, Any] = Body(default={}), session: Session = Depends(get_session)) -> dict[str, Any]:
    session.write_journal(payload.get("entryId"))
    return {"ok": True, "warning": session.save()}


@app.post("/api/projects/{project_id}/complete")
def api_complete_project(project_id: str, session: Session = Depends(get_session)) -> dict[str, Any]:
    session.complete_project(project_id)
    return {"ok": True, "warning": session.save()}


@app.delete("/api/projects/{project_id}")
def api_delete_project(project_id: str, session: Session = Depends(get_session)) -> dict[str, Any]:
    detached = session.delete_project(project_id)
    return _changed(session, detached=detached)


# ── Analytics ─────────────────────────────────────────────────


@app.get("/api/heatmap/{year}")
def api_heatmap(year: int, session: Session = Depends(get_session)) -> dict[str, Any]:
    if not 1970 <= year <= 9999:
        raise HTTPException(status_code=400, detail=f"Invalid year: {year}")
    grid = session.heatmap(year)
    return {
        "year": year,
        "weeks": [[cell.to_dict() for cell in week] for week in grid],
        "legend": [activity_level(n) for n in (0, 1, 3, 5, 7)],
    }


@app.get("/api/stats/{period}")
def api_stats(period: str, session: Session = Depends(get_session)) -> dict[str, Any]:
    if period not in PERIODS:
        raise HTTPException(status_code=400, detail=f"Unknown period: {period}")
    stats = session.stats(period)
    return {**stats.to_dict(), "recap": session.recap(period)}
