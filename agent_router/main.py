import logging
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, Query
from sqlalchemy.orm import Session

from agent_router.config import settings
from agent_router.config.database import SessionLocal, get_db
from agent_router.config.models import ModuleType
from agent_router.config.schema import (
    AdapterRequest, AgentCreate, AgentRead, AgentRunCreate, AgentUpdate, AssignmentCreate, AssignmentRead, Candidate,
    ModuleTaskDefinitionCreate, ModuleTaskDefinitionRead, RunRead, TaskRequest, TaskResult,
    TeamCreate, TeamMemberCreate, TeamMemberRead, TeamRead,
)
from agent_router.services.agent_service import AgentService
from agent_router.services.assignment_store import AssignmentService
from agent_router.services.candidate_resolver import CandidateResolver
from agent_router.services.module_adapters import ModuleAdapterService
from agent_router.services.run_engine import RunEngine
from agent_router.services.task_dispatcher import TaskDispatcher

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

_run_engine: Optional[RunEngine] = None


def get_run_engine() -> RunEngine:
    """Process-wide run engine; background completions use their own sessions."""
    global _run_engine
    if _run_engine is None:
        _run_engine = RunEngine(SessionLocal)
    return _run_engine


def get_dispatcher(run_engine: RunEngine = Depends(get_run_engine)) -> TaskDispatcher:
    return TaskDispatcher(run_engine)


def get_adapters(dispatcher: TaskDispatcher = Depends(get_dispatcher)) -> ModuleAdapterService:
    return ModuleAdapterService(dispatcher)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _run_engine is not None:
        _run_engine.shutdown(wait=False)


app = FastAPI(title="Agent Router Service", version="1.0", lifespan=lifespan)


# Agents
@app.post("/agents", response_model=AgentRead)
def create_agent(request: AgentCreate, db: Session = Depends(get_db)):
    """Create an agent with its capabilities."""
    return AgentService.create_agent(db, request)


@app.get("/agents", response_model=List[AgentRead])
def get_agents(workspace_id: str, user_id: Optional[str] = None, db: Session = Depends(get_db)):
    """Agents of a workspace, or only those a user created when user_id is given."""
    if user_id:
        return AgentService.get_user_agents(db, user_id, workspace_id)
    return AgentService.get_agents(db, workspace_id)


@app.get("/agents/{agent_id}", response_model=AgentRead)
def get_agent(agent_id: str, db: Session = Depends(get_db)):
    try:
        return AgentService.get_agent(db, agent_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.patch("/agents/{agent_id}", response_model=AgentRead)
def update_agent(agent_id: str, request: AgentUpdate, db: Session = Depends(get_db)):
    """Update an agent; a capabilities list replaces the current one."""
    try:
        return AgentService.update_agent(db, agent_id, request)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.delete("/agents/{agent_id}")
def delete_agent(agent_id: str, db: Session = Depends(get_db)):
    try:
        AgentService.delete_agent(db, agent_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"agent_id": agent_id, "status": "deleted"}


@app.post("/agents/{agent_id}/runs", response_model=RunRead)
def run_agent(agent_id: str, request: AgentRunCreate, wait: bool = False, timeout: Optional[float] = None,
              db: Session = Depends(get_db), run_engine: RunEngine = Depends(get_run_engine)):
    """
    Run one agent directly with the given input.

    Returns the run as stored when the call returns; with wait, after it reaches
    a terminal state or the timeout expires.
    """
    try:
        handle = run_engine.start_run(db, agent_id, request.input)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if wait:
        try:
            return handle.wait(timeout)
        except FutureTimeoutError:
            logger.warning(f"Run {handle.run_id} still pending after {timeout}s")
    return RunEngine.get_run(db, handle.run_id)


@app.get("/agents/{agent_id}/runs", response_model=List[RunRead])
def list_agent_runs(agent_id: str, limit: int = 10, db: Session = Depends(get_db)):
    return RunEngine.list_runs(db, agent_id, limit=limit)


# Teams
@app.post("/teams", response_model=TeamRead)
def create_team(request: TeamCreate, db: Session = Depends(get_db)):
    return AgentService.create_team(db, request)


@app.get("/teams", response_model=List[TeamRead])
def get_teams(workspace_id: str, db: Session = Depends(get_db)):
    return AgentService.get_teams(db, workspace_id)


@app.post("/teams/{team_id}/members", response_model=TeamMemberRead)
def add_team_member(team_id: str, request: TeamMemberCreate, db: Session = Depends(get_db)):
    try:
        return AgentService.add_agent_to_team(db, team_id, request.agent_id, request.role)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.delete("/teams/{team_id}/members/{agent_id}")
def remove_team_member(team_id: str, agent_id: str, db: Session = Depends(get_db)):
    removed = AgentService.remove_agent_from_team(db, team_id, agent_id)
    return {"team_id": team_id, "agent_id": agent_id, "removed": removed}


@app.delete("/teams/{team_id}")
def delete_team(team_id: str, db: Session = Depends(get_db)):
    try:
        AgentService.delete_team(db, team_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"team_id": team_id, "status": "deleted"}


# Module assignments
@app.post("/assignments", response_model=AssignmentRead)
def assign_agent_to_module(request: AssignmentCreate, db: Session = Depends(get_db)):
    """
    Bind an agent or a team to a module.

    - Exactly one of agent_id / team_id
    - Higher priority wins when several assignments qualify
    """
    try:
        return AssignmentService.assign_agent_to_module(
            db,
            request.agent_id,
            request.team_id,
            request.module_type,
            request.module_id,
            request.priority,
            request.capabilities,
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.delete("/assignments/{assignment_id}")
def remove_agent_from_module(assignment_id: str, db: Session = Depends(get_db)):
    """Soft-deactivate an assignment; its history is kept."""
    try:
        AssignmentService.remove_agent_from_module(db, assignment_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"assignment_id": assignment_id, "status": "inactive"}


@app.get("/modules/{module_type}/assignments", response_model=List[AssignmentRead])
def get_agents_for_module(module_type: ModuleType, module_id: Optional[str] = None, db: Session = Depends(get_db)):
    return AssignmentService.get_agents_for_module(db, module_type, module_id)


@app.get("/modules/{module_type}/candidates", response_model=List[Candidate])
def find_suitable_agents(module_type: ModuleType, workspace_id: str,
                         capabilities: List[str] = Query(default=[]), db: Session = Depends(get_db)):
    """Ranked agents and teams eligible for a module task."""
    return CandidateResolver.find_suitable_agents(db, module_type, capabilities, workspace_id)


@app.post("/modules/{module_type}/tasks", response_model=ModuleTaskDefinitionRead)
def define_module_task(module_type: ModuleType, request: ModuleTaskDefinitionCreate, db: Session = Depends(get_db)):
    if request.module_type != module_type:
        raise HTTPException(status_code=400, detail="Module type in path and body differ")
    return AssignmentService.define_module_task(
        db, request.name, request.description, module_type, request.required_capabilities, request.is_system,
    )


@app.get("/modules/{module_type}/tasks", response_model=List[ModuleTaskDefinitionRead])
def get_module_tasks(module_type: ModuleType, db: Session = Depends(get_db)):
    return AssignmentService.get_module_tasks(db, module_type)


# Task execution
@app.post("/tasks/execute", response_model=TaskResult)
def execute_task(request: TaskRequest, wait: bool = False, timeout: Optional[float] = None,
                 db: Session = Depends(get_db), dispatcher: TaskDispatcher = Depends(get_dispatcher)):
    """
    Route a task to the best-qualified agent or team.

    Always answers 200; a failed dispatch is reported in the result body.
    """
    return dispatcher.execute_task(db, request, wait=wait, timeout=timeout)


@app.get("/runs/{run_id}", response_model=RunRead)
def get_run(run_id: str, db: Session = Depends(get_db)):
    try:
        return RunEngine.get_run(db, run_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


# Module adapters
@app.post("/emails/{email_id}/response", response_model=TaskResult)
def generate_email_response(email_id: str, request: AdapterRequest, db: Session = Depends(get_db),
                            adapters: ModuleAdapterService = Depends(get_adapters)):
    try:
        return adapters.generate_email_response(
            db, email_id, request.user_id, request.workspace_id, request.preferred_agent_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/emails/{email_id}/analysis", response_model=TaskResult)
def analyze_email(email_id: str, request: AdapterRequest, db: Session = Depends(get_db),
                  adapters: ModuleAdapterService = Depends(get_adapters)):
    try:
        return adapters.analyze_email(db, email_id, request.user_id, request.workspace_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/contacts/{contact_id}/qualification", response_model=TaskResult)
def qualify_lead(contact_id: str, request: AdapterRequest, db: Session = Depends(get_db),
                 adapters: ModuleAdapterService = Depends(get_adapters)):
    try:
        return adapters.qualify_lead(db, contact_id, request.user_id, request.workspace_id, request.additional_info)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


# Health check endpoint
@app.get("/health")
def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
