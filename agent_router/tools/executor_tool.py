"""
Executor collaborators that actually carry out an agent run.

The run engine treats these as opaque: ``invoke`` receives the agent profile
and the execution payload and either returns an ExecutionOutput or raises.
"""
from typing import Any, Dict, Optional
import logging
import random
import time

import requests
from pydantic import BaseModel

from agent_router.config import settings
from agent_router.errors import ExecutorError

logger = logging.getLogger(__name__)


class ExecutionOutput(BaseModel):
    """Structured output of one execution plus optional usage metrics."""
    output: Any
    metrics: Optional[Dict[str, Any]] = None


class AgentExecutor:
    """Interface for executor backends."""

    def invoke(self, agent: Dict[str, Any], payload: Dict[str, Any]) -> ExecutionOutput:
        raise NotImplementedError


class SimulatedExecutor(AgentExecutor):
    """Stand-in for a language-model call: waits a fixed delay, then succeeds with a fixed probability."""

    def __init__(self, delay: float = None, success_rate: float = None, rng: random.Random = None):
        self.delay = settings.SIMULATED_DELAY_SECONDS if delay is None else delay
        self.success_rate = settings.SIMULATED_SUCCESS_RATE if success_rate is None else success_rate
        self.rng = rng or random.Random()

    def invoke(self, agent: Dict[str, Any], payload: Dict[str, Any]) -> ExecutionOutput:
        if self.delay > 0:
            time.sleep(self.delay)

        if self.rng.random() >= self.success_rate:
            raise ExecutorError("Simulated error during agent execution.")

        return ExecutionOutput(
            output={"result": "This is a simulated response from the agent."},
            metrics={
                "latency_ms": self.rng.randint(100, 599),
                "tokens_used": self.rng.randint(100, 1099),
            },
        )


class HttpExecutor(AgentExecutor):
    """Calls a remote executor endpoint that wraps the language-model API."""

    def __init__(self, url: str = None, timeout: float = None, http: requests.Session = None):
        self.url = url or settings.EXECUTOR_URL
        self.timeout = settings.EXECUTOR_TIMEOUT if timeout is None else timeout
        self.http = http or requests.Session()

    def invoke(self, agent: Dict[str, Any], payload: Dict[str, Any]) -> ExecutionOutput:
        try:
            res = self.http.post(self.url, json={"agent": agent, "input": payload}, timeout=self.timeout)
            res.raise_for_status()
            body = res.json()
        except requests.RequestException as e:
            raise ExecutorError(f"Executor request failed: {e}") from e
        except ValueError as e:
            raise ExecutorError(f"Executor returned invalid JSON: {e}") from e

        if not isinstance(body, dict) or body.get("error"):
            raise ExecutorError(str(body.get("error")) if isinstance(body, dict) else "Malformed executor response")
        if body.get("output") is None:
            raise ExecutorError("Executor returned no output")

        return ExecutionOutput(output=body["output"], metrics=body.get("metrics"))


def build_executor(backend: str = None) -> AgentExecutor:
    """Create the executor configured by EXECUTOR_BACKEND."""
    backend = (backend or settings.EXECUTOR_BACKEND).lower()
    if backend == "http":
        return HttpExecutor()
    if backend == "simulated":
        return SimulatedExecutor()
    raise ValueError(f"Unknown executor backend: {backend}")
