"""Fetcher engine: tracked server state, tolerance policy, lifecycle state machine and poll loop."""

from infofetcher.engine.orchestrator import PollOrchestrator
from infofetcher.engine.state import ServerStateTable, TrackedServerState
from infofetcher.engine.state_machine import FetcherState, FetcherStateMachine, StopReason
from infofetcher.engine.tolerance import FailureTolerance

__all__ = [
    "PollOrchestrator",
    "ServerStateTable",
    "TrackedServerState",
    "FetcherState",
    "FetcherStateMachine",
    "StopReason",
    "FailureTolerance",
]
