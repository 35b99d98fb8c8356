"""Diagnostic pipelines: submit, root cause, suggestions, plan and snapshots."""
from app.pipelines.findings_refresh import FindingsRefresher
from app.pipelines.snapshot_service import SnapshotService
from app.pipelines.cause_classification import CauseClassificationService
from app.pipelines.submit_pipeline import DiagnosticSubmitPipeline, SubmitOutcome
from app.pipelines.action_suggestions import ActionSuggestionService, SuggestionPool
from app.pipelines.plan_lifecycle import PlanLifecycle

__all__ = [
    "FindingsRefresher",
    "SnapshotService",
    "CauseClassificationService",
    "DiagnosticSubmitPipeline",
    "SubmitOutcome",
    "ActionSuggestionService",
    "SuggestionPool",
    "PlanLifecycle",
]
