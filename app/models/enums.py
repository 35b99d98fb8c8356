"""Enumeration types and transition tables for the full diagnostic."""
from enum import Enum
from typing import Optional


class AssessmentStatus(str, Enum):
    """Lifecycle states of a full assessment."""
    DRAFT = "DRAFT"  # answers mutable
    SUBMITTED = "SUBMITTED"  # scores/findings exist, plan open
    CLOSED = "CLOSED"  # every plan action DONE or DROPPED


class AssessmentEvent(str, Enum):
    SUBMIT = "submit"
    CLOSE = "close"
    NEW_CYCLE = "new_cycle"


class ProcessKey(str, Enum):
    """The four diagnosed business processes."""
    COMERCIAL = "COMERCIAL"
    OPERACOES = "OPERACOES"
    ADM_FIN = "ADM_FIN"
    GESTAO = "GESTAO"


class Segment(str, Enum):
    COMERCIO = "C"
    INDUSTRIA = "I"
    SERVICOS = "S"


class Dimension(str, Enum):
    """Maturity dimensions each question is tagged with."""
    EXISTENCIA = "EXISTENCIA"
    ROTINA = "ROTINA"
    DONO = "DONO"
    CONTROLE = "CONTROLE"


# Dimensions whose floor decides between LOW and the score fallback
MINIMUM_DIMENSIONS: tuple[Dimension, ...] = (
    Dimension.ROTINA,
    Dimension.DONO,
    Dimension.CONTROLE,
)


class Band(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class BandRule(str, Enum):
    """Which branch of the banding rule produced a band."""
    FALLBACK_SCORE = "fallback_score"
    MISSING_OR_WEAK_MINIMUM = "missing_or_weak_minimum"
    ALL_MINIMUM_STRONG = "all_minimum_strong"
    INTERMEDIATE = "intermediate"


# Ranking order for typical_impact_band (best first)
BAND_BEST_FIRST: dict[str, int] = {
    Band.HIGH.value: 0,
    Band.MEDIUM.value: 1,
    Band.LOW.value: 2,
}
UNKNOWN_BAND_RANK = 9


class GapStatus(str, Enum):
    CAUSE_PENDING = "CAUSE_PENDING"
    CAUSE_CLASSIFIED = "CAUSE_CLASSIFIED"


class Likert(str, Enum):
    """Five-point agreement scale used by the cause questionnaire."""
    DISCORDO_PLENAMENTE = "DISCORDO_PLENAMENTE"
    DISCORDO = "DISCORDO"
    NEUTRO = "NEUTRO"
    CONCORDO = "CONCORDO"
    CONCORDO_PLENAMENTE = "CONCORDO_PLENAMENTE"


LIKERT_LABELS: dict[Likert, str] = {
    Likert.DISCORDO_PLENAMENTE: "Discordo plenamente",
    Likert.DISCORDO: "Discordo",
    Likert.NEUTRO: "Neutro",
    Likert.CONCORDO: "Concordo",
    Likert.CONCORDO_PLENAMENTE: "Concordo plenamente",
}


class FindingType(str, Enum):
    VAZAMENTO = "VAZAMENTO"  # weakness / leak
    ALAVANCA = "ALAVANCA"  # lever


class ActionStatus(str, Enum):
    """Execution status of a selected plan action."""
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    DROPPED = "DROPPED"


TERMINAL_ACTION_STATUSES: frozenset[ActionStatus] = frozenset(
    {ActionStatus.DONE, ActionStatus.DROPPED}
)


class ValueEvent(str, Enum):
    CAUSE_CLASSIFIED = "CAUSE_CLASSIFIED"
    PLAN_CREATED = "PLAN_CREATED"
    GAIN_DECLARED = "GAIN_DECLARED"


# Valid action status transitions (re-setting the current status is a no-op)
ACTION_STATUS_TRANSITIONS: dict[ActionStatus, list[ActionStatus]] = {
    ActionStatus.NOT_STARTED: [
        ActionStatus.IN_PROGRESS,
        ActionStatus.DONE,
        ActionStatus.DROPPED,
    ],
    ActionStatus.IN_PROGRESS: [ActionStatus.DONE, ActionStatus.DROPPED],
    ActionStatus.DONE: [],
    ActionStatus.DROPPED: [],
}


# (from-state, event) -> to-state
ASSESSMENT_TRANSITIONS: dict[tuple[AssessmentStatus, AssessmentEvent], AssessmentStatus] = {
    (AssessmentStatus.DRAFT, AssessmentEvent.SUBMIT): AssessmentStatus.SUBMITTED,
    (AssessmentStatus.SUBMITTED, AssessmentEvent.CLOSE): AssessmentStatus.CLOSED,
    (AssessmentStatus.CLOSED, AssessmentEvent.NEW_CYCLE): AssessmentStatus.SUBMITTED,
}

# Reject code per (from-state, event) when no transition exists
ASSESSMENT_TRANSITION_REJECTS: dict[tuple[AssessmentStatus, AssessmentEvent], str] = {
    (AssessmentStatus.SUBMITTED, AssessmentEvent.SUBMIT): "DIAG_ALREADY_SUBMITTED",
    (AssessmentStatus.CLOSED, AssessmentEvent.SUBMIT): "DIAG_ALREADY_SUBMITTED",
    (AssessmentStatus.DRAFT, AssessmentEvent.CLOSE): "DIAG_NOT_READY",
    (AssessmentStatus.CLOSED, AssessmentEvent.CLOSE): "CYCLE_CLOSED",
    (AssessmentStatus.DRAFT, AssessmentEvent.NEW_CYCLE): "CYCLE_NOT_CLOSED",
    (AssessmentStatus.SUBMITTED, AssessmentEvent.NEW_CYCLE): "CYCLE_NOT_CLOSED",
}


def next_assessment_status(
    current: AssessmentStatus, event: AssessmentEvent
) -> tuple[Optional[AssessmentStatus], Optional[str]]:
    """Look up a transition; returns ``(to_state, None)`` or ``(None, reject_code)``."""
    target = ASSESSMENT_TRANSITIONS.get((current, event))
    if target is not None:
        return target, None
    return None, ASSESSMENT_TRANSITION_REJECTS.get((current, event), "INVALID_TRANSITION")


SEGMENT_ALIASES: dict[str, Segment] = {
    "C": Segment.COMERCIO,
    "I": Segment.INDUSTRIA,
    "S": Segment.SERVICOS,
    "COMERCIO": Segment.COMERCIO,
    "INDUSTRIA": Segment.INDUSTRIA,
    "SERVICOS": Segment.SERVICOS,
}
