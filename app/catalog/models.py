"""Typed views over the versioned catalog blobs.

The catalog JSON evolves by hand, so older or malformed shapes are common
(``done_when`` as a single string, ``findings_copy`` missing, unknown dimensions). Every
free-form field goes through one of the ``normalize_*`` helpers below: a known
shape is coerced, anything else becomes empty. Call sites never re-check shape.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import Band, Dimension, FindingType, Likert


# ── Normalizers ──────────────────────────────────────────────────────────────

def normalize_str_list(value: Any) -> list[str]:
    """List of non-empty strings; a bare string becomes a one-item list."""
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if isinstance(v, str) and v.strip()]
    return []


def normalize_dict(value: Any) -> dict:
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value if isinstance(value, dict) else {}


def normalize_enum(value: Any, enum_cls: type) -> Optional[Any]:
    """Enum member for a known value, ``None`` otherwise."""
    try:
        return enum_cls(value)
    except ValueError:
        return None


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


# ── Full catalog ─────────────────────────────────────────────────────────────

class CatalogQuestion(_Frozen):
    question_key: str
    dimension: Optional[Dimension] = None
    text: str = ""

    @field_validator("dimension", mode="before")
    @classmethod
    def _dimension(cls, v: Any) -> Optional[Dimension]:
        return normalize_enum(v, Dimension)


class FindingCopy(_Frozen):
    o_que_esta_acontecendo: str = ""
    custo_de_nao_agir: str = ""
    o_que_muda_em_30_dias: str = ""


class CatalogProcess(_Frozen):
    process_key: str
    label: str = ""
    protects_dimension: str = "RISCO"
    typical_impact_band: str = Band.MEDIUM.value
    typical_impact_text: str = ""
    quick_win: bool = False
    segments: tuple[str, ...] = ("C", "I", "S")
    questions: tuple[CatalogQuestion, ...] = ()
    findings_copy: dict[str, FindingCopy] = Field(default_factory=dict)

    @field_validator("segments", mode="before")
    @classmethod
    def _segments(cls, v: Any) -> list[str]:
        return normalize_str_list(v) or ["C", "I", "S"]

    @field_validator("findings_copy", mode="before")
    @classmethod
    def _findings_copy(cls, v: Any) -> dict:
        known = {t.value for t in FindingType}
        return {
            k: normalize_dict(body)
            for k, body in normalize_dict(v).items()
            if k in known
        }

    def copy_for(self, finding_type: FindingType) -> FindingCopy:
        return self.findings_copy.get(finding_type.value, FindingCopy())

    @property
    def question_keys(self) -> list[str]:
        return [q.question_key for q in self.questions]

    def question(self, question_key: str) -> Optional[CatalogQuestion]:
        for q in self.questions:
            if q.question_key == question_key:
                return q
        return None


class ActionRecommendation(_Frozen):
    what_is_happening: str = ""
    cost_of_not_acting: str = ""
    change_in_30_days: str = ""


class CatalogAction(_Frozen):
    action_key: str
    process_key: str
    band: Optional[Band] = None  # None = applies to any band
    signals: tuple[str, ...] = ()
    title: str = ""
    recommendation: ActionRecommendation = ActionRecommendation()
    steps: tuple[str, ...] = ()
    owner_suggested: Optional[str] = None
    metric_suggested: Optional[str] = None
    done_when: tuple[str, ...] = ()

    @field_validator("band", mode="before")
    @classmethod
    def _band(cls, v: Any) -> Optional[Band]:
        return normalize_enum(v, Band)

    @field_validator("signals", "steps", "done_when", mode="before")
    @classmethod
    def _str_lists(cls, v: Any) -> list[str]:
        return normalize_str_list(v)

    @field_validator("recommendation", mode="before")
    @classmethod
    def _recommendation(cls, v: Any) -> dict:
        return normalize_dict(v)


class FullCatalog(_Frozen):
    """Processes, questions and actions of one catalog version."""

    version: str
    processes: tuple[CatalogProcess, ...]
    actions: tuple[CatalogAction, ...] = ()

    def process(self, process_key: str) -> Optional[CatalogProcess]:
        for p in self.processes:
            if p.process_key == process_key:
                return p
        return None

    @property
    def process_keys(self) -> list[str]:
        return [p.process_key for p in self.processes]

    def processes_for_segment(self, segment: str) -> list[CatalogProcess]:
        """Processes that apply to a segment; all processes if none match."""
        matching = [p for p in self.processes if segment in p.segments]
        return matching or list(self.processes)

    def actions_for_process(self, process_key: str) -> list[CatalogAction]:
        return [a for a in self.actions if a.process_key == process_key]

    def action(self, action_key: str) -> Optional[CatalogAction]:
        for a in self.actions:
            if a.action_key == action_key:
                return a
        return None


# ── Cause engine catalog ─────────────────────────────────────────────────────

class CauseClass(_Frozen):
    id: str
    label_cliente: str = ""
    mecanismo_primario: str = ""


class CauseQuestion(_Frozen):
    q_id: str
    texto_cliente: str = ""


class CauseWeight(_Frozen):
    q_id: str
    cause_id: str
    map: dict[Likert, int] = Field(default_factory=dict)

    @field_validator("map", mode="before")
    @classmethod
    def _map(cls, v: Any) -> dict:
        return {
            k: pts
            for k, pts in normalize_dict(v).items()
            if normalize_enum(k, Likert) is not None and isinstance(pts, int)
        }


class CauseRules(_Frozen):
    weights: tuple[CauseWeight, ...] = ()
    tie_breaker: tuple[str, ...] = ()

    @field_validator("tie_breaker", mode="before")
    @classmethod
    def _tie_breaker(cls, v: Any) -> list[str]:
        return normalize_str_list(v)


class MechanismAction(_Frozen):
    action_key: str
    cause_id: Optional[str] = None
    titulo_cliente: str = ""
    porque: str = ""
    primeiro_passo_30d: str = ""
    done_when: tuple[str, ...] = ()

    @field_validator("done_when", mode="before")
    @classmethod
    def _done_when(cls, v: Any) -> list[str]:
        return normalize_str_list(v)


class CauseGap(_Frozen):
    gap_id: str
    process_key: str
    titulo_cliente: str = ""
    descricao_cliente: str = ""
    cause_questions: tuple[CauseQuestion, ...] = ()
    rules: CauseRules = CauseRules()
    mechanism_actions: tuple[MechanismAction, ...] = ()

    @field_validator("rules", mode="before")
    @classmethod
    def _rules(cls, v: Any) -> dict:
        return normalize_dict(v)

    @property
    def question_ids(self) -> list[str]:
        return [q.q_id for q in self.cause_questions]

    def question_text(self, q_id: str) -> str:
        for q in self.cause_questions:
            if q.q_id == q_id:
                return q.texto_cliente
        return ""

    def actions_for_cause(self, cause_id: Optional[str]) -> list[MechanismAction]:
        return [a for a in self.mechanism_actions if a.cause_id == cause_id]


class CauseCatalog(_Frozen):
    version: str
    cause_classes: tuple[CauseClass, ...] = ()
    gaps: tuple[CauseGap, ...] = ()

    def gap(self, gap_id: str) -> Optional[CauseGap]:
        for g in self.gaps:
            if g.gap_id == gap_id:
                return g
        return None

    def cause_class(self, cause_id: Optional[str]) -> Optional[CauseClass]:
        for c in self.cause_classes:
            if c.id == cause_id:
                return c
        return None

    def mechanism_action(self, action_key: str) -> Optional[MechanismAction]:
        for g in self.gaps:
            for a in g.mechanism_actions:
                if a.action_key == action_key:
                    return a
        return None
