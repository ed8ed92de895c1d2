"""Pydantic models for the personalization matching engine.

Rule model:
  RuleGroup { logic: AND | OR, rules: [ConditionRule | RuleGroup, ...] }

Stored documents carry no explicit node type, so rule nodes are parsed as a
tagged union: a node with both `logic` and `rules` is a group, anything else
is a condition. Evaluation dispatches on the parsed type.

Content documents (action steps, advice, stories) arrive from storage in
camelCase; every content model also accepts snake_case field names.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# Enums
# =============================================================================


class Flow(str, Enum):
    """Conversation intent. Scopes both applicability and retrieval."""

    BUY = "buy"
    SELL = "sell"
    BROWSE = "browse"


class MatchOperator(str, Enum):
    """Operators understood by the rule evaluator.

    Stored rules keep their operator as a raw string; anything outside this
    set evaluates to False.
    """

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    INCLUDES = "includes"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"


class LogicOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class ContentKind(str, Enum):
    """What an authored content item is used for."""

    TIP = "tip"
    STORY = "story"
    ACTION_STEP = "action_step"


class ContentSource(str, Enum):
    """Which retriever ranked a candidate."""

    RULES = "rules"  # score = weighted rule match
    SEMANTIC = "semantic"  # score = vector similarity


def normalize_flow(flow: str | Flow | None) -> Flow | None:
    """Map caller input onto a known flow. Unknown values mean "no flow filter"."""
    if flow is None:
        return None
    if isinstance(flow, Flow):
        return flow
    try:
        return Flow(str(flow).strip().lower())
    except ValueError:
        return None


def normalize_answers(answers: Any) -> dict[str, str]:
    """Flatten answers into the str -> str map the rule engine reads.

    Anything that is not a mapping (list, string, number) means no answers.
    """
    if not answers or not isinstance(answers, Mapping):
        return {}
    return {str(k): str(v) for k, v in answers.items() if v is not None}


# =============================================================================
# Rule model
# =============================================================================


class ConditionRule(BaseModel):
    """A single leaf condition against one flat answer key."""

    field: str = ""
    operator: str = ""
    value: str | list[str] = ""
    weight: float = 1.0

    @field_validator("operator", mode="before")
    @classmethod
    def _operator_as_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("value", mode="before")
    @classmethod
    def _value_as_text(cls, v: Any) -> str | list[str]:
        if v is None:
            return ""
        if isinstance(v, (list, tuple)):
            return [str(item) for item in v]
        return str(v)

    @field_validator("weight", mode="before")
    @classmethod
    def _positive_weight(cls, v: Any) -> float:
        # Missing, zero, negative or garbage weights fall back to 1
        try:
            weight = float(v)
        except (TypeError, ValueError):
            return 1.0
        return weight if weight > 0 else 1.0

    def describe(self) -> str:
        """Human-readable form used in matched_conditions."""
        if isinstance(self.value, list):
            shown = "[" + ", ".join(self.value) + "]"
        else:
            shown = self.value
        return f"{self.field} {self.operator} {shown}"


class RuleGroup(BaseModel):
    """AND/OR combination of conditions and nested groups."""

    logic: LogicOperator
    rules: list["RuleNode"] = Field(default_factory=list)

    @field_validator("logic", mode="before")
    @classmethod
    def _upper_logic(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("rules", mode="before")
    @classmethod
    def _rules_list(cls, v: Any) -> Any:
        return [] if v is None else v


def _rule_node_kind(node: Any) -> str:
    if isinstance(node, dict):
        return "group" if "logic" in node and "rules" in node else "condition"
    return "group" if isinstance(node, RuleGroup) else "condition"


RuleNode = Annotated[
    Union[
        Annotated[ConditionRule, Tag("condition")],
        Annotated[RuleGroup, Tag("group")],
    ],
    Discriminator(_rule_node_kind),
]

RuleGroup.model_rebuild()


class ApplicableWhen(BaseModel):
    """Declarative applicability attached to every content item.

    Top-level rule groups are alternatives (OR), not cumulative.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    flow: list[str] | None = None
    rule_groups: list[RuleGroup] | None = None
    min_match_score: float | None = None

    @field_validator("flow", mode="before")
    @classmethod
    def _flow_list(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v

    def allows_flow(self, flow: Flow | None) -> bool:
        """Hard flow filter. No declared flows, or no flow requested, passes."""
        if flow is None or not self.flow:
            return True
        return flow.value in {f.lower() for f in self.flow}


# =============================================================================
# Content
# =============================================================================


class Candidate(BaseModel):
    """An authored content item eligible for matching."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    title: str = ""
    body: str = ""
    tags: list[str] = Field(default_factory=list)
    applicable_when: ApplicableWhen = Field(default_factory=ApplicableWhen)
    kind: str | None = None
    phases: list[str] = Field(default_factory=list)
    category: str | None = None
    default_priority: int | None = None
    default_urgency: str | None = None
    benefit: str | None = None
    resource_link: str | None = None
    embedding_ref: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_keys(cls, data: Any) -> Any:
        # Action steps were stored with stepId/description, advice with advice
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("id") is None and data.get("stepId") is not None:
            data["id"] = data["stepId"]
        if not data.get("body"):
            data["body"] = data.get("description") or data.get("advice") or ""
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, v: Any) -> Any:
        return v if v is None or isinstance(v, str) else str(v)

    @field_validator("tags", "phases", mode="before")
    @classmethod
    def _list_or_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("applicable_when", mode="before")
    @classmethod
    def _applicability_or_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def is_story(self) -> bool:
        return (self.kind or "").lower() == ContentKind.STORY.value


# =============================================================================
# Results
# =============================================================================


class MatchResult(BaseModel):
    """Outcome of scoring one candidate's rule groups against answers."""

    candidate_id: str = ""
    score: float = 0.0
    matched: bool = False  # score > 0
    applicable: bool = False  # passes rule gate and minMatchScore threshold
    matched_conditions: list[str] = Field(default_factory=list)
    total_possible_weight: float = 0.0  # leaf weight budget of the winning group
    reason: str = ""


class RankedCandidate(BaseModel):
    """A candidate annotated with the score its retriever ranked it by."""

    candidate: Candidate
    score: float
    matched_conditions: list[str] = Field(default_factory=list)
    source: ContentSource = ContentSource.RULES


class Phase(BaseModel):
    id: str
    order: int = 0
    name: str | None = None


class PhaseInsight(BaseModel):
    """At most one story and one tip for a phase. Computed per request."""

    story: RankedCandidate | None = None
    tip: str | None = None


class RelevantContentCount(BaseModel):
    """How much content relates to a search, for UI affirmation only.

    When is_estimate is True the count is a heuristic, not a retrieval result.
    """

    count: int
    is_estimate: bool = False
    search: str | None = None


# =============================================================================
# Request / response
# =============================================================================


class PersonalizationRequest(BaseModel):
    """Input for one personalization run."""

    agent_id: str | None = None
    flow: str | None = None
    answers: dict[str, str] = Field(default_factory=dict)
    limit: int | None = None  # action steps
    top_k: int | None = None  # advice
    query_text: str | None = None
    phases: list[Phase] | None = None  # overrides stored phase config
    story_mappings: dict[str, list[str]] | None = None  # overrides stored mappings
    request_id: str | None = None

    @field_validator("answers", mode="before")
    @classmethod
    def _flat_answers(cls, v: Any) -> dict[str, str]:
        return normalize_answers(v)


class PersonalizationResult(BaseModel):
    """Ranked content plus per-phase insights handed to content generation."""

    flow: Flow | None = None
    action_steps: list[RankedCandidate] = Field(default_factory=list)
    advice: list[RankedCandidate] = Field(default_factory=list)
    phase_insights: dict[str, PhaseInsight] = Field(default_factory=dict)
