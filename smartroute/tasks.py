"""Typed task requests and results exchanged with engine callers.

Every request carries a ``kind`` tag. Payloads are validated into one of a
closed set of request models; anything else is an InvalidRequestError that
names the offending fields.
"""

from typing import Annotated, Any, Literal

from pydantic import Field, SerializeAsAny, TypeAdapter, ValidationError

from smartroute.errors import InvalidRequestError
from smartroute.models.base import WireModel
from smartroute.models.market import DecisionCriteria, MarketConditions, RiskAssessment, UserPreferences
from smartroute.models.outcome import ActualResults, ExecutionOutcome
from smartroute.models.route import RouteProposal, RouteSearchParams
from smartroute.models.strategy import ExecutionStrategy


class TaskBase(WireModel):
    request_id: str | None = None


class FindRoutesTask(TaskBase):
    """Static-cost route search."""

    kind: Literal["find-routes"]
    params: RouteSearchParams


class FindLiveQuoteRoutesTask(TaskBase):
    """Route search with live-quote feasibility and cost."""

    kind: Literal["find-live-quote-routes"]
    params: RouteSearchParams


class RefreshFeasibilityTask(TaskBase):
    kind: Literal["refresh-feasibility"]


class AnalyzeGasCurvesTask(TaskBase):
    """Quote a token pair at several amounts to map gas, slippage and depth."""

    kind: Literal["analyze-gas-curves"]
    from_token: str = Field(min_length=1)
    to_token: str = Field(min_length=1)
    amounts: list[Annotated[float, Field(gt=0)]] = Field(min_length=1)
    chain_id: int = 1


class OptimizeStrategyTask(TaskBase):
    kind: Literal["optimize-strategy"]
    route: RouteProposal
    market: MarketConditions = Field(default_factory=MarketConditions)
    preferences: UserPreferences = Field(default_factory=UserPreferences)


class AnalyzeMEVTask(TaskBase):
    kind: Literal["analyze-mev"]
    route: RouteProposal
    market: MarketConditions = Field(default_factory=MarketConditions)


class RecordExecutionResultTask(TaskBase):
    kind: Literal["record-execution-result"]
    strategy_id: str = Field(min_length=1)
    actual: ActualResults


class ConsensusSelectTask(TaskBase):
    kind: Literal["consensus-select"]
    routes: list[RouteProposal]
    assessments: list[RiskAssessment] = Field(default_factory=list)
    strategies: list[ExecutionStrategy] = Field(default_factory=list)
    criteria: DecisionCriteria = Field(default_factory=DecisionCriteria)


TaskRequest = Annotated[
    FindRoutesTask
    | FindLiveQuoteRoutesTask
    | RefreshFeasibilityTask
    | AnalyzeGasCurvesTask
    | OptimizeStrategyTask
    | AnalyzeMEVTask
    | RecordExecutionResultTask
    | ConsensusSelectTask,
    Field(discriminator="kind"),
]

TASK_KINDS = (
    "find-routes",
    "find-live-quote-routes",
    "refresh-feasibility",
    "analyze-gas-curves",
    "optimize-strategy",
    "analyze-mev",
    "record-execution-result",
    "consensus-select",
)

_task_adapter: TypeAdapter[TaskRequest] = TypeAdapter(TaskRequest)


def _field_name(loc: tuple[int | str, ...]) -> str:
    # Discriminated unions prefix nested locations with the tag
    if loc and loc[0] in TASK_KINDS:
        loc = loc[1:]
    return ".".join(str(part) for part in loc) or "kind"


def parse_task(raw: Any) -> TaskRequest:
    """Validate a raw payload into a task request.

    Raises:
        InvalidRequestError: If the payload has an unknown kind or invalid fields
    """
    try:
        return _task_adapter.validate_python(raw)
    except ValidationError as e:
        errors = e.errors()
        fields = sorted({_field_name(err["loc"]) for err in errors})
        if any(err["type"] in ("union_tag_invalid", "union_tag_not_found") for err in errors):
            kind = raw.get("kind") if isinstance(raw, dict) else None
            message = f"Unknown task kind: {kind!r}" if kind is not None else "Missing task kind"
        else:
            message = f"Invalid task payload: {errors[0]['msg']}"
        raise InvalidRequestError(message, fields=fields) from e


class GasCurvePoint(WireModel):
    amount_in: float
    amount_out: float | None = None
    gas: int | None = None
    slippage: float | None = None
    feasible: bool


class LiquidityLimits(WireModel):
    max_successful_amount: float | None = None
    first_failed_amount: float | None = None


class GasCurveAnalysis(WireModel):
    from_token: str
    to_token: str
    chain_id: int
    points: list[GasCurvePoint]
    limits: LiquidityLimits

    @property
    def gas_curve(self) -> list[tuple[float, int]]:
        return [(p.amount_in, p.gas) for p in self.points if p.feasible and p.gas is not None]

    @property
    def slippage_curve(self) -> list[tuple[float, float]]:
        return [(p.amount_in, p.slippage) for p in self.points if p.feasible and p.slippage is not None]


class RecordResult(WireModel):
    strategy_id: str
    recorded: bool
    outcome: ExecutionOutcome | None = None


class TaskResponse(WireModel):
    kind: str
    request_id: str | None = None
    result: SerializeAsAny[WireModel]
