"""Pure dataclasses and enums for the design council. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Role(str, Enum):
    # planning agents, dispatched by the scheduler
    INTENT = "intent"
    SCHEMA = "schema"
    UI = "ui"
    WORKFLOW = "workflow"
    # design dialogue participants
    UX_DESIGNER = "ux-designer"
    INTERACTION_DESIGNER = "interaction-designer"
    COMPONENT_ARCHITECT = "component-architect"
    DATA_ARCHITECT = "data-architect"
    # support
    ARCHITECT = "architect"
    FIXER = "fixer"


PLANNING_ROLES: tuple[Role, ...] = (Role.INTENT, Role.SCHEMA, Role.UI, Role.WORKFLOW)

DESIGN_ROLES: tuple[Role, ...] = (
    Role.UX_DESIGNER,
    Role.INTERACTION_DESIGNER,
    Role.COMPONENT_ARCHITECT,
    Role.DATA_ARCHITECT,
)


@dataclass
class AgentReply:
    content: str
    structured_output: dict[str, Any] | None = None
    confidence: float = 0.8       # always within [0, 1]


@dataclass(frozen=True)
class Action:
    id: str
    role: Role
    action: str                   # "propose", "refine", "extract", ...
    priority: int = 5             # higher runs first within a wave
    depends_on: frozenset[str] = frozenset()
    estimated_ms: int = 2000
    context: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass
class ActionResult:
    action_id: str
    role: Role
    success: bool
    output: AgentReply | None = None
    error: str | None = None
    duration_sec: float = 0.0


@dataclass
class DesignState:
    field_count: int = 0
    has_description: bool = False
    relationship_count: int = 0
    computed_field_count: int = 0
    has_layout: bool = False
    component_count: int = 0
    responsive_layout: bool = False
    workflow_count: int = 0


@dataclass(frozen=True)
class ReadinessScore:
    schema: int = 0
    ui: int = 0
    workflow: int = 0
    overall: int = 0


class SessionStatus(str, Enum):
    ACTIVE = "active"
    CONSENSUS_REACHED = "consensus-reached"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class Contribution:
    id: str
    role: Role
    turn: int
    content: str
    structured_output: dict[str, Any] | None
    confidence: float
    timestamp: datetime = field(default_factory=datetime.now)
    failed: bool = False


@dataclass
class Consensus:
    artifacts: dict[Role, Any]
    sources: dict[Role, int | None]   # turn the artifact came from, None when defaulted
    summary: str
    agreed_by: list[Role]
    forced: bool = False


@dataclass
class DesignSession:
    id: str
    request: str
    max_turns: int
    status: SessionStatus = SessionStatus.ACTIVE
    turn: int = 0
    contributions: list[Contribution] = field(default_factory=list)
    consensus: Consensus | None = None
    started_at: datetime = field(default_factory=datetime.now)


@dataclass
class SessionOutcome:
    session: DesignSession
    consensus: Consensus


class ErrorCategory(str, Enum):
    SYNTAX = "syntax"
    SEMANTIC = "semantic"
    ENVIRONMENT = "environment"
    CAPABILITY = "capability"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ErrorAnalysis:
    message: str
    category: ErrorCategory
    root_cause: str
    suggestion: str
    line: int | None = None
    column: int | None = None


class RetryStrategy(str, Enum):
    TARGETED_FIX = "targeted_fix"
    INCREMENTAL = "incremental"
    FULL_REGENERATION = "full_regeneration"


@dataclass
class ContextWindow:
    snippet: str
    start_line: int
    end_line: int
    error_line: int
    error_column: int | None = None
    relevant_imports: list[str] = field(default_factory=list)
    affected_function: str | None = None
    estimated_tokens: int = 0


@dataclass
class FixResult:
    success: bool
    fixed_code: str
    change_description: str
    strategy: RetryStrategy
    estimated_tokens: int = 0
    error: str | None = None


@dataclass
class Iteration:
    number: int
    code: str
    error: str
    analysis: ErrorAnalysis
    strategy: RetryStrategy
    context: ContextWindow | None = None
    estimated_tokens: int = 0
    fix_result: FixResult | None = None
    timestamp: datetime = field(default_factory=datetime.now)


class FeedbackStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class FeedbackSession:
    id: str
    original_prompt: str
    max_iterations: int
    iterations: list[Iteration] = field(default_factory=list)
    status: FeedbackStatus = FeedbackStatus.ACTIVE
    total_tokens: int = 0
    current_code: str | None = None


@dataclass
class TokenUsage:
    total_tokens: int
    avg_tokens_per_iteration: int
    iteration_count: int


@dataclass
class FeedbackSummary:
    status: FeedbackStatus
    attempts: int
    max_attempts: int
    tokens_used: int
    last_error: str | None = None        # root cause of the latest iteration
    last_strategy: RetryStrategy | None = None
