"""Data models for the Inquiry Router system.

This module defines the core data structures used throughout the inquiry
router. All models use Pydantic for type safety, validation, and
serialization. They describe the conversation state that flows between the
classifier, the router and the external action handlers, as well as the
diagnostic trouble code (DTC) records exchanged with the lookup collaborator.
"""

from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class ConversationCategory(str, Enum):
    """Closed set of conversation categories used for routing decisions."""

    GENERAL_INQUIRY = "GENERAL_INQUIRY"
    VEHICLE_DIAGNOSTICS = "VEHICLE_DIAGNOSTICS"
    MAINTENANCE_ADVICE = "MAINTENANCE_ADVICE"
    REPAIR_GUIDANCE = "REPAIR_GUIDANCE"
    PARTS_INFORMATION = "PARTS_INFORMATION"
    WARRANTY_SERVICE = "WARRANTY_SERVICE"
    PRICING_INFORMATION = "PRICING_INFORMATION"
    OTHER = "OTHER"


Level = Literal["high", "medium", "low"]
Severity = Literal["critical", "severe", "moderate", "informational", "unknown"]


class ConversationMessage(BaseModel):
    """A single message in a conversation thread.

    Attributes:
        text: Raw message text as typed by the user.
        user: Author of the message (default: "customer").
    """

    text: str
    user: str = "customer"


class RoutingEvaluation(BaseModel):
    """Routing decision produced by the classifier for one inbound message.

    Attributes:
        category: Winning conversation category.
        urgency: Urgency detected in the current message.
        complexity: Complexity estimated from the current message.
        explicit_routing: Operator-requested destination, overrides category routing.
        suggested_actions: Ordered follow-up action identifiers.
        confidence: Routing confidence (0.0-1.0), informational only.
    """

    category: ConversationCategory = ConversationCategory.GENERAL_INQUIRY
    urgency: Level = "medium"
    complexity: Level = "medium"
    explicit_routing: Optional[str] = None
    suggested_actions: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class ClassificationOutcome(BaseModel):
    """Result of a classification attempt.

    Either carries an evaluation, or an error description with a zero score.
    Callers check ``ok`` instead of catching exceptions.
    """

    score: float
    reason: str
    evaluation: Optional[RoutingEvaluation] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.evaluation is not None


class RoutingResult(BaseModel):
    """Dispatch decision produced by the router.

    Attributes:
        routed_to: Destination system or explicit route token.
        assigned_agent: Specialist role, only for escalated inquiries.
        priority_level: Priority carried forward from urgency (or forced high).
        estimated_response_time: Human readable response estimate.
        suggested_actions: Actions copied from the evaluation plus additions.
        tracking_id: Unique inquiry reference number.
    """

    routed_to: str = "general_assistant"
    assigned_agent: Optional[str] = None
    priority_level: Level = "medium"
    estimated_response_time: Optional[str] = None
    suggested_actions: List[str] = Field(default_factory=list)
    tracking_id: str


class ConversationThread(BaseModel):
    """A tracked inquiry, created when a message is routed."""

    id: str
    category: str
    urgency: Level = "medium"
    start_time: str
    assigned_to: str
    status: Literal["active", "pending", "resolved", "closed"] = "active"
    last_update_time: Optional[str] = None
    summary: Optional[str] = None


class Vehicle(BaseModel):
    """Vehicle the customer is asking about, when known."""

    year: Union[int, str]
    make: str
    model: str
    engine: Optional[str] = None
    transmission: Optional[str] = None


class DTCInfo(BaseModel):
    """A diagnostic trouble code detected in a message."""

    code: str
    system: str = "Unknown System"
    severity: Severity = "unknown"
    description: Optional[str] = None


class DtcEvaluation(BaseModel):
    """DTC evaluator output stored in conversation state."""

    dtc_codes: List[DTCInfo] = Field(default_factory=list)
    needs_additional_info: bool = False
    suggested_actions: List[str] = Field(default_factory=list)


class DTCRecord(BaseModel):
    """Reference information about a diagnostic trouble code.

    Attributes:
        code: The DTC, e.g. "P0420".
        description: Official code description.
        possible_causes: Likely root causes.
        symptoms: Symptoms commonly reported with this code.
        fixes: Recommended repair steps.
        severity: Severity class of the code.
        system: Vehicle system the code belongs to.
        vehicle_specific: Whether the record was resolved for a specific vehicle.
    """

    code: str
    description: str
    possible_causes: List[str] = Field(default_factory=list)
    symptoms: List[str] = Field(default_factory=list)
    fixes: List[str] = Field(default_factory=list)
    severity: Severity = "unknown"
    system: str = "Unknown System"
    vehicle_specific: Optional[bool] = None


class DtcLookupRecord(BaseModel):
    """Last DTC lookup stored in conversation state."""

    codes: List[str]
    timestamp: str
    result: str


class ConversationState(BaseModel):
    """Per-conversation mutable bag shared with external action handlers.

    The router and the DTC helpers never mutate an instance in place; they
    return an updated copy.
    """

    conversation_id: str = "default"
    conversation_history: List[ConversationMessage] = Field(default_factory=list)
    last_routing_evaluation: Optional[RoutingEvaluation] = None
    conversation_routing: Optional[RoutingResult] = None
    active_conversation_threads: List[ConversationThread] = Field(default_factory=list)
    last_routing_timestamp: Optional[str] = None
    last_dtc_evaluation: Optional[DtcEvaluation] = None
    last_dtc_lookup: Optional[DtcLookupRecord] = None
    dtc_database: Dict[str, str] = Field(default_factory=dict)
    current_vehicle: Optional[Vehicle] = None


class RoutingOutcome(BaseModel):
    """Result of a routing attempt: reply text plus the updated state."""

    output: str
    state: ConversationState
    result: Optional[RoutingResult] = None
    error: Optional[str] = None


class AssistantReply(BaseModel):
    """Everything produced while handling one inbound message."""

    output: str
    state: ConversationState
    classification: ClassificationOutcome
    routing: Optional[RoutingResult] = None
    dtc: Optional[DtcEvaluation] = None


class DtcOutcome(BaseModel):
    """Result of scanning a message for diagnostic trouble codes."""

    score: float
    reason: str
    evaluation: Optional[DtcEvaluation] = None


class DtcLookupOutcome(BaseModel):
    """Result of looking up the codes found by the DTC evaluator."""

    output: str
    state: ConversationState
    records: List[DTCRecord] = Field(default_factory=list)
    error: Optional[str] = None
