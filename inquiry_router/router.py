"""Conversation router.

Maps a routing evaluation to a destination, an optional specialist and a
response estimate, records the inquiry as a conversation thread and renders
the acknowledgement sent back to the customer.
"""

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Dict, Optional

from .config import DEFAULT_KEYWORDS
from .errors import RoutingError
from .models import (
    ConversationCategory,
    ConversationState,
    ConversationThread,
    RoutingEvaluation,
    RoutingOutcome,
    RoutingResult,
)

logger = logging.getLogger(__name__)

APOLOGY = "I'm having trouble processing your request. Could you please try again?"

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_tracking_id() -> str:
    """Generate an inquiry reference number: ``INQ-<base36 ms>-<5 chars>``."""
    timestamp = _to_base36(time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"INQ-{timestamp}-{suffix}".upper()


def get_specialist_for_route(route: str, specialists: Optional[Dict[str, str]] = None) -> str:
    """Specialist role for an explicit route, ``general_assistant`` if unmapped."""
    specialists = DEFAULT_KEYWORDS.route_specialists if specialists is None else specialists
    return specialists.get(route, "general_assistant")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def format_routing_response(result: RoutingResult) -> str:
    """Render the acknowledgement text for a routing result."""
    if result.routed_to == "diagnostic_system":
        if result.assigned_agent:
            response = "I'm connecting you with our diagnostic specialist who can help troubleshoot this issue."
            if result.estimated_response_time:
                response += f" They should respond within {result.estimated_response_time}."
        else:
            response = "I'll analyze the diagnostic information for you. Let me retrieve the relevant details."

    elif result.routed_to == "parts_database":
        response = "I'll check our parts inventory system for availability and pricing."

    elif result.routed_to == "customer_service":
        if result.assigned_agent and "manager" in result.assigned_agent:
            response = "I'm escalating this to our customer service manager who will assist you"
            if result.estimated_response_time:
                response += f" within {result.estimated_response_time}"
            response += "."
        else:
            response = "I'll help you with your customer service needs right away."

    elif result.routed_to == "repair_documentation":
        response = "I'm searching our repair documentation database for the information you need."
        if result.assigned_agent:
            response += " I'll also connect you with a technical advisor for additional guidance."

    elif result.routed_to == "technical_knowledge_base":
        response = "I'm retrieving technical information to answer your question."
        if result.assigned_agent:
            response += (
                " For this complex inquiry, I'll also have our technical specialist"
                " review and provide additional insights"
            )
            if result.estimated_response_time:
                response += f" within {result.estimated_response_time}"
            response += "."

    else:
        response = "I'll assist you with your inquiry right away."

    if result.tracking_id:
        response += f"\n\nYour inquiry reference number is: {result.tracking_id}"

    return response


class ConversationRouter:
    """Dispatches classified conversations to destinations and specialists.

    Attributes:
        specialists: Explicit route token to specialist role table.
    """

    def __init__(self, specialists: Optional[Dict[str, str]] = None):
        self.specialists = dict(
            DEFAULT_KEYWORDS.route_specialists if specialists is None else specialists
        )

    def dispatch(self, evaluation: RoutingEvaluation, tracking_id: str) -> RoutingResult:
        """Build the routing result for an evaluation.

        The evaluation is not modified; suggested actions are copied.
        """
        result = RoutingResult(
            priority_level=evaluation.urgency,
            suggested_actions=list(evaluation.suggested_actions),
            tracking_id=tracking_id,
        )

        if evaluation.explicit_routing:
            result.routed_to = evaluation.explicit_routing
            result.assigned_agent = get_specialist_for_route(
                evaluation.explicit_routing, self.specialists
            )
            result.priority_level = "high"
            return result

        category = evaluation.category
        urgency = evaluation.urgency
        complexity = evaluation.complexity

        if category == ConversationCategory.VEHICLE_DIAGNOSTICS:
            result.routed_to = "diagnostic_system"
            if complexity == "high" or urgency == "high":
                result.assigned_agent = "diagnostic_specialist"
                result.estimated_response_time = (
                    "5-10 minutes" if urgency == "high" else "30-60 minutes"
                )
        elif category == ConversationCategory.PARTS_INFORMATION:
            result.routed_to = "parts_database"
            if urgency == "high":
                result.suggested_actions.append("CHECK_ALTERNATIVE_SUPPLIERS")
        elif category == ConversationCategory.WARRANTY_SERVICE:
            result.routed_to = "customer_service"
            if urgency == "high":
                result.assigned_agent = "customer_service_manager"
                result.estimated_response_time = "15-30 minutes"
        elif category == ConversationCategory.REPAIR_GUIDANCE:
            result.routed_to = "repair_documentation"
            if complexity == "high":
                result.suggested_actions.append("RETRIEVE_TECHNICAL_DIAGRAMS")
                result.assigned_agent = "technical_advisor"
        elif category == ConversationCategory.MAINTENANCE_ADVICE:
            result.routed_to = "technical_knowledge_base"
            if complexity == "high":
                result.assigned_agent = "technical_specialist"
                result.estimated_response_time = "1-4 hours"
        else:
            result.routed_to = "general_assistant"

        return result

    def _route(
        self, evaluation: Optional[RoutingEvaluation], state: ConversationState
    ) -> RoutingOutcome:
        if evaluation is None:
            evaluation = RoutingEvaluation(
                category=ConversationCategory.GENERAL_INQUIRY,
                urgency="medium",
                complexity="medium",
                suggested_actions=[],
            )

        try:
            result = self.dispatch(evaluation, generate_tracking_id())
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise RoutingError(str(e)) from e

        timestamp = _now()
        update = {
            "conversation_routing": result,
            "last_routing_timestamp": timestamp,
        }

        if not evaluation.explicit_routing:
            thread = ConversationThread(
                id=result.tracking_id,
                category=evaluation.category.value,
                urgency=evaluation.urgency,
                start_time=timestamp,
                assigned_to=result.assigned_agent or result.routed_to,
            )
            update["active_conversation_threads"] = [
                *state.active_conversation_threads,
                thread,
            ]

        try:
            output = format_routing_response(result)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise RoutingError(f"Failed to render routing response: {e}") from e

        logger.info(
            f"Routed inquiry {result.tracking_id} to {result.routed_to}"
            f" (agent={result.assigned_agent}, priority={result.priority_level})"
        )
        return RoutingOutcome(
            output=output,
            state=state.model_copy(update=update),
            result=result,
        )

    def route(
        self,
        evaluation: Optional[RoutingEvaluation],
        state: Optional[ConversationState] = None,
    ) -> RoutingOutcome:
        """Route a classified conversation and record it in state.

        Args:
            evaluation: Classifier output, or None to use the general default.
            state: Conversation state to update (a fresh one if omitted).

        Returns:
            RoutingOutcome: acknowledgement text and the updated state copy.
            On failure the text is a fixed apology and the state is returned
            unchanged.
        """
        state = state if state is not None else ConversationState()
        try:
            return self._route(evaluation, state)
        except Exception as e:
            logger.error(f"Error in conversation router: {e}")
            return RoutingOutcome(output=APOLOGY, state=state, error=str(e))
