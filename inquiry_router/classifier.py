"""Conversation classifier.

Scores a message and its thread history against the keyword tables to pick a
category, estimates urgency and complexity from the current message, detects
explicit requests to reach a human, and proposes follow-up actions. The
classifier is pure computation; it never raises to its caller.
"""

import logging
from typing import Dict, List, Optional, Sequence

from .config import DEFAULT_KEYWORDS, KeywordTables
from .errors import ClassificationError
from .models import ClassificationOutcome, ConversationCategory, Level, RoutingEvaluation

logger = logging.getLogger(__name__)

MATCHED_SCORE = 0.7
UNMATCHED_SCORE = 0.3


def recency_weight(index: int, thread_length: int) -> float:
    """Weight of the message at ``index`` in a thread of ``thread_length``.

    Grows linearly from 0.5 for the oldest message to 1.0 for the most
    recent one. A single-message thread gets 1.0.
    """
    if thread_length <= 1:
        return 1.0
    return 0.5 + 0.5 * index / max(1, thread_length - 1)


def determine_suggested_actions(
    category: ConversationCategory, urgency: str, complexity: str
) -> List[str]:
    """Return the follow-up action identifiers for a classified message."""
    actions: List[str] = []

    if category == ConversationCategory.VEHICLE_DIAGNOSTICS:
        actions.append("FETCH_VEHICLE_DATA")
        actions.append("CHECK_DIAGNOSTIC_CODES")
        if complexity == "high" or urgency == "high":
            actions.append("ROUTE_TO_DIAGNOSTIC_SPECIALIST")
    elif category == ConversationCategory.PARTS_INFORMATION:
        actions.append("SEARCH_PARTS_INVENTORY")
        if urgency == "high":
            actions.append("CHECK_MULTIPLE_SUPPLIERS")
    elif category == ConversationCategory.WARRANTY_SERVICE:
        actions.append("FETCH_CUSTOMER_DATA")
        if urgency == "high":
            actions.append("ESCALATE_TO_MANAGER")
    elif category == ConversationCategory.REPAIR_GUIDANCE:
        actions.append("SEARCH_REPAIR_DOCUMENTATION")
        if complexity == "high":
            actions.append("FIND_TECHNICAL_DIAGRAMS")
    elif category == ConversationCategory.MAINTENANCE_ADVICE:
        actions.append("SEARCH_TECHNICAL_DOCUMENTATION")
        if complexity == "high":
            actions.append("ROUTE_TO_TECHNICAL_SPECIALIST")
    else:
        actions.append("GENERAL_ASSISTANCE")

    return actions


class ConversationClassifier:
    """Keyword-driven classifier for inbound conversation messages.

    Attributes:
        keywords: Keyword tables consulted for every decision.
    """

    def __init__(self, keywords: Optional[KeywordTables] = None):
        self.keywords = keywords or DEFAULT_KEYWORDS

    def score_categories(
        self, text: str, history: Sequence[str] = ()
    ) -> Dict[ConversationCategory, float]:
        """Compute the recency-weighted keyword score of every category.

        Args:
            text: Current message text.
            history: Prior messages in the same thread, oldest first.

        Returns:
            Dict mapping each category in the keyword table to its score, in
            table order.
        """
        thread = [message.lower() for message in [*history, text]]
        weights = [recency_weight(index, len(thread)) for index in range(len(thread))]

        scores: Dict[ConversationCategory, float] = {}
        for category, indicators in self.keywords.category_indicators.items():
            score = 0.0
            for keyword in indicators:
                for message, weight in zip(thread, weights):
                    if keyword in message:
                        score += weight
            scores[category] = score
        return scores

    def pick_category(self, scores: Dict[ConversationCategory, float]) -> ConversationCategory:
        """Pick the strictly highest scoring category, OTHER when nothing matched."""
        best_score = 0.0
        category = ConversationCategory.OTHER
        for candidate, score in scores.items():
            if score > best_score:
                best_score = score
                category = candidate
        return category

    def detect_urgency(self, text: str) -> Level:
        """Urgency of the current message; high terms win over low terms."""
        text = text.lower()
        if any(term in text for term in self.keywords.high_urgency):
            return "high"
        if any(term in text for term in self.keywords.low_urgency):
            return "low"
        return "medium"

    def calculate_complexity(self, text: str) -> Level:
        """Estimate complexity from technical terms, length and questions."""
        text = text.lower()
        technical_count = sum(1 for term in self.keywords.technical_terms if term in text)
        is_long = len(text) > self.keywords.long_message_threshold
        question_count = text.count("?")
        has_complex_question = any(
            term in text for term in self.keywords.complex_question_terms
        )

        if (
            technical_count >= 3
            or (question_count >= 2 and has_complex_question)
            or (is_long and technical_count >= 2)
        ):
            return "high"
        if technical_count >= 1 or has_complex_question or question_count >= 2:
            return "medium"
        return "low"

    def detect_explicit_routing(self, text: str) -> Optional[str]:
        """Return the route token of the first matching keyword group, if any."""
        text = text.lower()
        for route, terms in self.keywords.explicit_routes:
            if any(term in text for term in terms):
                return route
        return None

    def _evaluate(self, text: str, history: Sequence[str]) -> ClassificationOutcome:
        try:
            scores = self.score_categories(text, history)
            category = self.pick_category(scores)
            urgency = self.detect_urgency(text)
            complexity = self.calculate_complexity(text)
            explicit_routing = self.detect_explicit_routing(text)

            matched = scores.get(category, 0.0) > 0
            score = MATCHED_SCORE if matched else UNMATCHED_SCORE

            evaluation = RoutingEvaluation(
                category=category,
                urgency=urgency,
                complexity=complexity,
                explicit_routing=explicit_routing,
                suggested_actions=determine_suggested_actions(category, urgency, complexity),
                confidence=score,
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise ClassificationError(str(e)) from e

        return ClassificationOutcome(
            score=score,
            reason=f"Conversation categorized as {category.value} with {urgency} urgency",
            evaluation=evaluation,
        )

    def evaluate(self, text: str, history: Sequence[str] = ()) -> ClassificationOutcome:
        """Classify the current message in the context of its thread.

        Args:
            text: Current message text.
            history: Prior message texts in the same thread, oldest first.

        Returns:
            ClassificationOutcome: the evaluation with its confidence score, or
            a zero-score outcome without evaluation when classification failed.
        """
        try:
            outcome = self._evaluate(text or "", history)
        except Exception as e:
            logger.error(f"Error in conversation classifier: {e}")
            return ClassificationOutcome(
                score=0.0,
                reason="Error evaluating conversation for routing",
                error=str(e),
            )

        logger.debug(f"Classification result: {outcome.reason}")
        return outcome
