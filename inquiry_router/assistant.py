"""Routing Assistant that runs the per-message pipeline.

This module provides the RoutingAssistant class, the entry point used by the
CLI and the MCP server. For every inbound message it classifies the
conversation, scans for diagnostic trouble codes, routes the inquiry and
stores the outcome in the conversation's state.

Messages of one conversation are processed strictly in arrival order, since
recency weighting and thread history depend on ordering. Different
conversations are independent.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Optional

from .classifier import ConversationClassifier
from .config import RouterConfig
from .dtc import DtcLookup, build_dtc_lookup, evaluate_dtc, fetch_dtc_information
from .models import (
    AssistantReply,
    ConversationMessage,
    ConversationState,
    DtcLookupOutcome,
)
from .router import ConversationRouter
from .threads import describe_threads

logger = logging.getLogger(__name__)


class RoutingAssistant:
    """Classifies, routes and tracks conversations.

    Collaborators are injected so that callers (and tests) can swap the DTC
    lookup or the keyword tables without touching the pipeline.

    Attributes:
        config: RouterConfig instance.
        classifier: ConversationClassifier used for every message.
        router: ConversationRouter used for every classified message.
        dtc_lookup: DtcLookup collaborator used by ``lookup_codes``.
        states: Conversation states keyed by conversation id.

    States and locks are held in memory for the life of the assistant; call
    ``close_conversation`` once a conversation is finished to release them.
    """

    def __init__(
        self,
        config: Optional[RouterConfig] = None,
        classifier: Optional[ConversationClassifier] = None,
        router: Optional[ConversationRouter] = None,
        dtc_lookup: Optional[DtcLookup] = None,
    ):
        self.config = config or RouterConfig()
        self.classifier = classifier or ConversationClassifier()
        self.router = router or ConversationRouter()
        self.dtc_lookup = dtc_lookup or build_dtc_lookup(self.config)
        self.states: Dict[str, ConversationState] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get_state(self, conversation_id: str) -> ConversationState:
        """Return the state of a conversation, creating an empty one if needed."""
        if conversation_id not in self.states:
            self.states[conversation_id] = ConversationState(conversation_id=conversation_id)
        return self.states[conversation_id]

    def process(self, state: ConversationState, text: str) -> AssistantReply:
        """Run classification, DTC detection and routing for one message.

        Pure with respect to ``state``: the returned reply carries an updated
        copy, including the message appended to the history.
        """
        history = [message.text for message in state.conversation_history]
        classification = self.classifier.evaluate(text, history)

        dtc = evaluate_dtc(text, state.dtc_database)
        state = state.model_copy(
            update={
                "last_routing_evaluation": classification.evaluation,
                "last_dtc_evaluation": dtc.evaluation or state.last_dtc_evaluation,
            }
        )

        routing = self.router.route(classification.evaluation, state)
        state = routing.state.model_copy(
            update={
                "conversation_history": [
                    *routing.state.conversation_history,
                    ConversationMessage(text=text),
                ]
            }
        )

        return AssistantReply(
            output=routing.output,
            state=state,
            classification=classification,
            routing=routing.result,
            dtc=dtc.evaluation,
        )

    async def handle_message(self, conversation_id: str, text: str) -> AssistantReply:
        """Process an inbound message for a conversation.

        Args:
            conversation_id: Identifier of the conversation the message belongs to.
            text: Message text.

        Returns:
            AssistantReply: acknowledgement text, the updated state and the
            intermediate classification, routing and DTC results.
        """
        async with self._locks[conversation_id]:
            reply = self.process(self.get_state(conversation_id), text)
            self.states[conversation_id] = reply.state

        logger.info(
            f"[{conversation_id}] {reply.classification.reason}"
            f" -> {reply.routing.routed_to if reply.routing else 'unrouted'}"
        )
        return reply

    async def lookup_codes(self, conversation_id: str) -> DtcLookupOutcome:
        """Resolve the DTCs last detected in a conversation."""
        async with self._locks[conversation_id]:
            outcome = await fetch_dtc_information(self.get_state(conversation_id), self.dtc_lookup)
            self.states[conversation_id] = outcome.state
        return outcome

    async def close_conversation(self, conversation_id: str) -> Optional[ConversationState]:
        """Forget a finished conversation and return its final state, if any.

        Messages still queued for the conversation are processed against a
        fresh state.
        """
        async with self._locks[conversation_id]:
            state = self.states.pop(conversation_id, None)
        lock = self._locks.get(conversation_id)
        if lock is not None and not lock.locked():
            del self._locks[conversation_id]
        logger.info(f"[{conversation_id}] conversation closed")
        return state

    def describe_threads(self, conversation_id: str, query: str = "") -> str:
        """Answer a question about the threads recorded for a conversation."""
        state = self.get_state(conversation_id)
        return describe_threads(query, state.active_conversation_threads)
