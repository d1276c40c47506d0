"""Conversation history for agent-team agents.

Adding, reading and clearing an agent's messages are tracked as
``message`` entity transitions (QUEUED -> PROCESSING -> PROCESSED,
RETRIEVING -> RETRIEVED, CLEARING -> CLEARED) keyed by the agent id.
"""

from ..models.agent import Agent
from ..models.message import Message
from ..models.status import MessageStatus, StatusEntity
from ..state.registry import StatusRegistry
from ..state.rules import TransitionContext


class MessageHistory:
    """Registry-tracked access to ``Agent.messages``."""

    def __init__(self, registry: StatusRegistry) -> None:
        self.registry = registry
        self._status: dict[str, MessageStatus] = {}

    def status_of(self, agent: Agent) -> MessageStatus:
        return self._status.get(agent.id, MessageStatus.INITIAL)

    async def _move(self, agent: Agent, target: MessageStatus) -> None:
        accepted = await self.registry.transition(
            TransitionContext(
                entity=StatusEntity.MESSAGE,
                entity_id=agent.id,
                current_status=self.status_of(agent),
                target_status=target,
            )
        )
        if accepted:
            self._status[agent.id] = target

    async def add(self, agent: Agent, *messages: Message) -> None:
        """Append messages to the agent's history."""
        await self._move(agent, MessageStatus.QUEUED)
        await self._move(agent, MessageStatus.PROCESSING)
        agent.messages = [*agent.messages, *messages]
        await self._move(agent, MessageStatus.PROCESSED)

    async def get(self, agent: Agent) -> list[Message]:
        await self._move(agent, MessageStatus.RETRIEVING)
        messages = list(agent.messages)
        await self._move(agent, MessageStatus.RETRIEVED)
        return messages

    async def clear(self, agent: Agent) -> None:
        await self._move(agent, MessageStatus.CLEARING)
        agent.messages = []
        await self._move(agent, MessageStatus.CLEARED)
