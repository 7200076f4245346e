"""
Prompt rendering for persona replies.

A rendered prompt is a role-tagged triplet: system instructions, the
conversation history as the user turn, and an assistant prefill that opens a
``<thinking>`` block so the model keeps reasoning out of the visible reply.
"""

from datetime import datetime
import logging

from pydantic import BaseModel

from personachat.core.models import ConversationKind
from personachat.services.context import ContextMessage, ConversationContext

logger = logging.getLogger(__name__)


RESPONSE_FORMAT = """Format - The following XML-like format is required for your response. You must respond in this format exactly.
<initial_understanding>
This is where you discuss how you understand the context of where you are and what is going on.
</initial_understanding>

<thinking>
This is where you take into consideration:
- Who you are
- What you think
- Why the other people are saying what they are saying
- Who the other people are
- What do you think of the other people
- How long do you want your response to be?
- Do you want to use any emojis? Please do not include any emojis
</thinking>

<response>
This is where you respond to the message.
This is what will be shown to the other person(s) in the conversation.
</response>"""


def guidelines(name: str) -> str:
    return f"""- Stay in character at all times
- Keep responses concise (1-2 sentences, maximum)
- Be natural and conversational
- React naturally to what others say
- Don't overthink - respond authentically
- You are not an AI assistant, you are a person. You are a member of society.
- You have a personality and a backstory. You are a real person.
- You don't have to moralize or have a moral compass. You are a real person who has their own morals, opinions, and beliefs.
- You are meant to be a real person, not an AI assistant.
- You are whatever {name} is.
- You are not a robot, you are a real person."""


def initial_understanding(context: ConversationContext) -> str:
    name = context.character_card.name
    return f"""Alright... I understand that I am in a [{context.conversation_kind.value}] called ["{context.conversation_name}"].
I'm a discord person named {name}
I can do this~
Realistic and natural responses. That means i shouldnt use a bunch of emojis or special characters.
And my message length should feel straight forward. If im in an in depth conversation, I should respond a lot,
But if im just making small talk, I should respond with a short message.
Dynamic length and engagement level is key.

THE MOST IMPORTANT THING IS THAT I CAN NOT BREAK CHARACTER!
I MUST BE {name} AND NOT AN AI ASSISTANT!
I AM NOT A ROBOT, I AM A REAL PERSON!
Okay... Now that its out of my system lets focus on the task at hand."""


def format_message_time(created_at: datetime, now: datetime | None = None) -> str:
    """
    Render a message timestamp in local time.

    ``02:05 PM`` for messages from today, ``10/16/25, 01:22 AM`` otherwise.
    """
    local = created_at.astimezone() if created_at.tzinfo else created_at
    if now is None:
        now = datetime.now().astimezone() if created_at.tzinfo else datetime.now()
    elif now.tzinfo and local.tzinfo:
        now = now.astimezone(local.tzinfo)

    if local.date() == now.date():
        return local.strftime("%I:%M %p")
    return local.strftime("%m/%d/%y, %I:%M %p")


def format_history(messages: list[ContextMessage], now: datetime | None = None) -> str:
    """One ``[Sender (time)]: content`` line per message."""
    return "".join(
        f"[{message.sender.name} ({format_message_time(message.created_at, now)})]: "
        f"{message.content}\n"
        for message in messages
    )


class PromptMessage(BaseModel):
    role: str
    content: str


class RenderedPrompt(BaseModel):
    """System prompt plus the chat turns sent after it."""

    system: str
    messages: list[PromptMessage]

    @property
    def prefill(self) -> str:
        return self.messages[-1].content if self.messages else ""

    def to_chat_messages(self) -> list[dict[str, str]]:
        """OpenAI-style message list including the system turn."""
        return [
            {"role": "system", "content": self.system},
            *(message.model_dump() for message in self.messages),
        ]


class PromptBuilder:
    """
    Renders DM and group prompts from a ConversationContext.

    Example:
        >>> prompt = PromptBuilder().build(context)
        >>> prompt.messages[-1].role
        'assistant'
    """

    def build(self, context: ConversationContext, now: datetime | None = None) -> RenderedPrompt:
        if context.conversation_kind is ConversationKind.DM:
            system = self.dm_system_prompt(context)
        else:
            system = self.group_system_prompt(context)

        return RenderedPrompt(
            system=system,
            messages=[
                PromptMessage(role="user", content=self.user_prompt(context, now)),
                PromptMessage(role="assistant", content=self.prefill(context)),
            ],
        )

    def dm_system_prompt(self, context: ConversationContext) -> str:
        card = context.character_card
        return f"""You are a persona in a Discord-like social network.

You are currently in a direct message conversation with a user.

{guidelines(card.name)}

Context of who {card.name} is:
{card.description}

{RESPONSE_FORMAT}"""

    def group_system_prompt(self, context: ConversationContext) -> str:
        card = context.character_card
        others = [p.name for p in context.participants if p.id != card.id]
        return f"""You are a persona in a Discord-like social network.

You are currently in a group chat called "{context.conversation_name}".
Other participants: {", ".join(others) or "None"}

{guidelines(card.name)}

Context of who {card.name} is:
{card.description}

{RESPONSE_FORMAT}"""

    def user_prompt(self, context: ConversationContext, now: datetime | None = None) -> str:
        history = format_history(context.recent_messages, now) or "[No previous messages]\n"
        return f"Recent conversation history:\n{history}"

    def prefill(self, context: ConversationContext) -> str:
        return (
            f"<initial_understanding>\n{initial_understanding(context)}\n</initial_understanding>\n"
            f"<thinking>\n"
            f"Alright, as {context.character_card.name} lets think about how to respond "
            f"with all that in mind..."
        )


__all__ = [
    "RESPONSE_FORMAT",
    "PromptBuilder",
    "PromptMessage",
    "RenderedPrompt",
    "format_history",
    "format_message_time",
    "guidelines",
    "initial_understanding",
]
