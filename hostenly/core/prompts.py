"""Prompt assembly for guest replies.

Pure string rendering: no I/O. The system prompt carries the persona, the
property's facts and the retrieved snippets; the user turn carries the recent
conversation and the guest's latest message.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from hostenly.core.schemas_messaging import Message, Property

ASSISTANT_NAME = "Hostenly"
DEFAULT_HISTORY_TURNS = 10

# =============================================================================
# Property fact table
# =============================================================================


def _text(value: object) -> str:
    return str(value).strip()


@dataclass(frozen=True)
class DetailField:
    """A property detail rendered as `- <label>: <value>` when present."""

    name: str
    label: str
    formatter: Callable[[object], str] = _text


DETAIL_FIELDS: tuple[DetailField, ...] = (
    DetailField("check_in_time", "Check-in time"),
    DetailField("check_out_time", "Check-out time"),
    DetailField("wifi_password", "WiFi password"),
    DetailField("access_code", "Access code"),
    DetailField("location", "Location"),
    DetailField("house_rules", "House rules"),
    DetailField("nearby_attractions", "Nearby attractions"),
    DetailField("emergency_contacts", "Emergency contacts"),
    DetailField("custom_notes", "Additional notes"),
)

GUIDELINES = """Important guidelines:
1. Only provide information that is contained in the property details above.
2. If you don't know the answer to a question, politely say so and offer to relay the message to the host.
3. Be conversational and friendly, but professional.
4. Keep responses concise and to the point.
5. Do not make up or hallucinate any information that is not provided.
6. If asked about something not in your knowledge base, say: "I don't have that information available, but I can ask the host for you."
7. Never share the WiFi password or access code unless the guest specifically asks for it."""


def render_detail_lines(prop: Property) -> list[str]:
    """Render the property's non-empty detail fields and FAQs, in table order."""
    details = prop.details
    lines = []
    for detail in DETAIL_FIELDS:
        value = getattr(details, detail.name, None)
        if value is None:
            continue
        rendered = detail.formatter(value)
        if rendered:
            lines.append(f"- {detail.label}: {rendered}")

    for question, answer in (details.faqs or {}).items():
        question, answer = _text(question), _text(answer)
        if question and answer:
            lines.append(f"- Q: {question} A: {answer}")

    return lines


def build_system_prompt(prop: Property, retrieved_text: str) -> str:
    """
    Render the system instructions for one property.

    Args:
        prop: Property whose facts ground the reply
        retrieved_text: Newline-joined retrieved snippets (may be empty)

    Returns:
        System prompt text
    """
    sections = [
        f"You are an AI assistant for {prop.name}, a short-term rental property. "
        f"Your name is {ASSISTANT_NAME}.",
        "Your role is to assist guests by providing accurate information about the property "
        "and answering their questions in a friendly, helpful manner.",
    ]

    if retrieved_text.strip():
        sections.append(
            "Here is specific information about the property that you can use to answer "
            f"guest questions:\n\n{retrieved_text.strip()}"
        )

    detail_lines = render_detail_lines(prop)
    if detail_lines:
        sections.append("Additional property details:\n" + "\n".join(detail_lines))

    sections.append(GUIDELINES)
    sections.append(
        "Respond to the guest's latest message based on the conversation history "
        "and the information provided."
    )
    return "\n\n".join(sections)


def render_history(history: Sequence[Message], max_turns: int = DEFAULT_HISTORY_TURNS) -> str:
    """Render chronological history as `Guest:`/`Host:` lines, keeping the newest turns."""
    if max_turns <= 0:
        return ""
    recent = list(history)[-max_turns:]
    return "\n".join(
        f"{'Guest' if message.is_from_guest else 'Host'}: {message.content}" for message in recent
    )


def build_user_turn(
    history: Sequence[Message],
    latest_message: str,
    max_turns: int = DEFAULT_HISTORY_TURNS,
) -> str:
    """
    Render the conversational turn sent alongside the system prompt.

    Args:
        history: Messages oldest to newest
        latest_message: The guest's new message text
        max_turns: Most recent turns to keep (oldest dropped first)
    """
    return (
        f"Conversation history:\n{render_history(history, max_turns)}\n\n"
        f"Guest's latest message: {latest_message}"
    )
