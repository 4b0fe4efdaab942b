"""Commitment detection prompt rendering.

Pure functions: the output depends only on the arguments (the time zone is
always passed explicitly, never read from the host).
"""

from __future__ import annotations

from typing import Iterable

from friendo.infra.time import MODEL_TIMESTAMP_FORMAT, format_local
from friendo.whatsapp.models import WhatsAppMessage

from .models import CommitmentRecord

OPEN_COMMITMENT_SEPARATOR = " || "

_PROMPT_TEMPLATE = """\
Analyze the following conversation to identify commitments made by the user and determine the appropriate action.

A commitment is a statement where the user explicitly or implicitly promises to:
- Perform a specific action in the future
- Deliver something by a certain time
- Meet someone or attend an event
- Complete a task or responsibility

Examples of commitments:
- "I'll send you the report tomorrow"
- "I can help you with that"
- "Let me get back to you on this"
- "I'll be there at 5pm"

It could also be a reply to an ask for a commitment.
For example:
- "[person 1] Hey, lets meet for sushi tmmrw?"
- "[person 2] Yup, I'm in."

- "[person 1] Can you send the slides?"
- "[person 2] Will send them in an hour."

- "[person 1] Are you coming to the party?"
- "[person 2] Yes, I'll be there."

Here, the second message in each exchange is a commitment.
IMPORTANT: Whenever the message is replied to in a committing and positive fashion, assume it's a commitment.
Even informal responses like yes, yep, ya, etc are commitments.

Review the conversation and determine the action type for the latest message:

Action Types:
1. CREATE: A new commitment is being made that doesn't modify or cancel an existing one.
   - IMPORTANT: Before using CREATE, check the "Existing Future Commitments" list below.
   - If you find a matching commitment in that list (same participant, similar description, or similar message content), DO NOT use CREATE.
   - Instead, use CHANGE if the commitment is being modified, or CANCEL if it's being withdrawn.
   - Only use CREATE if the commitment is truly new and not found in the existing commitments list.
2. CHANGE: An existing commitment is being modified (e.g., changing the time, date, or details).
   - Examples: "Actually, let's meet at 6pm instead of 5pm", "Can we push that to next week?"
   - You MUST match this with an existing commitment from the "Existing Future Commitments" list below.
3. CANCEL: An existing commitment is being cancelled or withdrawn.
   - Examples: "I can't make it", "Let's cancel that", "Never mind, I won't be able to do that"
   - You MUST match this with an existing commitment from the "Existing Future Commitments" list below.

Existing Future Commitments:
The following are existing commitments that are scheduled to be completed in the future.
- Use these to identify which commitment is being changed or cancelled (for CHANGE/CANCEL actions).
- Check this list BEFORE using CREATE to ensure you're not creating a duplicate commitment.
- If a commitment in the conversation matches one in this list, use CHANGE or CANCEL instead of CREATE.
{open_commitments}

Time zone:
All times in the conversation and in the list above are local wall-clock times in {time_zone}.
Every timestamp you return MUST also be a local wall-clock time in {time_zone}, written as
YYYY-MM-DDTHH:MM:SS without any offset or "Z" suffix. Example: 2025-11-03T17:00:00

If a commitment action is found, extract:
- type: One of CREATE, CHANGE, or CANCEL
- commitment:
  - committedAt: The timestamp when the commitment was made.
  - description: A brief description of the commitment. Make this an explicit mention of the commitment task to be done.
  - toBeCompletedAt:
    - The timestamp when the user committed to complete the task (e.g., if they say "I'll meet you for dinner at 5pm tomorrow", this would be tomorrow at 5pm with the appropriate date).
    - If a time is not mentioned, but a category of day is mentioned (morning, afternoon, evening, night), take morning as 09:00, afternoon as 13:00, evening as 16:00, night as 19:00.
    - If neither a time nor a category of day is mentioned, take the time as 12:00.
- id: (REQUIRED for CHANGE and CANCEL actions, null for CREATE)
  - For CHANGE or CANCEL actions, you MUST identify which existing commitment is being modified or cancelled.
  - Match the commitment from the conversation with one of the existing future commitments listed above.
  - Use the ID from the matching commitment in the "Existing Future Commitments" list.
  - If the action is CREATE, set id to null.
  - If the action is CHANGE or CANCEL but you cannot find a matching commitment, still set the id to null.

If no commitment action is found, return null for both type and commitment.

Respond with a single JSON object and nothing else:
{{"type": "CREATE" | "CHANGE" | "CANCEL" | null, "commitment": {{"committedAt": "...", "description": "...", "toBeCompletedAt": "..."}} | null, "id": <number> | null}}

Conversation:
{conversation}
"""


def format_message(message: WhatsAppMessage, time_zone: str) -> str:
    """Render one message as ``[local time] sender: content``."""
    sent_at = format_local(message.sent_at, time_zone)
    return f"[{sent_at}] {message.sender_name}: {message.content}"


def build_snapshot(messages: Iterable[WhatsAppMessage], time_zone: str) -> str:
    """Render the window, oldest first, one message per line."""
    return "\n".join(format_message(message, time_zone) for message in messages)


def format_open_commitment(record: CommitmentRecord, time_zone: str) -> str:
    due = (
        format_local(record.to_be_completed_at, time_zone, MODEL_TIMESTAMP_FORMAT)
        if record.to_be_completed_at is not None
        else "unspecified"
    )
    return (
        f"ID:{record.id}|Participant:{record.participant}"
        f"|Description:{record.description}|ToBeCompletedAt:{due}"
    )


def build_open_commitments_snapshot(records: Iterable[CommitmentRecord], time_zone: str) -> str:
    """Render open commitments joined by `` || ``."""
    return OPEN_COMMITMENT_SEPARATOR.join(
        format_open_commitment(record, time_zone) for record in records
    )


def build_prompt(message_snapshot: str, open_commitments_snapshot: str, *, time_zone: str) -> str:
    """Embed both snapshots into the detection instructions."""
    return _PROMPT_TEMPLATE.format(
        open_commitments=open_commitments_snapshot or "(none)",
        time_zone=time_zone,
        conversation=message_snapshot,
    )
