"""Meeting assistant module.

Answers participants' questions about the running meeting using the room's
transcript as context.

Query intents:
    action_items   "list the action items", "any todos?"
    summary        "summarize the whole meeting"
    time_query     "what happened in the last 10 minutes"
    speaker_query  "what did Alice say", "Bob said", "according to Carol"
    general        anything else
"""
import re
import time
import logging
from datetime import datetime
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from modules.database import TranscriptRepository, get_transcript_repository
from modules.gateways import GeminiGateway

logger = logging.getLogger(__name__)


ASSISTANT_SYSTEM_PROMPT = """You are an AI meeting assistant. You help participants understand and recall what was discussed in the meeting.

Guidelines:
- Be concise and helpful
- Reference specific speakers and times when relevant
- If asked about something not in the transcript, say you don't have that information
- Format your responses clearly
- When listing action items, use bullet points
- When summarizing, focus on key decisions and discussions"""

ACTION_ITEMS_QUERY = (
    "Please extract and list all action items, tasks, and commitments mentioned in this "
    "meeting. Format them as a bullet list with the responsible person if mentioned."
)

NOT_CONFIGURED_REPLY = "The meeting assistant is not configured. Please set the GEMINI_API_KEY environment variable."
EMPTY_SUMMARY_REPLY = ("There's no transcript to summarize yet. The meeting transcript will be "
                       "available once participants start speaking.")
EMPTY_ACTION_ITEMS_REPLY = "There's no transcript to extract action items from yet."
EMPTY_GENERAL_REPLY = ("The meeting transcript is empty. I'll be able to answer questions once "
                       "participants start speaking.")

_TIME_PATTERN = re.compile(r"last\s+(\d+)\s+minutes?")
_WHAT_DID_PATTERN = re.compile(r"what\s+did\s+(\w+)\s+say", re.IGNORECASE)
_SAID_PATTERN = re.compile(r"(\w+)\s+said|according\s+to\s+(\w+)", re.IGNORECASE)


@dataclass
class ParsedQuery:
    """Detected intent of an assistant question."""
    type: str
    speaker_name: Optional[str] = None
    time_minutes: Optional[int] = None


def parse_query(query: str) -> ParsedQuery:
    """Classifies a question into an assistant intent.

    Examples:
        >>> parse_query("What are the action items?").type
        'action_items'
        >>> parse_query("summarize the last 5 minutes")
        ParsedQuery(type='time_query', speaker_name=None, time_minutes=5)
        >>> parse_query("what did alice say about the budget").speaker_name
        'alice'
    """
    lower = query.lower()

    if any(keyword in lower for keyword in ("action item", "todo", "to do", "tasks")):
        return ParsedQuery(type="action_items")

    time_match = _TIME_PATTERN.search(lower)

    if "summarize" in lower or "summary" in lower or "summarise" in lower:
        if any(word in lower for word in ("whole", "entire", "full")):
            return ParsedQuery(type="summary")
        if time_match:
            return ParsedQuery(type="time_query", time_minutes=int(time_match.group(1)))
        return ParsedQuery(type="summary")

    if time_match:
        return ParsedQuery(type="time_query", time_minutes=int(time_match.group(1)))

    speaker_match = _WHAT_DID_PATTERN.search(lower)
    if speaker_match:
        return ParsedQuery(type="speaker_query", speaker_name=speaker_match.group(1))

    said_match = _SAID_PATTERN.search(lower)
    if said_match:
        return ParsedQuery(type="speaker_query", speaker_name=said_match.group(1) or said_match.group(2))

    return ParsedQuery(type="general")


def format_transcript_context(entries: List[Dict[str, Any]]) -> str:
    """Formats entries as "[HH:MM:SS] speaker: text" lines."""
    lines = []
    for entry in entries:
        clock = datetime.fromtimestamp(entry["created_at"] / 1000).strftime("%H:%M:%S")
        speaker = entry.get("speaker_name") or "Unknown"
        lines.append(f"[{clock}] {speaker}: {entry['text']}")
    return "\n".join(lines)


class AssistantService:
    """Transcript-grounded question answering for a room.

    Attributes:
        gateway (GeminiGateway): model backend
        transcripts (TranscriptRepository): transcript source
    """

    def __init__(self, gateway: GeminiGateway, transcripts: Optional[TranscriptRepository] = None):
        self.gateway = gateway
        self.transcripts = transcripts or get_transcript_repository()

    async def answer(self, room_id: str, query: str) -> str:
        """Answers a question about a room's meeting.

        Args:
            room_id: room whose transcript is the context
            query: the participant's question

        Returns:
            str: model answer or a canned reply when there is nothing to ask about
        """
        if not self.gateway.is_configured:
            return NOT_CONFIGURED_REPLY

        parsed = parse_query(query)
        logger.info(f"[Assistant] room '{room_id}': {parsed.type} query")

        if parsed.type == "speaker_query" and parsed.speaker_name:
            spoken = await self.transcripts.get_entries_by_speaker(room_id, parsed.speaker_name)
            entries = await self.transcripts.get_all_room_entries(room_id)
            if not spoken:
                speakers = list(dict.fromkeys(e.get("speaker_name") or "Unknown" for e in entries))
                return (f"I couldn't find any messages from \"{parsed.speaker_name}\" in this meeting. "
                        f"The participants I can see are: {', '.join(speakers)}.")

        elif parsed.type == "time_query" and parsed.time_minutes:
            since_ms = int(time.time() * 1000) - parsed.time_minutes * 60 * 1000
            entries = await self.transcripts.get_entries_since(room_id, since_ms)
            if not entries:
                return f"No messages found in the last {parsed.time_minutes} minutes."

        elif parsed.type == "summary":
            entries = await self.transcripts.get_all_room_entries(room_id)
            if not entries:
                return EMPTY_SUMMARY_REPLY

        elif parsed.type == "action_items":
            entries = await self.transcripts.get_all_room_entries(room_id)
            if not entries:
                return EMPTY_ACTION_ITEMS_REPLY
            query = ACTION_ITEMS_QUERY

        else:
            entries = await self.transcripts.get_all_room_entries(room_id)
            if not entries:
                return EMPTY_GENERAL_REPLY

        context = format_transcript_context(entries)
        return await self.gateway.answer_query(ASSISTANT_SYSTEM_PROMPT, query, context)
