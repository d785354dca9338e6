"""Gemini transcription and assistant gateway.

Wraps the Gemini generateContent REST endpoint for three jobs:
    - transcribe: PCM utterance (wrapped as WAV) -> spoken text
    - summarize: full meeting transcript -> bullet summary
    - answer_query: assistant question over transcript context

The response shape of generateContent varies between models and between
"no speech" and normal answers, so text extraction walks an ordered list of
strategies and takes the first one that applies.

Note:
    None of the public methods raise. Failures are logged and turned into
    empty output ("" for transcribe/summarize, an apology for answer_query).
"""
import io
import wave
import base64
import logging
from typing import Any, Callable, List, Optional

import httpx

from .config import gemini_config, GeminiConfig

logger = logging.getLogger(__name__)


TRANSCRIBE_PROMPT = (
    "Transcribe the human speech in this audio clip. Return ONLY the spoken words "
    "with no additional commentary. If there is no clear speech, return an empty "
    "response - do NOT return messages like \"nothing\", \"no speech detected\", "
    "\"[silence]\", or any other placeholder text."
)

SUMMARY_PROMPT = """You are a meeting summarization assistant. Summarize the following meeting transcript. Include:
1. Key points discussed
2. Decisions made
3. Action items (if any)
4. Next steps (if any)

Format the summary in clear, concise bullet points.

Meeting Transcript:
{transcript}"""

QUERY_APOLOGY = "Sorry, I encountered an error processing your question. Please try again."


class GeminiError(Exception):
    """Failed generateContent call (transport, status or error payload)."""


def build_wav(pcm: bytes, sample_rate: int = 16000, channels: int = 1) -> bytes:
    """Wraps raw 16-bit PCM in a 44-byte RIFF/WAVE header."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()


# ============================================================
# Response text extraction
# ============================================================

def _first_candidate(data: dict) -> Optional[dict]:
    candidates = data.get("candidates") if isinstance(data, dict) else None
    if not candidates or not isinstance(candidates[0], dict):
        return None
    return candidates[0]


def _from_content_parts(candidate: dict) -> Optional[str]:
    content = candidate.get("content")
    if isinstance(content, dict):
        parts = content.get("parts") or []
        if parts and isinstance(parts[0], dict) and parts[0].get("text"):
            return parts[0]["text"]
    return None


def _from_content_list(candidate: dict) -> Optional[str]:
    content = candidate.get("content")
    if isinstance(content, list) and content and isinstance(content[0], dict) and content[0].get("text"):
        return content[0]["text"]
    return None


def _from_candidate_text(candidate: dict) -> Optional[str]:
    text = candidate.get("text")
    return text if isinstance(text, str) and text else None


def _from_empty_content(candidate: dict) -> Optional[str]:
    # e.g. {"role": "model"} with no parts: the model heard nothing
    content = candidate.get("content")
    if isinstance(content, dict) and len(content) <= 1:
        return ""
    return None


EXTRACTION_STRATEGIES: List[Callable[[dict], Optional[str]]] = [
    _from_content_parts,
    _from_content_list,
    _from_candidate_text,
    _from_empty_content,
]


def extract_text(data: dict) -> Optional[str]:
    """Returns the response text, or None if no strategy matches.

    Args:
        data: decoded generateContent response

    Returns:
        Optional[str]: stripped text ("" when the model returned empty content)

    Examples:
        >>> extract_text({"candidates": [{"content": {"parts": [{"text": " hi "}]}}]})
        'hi'
        >>> extract_text({"candidates": [{"content": {"role": "model"}}]})
        ''
    """
    candidate = _first_candidate(data)
    if candidate is None:
        return None
    for strategy in EXTRACTION_STRATEGIES:
        text = strategy(candidate)
        if text is not None:
            return text.strip()
    return None


class GeminiGateway:
    """Async client for Gemini generateContent.

    Attributes:
        config (GeminiConfig): API key, models and timeout

    Examples:
        >>> gateway = GeminiGateway()
        >>> text = await gateway.transcribe(pcm_bytes)
        >>> summary = await gateway.summarize(text)
    """

    def __init__(self, config: Optional[GeminiConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or gemini_config
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.config.TIMEOUT))
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _generate(self, model: str, parts: List[dict], generation_config: Optional[dict] = None) -> dict:
        """Calls generateContent and returns the decoded body.

        Raises:
            GeminiError: transport failure, non-2xx status or error payload
        """
        client = await self._get_client()
        body: dict = {"contents": [{"parts": parts}]}
        if generation_config:
            body["generationConfig"] = generation_config

        try:
            response = await client.post(
                self.config.endpoint(model),
                params={"key": self.config.API_KEY},
                json=body,
            )
        except httpx.HTTPError as e:
            raise GeminiError(f"request failed: {type(e).__name__}: {e}") from e

        try:
            data: Any = response.json()
        except ValueError as e:
            raise GeminiError(f"invalid JSON (status {response.status_code})") from e

        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise GeminiError(f"API error: {message}")
        if not response.is_success:
            raise GeminiError(f"HTTP {response.status_code}")
        if not isinstance(data, dict):
            raise GeminiError("unexpected response type")
        return data

    async def transcribe(self, audio: bytes, sample_rate: int = 16000, channels: int = 1) -> str:
        """Transcribes one utterance of raw 16-bit PCM.

        Args:
            audio: PCM bytes
            sample_rate: sample rate of the PCM (Hz)
            channels: channel count

        Returns:
            str: spoken words, "" for silence or on any failure
        """
        wav_b64 = base64.b64encode(build_wav(audio, sample_rate, channels)).decode("ascii")
        return await self.transcribe_encoded(wav_b64, "audio/wav")

    async def transcribe_encoded(self, data_b64: str, mime_type: str) -> str:
        """Transcribes client-encoded audio (webm, ogg, wav...) given as base64.

        Returns:
            str: spoken words, "" for silence or on any failure
        """
        if not self.is_configured:
            logger.warning("[Gemini] GEMINI_API_KEY not set, skipping transcription")
            return ""

        parts = [
            {"text": TRANSCRIBE_PROMPT},
            {"inline_data": {"mime_type": mime_type, "data": data_b64}},
        ]

        try:
            data = await self._generate(self.config.MODEL, parts)
        except Exception as e:
            logger.error(f"[Gemini] transcription failed: {e}")
            return ""

        text = extract_text(data)
        if text is None:
            logger.error(f"[Gemini] unexpected transcription response: {data}")
            return ""
        if text:
            logger.info(f"[Gemini] transcription: \"{text}\"")
        else:
            logger.info("[Gemini] empty response, no speech detected by model")
        return text

    async def summarize(self, transcript: str) -> str:
        """Summarizes a full meeting transcript.

        Returns:
            str: bullet-point summary, "" on failure
        """
        if not self.is_configured:
            logger.warning("[Gemini] GEMINI_API_KEY not set, skipping summary")
            return ""

        logger.info(f"[Gemini] summarizing transcript ({len(transcript)} chars)")
        try:
            data = await self._generate(
                self.config.MODEL,
                [{"text": SUMMARY_PROMPT.format(transcript=transcript)}],
            )
        except Exception as e:
            logger.error(f"[Gemini] summary failed: {e}")
            return ""

        summary = extract_text(data)
        if not summary:
            logger.error(f"[Gemini] unexpected summary response: {data}")
            return ""
        logger.info(f"[Gemini] summary generated: {summary[:100]}...")
        return summary

    async def answer_query(self, system_prompt: str, query: str, context: str) -> str:
        """Answers a question about the meeting.

        Args:
            system_prompt: assistant instructions
            query: user question
            context: formatted transcript lines

        Returns:
            str: model answer, or an apology message on failure
        """
        prompt = f"{system_prompt}\n\nMeeting Transcript:\n{context}\n\nUser Question: {query}"
        try:
            data = await self._generate(
                self.config.ASSISTANT_MODEL,
                [{"text": prompt}],
                {
                    "temperature": self.config.ASSISTANT_TEMPERATURE,
                    "maxOutputTokens": self.config.ASSISTANT_MAX_OUTPUT_TOKENS,
                },
            )
        except Exception as e:
            logger.error(f"[Gemini] assistant query failed: {e}")
            return QUERY_APOLOGY

        answer = extract_text(data)
        if not answer:
            logger.error(f"[Gemini] no assistant answer in response: {data}")
            return QUERY_APOLOGY
        return answer
