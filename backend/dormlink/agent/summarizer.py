"""Reason summarizer — shortens a student's free-text outing reason.

Uses the configured OpenAI model when a key is present. Without a key, or
when the call fails, the deterministic rule applies: short texts pass
through, longer ones keep their first two sentences.
"""
import logging
import re

from openai import OpenAI

from dormlink.config import settings

logger = logging.getLogger(__name__)

MIN_SUMMARY_LENGTH = 20
MAX_SENTENCES = 2

SYSTEM_PROMPT = (
    "You summarize a hostel student's reason for leaving campus for the staff "
    "who must approve it. Reply with one short sentence, no preamble, and keep "
    "any dates, places and names."
)


def _first_sentences(text: str) -> str:
    sentences = [s.strip() for s in re.split(r"[.!?]", text) if s.strip()]
    if len(sentences) <= MAX_SENTENCES:
        return text.strip()
    return ". ".join(sentences[:MAX_SENTENCES]) + "..."


def _llm_configured() -> bool:
    return bool(settings.OPENAI_API_KEY) and settings.OPENAI_API_KEY != "your-api-key-here"


def summarize(text: str) -> str:
    if not text or len(text) < MIN_SUMMARY_LENGTH:
        return text

    if not _llm_configured():
        return _first_sentences(text)

    client = OpenAI(api_key=settings.OPENAI_API_KEY)
    try:
        response = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
        )
    except Exception as e:
        logger.error("LLM API error while summarizing reason: %s", e)
        return _first_sentences(text)

    summary = (response.choices[0].message.content or "").strip()
    if response.usage:
        logger.info("Summarized reason (%d chars) using %d tokens", len(text), response.usage.total_tokens)
    return summary or _first_sentences(text)
