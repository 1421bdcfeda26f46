"""Incident summary for a confirmed cluster (OpenAI chat completion)."""

import logging
import os

from openai import OpenAI

logger = logging.getLogger("distress_api.notify.summarizer")

DEFAULT_SUMMARY_MODEL = "gpt-4o-mini"

SUMMARY_PROMPT = """You are an emergency response analyst.

Based on the following citizen reports, generate a concise and professional incident summary
highlighting the potential risk and recommended urgency. Use a clear, human tone.

Reports:
{reports}
"""


class SummaryUnavailable(RuntimeError):
    """No summary could be produced (not configured, empty reply, or API error)."""


def summarize_reports(descriptions: list[str], timeout_s: float = 20.0) -> str:
    """
    Return a natural-language summary of the cluster's report descriptions.
    Raises SummaryUnavailable when OPENAI_API_KEY is missing or the call fails.
    """
    lines = [d.strip() for d in descriptions if d and d.strip()]
    if not lines:
        raise SummaryUnavailable("no report descriptions to summarize")
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        raise SummaryUnavailable("OPENAI_API_KEY not set")
    model = os.environ.get("SUMMARY_MODEL") or DEFAULT_SUMMARY_MODEL
    prompt = SUMMARY_PROMPT.format(reports="\n".join("- " + d[:1000] for d in lines))
    try:
        client = OpenAI(api_key=api_key, timeout=timeout_s, max_retries=0)
        resp = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.3,
        )
        text = (resp.choices[0].message.content or "").strip()
    except Exception as e:
        raise SummaryUnavailable(f"summary request failed: {e}") from e
    if not text:
        raise SummaryUnavailable("empty summary")
    logger.info("summary generated reports=%d len=%d", len(lines), len(text))
    return text


def summarizer_configured() -> bool:
    return bool(os.environ.get("OPENAI_API_KEY"))
