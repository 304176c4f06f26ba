"""domainsmith/prompts.py

System prompts and request builders for the weather assistant and the
domain-name advisor.
"""

from __future__ import annotations

# Standard Library
from collections.abc import Sequence

WEATHER_SYSTEM_PROMPT: str = (
    "You are a helpful assistant. "
    "When the user asks about the weather, call the get_weather tool with the "
    "city and country only. "
    "If the tool reports an error or 'weather unknown', say so plainly instead "
    "of guessing. Keep answers short."
)

DOMAIN_SYSTEM_PROMPT: str = (
    "You are a business and domain name advisor. Respond ONLY in valid JSON. "
    "Provide domain name suggestions based on the user's business idea or keywords. "
    'Include a field "domain" with the suggested name, "tld" with a recommended TLD, '
    'and "reason" explaining why it\'s a good choice. '
    "If needed return whether or not the name is available. "
    "Always return an array of suggestions."
)

SUGGESTION_FORMAT_INSTRUCTION: str = (
    "Respond only with valid JSON in this format: "
    '{"suggestions": [{"domain": "...", "tld": ".com", "reason": "...", "available": true}]}. '
    "You may call search_domains for ideas and get_domain_status (at most 5 "
    "domains per call) to check availability before answering."
)

DECISION_PROMPT: str = (
    'Use the tool "make_decision" to choose the next step: either "rank" or "trademark".'
)

SUGGESTIONS_MARKER: str = "SUGGESTIONS:"

TLD_CHOICES: tuple[str, ...] = (".com", ".net", ".org", ".app", ".info", "Any")
VIBE_CHOICES: tuple[str, ...] = ("Fun", "Abstract", "Business", "Any")


def weather_prompt(destination: str) -> str:
    return f"Find the weather for {destination}"


def build_domain_request(
    keywords: str, tlds: Sequence[str] = (), vibes: Sequence[str] = ()
) -> str:
    """Build the user message the web front end sends to the domain advisor.

    Args:
        keywords: Free-text keywords describing the business.
        tlds: Preferred TLDs; empty or ``"Any"`` means no preference.
        vibes: Desired tone of the names.

    Returns:
        The user prompt text.
    """
    wanted_tlds = [t for t in tlds if t and t != "Any"]
    tld_text = ", ".join(wanted_tlds) if wanted_tlds else "any TLD"
    vibe_text = ", ".join(v for v in vibes if v and v != "Any") or "any vibe"
    return (
        "Help me with my business idea and domain names. "
        f"Generate me some potential domain names based off these words {keywords.strip()}. "
        f"I want the domain to be available with these tlds, {tld_text} "
        f"and this vibe {vibe_text}"
    )
