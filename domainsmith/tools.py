"""domainsmith/tools.py

Tool actions the model can request, and the default tool catalogue.

External lookups (weather, Domainr search/status) go through the executor's
shared ``httpx.AsyncClient`` with a single attempt each.  Ranking, trademark
screening, and the decision tool are local computations.
"""

from __future__ import annotations

# Standard Library
import logging
import re
from collections.abc import Sequence
from typing import Any

# Third-Party Libraries
import httpx
from pydantic import BaseModel, Field

# Local Modules
from domainsmith.errors import ToolExecutionError
from domainsmith.executor import ToolEnvironment
from domainsmith.registry import ToolDefinition, ToolRegistry
from domainsmith.settings import Settings

logger = logging.getLogger(__name__)

# Domainr allows a handful of status lookups per call; extras are dropped.
MAX_STATUS_BATCH: int = 5

# Domainr summaries meaning "nobody holds this name".
AVAILABLE_SUMMARIES: frozenset[str] = frozenset({"inactive", "undelegated"})

TLD_WEIGHTS: dict[str, int] = {
    ".com": 10,
    ".net": 8,
    ".org": 7,
    ".io": 6,
    ".co": 6,
    ".ai": 5,
}
DEFAULT_TLD_WEIGHT: int = 3
HYPHEN_PENALTY: int = 3
DIGIT_PENALTY: int = 2

KNOWN_BRANDS: tuple[str, ...] = (
    "google",
    "facebook",
    "nike",
    "apple",
    "amazon",
    "disney",
)

DECISION_OPTIONS: tuple[str, ...] = ("rank", "trademark")

_DIGIT_RE = re.compile(r"[0-9]")


# ---------------------------------------------------------------------------
# Argument schemas
# ---------------------------------------------------------------------------


class WeatherArgs(BaseModel):
    city: str = Field(
        ...,
        min_length=1,
        description=(
            "The city and country ONLY, e.g. 'New York, US'. "
            "Do not include the state or other descriptors."
        ),
    )


class SearchDomainsArgs(BaseModel):
    query: str = Field(
        ...,
        min_length=1,
        description="The keyword or phrase to search domains for (e.g., 'acme cafe').",
    )


class DomainStatusArgs(BaseModel):
    domains: list[str] = Field(
        ...,
        min_length=1,
        description=(
            f"List of up to {MAX_STATUS_BATCH} fully qualified domain names "
            "(e.g., acme.com)."
        ),
    )


class DomainListArgs(BaseModel):
    domains: list[str] = Field(..., min_length=1, description="A list of domain names.")


class NoArgs(BaseModel):
    pass


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def tld_of(domain: str) -> str:
    """Return the suffix from the last dot, or the whole name if there is none."""
    dot = domain.rfind(".")
    return domain[dot:].lower() if dot >= 0 else domain.lower()


def score_domain(domain: str) -> int:
    """Score one domain: short names on popular TLDs without hyphens/digits win."""
    length_score = max(0, 20 - len(domain))
    tld_score = TLD_WEIGHTS.get(tld_of(domain), DEFAULT_TLD_WEIGHT)
    penalty = (HYPHEN_PENALTY if "-" in domain else 0) + (
        DIGIT_PENALTY if _DIGIT_RE.search(domain) else 0
    )
    return length_score + tld_score - penalty


def rank(domains: Sequence[str]) -> dict[str, Any]:
    """Rank *domains* by :func:`score_domain`, highest first.

    Ties keep their input order.

    Returns:
        ``{"ranked": [{"domain", "score"}, ...], "top": <best entry or None>}``
    """
    scored = [{"domain": d, "score": score_domain(d)} for d in domains]
    scored.sort(key=lambda entry: entry["score"], reverse=True)
    return {"ranked": scored, "top": scored[0] if scored else None}


def check_trademark_conflicts(domains: Sequence[str]) -> dict[str, Any]:
    """Flag domains whose label contains a known brand name."""
    results: list[dict[str, Any]] = []
    for domain in domains:
        label = domain.split(".", 1)[0].lower()
        conflict = any(brand in label for brand in KNOWN_BRANDS)
        results.append(
            {
                "domain": domain,
                "trademark_conflict": conflict,
                "status": "Potential Conflict" if conflict else "Clear",
            }
        )
    return {"results": results}


# ---------------------------------------------------------------------------
# Tool actions
# ---------------------------------------------------------------------------


async def get_weather(args: WeatherArgs, env: ToolEnvironment) -> dict[str, Any]:
    """Fetch current conditions for a city from OpenWeatherMap."""
    settings = env.settings
    if not settings.openweather_api_key:
        raise ToolExecutionError("OPENWEATHER_API_KEY is not set")

    response = await env.http.get(
        f"{settings.openweather_base_url.rstrip('/')}/weather",
        params={
            "q": args.city,
            "appid": settings.openweather_api_key,
            "units": "imperial",
        },
    )
    if not response.is_success:
        raise ToolExecutionError(
            f"Weather API error: {response.status_code} {response.reason_phrase}"
        )
    data = response.json()
    try:
        return {
            "city": data["name"],
            "temperature": data["main"]["temp"],
            "humidity": data["main"]["humidity"],
            "conditions": data["weather"][0]["description"],
        }
    except (KeyError, IndexError, TypeError) as exc:
        raise ToolExecutionError(f"Malformed weather response: missing {exc}") from exc


def _domainr_headers(settings: Settings) -> dict[str, str]:
    if not settings.rapidapi_key:
        raise ToolExecutionError("RAPIDAPI_KEY is not set")
    return {
        "X-RapidAPI-Key": settings.rapidapi_key,
        "X-RapidAPI-Host": settings.domainr_host,
    }


async def search_domains(args: SearchDomainsArgs, env: ToolEnvironment) -> Any:
    """Return Domainr's suggestions for a keyword query."""
    settings = env.settings
    response = await env.http.get(
        f"{settings.domainr_base_url.rstrip('/')}/search",
        params={"query": args.query},
        headers=_domainr_headers(settings),
    )
    if not response.is_success:
        raise ToolExecutionError(
            f"Domainr API search error: {response.status_code} {response.reason_phrase}"
        )
    return response.json()


async def _status_entry(
    domain: str, url: str, headers: dict[str, str], http: httpx.AsyncClient
) -> dict[str, Any]:
    """Check one domain; every failure becomes an ``error`` entry for that domain."""
    try:
        response = await http.get(url, params={"domain": domain}, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("[domain_status] %s: %s", domain, exc)
        return {"domain": domain, "status": "error", "error": str(exc) or type(exc).__name__}

    if not response.is_success:
        logger.warning("[domain_status] %s: HTTP %d", domain, response.status_code)
        return {"domain": domain, "status": "error"}

    try:
        entries = response.json().get("status") or []
    except (ValueError, AttributeError):
        return {"domain": domain, "status": "error", "error": "Malformed status response"}

    matches = [e for e in entries if isinstance(e, dict) and e.get("domain") == domain]
    entry = matches[0] if matches else next((e for e in entries if isinstance(e, dict)), None)
    if entry is None:
        return {"domain": domain, "status": "error"}
    summary = str(entry.get("summary", ""))
    return {**entry, "available": summary in AVAILABLE_SUMMARIES}


async def get_domain_status(args: DomainStatusArgs, env: ToolEnvironment) -> dict[str, Any]:
    """Check availability of up to :data:`MAX_STATUS_BATCH` domains, one at a time."""
    settings = env.settings
    headers = _domainr_headers(settings)
    url = f"{settings.domainr_base_url.rstrip('/')}/status"

    domains = args.domains[:MAX_STATUS_BATCH]
    if len(args.domains) > MAX_STATUS_BATCH:
        logger.debug(
            "[domain_status] ignoring %d domains past the batch cap",
            len(args.domains) - MAX_STATUS_BATCH,
        )

    results: list[dict[str, Any]] = []
    for domain in domains:
        results.append(await _status_entry(domain, url, headers, env.http))
    return {"status": results}


async def rank_domains(args: DomainListArgs, env: ToolEnvironment) -> dict[str, Any]:
    return rank(args.domains)


async def check_trademarks(args: DomainListArgs, env: ToolEnvironment) -> dict[str, Any]:
    return check_trademark_conflicts(args.domains)


async def make_decision(args: NoArgs, env: ToolEnvironment) -> dict[str, str]:
    decision = env.chooser(DECISION_OPTIONS)
    logger.info("[make_decision] selected %r", decision)
    return {"decision": decision}


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="get_weather",
        description="Get weather information for a city.",
        parameter_schema=WeatherArgs,
        execute=get_weather,
    ),
    ToolDefinition(
        name="search_domains",
        description="Returns domain name suggestions based on a given query.",
        parameter_schema=SearchDomainsArgs,
        execute=search_domains,
    ),
    ToolDefinition(
        name="get_domain_status",
        description=(
            f"Checks availability of up to {MAX_STATUS_BATCH} domains. "
            "Status 'inactive' or 'undelegated' = available."
        ),
        parameter_schema=DomainStatusArgs,
        execute=get_domain_status,
    ),
    ToolDefinition(
        name="rank_domains",
        description="Ranks domains based on quality, length, and TLD popularity.",
        parameter_schema=DomainListArgs,
        execute=rank_domains,
    ),
    ToolDefinition(
        name="check_trademarks",
        description=(
            "Checks if any of the provided domain names may have potential "
            "trademark conflicts."
        ),
        parameter_schema=DomainListArgs,
        execute=check_trademarks,
    ),
    ToolDefinition(
        name="make_decision",
        description=(
            "Randomly chooses the next action: either to check domain rankings "
            "or check trademark classes."
        ),
        parameter_schema=NoArgs,
        execute=make_decision,
    ),
)

WEATHER_TOOLS: tuple[str, ...] = ("get_weather",)
SUGGESTION_TOOLS: tuple[str, ...] = ("search_domains", "get_domain_status")
DECISION_TOOLS: tuple[str, ...] = ("make_decision",)


def default_registry() -> ToolRegistry:
    """Build a registry holding every tool in :data:`TOOL_DEFINITIONS`."""
    return ToolRegistry(TOOL_DEFINITIONS)
