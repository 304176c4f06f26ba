"""web.py

Gradio web interface for the domainsmith domain-name advisor.
Serves a keyword / TLD / vibe form at 0.0.0.0:7860.

Each submission builds the advisor request from the form, runs the
suggest → decide → score workflow, and shows the suggestions as a table
alongside the raw advisor result.

Exposed interfaces:
    demo (gr.Blocks): The Gradio application.  Launch via ``python web.py``.
"""

from __future__ import annotations

# Standard Library
import logging
from typing import Any

# Third-Party Libraries
import gradio as gr
from dotenv import load_dotenv

# Local Modules
from domainsmith.advisor import AdvisorResult
from domainsmith.context import AppContext
from domainsmith.conversation import Turn
from domainsmith.errors import DomainsmithError
from domainsmith.prompts import DOMAIN_SYSTEM_PROMPT, TLD_CHOICES, VIBE_CHOICES, build_domain_request
from domainsmith.settings import Settings

load_dotenv()

settings = Settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

TABLE_HEADERS: list[str] = ["domain", "tld", "reason", "score"]


def result_rows(result: AdvisorResult) -> list[list[Any]]:
    """Flatten advisor output into table rows, best suggestion first."""
    rows = result.result.get("ranked") or result.result.get("trademarks") or result.suggestions
    table: list[list[Any]] = []
    for row in rows:
        score = row.get("rank") if result.decision == "rank" else row.get("trademark_status")
        table.append([row.get("domain", ""), row.get("tld", ""), row.get("reason", ""), score])
    return table


async def generate(
    keywords: str, tlds: list[str], vibes: list[str]
) -> tuple[list[list[Any]], dict[str, Any], str]:
    """Run the advisor for one form submission.

    Args:
        keywords: Business idea or keywords.
        tlds: Selected TLD checkboxes.
        vibes: Selected vibe checkboxes.

    Returns:
        A tuple of (table rows, raw advisor result, status line).
    """
    if not keywords.strip():
        return [], {}, "Please enter some keywords."

    turns = [Turn.system(DOMAIN_SYSTEM_PROMPT), Turn.user(build_domain_request(keywords, tlds, vibes))]
    try:
        async with AppContext.from_settings(settings) as ctx:
            result = await ctx.advisor.advise(turns)
    except DomainsmithError as exc:
        logger.error("Advisor request failed: %s", exc, exc_info=True)
        return [], {"error": str(exc)}, f"**Error:** {exc}"

    status = f"**Decision:** `{result.decision}` &nbsp;|&nbsp; {len(result.suggestions)} suggestion(s)"
    if result.truncated:
        status += " &nbsp;|&nbsp; step limit reached"
    return result_rows(result), result.to_dict(), status


# ---------------------------------------------------------------------------
# Gradio UI layout
# ---------------------------------------------------------------------------

with gr.Blocks(title="domainsmith") as demo:
    gr.Markdown("# domainsmith\n*Domain-name ideas from a local LLM.*")

    keywords_box = gr.Textbox(
        label="Keywords",
        placeholder="e.g. hiking trails national parks",
        autofocus=True,
    )
    with gr.Row():
        tld_boxes = gr.CheckboxGroup(choices=list(TLD_CHOICES), value=["Any"], label="TLDs")
        vibe_boxes = gr.CheckboxGroup(choices=list(VIBE_CHOICES), value=["Any"], label="Vibe")
    generate_btn = gr.Button("Generate", variant="primary")

    status_md = gr.Markdown()
    table = gr.Dataframe(headers=TABLE_HEADERS, label="Suggestions", interactive=False)
    with gr.Accordion("Raw result", open=False):
        raw_json = gr.JSON()

    gr.Markdown(f"**Model:** `{settings.model}` &nbsp;|&nbsp; **Backend:** `{settings.model_backend}`")

    inputs = [keywords_box, tld_boxes, vibe_boxes]
    outputs = [table, raw_json, status_md]
    keywords_box.submit(generate, inputs=inputs, outputs=outputs)
    generate_btn.click(generate, inputs=inputs, outputs=outputs)


if __name__ == "__main__":
    demo.launch(
        server_name="0.0.0.0",
        server_port=7860,
        theme=gr.themes.Soft(),
    )
