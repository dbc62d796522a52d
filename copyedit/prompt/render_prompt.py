"""Render prompt templates in copyedit/prompt/promptFiles using pystache.

Templates may pull in partials (``{{> name}}``); every partial is loaded from
``promptFiles/<name>.md`` with any leading/trailing code-fence wrapper
stripped, so files that include ```markdown blocks work as partials.

Usage:
    python -m copyedit.prompt.render_prompt [template_filename] [context.json]
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pystache

PROMPTS_DIR = Path(__file__).parent / "promptFiles"

# Bump whenever a prompt file changes so cached results are invalidated.
PROMPT_VERSION = "v1.2"

SYSTEM_TEMPLATE = "copyedit_system.md"
USER_TEMPLATE = "user_copyedit.md"

_TEMPLATE_PARTIALS: dict[str, list[str]] = {
    SYSTEM_TEMPLATE: ["copyedit_rules", "copyedit_output_format"],
    USER_TEMPLATE: [],
}


def _read_prompt(name: str) -> str:
    p = PROMPTS_DIR / name
    if not p.exists():
        raise FileNotFoundError(f"Prompt file not found: {p}")
    return p.read_text(encoding="utf-8")


def _strip_code_fences(s: str) -> str:
    """Strip a single leading and trailing code-fence block if present.

    Handles fences like ``` or ```` optionally followed by a language tag.
    """
    lines = s.splitlines()
    if not lines:
        return s
    first = lines[0].lstrip()
    last = lines[-1].lstrip()
    if first.startswith("```"):
        lines = lines[1:]
    if last.startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def _load_partials(template_names: tuple[str, ...]) -> dict[str, str]:
    partial_names: set[str] = set()
    for tpl in template_names:
        partial_names.update(_TEMPLATE_PARTIALS.get(tpl, []))
    return {
        name: _strip_code_fences(_read_prompt(f"{name}.md")) for name in partial_names
    }


def render_template(
    template_name: str = SYSTEM_TEMPLATE,
    context: dict | None = None,
) -> str:
    renderer = pystache.Renderer(partials=_load_partials((template_name,)))
    return renderer.render(_read_prompt(template_name), context or {}).strip()


def render_prompts(
    system_template: str = SYSTEM_TEMPLATE,
    user_template: str = USER_TEMPLATE,
    context: dict | None = None,
) -> tuple[str, str]:
    """Render a system and user prompt pair from two separate templates.

    Returns:
        (system_prompt, user_prompt)
    """
    renderer = pystache.Renderer(
        partials=_load_partials((system_template, user_template))
    )
    rendered_system = renderer.render(_read_prompt(system_template), context or {})
    rendered_user = renderer.render(_read_prompt(user_template), context or {})
    return rendered_system.strip(), rendered_user.strip()


def get_system_prompt_text() -> str:
    """Rendered system prompt, used when constructing providers."""
    return render_template(SYSTEM_TEMPLATE)


def build_user_prompts(text: str) -> list[str]:
    """User prompt list for one paragraph."""
    _, user_prompt = render_prompts(context={"text": text})
    return [user_prompt]


def _load_context(path: str) -> dict:
    return json.loads(Path(path).read_text(encoding="utf-8"))


if __name__ == "__main__":
    tpl = sys.argv[1] if len(sys.argv) > 1 else SYSTEM_TEMPLATE
    ctx = None
    if len(sys.argv) > 2:
        ctx = _load_context(sys.argv[2])
    print(render_template(tpl, ctx))
