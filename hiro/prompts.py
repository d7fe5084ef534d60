"""Six-section prompt assembly, rendered with Handlebars.

The prompt has fixed sections (Role, Task, Context, Reasoning, Output
format, Stop conditions) filled from user-edited fields. Blank or
placeholder fields are completed from role inference:

    infer_fields(needs, tech_stack)  → PromptFields pre-filled for the role
    build_prompt(fields)             → final prompt text
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any

import pybars
from pydantic import BaseModel

from hiro.inference import RoleInferenceEngine
from hiro.llm import LLMError, SourceFactory, collect_text
from hiro.models import ChatRequest, Message, RoleInference

logger = logging.getLogger(__name__)

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Templates ────────────────────────────────────────────

PROMPT_TEMPLATE = """\
**Universal 6-Section Dev Prompt Builder (Hiro v2)**

You are Hiro, a master-level coding optimization specialist. Your job is to \
generate a complete, production-oriented prompt, structured into six \
sections, that another specialist model can execute.

---

1) Role
{{{role}}}

2) Task
{{{task}}}

3) Context
{{{context}}}

4) Reasoning
{{{reasoning}}}

5) Output format
{{{output_spec}}}

6) Stop conditions
{{{stop_conditions}}}"""

CONTEXT_TEMPLATE = """\
**Standards & policies:** OWASP ASVS L2; Twelve-Factor; SemVer; SPDX
**Tech stack & environment:** {{{tech}}}
**Constraints & NFRs:** latency p95 ≤ 200ms; uptime ≥ 99.9%; cost ceiling sensible
**Interfaces & dependencies:** HTTP/JSON; Postgres; queue optional
**Data & compliance:** minimize PII; 30–90d retention
**Assumptions:**
{{#each assumptions}}- {{{this}}}
{{/each}}**Out of scope:** prolonged discovery; unrelated UIs"""

TECH_PLACEHOLDER = "**Tech stack & environment:** [list]"

DEFAULT_CONTEXT = (
    "**Standards & policies:** [list]\n"
    f"{TECH_PLACEHOLDER}\n"
    "**Constraints & NFRs:** [bullets with targets]\n"
    "**Interfaces & dependencies:** [list]\n"
    "**Data & compliance:** [list]"
)

OUTPUT_SPECS: dict[str, str] = {
    "frontend": (
        "- Component spec — states and props\n\n```md\n| State | Inputs | Expected |\n"
        "|---|---|---|\n| default | none | renders |\n\n```\n\n"
        "*Usage/validation:* run storybook and a11y checks"
    ),
    "devops": (
        "- Terraform module — provision core infra\n\n```hcl\n"
        'terraform { required_providers { aws = { source = "hashicorp/aws" } } }\n\n```\n\n'
        "*Usage/validation:* terraform plan && policy checks"
    ),
    "api": (
        "- OpenAPI — API contract\n\n```yaml\nopenapi: 3.1.0\n"
        "info: { title: sample, version: 0.1.0 }\n\n```\n\n"
        "*Usage/validation:* run contract tests in CI"
    ),
}


class PromptFields(BaseModel):
    """User-editable prompt inputs. Defaults are the blank-form placeholders."""

    role: str = ""
    tech_stack: str = ""
    task: str = "- [3–7 high-leverage steps tailored to the role]"
    context: str = DEFAULT_CONTEXT
    reasoning: str = "- [criterion 1]\n- [criterion 2]\n- [criterion 3]\n- [criterion 4]"
    output_spec: str = (
        "- [Artifact type] — [purpose]\n\n```[language or format]\n[content]\n```\n\n"
        "*Usage/validation:* [commands or CI job names]"
    )
    stop_conditions: str = "- [primary completion criterion]\n- [secondary]\n- [tertiary]"


# ── Tech-stack defaults ──────────────────────────────────

_STACK_DEFAULTS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\brust\b"), "Rust, Cargo, tokio, sqlx, Postgres, Docker"),
    (re.compile(r"\b(go|golang)\b"), "Go, chi, Postgres, Docker"),
    (
        re.compile(r"\b(node|node\.js|typescript|javascript|ts|js)\b"),
        "TypeScript, Node.js, Fastify, Prisma, Postgres, Docker",
    ),
    (re.compile(r"\bpython\b"), "Python 3.11, FastAPI, Pydantic, SQLAlchemy, Postgres, Docker"),
    (re.compile(r"\b(react|frontend|ui)\b"), "React, TypeScript, Vite, ESLint/Prettier, Playwright"),
    (
        re.compile(r"\b(devops|infra|kubernetes|k8s|sre|terraform)\b"),
        "Terraform, Kubernetes, Helm, Prometheus/Grafana, GitHub Actions",
    ),
]
_GENERIC_STACK = "TypeScript, Node.js, Docker, GitHub Actions"


def infer_tech_from_stack(role: str, tech_stack: str = "") -> str:
    """The user's stack if given, else a default stack keyed off the role."""
    if tech_stack and tech_stack.strip():
        return tech_stack.strip()
    hay = (role or "").lower()
    for pattern, stack in _STACK_DEFAULTS:
        if pattern.search(hay):
            return stack
    return _GENERIC_STACK


def role_line(info: RoleInference) -> str:
    return f"{info.role} — lifecycle: {', '.join(info.stages)}"


def _is_placeholder(value: str) -> bool:
    return not value.strip() or "[" in value


def _role_kind(role: str) -> str:
    if "Frontend" in role:
        return "frontend"
    if "DevOps" in role:
        return "devops"
    if "Data" in role:
        return "data"
    return "api"


_TASK_FOCUS: dict[str, str] = {
    "frontend": "Produce component specs and stories",
    "devops": "Provision infra and CI with policy checks",
    "data": "Define schemas and pipelines with quality checks",
    "api": "Define API/contracts and handler skeletons",
}


def infer_fields(
    needs: str,
    tech_stack: str = "",
    engine: RoleInferenceEngine | None = None,
) -> PromptFields:
    """Pre-fill every prompt section from the inferred role."""
    info = (engine or RoleInferenceEngine()).infer(needs, tech_stack)
    tech = infer_tech_from_stack(info.role, tech_stack)
    kind = _role_kind(info.role)

    steps = [
        "Analyze requirements and constraints",
        "Apply relevant standards and patterns",
        _TASK_FOCUS[kind],
        "Add quickstart and validation",
    ]
    assumptions = [
        f"Inferred role from needs: {info.role}" if needs else f"Defaulted role: {info.role}",
        f"Tech stack provided: {tech_stack}" if tech_stack else f"Tech stack inferred: {tech}",
    ]
    return PromptFields(
        role=f"{role_line(info)}. Scope: {info.scope} Primary tech/tooling: {tech}.",
        tech_stack=tech_stack,
        task="\n".join(f"- {s}" for s in steps),
        context=render_prompt(CONTEXT_TEMPLATE, {"tech": tech, "assumptions": assumptions}),
        output_spec=OUTPUT_SPECS.get(kind, OUTPUT_SPECS["api"]),
        stop_conditions="- One compilable artifact + quickstart\n- Contract/tests pass locally and in CI",
    )


def build_prompt(fields: PromptFields, engine: RoleInferenceEngine | None = None) -> str:
    """Render the six-section prompt.

    A blank or placeholder role is inferred from task + context; the tech
    placeholder in context is filled and an Assumptions block appended.
    """
    role_given = not _is_placeholder(fields.role)
    if role_given:
        role = fields.role
    else:
        role = role_line((engine or RoleInferenceEngine()).infer(fields.task, fields.context))
    tech = infer_tech_from_stack(role, fields.tech_stack)

    context = fields.context.replace(TECH_PLACEHOLDER, f"**Tech stack & environment:** {tech}")
    assumptions = [
        "- Role provided by user" if role_given else f"- Role inferred as {role}",
        f"- Tech stack provided: {fields.tech_stack}" if fields.tech_stack
        else f"- Tech stack inferred: {tech}",
    ]
    context = f"{context}\n**Assumptions:**\n" + "\n".join(assumptions)

    return render_prompt(PROMPT_TEMPLATE, {
        "role": role,
        "task": fields.task,
        "context": context,
        "reasoning": fields.reasoning,
        "output_spec": fields.output_spec,
        "stop_conditions": fields.stop_conditions,
    })


# ── Suggest (needs / tech stack from the model) ──────────

SUGGEST_PROMPT = (
    'Suggest a short "needs" statement and tech stack. '
    'Return JSON {"needs":"...","techStack":"..."}.'
)


class Suggestion(BaseModel):
    needs: str = ""
    tech_stack: str = ""


def parse_suggestion(text: str) -> Suggestion:
    """Parse {"needs", "techStack"} from model output, stripping markdown fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("Suggestion output is not valid JSON: %s", e)
        return Suggestion()
    if not isinstance(data, dict):
        return Suggestion()
    needs = data.get("needs")
    stack = data.get("techStack")
    return Suggestion(
        needs=needs if isinstance(needs, str) else "",
        tech_stack=stack if isinstance(stack, str) else "",
    )


async def suggest_inputs(
    source_factory: SourceFactory, provider: str = "openai", model: str = ""
) -> Suggestion:
    """Ask the model for example inputs. Returns an empty Suggestion on failure."""
    request = ChatRequest(
        messages=[Message(role="user", content=SUGGEST_PROMPT)],
        provider=provider, model=model,
    )
    try:
        text = await collect_text(source_factory(request))
    except LLMError as e:
        logger.warning("Suggestion request failed: %s", e)
        return Suggestion()
    return parse_suggestion(text)
