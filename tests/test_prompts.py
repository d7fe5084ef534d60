"""Tests for hiro.prompts: Handlebars rendering, stack defaults, field inference,
six-section prompt assembly, and model suggestions."""

import json

import pytest

from hiro.inference import RoleInferenceEngine
from hiro.lexicon import build_lexicon
from hiro.llm import LLMError, StaticChunkSource
from hiro.prompts import (
    OUTPUT_SPECS,
    SUGGEST_PROMPT,
    TECH_PLACEHOLDER,
    PromptError,
    PromptFields,
    Suggestion,
    build_prompt,
    infer_fields,
    infer_tech_from_stack,
    parse_suggestion,
    render_prompt,
    suggest_inputs,
)


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    assert render_prompt("Hello {{name}}!", {"name": "World"}) == "Hello World!"


def test_render_each_loop():
    tpl = "{{#each items}}{{this}} {{/each}}"
    assert render_prompt(tpl, {"items": ["a", "b", "c"]}) == "a b c "


def test_render_triple_stash_not_escaped():
    assert render_prompt("{{{x}}}", {"x": "<b> & co"}) == "<b> & co"


def test_render_missing_variable():
    assert render_prompt("Hello {{name}}!", {}) == "Hello !"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


# ── infer_tech_from_stack ────────────────────────────────────


def test_given_stack_wins():
    assert infer_tech_from_stack("Frontend Engineer", "  Svelte, Bun ") == "Svelte, Bun"


@pytest.mark.parametrize("role, expected", [
    ("Rust Engineer", "Rust, Cargo"),
    ("Go developer", "Go, chi"),
    ("Node.js Engineer", "TypeScript, Node.js, Fastify"),
    ("Python Engineer", "Python 3.11, FastAPI"),
    ("Frontend Engineer", "React, TypeScript, Vite"),
    ("DevOps/SRE", "Terraform, Kubernetes"),
])
def test_stack_default_from_role(role, expected):
    assert infer_tech_from_stack(role).startswith(expected)


def test_generic_stack_fallback():
    assert infer_tech_from_stack("Backend Engineer") == "TypeScript, Node.js, Docker, GitHub Actions"


def test_keyword_must_be_whole_word():
    # "go" inside "Django" or "golf" does not count
    assert not infer_tech_from_stack("Django golfer").startswith("Go,")


# ── infer_fields ─────────────────────────────────────────────


def test_infer_fields_backend():
    fields = infer_fields("build a REST api")
    assert fields.role.startswith("Backend Engineer — lifecycle: Backend, Tooling.")
    assert "Scope: Design stable APIs" in fields.role
    assert "Define API/contracts and handler skeletons" in fields.task
    assert fields.output_spec == OUTPUT_SPECS["api"]
    assert "- Inferred role from needs: Backend Engineer" in fields.context
    assert "- Tech stack inferred: TypeScript, Node.js, Docker, GitHub Actions" in fields.context


def test_infer_fields_frontend():
    fields = infer_fields("build a React UI")
    assert fields.role.startswith("Frontend Engineer")
    assert "Primary tech/tooling: React, TypeScript, Vite" in fields.role
    assert fields.output_spec == OUTPUT_SPECS["frontend"]
    assert "Produce component specs and stories" in fields.task


def test_infer_fields_devops():
    fields = infer_fields("deploy on k8s with terraform")
    assert fields.role.startswith("DevOps/SRE")
    assert fields.output_spec == OUTPUT_SPECS["devops"]


def test_infer_fields_data_uses_api_output():
    fields = infer_fields("daily ETL for warehouse")
    assert fields.role.startswith("Data Engineer")
    assert "Define schemas and pipelines with quality checks" in fields.task
    assert fields.output_spec == OUTPUT_SPECS["api"]


def test_infer_fields_with_stack():
    fields = infer_fields("build a REST api", "Rust, Axum")
    assert fields.tech_stack == "Rust, Axum"
    assert "**Tech stack & environment:** Rust, Axum" in fields.context
    assert "- Tech stack provided: Rust, Axum" in fields.context


def test_infer_fields_empty_needs():
    fields = infer_fields("")
    assert fields.role.startswith("Backend Engineer")
    assert "- Defaulted role: Backend Engineer" in fields.context


def test_infer_fields_task_has_four_steps():
    fields = infer_fields("api")
    assert len(fields.task.splitlines()) == 4
    assert all(line.startswith("- ") for line in fields.task.splitlines())


def test_infer_fields_uses_given_engine():
    lexicon = build_lexicon({
        "default_role": "Game Dev",
        "roles": [{"name": "Game Dev", "stages": ["Engine"], "scope": "Ship games."}],
    })
    fields = infer_fields("anything", engine=RoleInferenceEngine(lexicon))
    assert fields.role.startswith("Game Dev — lifecycle: Engine.")


# ── build_prompt ─────────────────────────────────────────────


def test_build_prompt_has_six_sections_in_order():
    prompt = build_prompt(PromptFields(role="Staff Engineer", task="- do it"))
    headings = ["1) Role", "2) Task", "3) Context", "4) Reasoning",
                "5) Output format", "6) Stop conditions"]
    positions = [prompt.index(h) for h in headings]
    assert positions == sorted(positions)


def test_build_prompt_user_role_kept():
    prompt = build_prompt(PromptFields(role="Staff Rust Engineer"))
    assert "1) Role\nStaff Rust Engineer\n" in prompt
    assert "- Role provided by user" in prompt
    assert "**Tech stack & environment:** Rust, Cargo, tokio" in prompt


def test_build_prompt_blank_role_inferred():
    prompt = build_prompt(PromptFields())
    assert "1) Role\nBackend Engineer — lifecycle: Backend, Tooling\n" in prompt
    assert "- Role inferred as Backend Engineer — lifecycle: Backend, Tooling" in prompt


def test_build_prompt_placeholder_role_inferred_from_task():
    prompt = build_prompt(PromptFields(role="[role]", task="- build a React UI with storybook"))
    assert "1) Role\nFrontend Engineer — lifecycle: UI/UX, Frontend\n" in prompt


def test_build_prompt_fills_tech_placeholder():
    prompt = build_prompt(PromptFields(tech_stack="Python, FastAPI"))
    assert TECH_PLACEHOLDER not in prompt
    assert "**Tech stack & environment:** Python, FastAPI" in prompt
    assert "- Tech stack provided: Python, FastAPI" in prompt


def test_build_prompt_text_not_escaped():
    prompt = build_prompt(PromptFields(role="Dev", task="- handle <input> & 'quotes'"))
    assert "- handle <input> & 'quotes'" in prompt


# ── Suggestions ──────────────────────────────────────────────


def test_parse_suggestion_plain_json():
    assert parse_suggestion('{"needs": "n", "techStack": "t"}') == Suggestion(needs="n", tech_stack="t")


def test_parse_suggestion_fenced():
    text = '```json\n{"needs": "n", "techStack": "t"}\n```'
    assert parse_suggestion(text) == Suggestion(needs="n", tech_stack="t")


def test_parse_suggestion_invalid_json():
    assert parse_suggestion("sure! here you go") == Suggestion()


def test_parse_suggestion_non_object():
    assert parse_suggestion("[1, 2]") == Suggestion()


def test_parse_suggestion_non_string_values():
    assert parse_suggestion('{"needs": 5, "techStack": "Go"}') == Suggestion(needs="", tech_stack="Go")


def _sse_text(text: str) -> str:
    return f"data: {json.dumps({'text': text})}\n\n"


async def test_suggest_inputs():
    reply = json.dumps({"needs": "A CLI for logs", "techStack": "Go"})
    source = StaticChunkSource([_sse_text(reply[:10]), _sse_text(reply[10:]), "data: [DONE]\n\n"])
    suggestion = await suggest_inputs(source, "ollama", "llama3")
    assert suggestion == Suggestion(needs="A CLI for logs", tech_stack="Go")
    request = source.requests[0]
    assert request.messages[0].content == SUGGEST_PROMPT
    assert (request.provider, request.model) == ("ollama", "llama3")


async def test_suggest_inputs_failure_returns_empty():
    def factory(request):
        async def failing():
            raise LLMError("Cannot connect")
            yield ""  # pragma: no cover
        return failing()

    assert await suggest_inputs(factory) == Suggestion()
