"""Role inference and prompt assembly endpoints."""

from fastapi import APIRouter, HTTPException

from backend import state
from hiro.prompts import PromptError, PromptFields, build_prompt, infer_fields, suggest_inputs

from .models import InferBody, SuggestBody

router = APIRouter()


@router.post("/infer-role")
async def infer_role(body: InferBody):
    """Classify needs + tech stack into an engineering role with confidence."""
    return state.engine().infer(body.needs, body.tech_stack)


@router.post("/infer-fields")
async def infer_fields_route(body: InferBody):
    """Pre-fill all six prompt sections for the inferred role."""
    try:
        return infer_fields(body.needs, body.tech_stack, state.engine())
    except PromptError as e:
        raise HTTPException(422, str(e))


@router.post("/prompt")
async def render(fields: PromptFields):
    """Render the final six-section prompt."""
    try:
        return {"prompt": build_prompt(fields, state.engine())}
    except PromptError as e:
        raise HTTPException(422, str(e))


@router.post("/suggest")
async def suggest(body: SuggestBody):
    """Ask the model for example needs / tech stack values."""
    provider = body.provider or state.settings().provider
    suggestion = await suggest_inputs(
        state.source_factory(provider), provider, body.model or state.settings().model
    )
    return suggestion
