"""Role lexicon: the immutable scoring configuration.

A LexiconStore holds every role the inference engine can pick, the
weighted word-boundary features that vote for each role, and the
tech-stack boost table. It is built once (DEFAULT_LEXICON, or
load_lexicon() from a JSON file) and passed explicitly to the engine.

JSON layout accepted by load_lexicon():

    {
      "default_role": "Backend Engineer",
      "roles": [
        {"name": "...", "stages": [...], "scope": "...",
         "features": [{"pattern": "api|rest", "weight": 3}]}
      ],
      "tech_boosts": {"react": {"roles": ["Frontend Engineer"], "weight": 2}}
    }

Feature patterns are regex alternatives without anchors; every pattern is
wrapped in word boundaries and compiled case-insensitively, so "ui" never
matches inside "build".
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class LexiconError(Exception):
    """Raised when lexicon data is inconsistent (duplicate roles, bad references)."""


def compile_feature_pattern(source: str) -> re.Pattern[str]:
    """Compile a feature source into a case-insensitive word-boundary pattern."""
    return re.compile(rf"\b(?:{source})\b", re.IGNORECASE)


class RoleFeature(BaseModel):
    """One weighted pattern. Matching is presence, not count."""

    model_config = ConfigDict(frozen=True)

    pattern: re.Pattern
    weight: float = Field(gt=0)

    @field_validator("pattern", mode="before")
    @classmethod
    def _compile(cls, value: Any) -> Any:
        if isinstance(value, str):
            return compile_feature_pattern(value)
        return value

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


class RoleDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    features: tuple[RoleFeature, ...] = ()
    stages: tuple[str, ...] = ()
    scope: str = ""


class TechBoostRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    roles: frozenset[str]
    weight: float = Field(gt=0)

    @field_validator("token")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.lower()


class LexiconStore(BaseModel):
    """Role definitions (in declaration order) plus the tech boost table."""

    model_config = ConfigDict(frozen=True)

    roles: tuple[RoleDefinition, ...]
    boosts: Mapping[str, TechBoostRule] = Field(default_factory=dict)
    default_role: str = "Backend Engineer"

    @field_validator("boosts", mode="after")
    @classmethod
    def _read_only(cls, value: Mapping[str, TechBoostRule]) -> Mapping[str, TechBoostRule]:
        return MappingProxyType(dict(value))

    @model_validator(mode="after")
    def _check_consistency(self) -> LexiconStore:
        names = [r.name for r in self.roles]
        seen: set[str] = set()
        for name in names:
            if name in seen:
                raise LexiconError(f"Duplicate role name in lexicon: {name!r}")
            seen.add(name)
        if self.default_role not in seen:
            raise LexiconError(f"Default role {self.default_role!r} is not a declared role")
        for token, rule in self.boosts.items():
            if token != rule.token:
                raise LexiconError(f"Boost key {token!r} does not match rule token {rule.token!r}")
            unknown = rule.roles - seen
            if unknown:
                raise LexiconError(
                    f"Boost {token!r} references unknown roles: {sorted(unknown)}"
                )
        return self

    @property
    def role_names(self) -> list[str]:
        return [r.name for r in self.roles]

    def get_role(self, name: str) -> RoleDefinition:
        for role in self.roles:
            if role.name == name:
                return role
        raise KeyError(name)


def build_lexicon(data: dict[str, Any]) -> LexiconStore:
    """Build a LexiconStore from plain JSON-shaped data."""
    boosts: dict[str, TechBoostRule] = {}
    for token, rule in (data.get("tech_boosts") or {}).items():
        boost = TechBoostRule(token=token, roles=rule.get("roles", []), weight=rule.get("weight", 0))
        boosts[boost.token] = boost
    fields: dict[str, Any] = {"roles": data.get("roles", []), "boosts": boosts}
    if "default_role" in data:
        fields["default_role"] = data["default_role"]
    return LexiconStore.model_validate(fields)


def load_lexicon(path: Path) -> LexiconStore:
    """Load a lexicon JSON file. Called once at startup."""
    return build_lexicon(json.loads(Path(path).read_text()))


# ---------------------------------------------------------------------------
# Built-in lexicon
# ---------------------------------------------------------------------------

_DEFAULT_DATA: dict[str, Any] = {
    "default_role": "Backend Engineer",
    "roles": [
        {
            "name": "Backend Engineer",
            "features": [
                {"pattern": "api|rest|grpc|graphql|service|microservice|endpoint", "weight": 3},
                {"pattern": "auth|jwt|rbac|rate[- ]?limit|idempotent", "weight": 2},
            ],
            "stages": ["Backend", "Tooling"],
            "scope": "Design stable APIs and services with reliability and observability.",
        },
        {
            "name": "Frontend Engineer",
            "features": [
                {"pattern": "ui|ux|frontend|react|component|storybook", "weight": 3},
                {"pattern": "accessibility|wcag|aria", "weight": 2},
            ],
            "stages": ["UI/UX", "Frontend"],
            "scope": "Deliver accessible, performant UI against design and API contracts.",
        },
        {
            "name": "DevOps/SRE",
            "features": [
                {
                    "pattern": "kubernetes|k8s|terraform|helm|pipeline|cicd|slo|prometheus|grafana",
                    "weight": 3,
                },
            ],
            "stages": ["Infra/Cloud", "Build/CI", "Observability"],
            "scope": "Provide reliable deploys, infra as code, and SLOs.",
        },
        {
            "name": "Data Engineer",
            "features": [
                {"pattern": "etl|elt|warehouse|lakehouse|airflow|dbt|ingest|cdc", "weight": 3},
            ],
            "stages": ["Data/DB", "Backend"],
            "scope": "Build pipelines, schemas, and data quality checks.",
        },
        {
            "name": "ML Engineer",
            "features": [
                {
                    "pattern": "model|training|inference|serving|onnx|tensor|feature store",
                    "weight": 3,
                },
            ],
            "stages": ["Data/DB", "Backend"],
            "scope": "Train and serve models with reproducibility.",
        },
        {
            "name": "QA Automation Engineer",
            "features": [
                {"pattern": "test plan|automation|e2e|playwright|selenium|coverage", "weight": 3},
            ],
            "stages": ["QA/Test", "Maintenance"],
            "scope": "Automate regression and quality gates.",
        },
        {
            "name": "Mobile Engineer",
            "features": [
                {"pattern": "ios|android|swift|kotlin|compose|swiftui", "weight": 3},
            ],
            "stages": ["UI/UX", "Frontend"],
            "scope": "Ship native app features with offline and telemetry.",
        },
    ],
    "tech_boosts": {
        "react": {"roles": ["Frontend Engineer"], "weight": 2},
        "vue": {"roles": ["Frontend Engineer"], "weight": 2},
        "grpc": {"roles": ["Backend Engineer"], "weight": 2},
        "fastify": {"roles": ["Backend Engineer"], "weight": 2},
        "postgres": {"roles": ["Backend Engineer", "Data Engineer"], "weight": 1},
        "kubernetes": {"roles": ["DevOps/SRE"], "weight": 3},
        "terraform": {"roles": ["DevOps/SRE"], "weight": 3},
        "airflow": {"roles": ["Data Engineer"], "weight": 3},
        "dbt": {"roles": ["Data Engineer"], "weight": 2},
        "pytorch": {"roles": ["ML Engineer"], "weight": 3},
        "swift": {"roles": ["Mobile Engineer"], "weight": 2},
        "kotlin": {"roles": ["Mobile Engineer"], "weight": 2},
    },
}

DEFAULT_LEXICON: LexiconStore = build_lexicon(_DEFAULT_DATA)
