"""Heuristic role inference.

Scores "needs" + "tech stack" text against a LexiconStore:

    score_roles: word-boundary feature scoring, one vote per feature
    apply_tech_boosts: additive boosts for recognised tech-stack tokens
    RoleInferenceEngine.infer: ranks roles and computes a confidence margin

Confidence is the normalised gap between the top two scores:

    0                              if top == 0
    (top - second) / max(1, top)   otherwise

An all-zero table never raises; the lexicon's default role is returned with
confidence 0.
"""

from __future__ import annotations

import logging
import re

from hiro.lexicon import DEFAULT_LEXICON, LexiconStore
from hiro.models import RankedRole, RoleInference

logger = logging.getLogger(__name__)

ScoreTable = dict[str, float]

_TOKEN_SPLIT = re.compile(r"[^a-z0-9.+\-]+")


def empty_scores(lexicon: LexiconStore) -> ScoreTable:
    return {name: 0.0 for name in lexicon.role_names}


def score_roles(text: str, lexicon: LexiconStore) -> ScoreTable:
    """Sum the weights of every feature present in `text`, per role."""
    scores = empty_scores(lexicon)
    for role in lexicon.roles:
        for feature in role.features:
            if feature.matches(text):
                scores[role.name] += feature.weight
    return scores


def tokenize_stack(tech_stack: str) -> list[str]:
    """Lowercased stack tokens: "React, Node.js / C++" → react, node.js, c++."""
    return [t for t in _TOKEN_SPLIT.split((tech_stack or "").lower()) if t]


def apply_tech_boosts(
    scores: ScoreTable, tech_stack: str, lexicon: LexiconStore
) -> ScoreTable:
    """Add boosts for each recognised token into `scores` and return it.

    Repeated tokens boost again: "react react" counts react twice.
    """
    for token in tokenize_stack(tech_stack):
        rule = lexicon.boosts.get(token)
        if rule is None:
            continue
        for role in rule.roles:
            scores[role] = scores.get(role, 0.0) + rule.weight
    return scores


def rank_scores(scores: ScoreTable, lexicon: LexiconStore) -> list[RankedRole]:
    """Descending by score; ties keep lexicon declaration order."""
    order = {name: i for i, name in enumerate(lexicon.role_names)}
    ranked = sorted(scores.items(), key=lambda kv: (-kv[1], order.get(kv[0], len(order))))
    return [RankedRole(role=name, score=score) for name, score in ranked]


def confidence_of(ranked: list[RankedRole]) -> float:
    if not ranked or ranked[0].score == 0:
        return 0.0
    top = ranked[0].score
    second = ranked[1].score if len(ranked) > 1 else 0.0
    return (top - second) / max(1.0, top)


class RoleInferenceEngine:
    """Combines scoring and boosting over one immutable lexicon."""

    def __init__(self, lexicon: LexiconStore = DEFAULT_LEXICON, top_n: int = 3) -> None:
        self._lexicon = lexicon
        self._top_n = top_n

    @property
    def lexicon(self) -> LexiconStore:
        return self._lexicon

    def scores(self, needs: str, tech_stack: str) -> ScoreTable:
        text = f"{needs or ''} {tech_stack or ''}"
        table = score_roles(text, self._lexicon)
        return apply_tech_boosts(table, tech_stack, self._lexicon)

    def infer(self, needs: str, tech_stack: str = "") -> RoleInference:
        ranked = rank_scores(self.scores(needs, tech_stack), self._lexicon)

        if not ranked or ranked[0].score == 0:
            role_name = self._lexicon.default_role
            confidence = 0.0
        else:
            role_name = ranked[0].role
            confidence = confidence_of(ranked)

        role = self._lexicon.get_role(role_name)
        logger.debug(
            "infer role=%s confidence=%.2f top=%s",
            role_name, confidence, [(r.role, r.score) for r in ranked[:self._top_n]],
        )
        return RoleInference(
            role=role.name,
            stages=list(role.stages),
            scope=role.scope,
            confidence=confidence,
            top=ranked[:self._top_n],
        )


_default_engine = RoleInferenceEngine()


def infer_role(needs: str, tech_stack: str = "") -> RoleInference:
    """Infer with the built-in lexicon."""
    return _default_engine.infer(needs, tech_stack)
