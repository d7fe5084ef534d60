"""Tests for hiro.lexicon: lexicon construction, validation, and loading."""

import json

import pytest
from pydantic import ValidationError

from hiro.lexicon import (
    DEFAULT_LEXICON,
    LexiconError,
    RoleFeature,
    build_lexicon,
    load_lexicon,
)


def _data(**overrides) -> dict:
    data = {
        "default_role": "Backend",
        "roles": [
            {"name": "Backend", "features": [{"pattern": "api", "weight": 3}]},
            {"name": "Frontend", "features": [{"pattern": "ui|react", "weight": 2}]},
        ],
        "tech_boosts": {"React": {"roles": ["Frontend"], "weight": 2}},
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# RoleFeature
# ---------------------------------------------------------------------------

class TestRoleFeature:
    def test_string_pattern_is_compiled(self) -> None:
        f = RoleFeature(pattern="api|rest", weight=3)
        assert f.matches("a REST endpoint")

    def test_case_insensitive(self) -> None:
        assert RoleFeature(pattern="api", weight=1).matches("Public API")

    def test_word_boundary_blocks_embedded_match(self) -> None:
        f = RoleFeature(pattern="ui", weight=1)
        assert not f.matches("we will build services")
        assert f.matches("a new ui for admins")

    def test_multi_word_pattern(self) -> None:
        assert RoleFeature(pattern="test plan", weight=1).matches("write a test plan")

    def test_non_positive_weight_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RoleFeature(pattern="api", weight=0)

    def test_frozen(self) -> None:
        f = RoleFeature(pattern="api", weight=1)
        with pytest.raises(ValidationError):
            f.weight = 5


# ---------------------------------------------------------------------------
# LexiconStore
# ---------------------------------------------------------------------------

class TestBuildLexicon:
    def test_declaration_order_kept(self) -> None:
        lex = build_lexicon(_data())
        assert lex.role_names == ["Backend", "Frontend"]

    def test_boost_tokens_lowercased(self) -> None:
        lex = build_lexicon(_data())
        assert "react" in lex.boosts
        assert lex.boosts["react"].roles == frozenset({"Frontend"})

    def test_duplicate_role_names_rejected(self) -> None:
        roles = [{"name": "Backend"}, {"name": "Backend"}]
        with pytest.raises(LexiconError, match="Duplicate"):
            build_lexicon(_data(roles=roles, tech_boosts={}))

    def test_boost_with_unknown_role_rejected(self) -> None:
        boosts = {"vue": {"roles": ["Designer"], "weight": 2}}
        with pytest.raises(LexiconError, match="unknown roles"):
            build_lexicon(_data(tech_boosts=boosts))

    def test_unknown_default_role_rejected(self) -> None:
        with pytest.raises(LexiconError, match="Default role"):
            build_lexicon(_data(default_role="Wizard"))

    def test_get_role(self) -> None:
        lex = build_lexicon(_data())
        assert lex.get_role("Frontend").name == "Frontend"
        with pytest.raises(KeyError):
            lex.get_role("Nope")

    def test_boost_table_is_read_only(self) -> None:
        lex = build_lexicon(_data())
        with pytest.raises(TypeError):
            lex.boosts["vue"] = lex.boosts["react"]
        assert "vue" not in lex.boosts


class TestLoadLexicon:
    def test_load_from_json_file(self, tmp_path) -> None:
        path = tmp_path / "lexicon.json"
        path.write_text(json.dumps(_data()))
        lex = load_lexicon(path)
        assert lex.default_role == "Backend"
        assert lex.get_role("Backend").features[0].matches("an api")


class TestDefaultLexicon:
    def test_has_seven_roles(self) -> None:
        assert DEFAULT_LEXICON.role_names == [
            "Backend Engineer",
            "Frontend Engineer",
            "DevOps/SRE",
            "Data Engineer",
            "ML Engineer",
            "QA Automation Engineer",
            "Mobile Engineer",
        ]

    def test_default_role_is_backend(self) -> None:
        assert DEFAULT_LEXICON.default_role == "Backend Engineer"

    def test_default_boosts_are_read_only(self) -> None:
        with pytest.raises(TypeError):
            DEFAULT_LEXICON.boosts["cobol"] = DEFAULT_LEXICON.boosts["react"]

    def test_postgres_boosts_two_roles(self) -> None:
        rule = DEFAULT_LEXICON.boosts["postgres"]
        assert rule.roles == frozenset({"Backend Engineer", "Data Engineer"})
        assert rule.weight == 1

    def test_every_role_has_stages_and_scope(self) -> None:
        for role in DEFAULT_LEXICON.roles:
            assert role.stages
            assert role.scope
