"""Tests for style domain models."""

from pathlib import Path

from quire.styles.models import (
    CompiledStylesheet,
    Declaration,
    StylePhase,
    StylePlan,
    StyleStep,
    ThemeOverride,
)


class TestStylePlan:
    def test_from_theme_is_canonical(self):
        plan = StylePlan.from_theme(
            [ThemeOverride(token="primary-color", value="#88C0D0")],
            ["tokens", "base"],
            ["dark"],
            "a { color: red; }",
        )
        assert [s.phase for s in plan.steps] == [
            StylePhase.OVERRIDE,
            StylePhase.BASE,
            StylePhase.BASE,
            StylePhase.DEPENDENT,
            StylePhase.LITERAL,
        ]
        assert plan.is_canonical

    def test_blank_literal_is_dropped(self):
        plan = StylePlan.from_theme([], ["tokens"], None, "   \n")
        assert [s.phase for s in plan.steps] == [StylePhase.BASE]

    def test_overrides_keep_declaration_order(self):
        plan = StylePlan.from_theme(
            [
                ThemeOverride(token="b", value="2"),
                ThemeOverride(token="a", value="1"),
            ],
            [],
        )
        assert [o.token for o in plan.overrides] == ["b", "a"]

    def test_override_after_base_is_not_canonical(self):
        plan = StylePlan(steps=[StyleStep.base("tokens"), StyleStep.override("x", "1")])
        assert plan.is_canonical is False


class TestCompiledStylesheet:
    def _sheet(self) -> CompiledStylesheet:
        return CompiledStylesheet(
            css="a { color: red; }\n",
            resolved={"primary": "red"},
            scope={"primary": "blue", "unused": "1px"},
            declarations=[
                Declaration(token="primary", value="red", phase=StylePhase.BASE),
                Declaration(token="primary", value="blue", phase=StylePhase.LATE),
            ],
            sources=[Path("_tokens.scss")],
        )

    def test_value_prefers_resolved(self):
        sheet = self._sheet()
        assert sheet.value("primary") == "red"
        assert sheet.value("$primary") == "red"

    def test_value_falls_back_to_scope(self):
        sheet = self._sheet()
        assert sheet.value("unused") == "1px"
        assert sheet.value("missing") is None

    def test_declarations_for(self):
        sheet = self._sheet()
        assert [d.phase for d in sheet.declarations_for("$primary")] == [
            StylePhase.BASE,
            StylePhase.LATE,
        ]

    def test_output_name_plain(self):
        assert self._sheet().output_name("css/main.css") == "css/main.css"

    def test_output_name_fingerprinted(self):
        sheet = self._sheet()
        name = sheet.output_name("css/main.css", fingerprint=True)
        assert name == f"css/main.{sheet.digest[:10]}.css"

    def test_digest_tracks_content(self):
        a = CompiledStylesheet(css="a{}")
        b = CompiledStylesheet(css="b{}")
        assert a.digest != b.digest
        assert len(a.digest) == 64
