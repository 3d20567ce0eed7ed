"""Unit tests for two-phase expression resolution."""

from __future__ import annotations

import json

import pytest
from lxml import etree

from procforge.expressions import (
    BonitaDialect,
    CamundaDialect,
    GlobalVariableResolver,
    flatten_paths,
    strip_wrapper,
)


@pytest.fixture
def resolver() -> GlobalVariableResolver:
    """Resolver knowing a single ``baseUrl`` global."""
    return GlobalVariableResolver({"baseUrl": "https://api.example.org"})


class TestGlobalVariableResolver:
    def test_whole_global_placeholder(self, resolver) -> None:
        assert resolver.resolve_text("${~globalVariables.baseUrl~}/absences") == "https://api.example.org/absences"

    def test_process_variable_loses_tildes(self, resolver) -> None:
        assert resolver.resolve_text("${~request.status~}") == "${request.status}"

    def test_mixed_expression(self, resolver) -> None:
        assert resolver.resolve_text("${~request.status~ == 'approved'}") == "${request.status == 'approved'}"

    def test_global_inside_expression(self, resolver) -> None:
        assert (
            resolver.resolve_text("${~request.url~ == '~globalVariables.baseUrl~'}")
            == "${request.url == 'https://api.example.org'}"
        )

    def test_unknown_global_is_kept_and_reported(self, resolver) -> None:
        assert resolver.resolve_text("${~globalVariables.missing~}") == "${~globalVariables.missing~}"
        assert resolver.unresolved == {"missing"}

    @pytest.mark.parametrize(
        "text",
        ["plain text", "${request.status}", "https://api.example.org/x", "", "${a.b == 'c'} and ${d}"],
    )
    def test_idempotent_on_resolved_text(self, resolver, text: str) -> None:
        assert resolver.resolve_text(text) == text
        once = resolver.resolve_text("${~globalVariables.baseUrl~}/" + text)
        assert resolver.resolve_text(once) == once

    def test_none_passes_through(self, resolver) -> None:
        assert resolver.resolve_text(None) is None

    def test_json_structure_is_preserved(self, resolver) -> None:
        document = {
            "url": "${~globalVariables.baseUrl~}/a",
            "retries": 3,
            "flags": [True, None, "${~x.y~}"],
            "nested": {"empty": {}},
        }
        assert resolver.resolve_json(document) == {
            "url": "https://api.example.org/a",
            "retries": 3,
            "flags": [True, None, "${x.y}"],
            "nested": {"empty": {}},
        }

    def test_xml_is_copied(self, resolver) -> None:
        root = etree.fromstring('<a href="${~globalVariables.baseUrl~}"><b>${~x.y~}</b></a>')
        resolved = resolver.resolve_xml(root)
        assert resolved.get("href") == "https://api.example.org"
        assert resolved[0].text == "${x.y}"
        assert root.get("href") == "${~globalVariables.baseUrl~}"

    def test_bpmn_flows(self, resolver, bpmn) -> None:
        resolved = resolver.resolve_bpmn(bpmn)
        flow = resolved.process("absenceRequest").flows["Flow_Approved"]
        assert flow.resolved_expression == "${request.status == 'approved'}"
        assert flow.condition == flow.resolved_expression
        assert flow.expression == "${~request.status~ == 'approved'}"
        assert bpmn.process("absenceRequest").flows["Flow_Approved"].resolved_expression is None


class TestCamundaDialect:
    """JUEL with flattened variable paths."""

    def test_flatten_paths(self) -> None:
        assert flatten_paths("request.status == 'a.b' && x.y.z > 1.5") == "request_status == 'a.b' && x_y_z > 1.5"

    def test_expression(self) -> None:
        assert CamundaDialect().expression("${request.status == 'approved'}") == "${request_status == 'approved'}"

    def test_text_outside_placeholders_is_untouched(self) -> None:
        assert CamundaDialect().expression("see docs.example.org") == "see docs.example.org"
        assert CamundaDialect().expression(None) is None

    def test_unresolved_global_is_not_flattened(self) -> None:
        assert CamundaDialect().expression("${~globalVariables.missing~}") == "${~globalVariables.missing~}"
        assert (
            CamundaDialect().expression("${request.url == '~globalVariables.base.url~' && ~globalVariables.x~ > a.b}")
            == "${request_url == '~globalVariables.base.url~' && ~globalVariables.x~ > a_b}"
        )

    def test_dmn_text_drops_wrapper(self) -> None:
        assert CamundaDialect().dmn_text("${request.days}") == "request_days"

    def test_variable(self) -> None:
        assert CamundaDialect().variable("${~request.entitled~}") == "request_entitled"
        assert CamundaDialect().variable("approved") == "approved"

    def test_json(self) -> None:
        assert CamundaDialect().json({"to": "${request.email}", "n": 1}) == {"to": "${request_email}", "n": 1}


class TestBonitaDialect:
    """Groovy keeps dotted paths and drops the wrapper."""

    def test_whole_placeholder(self) -> None:
        assert BonitaDialect().expression("${request.status == 'approved'}") == "request.status == 'approved'"

    def test_plain_text(self) -> None:
        assert BonitaDialect().expression("  true ") == "true"

    def test_two_placeholders_are_not_a_whole_placeholder(self) -> None:
        assert BonitaDialect().expression("${a} ${b}") == "${a} ${b}"

    def test_dmn_text(self) -> None:
        assert BonitaDialect().dmn_text("${request.days} > 3") == "request.days > 3"

    def test_variable(self) -> None:
        assert BonitaDialect().variable("${~request.entitled~}") == "request.entitled"

    def test_rest_recurses_into_json_bodies(self) -> None:
        document = {
            "request": {
                "url": "${request.callback}",
                "body": json.dumps({"reason": "${request.reason}", "days": 3}),
            }
        }
        resolved = BonitaDialect().rest(document)
        assert resolved["request"]["url"] == "request.callback"
        assert json.loads(resolved["request"]["body"]) == {"reason": "request.reason", "days": 3}

    def test_rest_keeps_partial_placeholders(self) -> None:
        document = {"url": "https://x.org/${id}"}
        assert BonitaDialect().rest(document) == document

    def test_rest_keeps_multiple_placeholders(self) -> None:
        document = {"request": {"url": "u", "body": {"name": "${first} ${last}"}}}
        assert BonitaDialect().rest(document) == document
        body = json.dumps({"name": "${first} ${last}", "id": "${request.id}"})
        resolved = json.loads(BonitaDialect().rest({"body": body})["body"])
        assert resolved == {"name": "${first} ${last}", "id": "request.id"}


def test_strip_wrapper() -> None:
    assert strip_wrapper("${~loan.state~}") == "loan.state"
    assert strip_wrapper("${loan.state}") == "loan.state"
    assert strip_wrapper(None) is None
