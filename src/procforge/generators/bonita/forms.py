"""Bonita UI Designer forms for user tasks.

A user task with a form reference and a contract gets a form page whose
widgets follow the contract inputs; required flags come from the task's JSON
form schema. The task's ``formMapping`` in the proc then points at the page
through a ``FORM_REFERENCE_TYPE`` expression carrying the page uuid.

Output layout below the Bonita target directory::

    forms/<formId>/<formId>.json
    forms/<formId>/assets/json/localization.json
    forms/<formId>/assets/css/style.css
    forms/.index.json            uuid -> formId
"""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

import structlog
from lxml import etree

from procforge.errors import GenerationError
from procforge.generators.base import GeneratedFile, PreparedModel
from procforge.generators.bonita.proc import USER_TASK_TYPES, ProcDocument, name_key
from procforge.generators.bonita.xmi import children_named, remove_children
from procforge.models.artifacts import FormSchema
from procforge.models.process import BpmnModel, UserTask

logger = structlog.get_logger(__name__)

MODEL_VERSION = "2.6"

# formMapping precedes these task children.
MAPPING_ANCHORS = ("contract", "expectedDuration")

WIDGETS = {
    "BOOLEAN": "checkbox",
    "LOCALDATE": "date",
    "LOCALDATETIME": "datetime",
    "OFFSETDATETIME": "offsetdatetime",
    "DECIMAL": "number",
    "INTEGER": "number",
}

_LOWER_UPPER = re.compile(r"([a-z])([A-Z])")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")

SUBMIT_ERRORS = [
    "if($data.formOutput && $data.formOutput._submitError && $data.formOutput._submitError.explanations){",
    "\tconst liElements = $data.formOutput._submitError.explanations",
    "\t\t.filter(cause => cause !== null)",
    '\t\t.map(cause => "<li>" + cause + "</li>")',
    "\t\t.join('');",
    "\tif(liElements){",
    '\t\treturn "<ul>" + liElements + "</ul>";',
    "\t}",
    "}",
]


@dataclass(frozen=True)
class FormField:
    """One contract input shown on a form.

    Attributes:
        name: Contract input name
        label: Widget label
        type: Contract input type, empty for TEXT
        required: Whether the form schema requires the field
        children: Nested inputs of a COMPLEX input
    """

    name: str
    label: str
    type: str
    required: bool
    children: tuple[FormField, ...] = field(default_factory=tuple)

    @property
    def relation(self) -> bool:
        return self.type == "COMPLEX"

    @property
    def widget(self) -> str:
        return WIDGETS.get(self.type, "text")


def form_label(name: str) -> str:
    """``startDate`` -> ``Start Date``."""
    text = _LOWER_UPPER.sub(r"\1 \2", name)
    return text[:1].upper() + text[1:]


def form_id(form_file: str) -> str:
    """``submit_request.json`` -> ``submitRequest``."""
    parts = _NON_ALNUM.sub(" ", PurePosixPath(form_file).stem).split()
    if not parts:
        return "form"
    return parts[0][:1].lower() + parts[0][1:] + "".join(p[:1].upper() + p[1:] for p in parts[1:])


def required_paths(form: FormSchema) -> set[str]:
    """Dotted paths of required properties, following local ``$ref`` and nested objects."""
    paths: set[str] = set()

    def resolve(node: dict[str, Any]) -> dict[str, Any] | None:
        ref = node.get("$ref")
        return form.resolve_ref(ref) if isinstance(ref, str) else node

    def walk(node: dict[str, Any], base: str, visited: frozenset[str]) -> None:
        for name in node.get("required") or []:
            if isinstance(name, str) and name:
                paths.add(f"{base}.{name}" if base else name)
        for prop_name, definition in (node.get("properties") or {}).items():
            if not isinstance(definition, dict):
                continue
            ref = definition.get("$ref")
            if isinstance(ref, str) and ref in visited:
                continue
            target = resolve(definition)
            if target is not None and ("properties" in target or "required" in target):
                next_visited = visited | {ref} if isinstance(ref, str) else visited
                walk(target, f"{base}.{prop_name}" if base else prop_name, next_visited)

    walk(form.document, "", frozenset())
    return paths


def contract_fields(parent: etree._Element, required: set[str], prefix: str = "") -> list[FormField]:
    fields = []
    for child in children_named(parent, "inputs"):
        name = child.get("name") or ""
        path = f"{prefix}.{name}" if prefix else name
        kind = (child.get("type") or "").upper()
        children = tuple(contract_fields(child, required, path)) if kind == "COMPLEX" else ()
        fields.append(FormField(name, form_label(name), kind, path in required, children))
    return fields


def _property(kind: str, value: Any = None) -> dict[str, Any]:
    return {"type": kind} if value is None else {"type": kind, "value": value}


def constant(value: Any = None) -> dict[str, Any]:
    return _property("constant", value)


def interpolation(value: str | None = None) -> dict[str, Any]:
    return _property("interpolation", value)


def variable(value: str | None = None) -> dict[str, Any]:
    return _property("variable", value)


def expression(value: str | None = None) -> dict[str, Any]:
    return _property("expression", value)


def _data_variable(kind: str, value: str | list[str]) -> dict[str, Any]:
    return {"type": kind, "value": value if isinstance(value, list) else [value], "exposed": False}


class FormPageBuilder:
    """Build the UI Designer JSON of one form page.

    Component references are uuid5 values derived from the page seed, so the
    same inputs always give the same page.

    Args:
        seed: Stable text identifying the page
    """

    def __init__(self, seed: str):
        self.seed = seed
        self.counter = 0

    def reference(self) -> str:
        self.counter += 1
        return str(uuid.uuid5(uuid.NAMESPACE_URL, f"procforge:{self.seed}:{self.counter}"))

    def build(
        self, page_id: str, page_uuid: str, variable_name: str, input_name: str, fields: list[FormField]
    ) -> dict[str, Any]:
        return {
            "id": page_id,
            "name": page_id,
            "type": "form",
            "uuid": page_uuid,
            "modelVersion": MODEL_VERSION,
            "description": "Page generated with Bonita UI designer",
            "rows": [self.header_row(), self.form_row(variable_name, fields)],
            "variables": self.variables(variable_name, input_name, fields),
            "assets": [self.asset("localization.json", "json"), self.asset("style.css", "css")],
            "inactiveAssets": [],
            "webResources": [],
            "hasValidationError": False,
        }

    def asset(self, name: str, kind: str) -> dict[str, Any]:
        return {"id": self.reference(), "name": name, "type": kind, "order": 0, "external": False}

    def component(self, widget: str, properties: dict[str, Any]) -> dict[str, Any]:
        return {
            "type": "component",
            "dimension": {"md": 12, "sm": 12, "xs": 12, "lg": 12},
            "propertyValues": properties,
            "reference": self.reference(),
            "hasValidationError": False,
            "id": widget,
            "description": "",
        }

    def container(self, rows: list[list[dict[str, Any]]], full_width: bool = True) -> dict[str, Any]:
        if full_width:
            dimension = {"md": 12, "sm": 12, "xs": 12, "lg": 12}
            properties = {
                "repeatedCollection": variable(),
                "hidden": constant(False),
                "cssClasses": constant(""),
                "dimension": constant(12),
            }
        else:
            dimension, properties = {"xs": 12}, {}
        return {
            "type": "container",
            "dimension": dimension,
            "propertyValues": properties,
            "reference": self.reference(),
            "hasValidationError": False,
            "id": "pbContainer",
            "rows": rows,
        }

    def header_row(self) -> list[dict[str, Any]]:
        rows = [
            [self.title("{{ task.displayName }}", "Level 1", "center")],
            [self.text("{{ task.displayDescription }}")],
        ]
        return [self.container(rows, full_width=False)]

    def form_row(self, variable_name: str, fields: list[FormField]) -> list[dict[str, Any]]:
        field_rows = []
        for form_field in fields:
            if form_field.relation:
                nested = f"{variable_name}_{form_field.name}"
                field_rows.append([self.title(form_field.label, "Level 4", "left")])
                nested_rows = [[self.widget(child, f"{nested}.{child.name}")] for child in form_field.children]
                field_rows.append([self.container(nested_rows)])
            else:
                field_rows.append([self.widget(form_field, f"{variable_name}.{form_field.name}")])

        inner = self.container(
            [
                [self.title(form_label(variable_name), "Level 4", "left")],
                [self.container(field_rows)],
                [self.submit_button()],
                [self.submit_error()],
            ],
            full_width=False,
        )
        form_container = {
            "type": "formContainer",
            "dimension": {"xs": 12},
            "propertyValues": {},
            "reference": self.reference(),
            "hasValidationError": False,
            "id": "pbFormContainer",
            "container": inner,
        }
        return [form_container]

    def title(self, text: str, level: str, alignment: str) -> dict[str, Any]:
        return self.component(
            "pbTitle",
            {
                "hidden": constant(False),
                "level": constant(level),
                "cssClasses": constant(""),
                "text": interpolation(text),
                "alignment": constant(alignment),
                "dimension": constant(12),
            },
        )

    def text(self, text: str) -> dict[str, Any]:
        return self.component(
            "pbText",
            {
                "allowHtml": constant(True),
                "labelHidden": constant(True),
                "hidden": constant(False),
                "cssClasses": constant(""),
                "label": interpolation(),
                "text": interpolation(text),
                "alignment": constant("left"),
                "dimension": constant(12),
            },
        )

    def widget(self, form_field: FormField, value_path: str) -> dict[str, Any]:
        kind = form_field.widget
        common = {
            "hidden": constant(False),
            "cssClasses": constant(""),
            "label": interpolation(form_field.label),
            "labelHidden": constant(False),
            "dimension": constant(12),
            "value": variable(value_path),
        }
        if kind == "checkbox":
            return self.component("pbCheckbox", {**common, "disabled": constant(False)})

        common.update(
            {
                "labelPosition": constant("top"),
                "labelWidth": constant(1),
                "readOnly": constant(False),
                "required": constant(form_field.required),
            }
        )
        if kind == "date":
            return self.component("pbDatePicker", {**common, **self._date_properties()})
        if kind in ("datetime", "offsetdatetime"):
            return self.component(
                "pbDateTimePicker",
                {
                    **common,
                    **self._date_properties(),
                    "showNow": constant(True),
                    "nowLabel": constant("Now"),
                    "inlineInput": constant(True),
                    "timeFormat": constant("h:mm:ss a"),
                    "timePlaceholder": constant("Enter a time (h:mm:ss a)"),
                    "withTimeZone": constant(kind == "offsetdatetime"),
                },
            )
        return self.component(
            "pbInput",
            {**common, "placeholder": constant(), "type": constant("number" if kind == "number" else "text")},
        )

    @staticmethod
    def _date_properties() -> dict[str, Any]:
        return {
            "dateFormat": constant("MM/dd/yyyy"),
            "type": constant(),
            "todayLabel": constant("Today"),
            "showToday": constant(True),
            "placeholder": constant("Enter a date (mm/dd/yyyy)"),
        }

    def submit_button(self) -> dict[str, Any]:
        return self.component(
            "pbButton",
            {
                "removeItem": variable(),
                "hidden": constant(False),
                "cssClasses": constant(""),
                "buttonStyle": constant("primary"),
                "label": interpolation("Submit"),
                "dataToSend": expression("formOutput"),
                "dataFromError": variable("formOutput._submitError"),
                "allowHTML": constant(False),
                "labelHidden": constant(False),
                "collectionPosition": constant(),
                "targetUrlOnSuccess": interpolation("/bonita"),
                "action": constant("Submit task"),
                "collectionToModify": variable(),
                "valueToAdd": expression(),
                "disabled": expression("$form.$invalid"),
                "alignment": constant("center"),
                "dimension": constant(12),
            },
        )

    def submit_error(self) -> dict[str, Any]:
        return self.component(
            "pbText",
            {
                "allowHTML": constant(True),
                "allowHtml": constant(True),
                "labelHidden": constant(True),
                "hidden": expression("!formOutput._submitError.message"),
                "cssClasses": constant("alert alert-danger col-lg-6 col-lg-offset-3"),
                "label": interpolation(),
                "text": interpolation(
                    "<strong>Debug message</strong>\n<br/>\n"
                    "{{formOutput._submitError.message}}\n{{submit_errors_list}}"
                ),
                "alignment": constant("left"),
                "dimension": constant(12),
            },
        )

    def variables(self, variable_name: str, input_name: str, fields: list[FormField]) -> dict[str, Any]:
        variables = {
            "task": _data_variable("url", "../API/bpm/userTask/{{taskId}}"),
            "submit_errors_list": _data_variable("expression", SUBMIT_ERRORS),
            "formOutput": _data_variable("expression", form_output(variable_name, input_name, fields)),
            "context": _data_variable("url", "../API/bpm/userTask/{{taskId}}/context"),
            variable_name: _data_variable("url", f"../{{{{context.{variable_name}_ref.link}}}}"),
            "taskId": _data_variable("urlparameter", "id"),
        }
        for form_field in fields:
            if form_field.relation:
                variables[f"{variable_name}_{form_field.name}"] = _data_variable(
                    "url", f"{{{{{variable_name}|lazyRef:'{form_field.name}'}}}}"
                )
        return variables


def form_output(variable_name: str, input_name: str, fields: list[FormField]) -> list[str]:
    """Script lines mapping the page data onto the task contract input."""
    data = f"$data.{variable_name}"
    relations = [f for f in fields if f.relation]
    condition = " && ".join([data] + [f"{data}_{f.name}" for f in relations])

    lines = [f"if( {condition} ){{"]
    if relations:
        lines.append("\t//attach lazy references variables to parent variables")
        lines.extend(f"\t{data}.{f.name} = {data}_{f.name};" for f in relations)
    lines += [
        "\treturn {",
        f"\t\t//map {variable_name} variable to expected task contract input",
        f"\t\t{input_name}: {{",
    ]

    for index, form_field in enumerate(fields):
        separator = "," if index < len(fields) - 1 else ""
        value = f"{data}.{form_field.name}"
        if form_field.relation:
            lines.append(f"\t\t\t{form_field.name}: {value} ? {{")
            for nested_index, nested in enumerate(form_field.children):
                nested_separator = "," if nested_index < len(form_field.children) - 1 else ""
                nested_value = f"{value}.{nested.name}"
                lines.append(
                    f"\t\t\t\t{nested.name}: {nested_value} !== undefined ? {nested_value} : null{nested_separator}"
                )
            lines.append(f"\t\t\t}} : null{separator}")
        else:
            lines.append(f"\t\t\t{form_field.name}: {value} !== undefined ? {value} : null{separator}")

    lines += ["\t\t}", "\t}", "}"]
    return lines


def _dump_json(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


class BonitaFormGenerator:
    """Generate form pages and wire them into the proc.

    Runs after contracts are in place: a task without a contract input has
    nothing to show and is skipped with a warning.
    """

    def __init__(self):
        self.logger = logger.bind(component="BonitaFormGenerator")

    def generate(self, doc: ProcDocument, prepared: PreparedModel, model: BpmnModel) -> list[GeneratedFile]:
        """Add one page per user task form and map it on the task.

        Raises:
            GenerationError: If a referenced form schema was not loaded
        """
        tasks = doc.named(*USER_TASK_TYPES)
        files: dict[str, GeneratedFile] = {}
        index: dict[str, str] = {}
        for graph in model.processes:
            for node in graph.nodes.values():
                if not isinstance(node, UserTask) or not node.form_file:
                    continue
                form = prepared.artifacts.forms.get(node.form_file)
                if form is None:
                    raise GenerationError("bonita", f"form {node.form_file!r} was not loaded")
                task = tasks.get(name_key(node.name))
                top = self._top_input(task)
                if top is None:
                    reason = "task not in template" if task is None else "no contract"
                    self.logger.warning("form_skipped", task=node.name, form=node.form_file, reason=reason)
                    continue

                page_id = form_id(node.form_file)
                seed = f"{prepared.proc_template_name}:{page_id}"
                page_uuid = str(uuid.uuid5(uuid.NAMESPACE_URL, f"procforge:{seed}"))
                input_name = top.get("name") or ""
                variable_name = top.get("dataReference") or input_name.removesuffix("Input") or "task"
                page = FormPageBuilder(seed).build(
                    page_id,
                    page_uuid,
                    variable_name,
                    input_name or f"{variable_name}Input",
                    contract_fields(top, required_paths(form)),
                )

                base = f"forms/{page_id}"
                for path, content in (
                    (f"{base}/{page_id}.json", _dump_json(page)),
                    (f"{base}/assets/json/localization.json", "{}\n"),
                    (f"{base}/assets/css/style.css", ""),
                ):
                    files[path] = GeneratedFile(relative_path=path, content=content)
                index[page_uuid] = page_id
                self.map_form(doc, task, page_id, page_uuid)

        if index:
            files["forms/.index.json"] = GeneratedFile(relative_path="forms/.index.json", content=_dump_json(index))
        self.logger.info("bonita_forms_generated", forms=len(index))
        return list(files.values())

    @staticmethod
    def _top_input(task: etree._Element | None) -> etree._Element | None:
        if task is None:
            return None
        for contract in children_named(task, "contract"):
            inputs = children_named(contract, "inputs")
            if inputs:
                return inputs[0]
        return None

    def map_form(self, doc: ProcDocument, task: etree._Element, page_id: str, page_uuid: str) -> None:
        """Replace the task's form mapping with a reference to the generated page."""
        remove_children(task, "formMapping")
        mapping = doc.xmi.element("formMapping", "process:FormMapping")
        mapping.append(
            doc.xmi.expression(
                "targetForm",
                name=page_id,
                content=page_uuid,
                type="FORM_REFERENCE_TYPE",
                returnTypeFixed="true",
            )
        )
        for anchor_tag in MAPPING_ANCHORS:
            anchors = children_named(task, anchor_tag)
            if anchors:
                anchors[0].addprevious(mapping)
                return
        task.append(mapping)
