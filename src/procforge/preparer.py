"""Artifact preparer: enrich the process graph with configuration bindings.

Each step is a pure function ``(ProcessGraph, ProcessConfig) -> ProcessGraph``.
The chain runs after validation, so every name it looks up is known to exist;
a name that still fails to match is skipped rather than raised.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import structlog

from procforge.expressions.dialects import strip_wrapper
from procforge.models.organization import OrganizationModel
from procforge.models.process import (
    ActorBinding,
    BpmnModel,
    BusinessRuleTask,
    ProcessGraph,
    ServiceTask,
    UserTask,
)
from procforge.models.process_config import (
    NodeConfig,
    ProcessConfig,
    ProcessConfigFile,
    file_ref_basename,
)

logger = structlog.get_logger(__name__)

Step = Callable[[ProcessGraph, ProcessConfig], ProcessGraph]


def vendor_value(value: Any) -> str:
    """Render a JSON vendor attribute value as attribute text."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value, ensure_ascii=False)


def _node_for(graph: ProcessGraph, node_config: NodeConfig):
    matches = graph.nodes_named(node_config.name)
    return matches[0] if len(matches) == 1 else None


class ArtifactPreparer:
    """Apply the enrichment chain to every configured process.

    Args:
        organization: Organization model used to resolve lane assignees
        process_config: Process configuration file
    """

    def __init__(self, organization: OrganizationModel, process_config: ProcessConfigFile):
        self.organization = organization
        self.process_config = process_config
        self.logger = logger.bind(component="ArtifactPreparer")

    @property
    def steps(self) -> list[Step]:
        return [
            self.bind_lane_actors,
            self.propagate_lane_actors,
            self.bind_forms,
            self.bind_email,
            self.merge_node_vendor_attributes,
            self.bind_rest,
            self.bind_dmn,
        ]

    def prepare(self, model: BpmnModel) -> BpmnModel:
        for graph in model.processes:
            process = self.process_config.process(graph.id)
            if process is None:
                continue
            for step in self.steps:
                graph = step(graph, process)
            model = model.with_process(graph)
            self.logger.info(
                "process_prepared",
                process_id=graph.id,
                lanes_bound=sum(1 for lane in graph.lanes if lane.actor is not None),
            )
        return model

    def resolve_assignee(self, name: str) -> ActorBinding:
        return self.organization.find_binding(name) or ActorBinding(kind="user", name=name)

    def bind_lane_actors(self, graph: ProcessGraph, process: ProcessConfig) -> ProcessGraph:
        for lane_config in process.config.lanes:
            lane = graph.lane_named(lane_config.name)
            if lane is None:
                continue
            update: dict[str, Any] = {
                "vendor_attributes": {
                    **lane.vendor_attributes,
                    **{k: vendor_value(v) for k, v in lane_config.vendor_attributes.items()},
                }
            }
            if lane_config.assignee_name:
                update["actor"] = self.resolve_assignee(lane_config.assignee_name)
            graph = graph.with_lane(lane.model_copy(update=update))
        return graph

    def propagate_lane_actors(self, graph: ProcessGraph, process: ProcessConfig) -> ProcessGraph:
        for lane in graph.lanes:
            if lane.actor is None:
                continue
            for node_id in lane.node_refs:
                node = graph.nodes[node_id]
                if isinstance(node, UserTask):
                    graph = graph.with_node(node.model_copy(update={"actor": lane.actor}))
        return graph

    def bind_forms(self, graph: ProcessGraph, process: ProcessConfig) -> ProcessGraph:
        for node_config in process.config.nodes:
            node = _node_for(graph, node_config)
            if not isinstance(node, UserTask) or not node_config.form_ref:
                continue
            outputs = graph.outputs_of(node)
            graph = graph.with_node(
                node.model_copy(
                    update={
                        "form_file": file_ref_basename(node_config.form_ref),
                        "output_variable": outputs[0].variable_name if outputs else None,
                    }
                )
            )
        return graph

    def bind_email(self, graph: ProcessGraph, process: ProcessConfig) -> ProcessGraph:
        for node_config in process.config.nodes:
            node = _node_for(graph, node_config)
            if not isinstance(node, ServiceTask) or not node_config.email_json_ref:
                continue
            graph = graph.with_node(
                node.model_copy(
                    update={
                        "email_config_file": file_ref_basename(node_config.email_json_ref),
                        "email_template_file": file_ref_basename(node_config.email_ftl_ref),
                    }
                )
            )
        return graph

    def merge_node_vendor_attributes(self, graph: ProcessGraph, process: ProcessConfig) -> ProcessGraph:
        for node_config in process.config.nodes:
            node = _node_for(graph, node_config)
            if node is None or not node_config.vendor_attributes:
                continue
            merged = {
                **node.vendor_attributes,
                **{k: vendor_value(v) for k, v in node_config.vendor_attributes.items()},
            }
            graph = graph.with_node(node.model_copy(update={"vendor_attributes": merged}))
        return graph

    def bind_rest(self, graph: ProcessGraph, process: ProcessConfig) -> ProcessGraph:
        for node_config in process.config.nodes:
            node = _node_for(graph, node_config)
            if not isinstance(node, ServiceTask) or not node_config.rest_call_ref:
                continue
            graph = graph.with_node(
                node.model_copy(update={"rest_call_file": file_ref_basename(node_config.rest_call_ref)})
            )
        return graph

    def bind_dmn(self, graph: ProcessGraph, process: ProcessConfig) -> ProcessGraph:
        for node_config in process.config.nodes:
            node = _node_for(graph, node_config)
            if not isinstance(node, BusinessRuleTask) or not node_config.dmn_ref:
                continue
            graph = graph.with_node(
                node.model_copy(
                    update={
                        "dmn_file": file_ref_basename(node_config.dmn_ref),
                        "dmn_result_variable": strip_wrapper(node_config.dmn_result_variable),
                    }
                )
            )
        return graph
