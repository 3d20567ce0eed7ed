"""Bonita process configuration (``<poolId>.conf``): actor mappings and connector dependencies."""

from __future__ import annotations

from lxml import etree

from procforge.config import BonitaConfig
from procforge.generators.xml_writer import indent, to_xml_text
from procforge.models.organization import OrganizationModel
from procforge.models.process import BpmnModel, Lane

CONFIGURATION_NS = "http://www.bonitasoft.org/ns/bpm/configuration"

# (definition id, definition version, implementation id, implementation version)
CONNECTOR_MAPPINGS = (
    ("email", "1.2.0", "email-impl", "1.3.0"),
    ("rest-post", "1.5.0", "rest-post-impl", "1.5.0"),
)

CONNECTOR_JARS = {
    "email-impl-1.3.0": (
        ("email-impl -- 1.3.0", "bonita-connector-email-1.3.0.jar"),
        ("email-impl -- 1.3.0", "javax.mail-1.6.2.jar"),
        ("email-impl -- 1.3.0", "javax.mail-api-1.6.2.jar"),
    ),
    "rest-post-impl-1.5.0": (("rest-post-impl -- 1.5.0", "bonita-connector-rest-1.5.0.jar"),),
}


class BonitaProcessConfigGenerator:
    def __init__(self, config: BonitaConfig):
        self.config = config

    def username(self, organization: OrganizationModel) -> str:
        """First actor of the first role that has one."""
        for role in organization.roles:
            if role.actors:
                return role.actors[0].name
        return self.config.fallback_username

    def render(self, model: BpmnModel, organization: OrganizationModel) -> str:
        root = etree.Element(f"{{{CONFIGURATION_NS}}}Configuration", nsmap={"configuration": CONFIGURATION_NS})
        root.set("name", "Local")
        root.set("version", self.config.configuration_version)
        root.set("username", self.username(organization))

        mappings = etree.SubElement(root, "actorMappings")
        for graph in model.processes:
            for lane in graph.lanes:
                mappings.append(self._actor_mapping(lane))

        for definition_id, definition_version, implementation_id, implementation_version in CONNECTOR_MAPPINGS:
            etree.SubElement(
                root,
                "definitionMappings",
                type="CONNECTOR",
                definitionId=definition_id,
                definitionVersion=definition_version,
                implementationId=implementation_id,
                implementationVersion=implementation_version,
            )

        for children_id, fragments in CONNECTOR_JARS.items():
            dependency = etree.SubElement(root, "processDependencies", id="CONNECTOR")
            children = etree.SubElement(dependency, "children", id=children_id)
            for key, value in fragments:
                etree.SubElement(children, "fragments", key=key, value=value, type="CONNECTOR")

        for dependency_id in ("ACTOR_FILTER", "OTHER"):
            etree.SubElement(root, "processDependencies", id=dependency_id)

        return to_xml_text(indent(root, space="  "))

    def _actor_mapping(self, lane: Lane) -> etree._Element:
        mapping = etree.Element("actorMapping", name=lane.name)
        etree.SubElement(mapping, "groups")
        etree.SubElement(mapping, "memberships")
        roles = etree.SubElement(mapping, "roles")
        users = etree.SubElement(mapping, "users")
        if lane.actor is not None:
            parent = roles if lane.actor.kind == "role" else users
            etree.SubElement(parent, lane.actor.kind).text = lane.actor.name
        return mapping
