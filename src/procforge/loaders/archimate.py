"""ArchiMate organization loader.

Reads ``element`` nodes typed BusinessActor, BusinessRole and
AssignmentRelationship. Relationships whose source or target is not a known
actor or role are skipped.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from procforge.loaders.xml import XSI_NS, local_name, parse_xml, read_xml
from procforge.models.organization import Actor, OrganizationModel, Role

logger = structlog.get_logger(__name__)

ACTOR_TYPE = "BusinessActor"
ROLE_TYPE = "BusinessRole"
ASSIGNMENT_TYPE = "AssignmentRelationship"


def _element_type(element) -> str:
    """``archimate:BusinessActor`` -> ``BusinessActor``."""
    raw = element.get(f"{{{XSI_NS}}}type") or element.get("type") or ""
    return raw.rsplit(":", 1)[-1]


class ArchimateLoader:
    """Build an OrganizationModel from an ArchiMate model file."""

    def load(self, path: Path) -> OrganizationModel:
        """Load an ArchiMate file.

        Raises:
            MalformedModelError: If the file is unreadable or not well-formed XML
        """
        model = self._build(read_xml(path, "archimate"))
        logger.info(
            "organization_loaded",
            path=str(path),
            roles=len(model.roles),
            actors=len(model.actor_names),
        )
        return model

    def parse(self, source: bytes | str) -> OrganizationModel:
        return self._build(parse_xml(source, "archimate"))

    def _build(self, root) -> OrganizationModel:
        elements = [
            el for el in root.iter() if isinstance(el.tag, str) and local_name(el) == "element"
        ]

        actors: dict[str, Actor] = {}
        role_order: list[str] = []
        role_names: dict[str, str] = {}
        for element in elements:
            element_type = _element_type(element)
            element_id = element.get("id")
            if not element_id:
                continue
            if element_type == ACTOR_TYPE:
                actors[element_id] = Actor(id=element_id, name=element.get("name") or element_id)
            elif element_type == ROLE_TYPE:
                role_order.append(element_id)
                role_names[element_id] = element.get("name") or element_id

        assigned: dict[str, list[Actor]] = {role_id: [] for role_id in role_order}
        for element in elements:
            if _element_type(element) != ASSIGNMENT_TYPE:
                continue
            actor = actors.get(element.get("source") or "")
            role_id = element.get("target") or ""
            if actor is None or role_id not in assigned:
                logger.debug(
                    "assignment_skipped",
                    relationship=element.get("id"),
                    source=element.get("source"),
                    target=role_id,
                )
                continue
            if actor not in assigned[role_id]:
                assigned[role_id].append(actor)

        roles = tuple(
            Role(id=role_id, name=role_names[role_id], actors=tuple(assigned[role_id]))
            for role_id in role_order
        )
        return OrganizationModel(roles=roles)
