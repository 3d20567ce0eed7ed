"""Bonita organization (``Organization.xml``) built from the ArchiMate roles."""

from __future__ import annotations

from lxml import etree

from procforge.config import BonitaConfig
from procforge.errors import GenerationError
from procforge.generators.xml_writer import indent, to_ascii_xml
from procforge.models.organization import OrganizationModel

ORGANIZATION_NS = "http://documentation.bonitasoft.com/organization-xml-schema/1.1"


class BonitaOrganizationGenerator:
    """Users, roles, a single group and one membership per (actor, role).

    Only the root element is qualified; Bonita expects the children
    unprefixed.
    """

    def __init__(self, config: BonitaConfig):
        self.config = config

    def render(self, organization: OrganizationModel) -> str:
        """Serialize the organization as ASCII XML.

        Raises:
            GenerationError: If the organization defines no roles
        """
        if not organization.roles:
            raise GenerationError("bonita", "organization defines no roles")

        memberships: dict[str, list[str]] = {}
        for role in organization.roles:
            for actor in role.actors:
                roles = memberships.setdefault(actor.name, [])
                if role.name not in roles:
                    roles.append(role.name)
        users = sorted(memberships)

        root = etree.Element(f"{{{ORGANIZATION_NS}}}Organization", nsmap={"organization": ORGANIZATION_NS})
        etree.SubElement(root, "customUserInfoDefinitions")

        users_el = etree.SubElement(root, "users")
        for name in users:
            user = etree.SubElement(users_el, "user", userName=name)
            etree.SubElement(user, "personalData")
            etree.SubElement(user, "professionalData")
            password = etree.SubElement(user, "password", encrypted="false")
            password.text = self.config.default_password
            etree.SubElement(user, "customUserInfoValues")

        roles_el = etree.SubElement(root, "roles")
        for name in sorted(role.name for role in organization.roles):
            role = etree.SubElement(roles_el, "role", name=name)
            etree.SubElement(role, "displayName").text = name

        groups = etree.SubElement(root, "groups")
        group = etree.SubElement(groups, "group", name=self.config.default_group)
        etree.SubElement(group, "displayName").text = self.config.default_group

        memberships_el = etree.SubElement(root, "memberships")
        for name in users:
            for role_name in memberships[name]:
                membership = etree.SubElement(memberships_el, "membership")
                etree.SubElement(membership, "userName").text = name
                etree.SubElement(membership, "roleName").text = role_name
                etree.SubElement(membership, "groupName").text = self.config.default_group

        return to_ascii_xml(indent(root, space="  "))
