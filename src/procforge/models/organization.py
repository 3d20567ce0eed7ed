"""Organization model built from the ArchiMate subset."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from procforge.models.process import ActorBinding


class Actor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class Role(BaseModel):
    """Business role with its assigned actors.

    Attributes:
        id: ArchiMate element id
        name: Role name, matched against lane assignees
        actors: Assigned actors in assignment order, without duplicates
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    actors: tuple[Actor, ...] = ()


class OrganizationModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    roles: tuple[Role, ...] = ()

    def role_named(self, name: str) -> Role | None:
        return next((role for role in self.roles if role.name == name), None)

    def actor_named(self, name: str) -> Actor | None:
        """Find an actor by name or by id across all roles."""
        for role in self.roles:
            for actor in role.actors:
                if name in (actor.name, actor.id):
                    return actor
        return None

    def find_binding(self, name: str) -> ActorBinding | None:
        """Resolve an assignee name, checking roles before actors."""
        if self.role_named(name) is not None:
            return ActorBinding(kind="role", name=name)
        actor = self.actor_named(name)
        if actor is not None:
            return ActorBinding(kind="user", name=actor.name)
        return None

    @property
    def actor_names(self) -> list[str]:
        """Distinct actor names, sorted."""
        return sorted({actor.name for role in self.roles for actor in role.actors})

    def without_role(self, name: str) -> OrganizationModel:
        return self.model_copy(update={"roles": tuple(r for r in self.roles if r.name != name)})
