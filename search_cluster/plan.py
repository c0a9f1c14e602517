"""Explicit deployment graph for the stack.

Builders return resource handles and the orchestrator registers them here
instead of relying on construction order. Two kinds of edges exist:

* ``needs``  - the step consumes outputs of another step (data dependency);
* ``after``  - the step must only run once another step has settled, without
  reading anything from it. ``barrier()`` turns these into ``depends_on``
  lists for the substrate.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from search_cluster.errors import PlanError

IDENTITY = "identity"
ROLES = "roles"
GROUPS = "groups"
DOMAIN = "domain"
RESOLVER = "resolver"
SECURITY = "security"
INGESTION_PREFIX = "ingestion:"


def ingestion_step(index: str) -> str:
    return f"{INGESTION_PREFIX}{index}"


@dataclass
class Step:
    name: str
    needs: Tuple[str, ...] = ()
    after: Tuple[str, ...] = ()
    resources: List[Any] = field(default_factory=list)

    @property
    def edges(self) -> Tuple[str, ...]:
        return self.needs + self.after


class DeploymentPlan:
    def __init__(self):
        self._steps: Dict[str, Step] = {}

    def add(self, name: str, needs: Iterable[str] = (), after: Iterable[str] = ()) -> Step:
        if name in self._steps:
            raise PlanError(f"step {name!r} declared twice")
        step = Step(name, tuple(needs), tuple(after))
        self._steps[name] = step
        return step

    def __contains__(self, name: str) -> bool:
        return name in self._steps

    def step(self, name: str) -> Step:
        try:
            return self._steps[name]
        except KeyError:
            raise PlanError(f"unknown step {name!r}") from None

    def register(self, name: str, *resources: Any) -> None:
        self.step(name).resources.extend(resources)

    def resources(self, name: str) -> List[Any]:
        return list(self.step(name).resources)

    def barrier(self, name: str) -> List[Any]:
        """Resources that ``name`` must wait for without consuming them."""
        return [r for dep in self.step(name).after for r in self.resources(dep)]

    def order(self) -> List[str]:
        """Topological order; ties keep declaration order."""
        for step in self._steps.values():
            for dep in step.edges:
                if dep not in self._steps:
                    raise PlanError(f"step {step.name!r} depends on unknown step {dep!r}")

        remaining = dict(self._steps)
        done: List[str] = []
        while remaining:
            ready = [
                name
                for name, step in remaining.items()
                if all(dep not in remaining for dep in step.edges)
            ]
            if not ready:
                raise PlanError(f"dependency cycle among {sorted(remaining)}")
            for name in ready:
                done.append(name)
                del remaining[name]
        return done


def default_plan(indexes: Iterable[str]) -> DeploymentPlan:
    plan = DeploymentPlan()
    plan.add(IDENTITY)
    plan.add(ROLES, needs=[IDENTITY])
    plan.add(GROUPS, needs=[IDENTITY, ROLES])
    plan.add(DOMAIN, needs=[IDENTITY, ROLES])
    plan.add(RESOLVER, needs=[IDENTITY, ROLES], after=[DOMAIN])
    # The endpoint is read by the handler, but the invocation is also pinned
    # to the domain having settled.
    plan.add(SECURITY, needs=[ROLES, DOMAIN], after=[DOMAIN])
    for index in indexes:
        plan.add(ingestion_step(index), needs=[ROLES, DOMAIN])
    return plan
