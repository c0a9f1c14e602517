"""Security-plugin calls applied to a freshly created domain.

Imported by the Lambda handler, so this module only depends on pydantic.
"""
from typing import Any, Callable, Dict, List, Sequence

from pydantic import BaseModel, Field

from search_cluster.errors import DirectiveError

SECURITY_API = "_opendistro/_security/api"
LIMITED_ROLE = "kibana_limited_role"


class SecurityDirective(BaseModel):
    method: str = "PUT"
    path: str
    body: Dict[str, Any] = Field(default_factory=dict)


class SecurityRequests(BaseModel):
    requests: List[SecurityDirective]


def _role_mapping(role: str, backend_roles: Sequence[str]) -> SecurityDirective:
    return SecurityDirective(
        method="PUT",
        path=f"{SECURITY_API}/rolesmapping/{role}",
        body={"backend_roles": list(backend_roles), "hosts": [], "users": []},
    )


def build_security_directives(
    admin_role_arn: str,
    admin_call_role_arn: str,
    delivery_role_arn: str,
    limited_role_arn: str,
    indexes: Sequence[str],
) -> List[SecurityDirective]:
    """The four ordered PUTs; the limited role mapping must come last."""
    limited_role = SecurityDirective(
        method="PUT",
        path=f"{SECURITY_API}/roles/{LIMITED_ROLE}",
        body={
            "cluster_permissions": ["cluster_composite_ops", "indices_monitor"],
            "index_permissions": [
                {
                    "index_patterns": list(indexes),
                    "dls": "",
                    "fls": [],
                    "masked_fields": [],
                    "allowed_actions": ["read"],
                }
            ],
            "tenant_permissions": [
                {"tenant_patterns": ["global"], "allowed_actions": ["kibana_all_read"]}
            ],
        },
    )
    return [
        _role_mapping("all_access", [admin_role_arn, admin_call_role_arn, delivery_role_arn]),
        _role_mapping("security_manager", [admin_call_role_arn, admin_role_arn, delivery_role_arn]),
        limited_role,
        _role_mapping(LIMITED_ROLE, [limited_role_arn, delivery_role_arn]),
    ]


def to_payload(directives: Sequence[SecurityDirective]) -> Dict[str, Any]:
    return SecurityRequests(requests=list(directives)).model_dump()


Executor = Callable[[SecurityDirective], Any]


def apply_directives(directives: Sequence[SecurityDirective], execute: Executor) -> List[Any]:
    """Run every directive in order, stopping at the first failure.

    Directives are replace-semantics PUTs, so a failed run is recovered by
    applying the whole list again.
    """
    responses = []
    for i, directive in enumerate(directives):
        try:
            responses.append(execute(directive))
        except Exception as e:
            raise DirectiveError(i, directive.path, e) from e
    return responses
