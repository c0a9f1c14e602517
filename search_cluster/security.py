import json
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pulumi
import pulumi_aws as aws

from search_cluster.directives import build_security_directives, to_payload
from search_cluster.domain import SearchDomain
from search_cluster.roles import StackRoles

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
HANDLER = "search_cluster.handlers.security_requests.handler"
TIMEOUT_SECONDS = 30

# The handler imports nothing else from the package.
HANDLER_MODULES = ("__init__.py", "errors.py", "directives.py")
HANDLER_PACKAGES = ("handlers",)


@dataclass
class SecurityConfigurator:
    function: aws.lambda_.Function
    invocation: aws.lambda_.Invocation


def handler_archive(package_dir: str = PACKAGE_DIR) -> pulumi.AssetArchive:
    """The Lambda code: only the modules the handler needs, under ``search_cluster/``."""
    assets = {
        f"search_cluster/{module}": pulumi.FileAsset(os.path.join(package_dir, module))
        for module in HANDLER_MODULES
    }
    for package in HANDLER_PACKAGES:
        assets[f"search_cluster/{package}"] = pulumi.FileArchive(os.path.join(package_dir, package))
    return pulumi.AssetArchive(assets)


def security_payload(roles: StackRoles, indexes: Sequence[str]) -> pulumi.Output[str]:
    """The ``{"requests": [...]}`` document once every role ARN is known."""
    return pulumi.Output.all(
        admin=roles.admin_user.arn,
        admin_call=roles.lambda_service.arn,
        delivery=roles.firehose_service.arn,
        limited=roles.limited_user.arn,
    ).apply(
        lambda a: json.dumps(
            to_payload(
                build_security_directives(
                    a["admin"], a["admin_call"], a["delivery"], a["limited"], indexes
                )
            )
        )
    )


def configure_security(
    name: str,
    domain: SearchDomain,
    roles: StackRoles,
    indexes: Sequence[str],
    region: str,
    depends_on: Optional[List[pulumi.Resource]] = None,
    layers: Optional[Sequence[str]] = None,
) -> SecurityConfigurator:
    # requests and pydantic come from the layers; boto3 ships with the runtime.
    if not layers:
        pulumi.log.warn(
            f"{name} has no layers; the handler cannot import requests or pydantic. "
            "Set securityHandlerLayers to a layer that provides them"
        )

    function = aws.lambda_.Function(
        "osRequestsFn",
        name=name,
        runtime="python3.12",
        handler=HANDLER,
        code=handler_archive(),
        role=roles.lambda_service.arn,
        timeout=TIMEOUT_SECONDS,
        layers=list(layers or []),
        environment=aws.lambda_.FunctionEnvironmentArgs(
            variables={"DOMAIN": domain.endpoint, "REGION": region},
        ),
        opts=pulumi.ResourceOptions(depends_on=roles.grants_for("lambda_service")),
    )

    # CRUD scope: one invocation per create/update/delete of this resource,
    # carrying the whole ordered directive list.
    invocation = aws.lambda_.Invocation(
        "osRequestsResource",
        function_name=function.name,
        input=security_payload(roles, indexes),
        lifecycle_scope="CRUD",
        opts=pulumi.ResourceOptions(depends_on=(depends_on or []) + domain.http_access_attachments),
    )
    pulumi.log.info(f"security configuration for {len(indexes)} index pattern(s) declared")
    return SecurityConfigurator(function, invocation)
