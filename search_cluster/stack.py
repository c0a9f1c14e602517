"""Builds the whole stack by walking the deployment plan in dependency order."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pulumi
import pulumi_aws as aws
import pulumi_aws_native as aws_native

from search_cluster import plan as steps
from search_cluster.config import StackConfig
from search_cluster.domain import SearchDomain, create_domain
from search_cluster.errors import PlanError
from search_cluster.identity import Directory, Federation, bind_groups, create_directory, resolve_and_attach
from search_cluster.ingestion import IngestionPipeline, create_ingestion_pipeline, warn_broad_delivery_grant
from search_cluster.plan import DeploymentPlan, default_plan
from search_cluster.roles import StackRoles, create_stack_roles
from search_cluster.security import SecurityConfigurator, configure_security


@dataclass
class Environment:
    partition: str
    region: str
    account: str

    @classmethod
    def lookup(cls) -> "Environment":
        return cls(
            partition=aws.get_partition().partition,
            region=aws.get_region().region,
            account=aws.get_caller_identity().account_id,
        )


@dataclass
class StackHandles:
    config: StackConfig
    plan: DeploymentPlan
    directory: Optional[Directory] = None
    roles: Optional[StackRoles] = None
    groups: List[aws.cognito.UserGroup] = field(default_factory=list)
    domain: Optional[SearchDomain] = None
    federation: Optional[Federation] = None
    security: Optional[SecurityConfigurator] = None
    pipelines: Dict[str, IngestionPipeline] = field(default_factory=dict)

    @property
    def outputs(self) -> Dict[str, pulumi.Input]:
        outputs: Dict[str, pulumi.Input] = {}
        if self.domain is not None:
            outputs[self.config.name("dashboard-endpoint")] = self.domain.dashboard_url
        for index, pipeline in self.pipelines.items():
            outputs[f"firehose-{self.config.delivery_stream_name(index)}"] = pipeline.stream_arn
        return outputs


def handle_resource_error(resource_name: str, e: Exception) -> None:
    """Centralized error handling for resource creation."""
    pulumi.log.error(f"Error creating {resource_name}: {str(e)}")
    raise e


def build_stack(
    config: StackConfig,
    env: Optional[Environment] = None,
    plan: Optional[DeploymentPlan] = None,
) -> StackHandles:
    env = env or Environment.lookup()
    plan = plan or default_plan(config.indexes)
    h = StackHandles(config=config, plan=plan)
    native = aws_native.Provider("aws-native", region=env.region)
    warn_broad_delivery_grant(config)

    for name in plan.order():
        try:
            _build_step(name, h, env, native)
        except Exception as e:
            handle_resource_error(name, e)
    return h


def _build_step(name: str, h: StackHandles, env: Environment, native: pulumi.ProviderResource) -> None:
    config, plan = h.config, h.plan

    if name == steps.IDENTITY:
        h.directory = create_directory(config)
        plan.register(name, h.directory.user_pool, h.directory.user_pool_domain, h.directory.identity_pool)

    elif name == steps.ROLES:
        h.roles = create_stack_roles(config, h.directory.identity_pool, env.partition)
        plan.register(name, *h.roles.all(), *h.roles.attachments())

    elif name == steps.GROUPS:
        h.groups = bind_groups(h.directory, h.roles.admin_user, h.roles.limited_user)
        plan.register(name, *h.groups)

    elif name == steps.DOMAIN:
        h.domain = create_domain(config, h.directory, h.roles, env.partition, env.region, env.account)
        plan.register(name, h.domain.domain, h.domain.http_access_policy, *h.domain.http_access_attachments)

    elif name == steps.RESOLVER:
        h.federation = resolve_and_attach(
            h.directory, env.region, h.roles.limited_user, depends_on=plan.barrier(name)
        )
        plan.register(name, h.federation.attachment)

    elif name == steps.SECURITY:
        h.security = configure_security(
            config.name("osRequestsFn"),
            h.domain,
            h.roles,
            config.indexes,
            env.region,
            depends_on=plan.barrier(name),
            layers=config.security_handler_layers,
        )
        plan.register(name, h.security.function, h.security.invocation)

    elif name.startswith(steps.INGESTION_PREFIX):
        index = name[len(steps.INGESTION_PREFIX):]
        pipeline = create_ingestion_pipeline(
            config, index, h.domain, h.roles.firehose_service,
            env.partition, env.region, env.account, provider=native,
            role_grants=h.roles.grants_for("firehose_service"),
        )
        h.pipelines[index] = pipeline
        plan.register(name, pipeline.retry_bucket, pipeline.policy, pipeline.delivery_stream)

    else:
        raise PlanError(f"no builder for step {name!r}")
