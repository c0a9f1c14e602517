import json
from dataclasses import dataclass, field
from typing import Dict, List

import pulumi
import pulumi_aws as aws

from search_cluster.config import StackConfig
from search_cluster.identity import Directory
from search_cluster.policies import domain_access_policy, domain_arn, domain_http_access_policy
from search_cluster.roles import StackRoles


@dataclass
class SearchDomain:
    domain: aws.opensearch.Domain
    http_access_policy: aws.iam.Policy
    http_access_attachments: List[aws.iam.RolePolicyAttachment]
    # Resources the domain itself waited on at creation.
    dependencies: List[pulumi.Resource] = field(default_factory=list)

    @property
    def arn(self) -> pulumi.Output[str]:
        return self.domain.arn

    @property
    def endpoint(self) -> pulumi.Output[str]:
        return self.domain.endpoint

    @property
    def dashboard_url(self) -> pulumi.Output[str]:
        return self.domain.endpoint.apply(lambda e: f"https://{e}/_dashboards")


def data_plane_principals(roles: StackRoles) -> Dict[str, aws.iam.Role]:
    """The only roles granted HTTP access to the domain through IAM."""
    return {
        "limited-user": roles.limited_user,
        "lambda-service": roles.lambda_service,
        "firehose-service": roles.firehose_service,
    }


def create_domain(
    config: StackConfig,
    directory: Directory,
    roles: StackRoles,
    partition: str,
    region: str,
    account: str,
) -> SearchDomain:
    name = config.domain_name
    # Known before creation so the access policy can reference it.
    arn = domain_arn(partition, region, account, name)
    # Cognito access is checked while the domain is created, so the
    # service role and the master user role must already hold their grants.
    dependencies = roles.grants_for("opensearch_service", "lambda_service")

    domain = aws.opensearch.Domain(
        name,
        domain_name=name,
        engine_version=config.engine_version,
        cluster_config=aws.opensearch.DomainClusterConfigArgs(
            instance_type=config.instance_type,
            instance_count=1,
            zone_awareness_enabled=False,
            multi_az_with_standby_enabled=False,
        ),
        ebs_options=aws.opensearch.DomainEbsOptionsArgs(
            ebs_enabled=True, volume_size=config.ebs_volume_size, volume_type="gp3"
        ),
        encrypt_at_rest=aws.opensearch.DomainEncryptAtRestArgs(enabled=True),
        node_to_node_encryption=aws.opensearch.DomainNodeToNodeEncryptionArgs(enabled=True),
        domain_endpoint_options=aws.opensearch.DomainDomainEndpointOptionsArgs(
            enforce_https=True, tls_security_policy="Policy-Min-TLS-1-2-2019-07"
        ),
        access_policies=json.dumps(domain_access_policy(arn)),
        cognito_options=aws.opensearch.DomainCognitoOptionsArgs(
            enabled=True,
            identity_pool_id=directory.identity_pool.id,
            role_arn=roles.opensearch_service.arn,
            user_pool_id=directory.user_pool.id,
        ),
        advanced_security_options=aws.opensearch.DomainAdvancedSecurityOptionsArgs(
            enabled=True,
            internal_user_database_enabled=False,
            master_user_options=aws.opensearch.DomainAdvancedSecurityOptionsMasterUserOptionsArgs(
                master_user_arn=roles.lambda_service.arn,
            ),
        ),
        tags=config.tags(),
        opts=pulumi.ResourceOptions(depends_on=dependencies),
    )

    http_access_policy = aws.iam.Policy(
        "limitedUserPolicy",
        description=f"HTTP access to {name}",
        policy=domain.arn.apply(lambda a: json.dumps(domain_http_access_policy(a))),
    )
    attachments = [
        aws.iam.RolePolicyAttachment(
            f"limitedUserPolicy-{label}",
            role=role.name,
            policy_arn=http_access_policy.arn,
        )
        for label, role in data_plane_principals(roles).items()
    ]
    pulumi.log.info(f"domain {name} declared ({config.instance_type}, {config.ebs_volume_size} GiB)")
    return SearchDomain(domain, http_access_policy, attachments, dependencies)
