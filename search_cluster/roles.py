import json
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import pulumi
import pulumi_aws as aws

from search_cluster.config import StackConfig
from search_cluster.policies import managed_policy_arn, service_trust_policy, web_identity_trust_policy


def create_federated_role(identity_pool: aws.cognito.IdentityPool, name: str) -> aws.iam.Role:
    """Role for authenticated identity-pool users; grants are attached later."""
    return aws.iam.Role(
        name,
        name=name,
        assume_role_policy=identity_pool.id.apply(
            lambda pool_id: json.dumps(web_identity_trust_policy(pool_id))
        ),
    )


def create_service_role(
    name: str,
    service_principal: str,
    grant_names: Sequence[str],
    partition: str = "aws",
) -> Tuple[aws.iam.Role, List[aws.iam.RolePolicyAttachment]]:
    """A role assumable by an AWS service, with its managed grants attached.

    Anything the service does on the role's behalf must depend on the returned
    attachments, not only on the role.
    """
    role = aws.iam.Role(
        name,
        name=name,
        assume_role_policy=json.dumps(service_trust_policy(service_principal)),
    )
    grants = [
        aws.iam.RolePolicyAttachment(
            f"{name}-{grant.split('/')[-1]}",
            role=role.name,
            policy_arn=managed_policy_arn(partition, grant),
        )
        for grant in grant_names
    ]
    return role, grants


@dataclass
class StackRoles:
    limited_user: aws.iam.Role
    admin_user: aws.iam.Role
    opensearch_service: aws.iam.Role
    lambda_service: aws.iam.Role
    firehose_service: aws.iam.Role
    # Managed-policy attachments keyed by the service role's field name.
    grants: Dict[str, List[aws.iam.RolePolicyAttachment]] = field(default_factory=dict)

    def all(self) -> List[aws.iam.Role]:
        return [
            self.limited_user,
            self.admin_user,
            self.opensearch_service,
            self.lambda_service,
            self.firehose_service,
        ]

    def grants_for(self, *role_names: str) -> List[aws.iam.RolePolicyAttachment]:
        return [g for name in role_names for g in self.grants.get(name, [])]

    def attachments(self) -> List[aws.iam.RolePolicyAttachment]:
        return self.grants_for(*self.grants)


def create_stack_roles(
    config: StackConfig,
    identity_pool: aws.cognito.IdentityPool,
    partition: str = "aws",
) -> StackRoles:
    opensearch_service, opensearch_grants = create_service_role(
        config.name("ServiceRole"),
        "es.amazonaws.com",
        ["AmazonESCognitoAccess"],
        partition,
    )
    lambda_service, lambda_grants = create_service_role(
        config.name("lambdaServiceRole"),
        "lambda.amazonaws.com",
        ["service-role/AWSLambdaBasicExecutionRole"],
        partition,
    )
    firehose_service, firehose_grants = create_service_role(
        config.name("firehoseServiceRole"),
        "firehose.amazonaws.com",
        ["AmazonESFullAccess", "AmazonKinesisFullAccess"],
        partition,
    )
    roles = StackRoles(
        limited_user=create_federated_role(identity_pool, config.name("LimitedUserRole")),
        admin_user=create_federated_role(identity_pool, config.name("AdminUserRole")),
        opensearch_service=opensearch_service,
        lambda_service=lambda_service,
        firehose_service=firehose_service,
        grants={
            "opensearch_service": opensearch_grants,
            "lambda_service": lambda_grants,
            "firehose_service": firehose_grants,
        },
    )
    pulumi.log.info(
        f"{len(roles.all())} roles and {len(roles.attachments())} managed grants declared for {config.app_prefix}"
    )
    return roles
