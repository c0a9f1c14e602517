"""Cognito user pool, identity pool, groups and the post-domain federation."""
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pulumi
import pulumi_aws as aws

from search_cluster.config import StackConfig
from search_cluster.errors import DiscoveryError

INVITE_SUBJECT = "Use Kibana Dashboard with this account."
INVITE_EMAIL = (
    "Hello {username}, you have been invited to join our Kibana app! "
    "Your temporary password is {####}"
)
INVITE_SMS = "Hi {username}, your temporary password for our Kibana app is {####}"

ADMIN_GROUP = "OS-Admins"
LIMITED_GROUP = "OS-Limited-Users"

# The domain's Cognito integration registers its app client on the identity
# pool after creation; refreshes must not revert it.
IDENTITY_POOL_IGNORED_CHANGES = ["cognitoIdentityProviders"]


@dataclass
class Directory:
    user_pool: aws.cognito.UserPool
    user_pool_domain: aws.cognito.UserPoolDomain
    identity_pool: aws.cognito.IdentityPool


@dataclass
class Federation:
    attachment: aws.cognito.IdentityPoolRoleAttachment
    provider_name: pulumi.Output[str]


def identity_pool_options() -> pulumi.ResourceOptions:
    return pulumi.ResourceOptions(ignore_changes=list(IDENTITY_POOL_IGNORED_CHANGES))


# ------------------------
# Identity Provider
# ------------------------
def create_directory(config: StackConfig) -> Directory:
    pool_name = config.name("dashboard")
    user_pool = aws.cognito.UserPool(
        pool_name,
        name=pool_name,
        alias_attributes=["email"],
        auto_verified_attributes=["email"],
        admin_create_user_config=aws.cognito.UserPoolAdminCreateUserConfigArgs(
            allow_admin_create_user_only=False,
            invite_message_template=aws.cognito.UserPoolAdminCreateUserConfigInviteMessageTemplateArgs(
                email_subject=INVITE_SUBJECT,
                email_message=INVITE_EMAIL,
                sms_message=INVITE_SMS,
            ),
        ),
        deletion_protection="INACTIVE",
        tags=config.tags(),
    )

    hosted_domain = config.name("domain")
    user_pool_domain = aws.cognito.UserPoolDomain(
        hosted_domain,
        domain=hosted_domain,
        user_pool_id=user_pool.id,
    )

    # Identity pool names only accept word characters and spaces.
    identity_pool = aws.cognito.IdentityPool(
        config.name("IdentityPool"),
        identity_pool_name=config.name("IdentityPool").replace("-", "_"),
        allow_unauthenticated_identities=False,
        tags=config.tags(),
        opts=identity_pool_options(),
    )
    pulumi.log.info(f"user pool {pool_name} and its identity pool declared")
    return Directory(user_pool, user_pool_domain, identity_pool)


# ------------------------
# Group Binder
# ------------------------
def bind_group(
    name: str,
    user_pool_id: pulumi.Input[str],
    group_name: str,
    description: str,
    role_arn: pulumi.Input[str],
) -> aws.cognito.UserGroup:
    return aws.cognito.UserGroup(
        name,
        name=group_name,
        user_pool_id=user_pool_id,
        description=description,
        role_arn=role_arn,
    )


def bind_groups(directory: Directory, admin_role: aws.iam.Role, limited_role: aws.iam.Role) -> List[aws.cognito.UserGroup]:
    return [
        bind_group(
            "userPoolAdminGroupPool",
            directory.user_pool.id,
            ADMIN_GROUP,
            "AWS Opensearch admins access.",
            admin_role.arn,
        ),
        bind_group(
            "userPoolLimitedGroupPool",
            directory.user_pool.id,
            LIMITED_GROUP,
            "AWS Opensearch limited access.",
            limited_role.arn,
        ),
    ]


# ------------------------
# Identity Resolver
# ------------------------
@dataclass(frozen=True)
class ClientDiscovery:
    """App clients registered in a user pool, in the order Cognito lists them."""

    user_pool_id: str
    client_ids: Sequence[str] = ()

    def first_client_id(self) -> str:
        for client_id in self.client_ids:
            if client_id:
                return client_id
        raise DiscoveryError(
            f"user pool {self.user_pool_id} has no app clients; "
            "the domain's Cognito integration did not register one"
        )


def issuer_host(region: str) -> str:
    return f"cognito-idp.{region}.amazonaws.com"


def provider_name(region: str, user_pool_id: str, client_id: str) -> str:
    if not client_id:
        raise DiscoveryError(f"empty client id for user pool {user_pool_id}")
    return f"{issuer_host(region)}/{user_pool_id}:{client_id}"


def discover_clients(
    user_pool_id: pulumi.Input[str],
    depends_on: Optional[List[pulumi.Resource]] = None,
) -> pulumi.Output[ClientDiscovery]:
    """List the pool's app clients once everything in ``depends_on`` settled."""
    result = aws.cognito.get_user_pool_clients_output(
        user_pool_id=user_pool_id,
        opts=pulumi.InvokeOutputOptions(depends_on=depends_on or []),
    )
    return result.apply(
        lambda r: ClientDiscovery(user_pool_id=r.user_pool_id, client_ids=list(r.client_ids or []))
    )


def resolve_and_attach(
    directory: Directory,
    region: str,
    default_role: aws.iam.Role,
    depends_on: Optional[List[pulumi.Resource]] = None,
) -> Federation:
    discovery = discover_clients(directory.user_pool.id, depends_on)
    provider = discovery.apply(
        lambda d: provider_name(region, d.user_pool_id, d.first_client_id())
    )

    # One attachment per identity pool: re-running replaces the mapping.
    attachment = aws.cognito.IdentityPoolRoleAttachment(
        "userPoolRoleAttachment",
        identity_pool_id=directory.identity_pool.id,
        roles={"authenticated": default_role.arn},
        role_mappings=[
            aws.cognito.IdentityPoolRoleAttachmentRoleMappingArgs(
                identity_provider=provider,
                type="Token",
                ambiguous_role_resolution="AuthenticatedRole",
            )
        ],
        opts=pulumi.ResourceOptions(depends_on=depends_on),
    )
    return Federation(attachment, provider)
