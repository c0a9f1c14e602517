import json

import os

import pulumi
import pulumi_aws as aws
import pytest

from conftest import ACCOUNT, REGION
from search_cluster.config import StackConfig
from search_cluster.errors import DiscoveryError
from search_cluster.identity import (
    ClientDiscovery,
    discover_clients,
    identity_pool_options,
    provider_name,
)
from search_cluster.security import handler_archive
from search_cluster.stack import Environment, build_stack

ENV = Environment(partition="aws", region=REGION, account=ACCOUNT)
DOMAIN_ARN = f"arn:aws:es:{REGION}:{ACCOUNT}:domain/sample-os-cluster-dev"


def make_config(indexes=("index-01", "index-02"), **overrides):
    return StackConfig(stage="dev", app_prefix="sample-os", indexes=list(indexes), **overrides)


def role_arn(name):
    return f"arn:aws:iam::{ACCOUNT}:role/sample-os-{name}-dev"


@pulumi.runtime.test
def test_environment_lookup():
    env = Environment.lookup()
    assert env == Environment(partition="aws", region=REGION, account=ACCOUNT)


@pulumi.runtime.test
def test_one_pipeline_per_index():
    handles = build_stack(make_config(), ENV)
    assert list(handles.pipelines) == ["index-01", "index-02"]
    first, second = handles.pipelines["index-01"], handles.pipelines["index-02"]
    assert first.retry_bucket is not second.retry_bucket
    assert first.policy is not second.policy

    def check(args):
        bucket_1, bucket_2, stream_1, stream_2 = args
        assert bucket_1 == "sample-os-index-01-retry-stream-bucket-dev"
        assert bucket_2 == "sample-os-index-02-retry-stream-bucket-dev"
        assert stream_1 == "sample-os-index-01-delivery-stream-dev"
        assert stream_2 == "sample-os-index-02-delivery-stream-dev"

    return pulumi.Output.all(
        first.retry_bucket.bucket,
        second.retry_bucket.bucket,
        first.delivery_stream.delivery_stream_name,
        second.delivery_stream.delivery_stream_name,
    ).apply(check)


@pulumi.runtime.test
def test_stack_outputs():
    handles = build_stack(make_config(), ENV)
    outputs = handles.outputs
    assert outputs["firehose-sample-os-index-01-delivery-stream-dev"] == (
        f"arn:aws:firehose:{REGION}:{ACCOUNT}:deliverystream/sample-os-index-01-delivery-stream-dev"
    )
    assert outputs["firehose-sample-os-index-02-delivery-stream-dev"] == (
        f"arn:aws:firehose:{REGION}:{ACCOUNT}:deliverystream/sample-os-index-02-delivery-stream-dev"
    )

    def check(url):
        assert url == f"https://search-sample-os-cluster-dev.{REGION}.es.amazonaws.com/_dashboards"

    return outputs["sample-os-dashboard-endpoint-dev"].apply(check)


@pulumi.runtime.test
def test_delivery_policy_is_scoped_per_index():
    handles = build_stack(make_config(), ENV)
    pipeline = handles.pipelines["index-02"]

    def check(policy):
        support, bucket, domain = json.loads(policy)["Statement"]
        bucket_arn = "arn:aws:s3:::sample-os-index-02-retry-stream-bucket-dev"
        assert bucket["Resource"] == [bucket_arn, f"{bucket_arn}/*"]
        assert domain["Resource"] == [DOMAIN_ARN, f"{DOMAIN_ARN}/*"]
        assert support["Action"] == ["kms:*", "logs:*"]

    return pipeline.policy.policy.apply(check)


@pulumi.runtime.test
def test_domain_http_access_granted_to_exactly_three_roles():
    handles = build_stack(make_config(), ENV)
    domain = handles.domain
    assert len(domain.http_access_attachments) == 3

    def check(args):
        policy, *attached = args
        (statement,) = json.loads(policy)["Statement"]
        assert statement["Resource"] == [DOMAIN_ARN, f"{DOMAIN_ARN}/*"]
        assert sorted(attached) == sorted(
            [
                "sample-os-LimitedUserRole-dev",
                "sample-os-lambdaServiceRole-dev",
                "sample-os-firehoseServiceRole-dev",
            ]
        )

    return pulumi.Output.all(
        domain.http_access_policy.policy, *[a.role for a in domain.http_access_attachments]
    ).apply(check)


@pulumi.runtime.test
def test_domain_settings():
    handles = build_stack(make_config(), ENV)
    domain = handles.domain.domain

    def check(args):
        name, version, access_policy = args
        assert name == "sample-os-cluster-dev"
        assert version == "OpenSearch_2.15"
        (statement,) = json.loads(access_policy)["Statement"]
        assert statement["Resource"] == f"{DOMAIN_ARN}/*"

    return pulumi.Output.all(domain.domain_name, domain.engine_version, domain.access_policies).apply(check)


@pulumi.runtime.test
def test_security_invocation_carries_every_index():
    handles = build_stack(make_config(), ENV)
    invocation = handles.security.invocation

    def check(args):
        payload, scope = args
        requests = json.loads(payload)["requests"]
        assert len(requests) == 4
        patterns = requests[2]["body"]["index_permissions"][0]["index_patterns"]
        assert patterns == ["index-01", "index-02"]
        assert set(requests[0]["body"]["backend_roles"]) == {
            role_arn("AdminUserRole"),
            role_arn("lambdaServiceRole"),
            role_arn("firehoseServiceRole"),
        }
        assert requests[3]["body"]["backend_roles"] == [
            role_arn("LimitedUserRole"),
            role_arn("firehoseServiceRole"),
        ]
        assert scope == "CRUD"

    return pulumi.Output.all(invocation.input, invocation.lifecycle_scope).apply(check)


@pulumi.runtime.test
def test_removing_an_index_drops_only_its_pipeline():
    handles = build_stack(make_config(["index-01"]), ENV)
    assert list(handles.pipelines) == ["index-01"]
    assert "ingestion:index-02" not in handles.plan
    assert handles.domain is not None
    assert handles.security is not None

    def check(payload):
        patterns = json.loads(payload)["requests"][2]["body"]["index_permissions"][0]["index_patterns"]
        assert patterns == ["index-01"]

    return handles.security.invocation.input.apply(check)


@pulumi.runtime.test
def test_resolver_attaches_limited_role():
    handles = build_stack(make_config(), ENV)

    def check(roles):
        assert roles == {"authenticated": role_arn("LimitedUserRole")}

    return handles.federation.attachment.roles.apply(check)


@pulumi.runtime.test
def test_discovery_builds_provider_name(mocks):
    discovery = discover_clients("eu-west-1_pool")

    def check(d):
        assert d.client_ids == ["client-123"]
        assert provider_name(REGION, d.user_pool_id, d.first_client_id()) == (
            "cognito-idp.eu-west-1.amazonaws.com/eu-west-1_pool:client-123"
        )

    return discovery.apply(check)


@pulumi.runtime.test
def test_discovery_without_clients_is_an_error(mocks):
    mocks.client_ids = []
    discovery = discover_clients("eu-west-1_pool")

    def check(d):
        assert d.client_ids == []
        with pytest.raises(DiscoveryError):
            d.first_client_id()

    return discovery.apply(check)


def test_client_discovery_skips_empty_ids():
    assert ClientDiscovery("pool", ["", "abc"]).first_client_id() == "abc"


def test_provider_name_rejects_empty_client():
    with pytest.raises(DiscoveryError):
        provider_name(REGION, "pool", "")


def _field(value, name, camel):
    if hasattr(value, name):
        return getattr(value, name)
    return value.get(name, value.get(camel))


@pulumi.runtime.test
def test_resolver_maps_tokens_from_the_discovered_client():
    handles = build_stack(make_config(), ENV)

    def check(mappings):
        (mapping,) = mappings
        assert _field(mapping, "identity_provider", "identityProvider") == (
            f"cognito-idp.{REGION}.amazonaws.com/sample-os-dashboard-dev_id:client-123"
        )
        assert _field(mapping, "type", "type") == "Token"
        assert _field(mapping, "ambiguous_role_resolution", "ambiguousRoleResolution") == "AuthenticatedRole"

    return handles.federation.attachment.role_mappings.apply(check)


def test_build_stack_fails_when_the_pool_has_no_app_clients(mocks):
    mocks.client_ids = []

    @pulumi.runtime.test
    def deploy():
        handles = build_stack(make_config(), ENV)
        return handles.federation.provider_name

    with pytest.raises(Exception, match="no app clients"):
        deploy()


@pulumi.runtime.test
def test_domain_waits_for_service_role_grants():
    handles = build_stack(make_config(), ENV)
    (cognito_access,) = handles.roles.grants["opensearch_service"]
    (lambda_basic,) = handles.roles.grants["lambda_service"]
    assert cognito_access in handles.domain.dependencies
    assert lambda_basic in handles.domain.dependencies

    registered = [r for r in handles.plan.resources("roles") if isinstance(r, aws.iam.RolePolicyAttachment)]
    assert len(registered) == 4
    assert cognito_access in registered

    def check(args):
        role, policy_arn = args
        assert role == "sample-os-ServiceRole-dev"
        assert policy_arn == "arn:aws:iam::aws:policy/AmazonESCognitoAccess"

    return pulumi.Output.all(cognito_access.role, cognito_access.policy_arn).apply(check)


@pulumi.runtime.test
def test_security_handler_gets_configured_layers():
    layer = f"arn:aws:lambda:{REGION}:{ACCOUNT}:layer:handler-deps:3"
    handles = build_stack(make_config(security_handler_layers=[layer]), ENV)

    def check(layers):
        assert layers == [layer]

    return handles.security.function.layers.apply(check)


def test_identity_pool_ignores_providers_registered_by_the_domain():
    assert identity_pool_options().ignore_changes == ["cognitoIdentityProviders"]


def test_handler_archive_ships_only_handler_modules():
    archive = handler_archive()
    assert sorted(archive.assets) == [
        "search_cluster/__init__.py",
        "search_cluster/directives.py",
        "search_cluster/errors.py",
        "search_cluster/handlers",
    ]
    assert isinstance(archive.assets["search_cluster/handlers"], pulumi.FileArchive)
    for name, asset in archive.assets.items():
        assert os.path.exists(asset.path), name
