"""IAM policy documents, kept as plain dicts so they can be checked offline."""
from typing import Any, Dict, Iterable, List

COGNITO_IDENTITY = "cognito-identity.amazonaws.com"

DOMAIN_HTTP_ACTIONS = ["es:ESHttp*"]

RETRY_BUCKET_ACTIONS = [
    "s3:AbortMultipartUpload",
    "s3:GetBucketLocation",
    "s3:GetObject",
    "s3:ListBucket",
    "s3:ListBucketMultipartUploads",
    "s3:PutObject",
]

DELIVERY_DOMAIN_ACTIONS = [
    "es:DescribeElasticsearchDomain",
    "es:DescribeElasticsearchDomains",
    "es:DescribeElasticsearchDomainConfig",
    "es:ESHttpPost",
    "es:ESHttpPut",
]


def _document(*statements: Dict[str, Any]) -> Dict[str, Any]:
    return {"Version": "2012-10-17", "Statement": list(statements)}


def web_identity_trust_policy(identity_pool_id: str) -> Dict[str, Any]:
    """Trust for users federated through the identity pool, authenticated only."""
    return _document(
        {
            "Effect": "Allow",
            "Principal": {"Federated": COGNITO_IDENTITY},
            "Action": "sts:AssumeRoleWithWebIdentity",
            "Condition": {
                "StringEquals": {f"{COGNITO_IDENTITY}:aud": identity_pool_id},
                "ForAnyValue:StringLike": {f"{COGNITO_IDENTITY}:amr": "authenticated"},
            },
        }
    )


def service_trust_policy(service_principal: str) -> Dict[str, Any]:
    return _document(
        {
            "Effect": "Allow",
            "Principal": {"Service": service_principal},
            "Action": "sts:AssumeRole",
        }
    )


def managed_policy_arn(partition: str, policy_name: str) -> str:
    return f"arn:{partition}:iam::aws:policy/{policy_name}"


def domain_arn(partition: str, region: str, account: str, domain_name: str) -> str:
    return f"arn:{partition}:es:{region}:{account}:domain/{domain_name}"


def domain_access_policy(arn: str) -> Dict[str, Any]:
    # Resource policy is open to any principal; IAM on the callers gates access.
    return _document(
        {
            "Effect": "Allow",
            "Principal": {"AWS": "*"},
            "Action": DOMAIN_HTTP_ACTIONS,
            "Resource": f"{arn}/*",
        }
    )


def domain_http_access_policy(arn: str) -> Dict[str, Any]:
    """Identity policy giving its holders HTTP access to one domain."""
    return _document(
        {
            "Effect": "Allow",
            "Action": DOMAIN_HTTP_ACTIONS,
            "Resource": [arn, f"{arn}/*"],
        }
    )


def delivery_stream_policy(
    bucket_arn: str,
    arn: str,
    support_actions: Iterable[str],
    support_resources: Iterable[str],
) -> Dict[str, Any]:
    statements: List[Dict[str, Any]] = []
    support_actions = list(support_actions)
    if support_actions:
        statements.append(
            {
                "Effect": "Allow",
                "Action": support_actions,
                "Resource": list(support_resources),
            }
        )
    statements.append(
        {
            "Effect": "Allow",
            "Action": RETRY_BUCKET_ACTIONS,
            "Resource": [bucket_arn, f"{bucket_arn}/*"],
        }
    )
    statements.append(
        {
            "Effect": "Allow",
            "Action": DELIVERY_DOMAIN_ACTIONS,
            "Resource": [arn, f"{arn}/*"],
        }
    )
    return _document(*statements)
