"""One Firehose delivery stream per index, each with its own retry bucket."""
import json
from dataclasses import dataclass
from typing import List, Optional

import pulumi
import pulumi_aws as aws
import pulumi_aws_native as aws_native

from search_cluster.config import StackConfig
from search_cluster.domain import SearchDomain
from search_cluster.policies import delivery_stream_policy

BUFFER_INTERVAL_SECONDS = 60
BUFFER_SIZE_MB = 1
RETRY_DURATION_SECONDS = 60


@dataclass
class IngestionPipeline:
    index: str
    retry_bucket: aws.s3.Bucket
    policy: aws.iam.RolePolicy
    delivery_stream: aws_native.kinesisfirehose.DeliveryStream
    stream_arn: str


def delivery_stream_arn(partition: str, region: str, account: str, stream_name: str) -> str:
    return f"arn:{partition}:firehose:{region}:{account}:deliverystream/{stream_name}"


def _buffering() -> dict:
    return {"interval_in_seconds": BUFFER_INTERVAL_SECONDS, "size_in_mbs": BUFFER_SIZE_MB}


def create_ingestion_pipeline(
    config: StackConfig,
    index: str,
    domain: SearchDomain,
    delivery_role: aws.iam.Role,
    partition: str,
    region: str,
    account: str,
    provider: Optional[pulumi.ProviderResource] = None,
    role_grants: Optional[List[aws.iam.RolePolicyAttachment]] = None,
) -> IngestionPipeline:
    stream_name = config.delivery_stream_name(index)

    retry_bucket = aws.s3.Bucket(
        config.name(f"{index}-delivery-stream-bucket"),
        bucket=config.retry_bucket_name(index),
        force_destroy=True,
        tags=config.tags({"index": index}),
    )
    aws.s3.BucketServerSideEncryptionConfiguration(
        config.name(f"{index}-delivery-stream-bucket-sse"),
        bucket=retry_bucket.id,
        rules=[{"apply_server_side_encryption_by_default": {"sse_algorithm": "AES256"}}],
    )
    aws.s3.BucketPublicAccessBlock(
        config.name(f"{index}-delivery-stream-bucket-pab"),
        bucket=retry_bucket.id,
        block_public_acls=True,
        block_public_policy=True,
        restrict_public_buckets=True,
        ignore_public_acls=True,
    )

    policy = aws.iam.RolePolicy(
        config.name(f"{index}-delivery-stream-policy"),
        role=delivery_role.id,
        policy=pulumi.Output.all(bucket_arn=retry_bucket.arn, domain_arn=domain.arn).apply(
            lambda a: json.dumps(
                delivery_stream_policy(
                    a["bucket_arn"],
                    a["domain_arn"],
                    config.delivery_support_actions,
                    config.delivery_support_resources,
                )
            )
        ),
    )

    # The role needs its grants before Firehose validates the destination.
    delivery_stream = aws_native.kinesisfirehose.DeliveryStream(
        stream_name,
        delivery_stream_name=stream_name,
        delivery_stream_type="DirectPut",
        elasticsearch_destination_configuration={
            "buffering_hints": _buffering(),
            "domain_arn": domain.arn,
            "index_name": index,
            "index_rotation_period": "NoRotation",
            "retry_options": {"duration_in_seconds": RETRY_DURATION_SECONDS},
            "role_arn": delivery_role.arn,
            "s3_backup_mode": "AllDocuments",
            "s3_configuration": {
                "bucket_arn": retry_bucket.arn,
                "buffering_hints": _buffering(),
                "compression_format": "UNCOMPRESSED",
                "role_arn": delivery_role.arn,
            },
        },
        tags=[{"key": k, "value": v} for k, v in config.tags({"index": index}).items()],
        opts=pulumi.ResourceOptions(provider=provider, depends_on=[policy, *(role_grants or [])]),
    )

    return IngestionPipeline(
        index=index,
        retry_bucket=retry_bucket,
        policy=policy,
        delivery_stream=delivery_stream,
        stream_arn=delivery_stream_arn(partition, region, account, stream_name),
    )


def warn_broad_delivery_grant(config: StackConfig) -> None:
    if config.delivery_support_actions and "*" in config.delivery_support_resources:
        pulumi.log.warn(
            f"delivery role gets {config.delivery_support_actions} on every resource; "
            "set deliverySupportResources to narrow it"
        )
