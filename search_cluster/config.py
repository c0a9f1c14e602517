from typing import Dict, List, Optional

import pulumi
from pydantic import BaseModel, Field, ValidationError, field_validator

from search_cluster.errors import ConfigError


class StackConfig(BaseModel):
    stage: str = Field(min_length=1)
    app_prefix: str = Field(min_length=1)
    instance_type: str = "or1.medium.search"
    ebs_volume_size: int = Field(default=20, gt=0)
    indexes: List[str]
    engine_version: str = "OpenSearch_2.15"

    # Network placement is carried for callers; the domain keeps a public
    # endpoint because Cognito dashboards auth is served from it.
    vpc_id: Optional[str] = None
    subnet_ids: Dict[str, List[str]] = Field(default_factory=dict)

    # Actions/resources of the delivery role's support statement.
    delivery_support_actions: List[str] = Field(
        default_factory=lambda: ["kms:*", "logs:*"]
    )
    delivery_support_resources: List[str] = Field(default_factory=lambda: ["*"])

    # Lambda layer ARNs providing the security handler's third-party imports.
    security_handler_layers: List[str] = Field(default_factory=list)

    @field_validator("indexes")
    @classmethod
    def _unique_indexes(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("at least one index is required")
        if any(not index for index in value):
            raise ValueError("index names must be non-empty")
        dupes = sorted({i for i in value if value.count(i) > 1})
        if dupes:
            raise ValueError(f"duplicate index names: {dupes}")
        return value

    # ------------------------
    # Deterministic names
    # ------------------------
    def name(self, purpose: str) -> str:
        return f"{self.app_prefix}-{purpose}-{self.stage}"

    @property
    def domain_name(self) -> str:
        return self.name("cluster")

    def delivery_stream_name(self, index: str) -> str:
        return self.name(f"{index}-delivery-stream")

    def retry_bucket_name(self, index: str) -> str:
        return self.name(f"{index}-retry-stream-bucket")

    def tags(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        tags = {"stack": self.app_prefix, "stage": self.stage, "ManagedBy": "pulumi"}
        if extra:
            tags.update(extra)
        return tags


def load_stack_config(cfg: Optional[pulumi.Config] = None) -> StackConfig:
    """Read the Pulumi stack config into a validated StackConfig."""
    cfg = cfg or pulumi.Config()
    raw = {
        "stage": cfg.get("stage") or pulumi.get_stack(),
        "app_prefix": cfg.require("appPrefix"),
        "indexes": cfg.require_object("osIndexes"),
        "subnet_ids": cfg.get_object("subnetIds") or {},
        "vpc_id": cfg.get("vpcId"),
    }
    optional = {
        "instance_type": cfg.get("osDomainInstanceType"),
        "ebs_volume_size": cfg.get_int("osDomainEbsVolumeSize"),
        "engine_version": cfg.get("osEngineVersion"),
        "delivery_support_actions": cfg.get_object("deliverySupportActions"),
        "delivery_support_resources": cfg.get_object("deliverySupportResources"),
        "security_handler_layers": cfg.get_object("securityHandlerLayers"),
    }
    raw.update({k: v for k, v in optional.items() if v is not None})

    try:
        return StackConfig(**raw)
    except ValidationError as e:
        raise ConfigError(f"invalid stack configuration: {e}") from e
