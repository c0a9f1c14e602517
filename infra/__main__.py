#
# Secured OpenSearch domain behind Cognito, with one Firehose delivery stream
# per index. Everything is driven from stack config; the per-index resources
# follow `osIndexes`, so removing an index and running `pulumi up` tears down
# exactly that index's bucket, policy and stream.
#
# Usage:
#   pulumi config set appPrefix sample-os
#   pulumi config set --path 'osIndexes[0]' index-01
#   pulumi config set --path 'osIndexes[1]' index-02
#   pulumi up
#
# Notes:
# - The security-plugin role mappings are applied by a Lambda invoked once per
#   create/update of its invocation resource, after the domain is live.
# - The identity pool role mapping is attached only after the domain exists,
#   since the domain's Cognito integration is what registers the app client.

import pulumi

from search_cluster.config import load_stack_config
from search_cluster.stack import build_stack

# ------------------------
# Config
# ------------------------
config = load_stack_config(pulumi.Config())

pulumi.log.info(
    f"provisioning {config.domain_name} with indexes {', '.join(config.indexes)}"
)

# ------------------------
# Stack
# ------------------------
handles = build_stack(config)

# ------------------------
# Outputs
# ------------------------
for key, value in handles.outputs.items():
    pulumi.export(key, value)

pulumi.export("domainName", config.domain_name)
pulumi.export("userPoolId", handles.directory.user_pool.id)
pulumi.export("identityPoolId", handles.directory.identity_pool.id)
pulumi.export("osInstanceType", config.instance_type)
pulumi.export("osVolumeSizeGiB", config.ebs_volume_size)
