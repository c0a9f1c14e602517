import pulumi
import pytest

ACCOUNT = "123456789012"
REGION = "eu-west-1"


class StackMocks(pulumi.runtime.Mocks):
    """Echo inputs back as outputs and fill in the attributes AWS computes."""

    def __init__(self):
        self.client_ids = ["client-123"]

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        outputs = dict(args.inputs)
        name = args.inputs.get("name") or args.name

        if args.typ == "aws:opensearch/domain:Domain":
            domain_name = args.inputs["domainName"]
            outputs["arn"] = f"arn:aws:es:{REGION}:{ACCOUNT}:domain/{domain_name}"
            outputs["endpoint"] = f"search-{domain_name}.{REGION}.es.amazonaws.com"
        elif args.typ == "aws:iam/role:Role":
            outputs["arn"] = f"arn:aws:iam::{ACCOUNT}:role/{name}"
        elif args.typ == "aws:iam/policy:Policy":
            outputs["arn"] = f"arn:aws:iam::{ACCOUNT}:policy/{name}"
        elif args.typ == "aws:s3/bucket:Bucket":
            outputs["arn"] = f"arn:aws:s3:::{args.inputs['bucket']}"
        elif args.typ == "aws:lambda/function:Function":
            outputs["arn"] = f"arn:aws:lambda:{REGION}:{ACCOUNT}:function:{name}"
        elif args.typ == "aws:cognito/userPool:UserPool":
            outputs["arn"] = f"arn:aws:cognito-idp:{REGION}:{ACCOUNT}:userpool/{args.name}_id"

        return [f"{args.name}_id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        if args.token == "aws:index/getRegion:getRegion":
            return {"region": REGION, "name": REGION, "id": REGION}
        if args.token == "aws:index/getPartition:getPartition":
            return {"partition": "aws", "dnsSuffix": "amazonaws.com", "id": "aws"}
        if args.token == "aws:index/getCallerIdentity:getCallerIdentity":
            return {"accountId": ACCOUNT, "arn": f"arn:aws:iam::{ACCOUNT}:user/ci", "id": ACCOUNT, "userId": "AIDA"}
        if args.token == "aws:cognito/getUserPoolClients:getUserPoolClients":
            return {
                "id": args.args["userPoolId"],
                "userPoolId": args.args["userPoolId"],
                "clientIds": list(self.client_ids),
                "clientNames": [f"client-{i}" for i, _ in enumerate(self.client_ids)],
            }
        return {}


MOCKS = StackMocks()
pulumi.runtime.set_mocks(MOCKS, project="search-cluster", stack="dev", preview=False)


@pytest.fixture
def mocks():
    MOCKS.client_ids = ["client-123"]
    yield MOCKS
    MOCKS.client_ids = ["client-123"]


class FakeConfig:
    """Stand-in for pulumi.Config backed by a plain dict."""

    def __init__(self, values):
        self.values = values

    def get(self, key):
        value = self.values.get(key)
        return None if value is None else str(value)

    def get_int(self, key):
        value = self.values.get(key)
        return None if value is None else int(value)

    def get_object(self, key):
        return self.values.get(key)

    def require(self, key):
        if key not in self.values:
            raise KeyError(key)
        return str(self.values[key])

    def require_object(self, key):
        if key not in self.values:
            raise KeyError(key)
        return self.values[key]
