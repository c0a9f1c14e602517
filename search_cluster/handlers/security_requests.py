"""Lambda applying security directives to the domain's security API.

Invoked through ``aws.lambda_.Invocation`` with ``lifecycle_scope="CRUD"``:
the event is the ``{"requests": [...]}`` payload plus a ``tf`` block naming
the lifecycle action. The full list is applied on every create/update.
"""
import json
import logging
import os

import boto3
import requests
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest

from search_cluster.directives import SecurityDirective, SecurityRequests, apply_directives

logger = logging.getLogger()
logger.setLevel(logging.INFO)

TIMEOUT_SECONDS = 30


class SignedSecurityClient:
    """Sends directives to the domain, signed with the caller's credentials."""

    def __init__(self, endpoint: str, region: str, session=None, http=None):
        self.endpoint = endpoint
        self.region = region
        self.session = session or boto3.Session()
        self.http = http or requests.Session()

    def url(self, path: str) -> str:
        return f"https://{self.endpoint}/{path.lstrip('/')}"

    def execute(self, directive: SecurityDirective):
        url = self.url(directive.path)
        body = json.dumps(directive.body)
        signed = AWSRequest(
            method=directive.method,
            url=url,
            data=body,
            headers={"Content-Type": "application/json"},
        )
        SigV4Auth(self.session.get_credentials(), "es", self.region).add_auth(signed)

        response = self.http.request(
            directive.method,
            url,
            data=body,
            headers=dict(signed.headers.items()),
            timeout=TIMEOUT_SECONDS,
        )
        logger.info("%s %s -> %s", directive.method, directive.path, response.status_code)
        if not response.ok:
            logger.error("security API rejected %s: %s", directive.path, response.text)
        response.raise_for_status()
        return response.json()


def handler(event, context):
    action = (event.get("tf") or {}).get("action", "create")
    if action == "delete":
        # Nothing to undo: the mappings live inside the domain being removed.
        logger.info("delete event, leaving security configuration untouched")
        return {"action": action, "applied": 0}

    payload = SecurityRequests.model_validate({"requests": event.get("requests", [])})
    client = SignedSecurityClient(os.environ["DOMAIN"], os.environ["REGION"])
    logger.info("applying %d directives to %s", len(payload.requests), client.endpoint)
    responses = apply_directives(payload.requests, client.execute)
    return {"action": action, "applied": len(responses)}
