"""
Demo Stack Module

Responsibility:
- Declare the static-site stack: storage, security, network, cloudflare
- Provide in-memory fake provisioners that mimic the AWS and Cloudflare calls
- Produce deterministic ARNs, domains and record IDs so runs are reproducible

Nothing here talks to a real provider.
"""

import hashlib
from typing import Iterable, List

from stackplan.errors import ProviderError
from stackplan.registry import ProvisionerRegistry

DEMO_DECLARATIONS = """\
resources:
  - name: storage
    provisioner: aws.s3_bucket
    outputs: [bucket_arn, bucket_domain]
    config:
      bucket_name: www.example.com
      region: us-east-1
      block_public_access: true

  - name: security
    provisioner: aws.iam_oidc_role
    outputs: [role_arn]
    config:
      role_name: github-actions-deploy
      oidc_provider: token.actions.githubusercontent.com
      subject: repo:example/site:ref:refs/heads/main

  - name: network
    provisioner: aws.cloudfront_distribution
    inputs:
      origin_bucket: storage.bucket_arn
    outputs: [cf_arn, cf_domain]
    config:
      origin_domain: "${{ storage.bucket_domain }}"
      aliases: [www.example.com]
      price_class: PriceClass_100
      default_root_object: index.html

  - name: cloudflare
    provisioner: cloudflare.dns_record
    inputs:
      target: network.cf_domain
    outputs: [record_id]
    config:
      zone: example.com
      name: www
      type: CNAME
      content: "${{ network.cf_domain }}"
      proxied: false
"""

ACCOUNT_ID = "123456789012"


def _digest(*parts) -> str:
    return hashlib.sha1("|".join(str(p) for p in parts).encode("utf-8")).hexdigest()


class FakeCloud:
    """
    Fake provisioners for the demo stack.

    Every call is recorded in `calls` as (resource name, resolved config).
    Resources listed in `fail` raise ProviderError instead of provisioning.
    """

    def __init__(self, fail: Iterable[str] = (), retryable: bool = False):
        self.fail = set(fail)
        self.retryable = retryable
        self.calls: List[tuple] = []

    def registry(self) -> ProvisionerRegistry:
        registry = ProvisionerRegistry()
        registry.register("aws.s3_bucket", self.s3_bucket)
        registry.register("aws.iam_oidc_role", self.iam_oidc_role)
        registry.register("aws.cloudfront_distribution", self.cloudfront_distribution)
        registry.register("cloudflare.dns_record", self.dns_record)
        return registry

    def _record(self, name: str, config: dict):
        self.calls.append((name, config))
        if name in self.fail:
            raise ProviderError(f"Simulated provider failure for '{name}'", retryable=self.retryable)

    def s3_bucket(self, name: str, config: dict) -> dict:
        self._record(name, config)
        bucket = config["bucket_name"]
        region = config.get("region", "us-east-1")
        return {
            "bucket_arn": f"arn:aws:s3:::{bucket}",
            "bucket_domain": f"{bucket}.s3.{region}.amazonaws.com",
        }

    def iam_oidc_role(self, name: str, config: dict) -> dict:
        self._record(name, config)
        return {"role_arn": f"arn:aws:iam::{ACCOUNT_ID}:role/{config['role_name']}"}

    def cloudfront_distribution(self, name: str, config: dict) -> dict:
        self._record(name, config)
        digest = _digest(config["origin_bucket"], config.get("origin_domain"))
        distribution_id = f"E{digest[:13].upper()}"
        return {
            "cf_arn": f"arn:aws:cloudfront::{ACCOUNT_ID}:distribution/{distribution_id}",
            "cf_domain": f"d{digest[13:26]}.cloudfront.net",
        }

    def dns_record(self, name: str, config: dict) -> dict:
        self._record(name, config)
        return {"record_id": _digest(config["zone"], config["name"], config["content"])[:32]}
