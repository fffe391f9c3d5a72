"""
Tests for input resolution and the per-resource state store.
"""

import pytest

from stackplan.errors import UnresolvedReferenceError
from stackplan.models import ResourceState, ResourceStatus
from stackplan.propagator import StateStore, resolve_inputs

from conftest import spec


def applied(**outputs):
    return ResourceState(status=ResourceStatus.APPLIED, outputs=outputs)


class TestResolveInputs:

    def test_inputs_are_injected(self):
        network = spec("network", inputs={"origin_bucket": "storage.bucket_arn"},
                       config={"price_class": "PriceClass_100"})
        states = {"storage": applied(bucket_arn="arn:aws:s3:::site")}

        resolved = resolve_inputs(network, states)

        assert resolved == {"price_class": "PriceClass_100", "origin_bucket": "arn:aws:s3:::site"}

    def test_whole_expression_keeps_value_type(self):
        consumer = spec("consumer", config={"ports": "${{ lb.ports }}", "count": "${{lb.count}}"})
        states = {"lb": applied(ports=[80, 443], count=2)}

        resolved = resolve_inputs(consumer, states)

        assert resolved == {"ports": [80, 443], "count": 2}

    def test_embedded_expression_is_interpolated(self):
        record = spec("record", config={"content": "https://${{ cdn.domain }}/index.html"})
        states = {"cdn": applied(domain="d111.cloudfront.net")}

        assert resolve_inputs(record, states)["content"] == "https://d111.cloudfront.net/index.html"

    def test_nested_payload(self):
        policy = spec("policy", config={
            "statements": [{"resource": ["${{ storage.bucket_arn }}", "static"]}],
            "meta": {"role": "${{ security.role_arn }}"},
        })
        states = {
            "storage": applied(bucket_arn="arn:bucket"),
            "security": applied(role_arn="arn:role"),
        }

        resolved = resolve_inputs(policy, states)

        assert resolved["statements"][0]["resource"] == ["arn:bucket", "static"]
        assert resolved["meta"]["role"] == "arn:role"

    def test_spec_is_not_modified(self):
        config = {"content": "${{ cdn.domain }}", "nested": {"keep": True}}
        record = spec("record", inputs={"target": "cdn.domain"}, config=config)
        states = {"cdn": applied(domain="d111.cloudfront.net")}

        resolved = resolve_inputs(record, states)
        resolved["nested"]["keep"] = False

        assert record.config == {"content": "${{ cdn.domain }}", "nested": {"keep": True}}
        assert "target" not in record.config

    def test_outputs_are_copied(self):
        consumer = spec("consumer", inputs={"tags": "tagger.tags"})
        states = {"tagger": applied(tags={"env": "prod"})}

        resolve_inputs(consumer, states)["tags"]["env"] = "dev"

        assert states["tagger"].outputs["tags"] == {"env": "prod"}

    def test_pending_dependency_is_unresolved(self):
        network = spec("network", inputs={"origin": "storage.bucket_arn"})
        states = {"storage": ResourceState()}

        with pytest.raises(UnresolvedReferenceError) as exc:
            resolve_inputs(network, states)
        assert exc.value.reference == "storage.bucket_arn"
        assert exc.value.resource == "network"

    def test_missing_output_key_is_unresolved(self):
        network = spec("network", config={"origin": "${{ storage.bucket_domain }}"})
        states = {"storage": applied(bucket_arn="arn")}

        with pytest.raises(UnresolvedReferenceError) as exc:
            resolve_inputs(network, states)
        assert exc.value.reference == "storage.bucket_domain"

    def test_absent_state_is_unresolved(self):
        with pytest.raises(UnresolvedReferenceError):
            resolve_inputs(spec("x", inputs={"y": "ghost.id"}), {})


class TestStateStore:

    def test_starts_pending(self):
        store = StateStore(["a", "b"])
        assert store["a"].status == ResourceStatus.PENDING
        assert sorted(store) == ["a", "b"]
        assert len(store) == 2

    def test_applied_lifecycle(self):
        store = StateStore(["a"])
        store.transition("a", ResourceStatus.APPLYING)
        store.transition("a", ResourceStatus.APPLIED, outputs={"id": "1"})

        assert store["a"].status == ResourceStatus.APPLIED
        assert store["a"].outputs == {"id": "1"}

    def test_reads_are_snapshots(self):
        store = StateStore(["a"])
        store.transition("a", ResourceStatus.APPLYING)
        store.transition("a", ResourceStatus.APPLIED, outputs={"id": "1"})

        store["a"].outputs["id"] = "changed"

        assert store["a"].outputs == {"id": "1"}

    def test_illegal_transition(self):
        store = StateStore(["a"])
        store.transition("a", ResourceStatus.APPLYING)
        store.transition("a", ResourceStatus.FAILED, error=RuntimeError("boom"))

        with pytest.raises(ValueError):
            store.transition("a", ResourceStatus.APPLYING)

    def test_cannot_fail_before_applying(self):
        store = StateStore(["a"])
        with pytest.raises(ValueError):
            store.transition("a", ResourceStatus.FAILED)

    def test_unknown_name(self):
        store = StateStore(["a"])
        assert store.get("missing") is None
        with pytest.raises(KeyError):
            store["missing"]

    def test_store_feeds_resolve_inputs(self):
        store = StateStore(["storage", "network"])
        store.transition("storage", ResourceStatus.APPLYING)
        store.transition("storage", ResourceStatus.APPLIED, outputs={"bucket_arn": "arn"})

        resolved = resolve_inputs(spec("network", inputs={"origin": "storage.bucket_arn"}), store)

        assert resolved == {"origin": "arn"}
