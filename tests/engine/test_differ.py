"""Tests for per-resource diffing."""

import pytest
from converge.engine.differ import changed_attributes, diff_destroys, diff_resource
from converge.engine.models import OperationType
from converge.ingest.models import ResourceNode
from converge.providers.memory import MemoryProvider
from converge.state.models import StateRecord
from converge.utils.errors import SchemaViolation


@pytest.fixture
def bucket_schema():
    return MemoryProvider().schema("bucket")


def _bucket(**attributes):
    attrs = {"bucket_name": "site"}
    attrs.update(attributes)
    return ResourceNode(type="bucket", name="site", attributes=attrs)


def _record(**attributes):
    attrs = {
        "bucket_name": "site",
        "arn": "arn:converge:bucket:::site",
        "regional_domain_name": "site.storage.converge.local",
    }
    attrs.update(attributes)
    return StateRecord(address="bucket.site", type="bucket", name="site", provider_id="bucket-1", attributes=attrs)


class TestDiffResource:

    def test_create_without_prior(self, bucket_schema):
        op = diff_resource(_bucket(versioning=True), None, bucket_schema)
        assert op.action == OperationType.CREATE
        assert op.changed_attributes == ["bucket_name", "versioning"]

    def test_no_op_ignores_computed(self, bucket_schema):
        op = diff_resource(_bucket(versioning=True), _record(versioning=True), bucket_schema)
        assert op.action == OperationType.NO_OP
        assert not op.is_change

    def test_update_mutable_attribute(self, bucket_schema):
        op = diff_resource(_bucket(versioning=True), _record(versioning=False), bucket_schema)
        assert op.action == OperationType.UPDATE
        assert op.changed_attributes == ["versioning"]
        assert op.replace_reasons == []

    def test_replace_on_immutable_change(self, bucket_schema):
        op = diff_resource(_bucket(bucket_name="renamed"), _record(), bucket_schema)
        assert op.action == OperationType.REPLACE
        assert op.replace_reasons == ["bucket_name"]

    def test_removed_attribute_is_update(self, bucket_schema):
        op = diff_resource(_bucket(), _record(versioning=True), bucket_schema)
        assert op.action == OperationType.UPDATE
        assert op.changed_attributes == ["versioning"]

    def test_schema_violation_carries_address(self, bucket_schema):
        node = ResourceNode(type="bucket", name="site", attributes={"versioning": "yes"})
        with pytest.raises(SchemaViolation) as excinfo:
            diff_resource(node, None, bucket_schema)
        assert excinfo.value.address == "bucket.site"
        assert "bucket_name" in str(excinfo.value)
        assert "boolean" in str(excinfo.value)

    def test_refreshed_missing_is_create_with_drift(self, bucket_schema):
        op = diff_resource(_bucket(), _record(), bucket_schema, live=None, refreshed=True)
        assert op.action == OperationType.CREATE
        assert op.drift is True
        assert op.prior is not None

    def test_live_drift_detected(self, bucket_schema):
        live = _record(versioning=False).attributes
        op = diff_resource(_bucket(versioning=True), _record(versioning=True), bucket_schema, live=live, refreshed=True)
        assert op.action == OperationType.UPDATE
        assert op.drift is True

    def test_drift_matching_desired_is_no_op(self, bucket_schema):
        live = _record(versioning=True).attributes
        op = diff_resource(_bucket(versioning=True), _record(), bucket_schema, live=live, refreshed=True)
        assert op.action == OperationType.NO_OP
        assert op.drift is True


class TestChangedAttributes:

    def test_unresolved_reference_counts_as_changed(self, bucket_schema):
        changed = changed_attributes({"bucket_name": "${bucket.other.id}"}, {"bucket_name": "x"}, bucket_schema)
        assert changed == ["bucket_name"]

    def test_resolved_reference_compares_value(self, bucket_schema):
        lookup = lambda address, attribute: "x"  # noqa: E731
        changed = changed_attributes(
            {"bucket_name": "${bucket.other.id}"}, {"bucket_name": "x"}, bucket_schema, lookup
        )
        assert changed == []


def test_diff_destroys_only_undeclared():
    records = {
        "bucket.keep": _record().model_copy(update={"address": "bucket.keep"}),
        "bucket.drop": _record().model_copy(update={"address": "bucket.drop"}),
    }
    ops = diff_destroys(["bucket.keep"], records)
    assert [op.address for op in ops] == ["bucket.drop"]
    assert ops[0].action == OperationType.DESTROY
