"""Tests for desired-state loading."""

import json
import pytest
from converge.ingest.desired_loader import load_desired_state, parse_desired_state
from converge.utils.errors import DesiredStateLoadError, SchemaViolation


SITE_YAML = """
format_version: "1.0"
resources:
  - type: bucket
    name: site
    attributes:
      bucket_name: site-content
      versioning: true
  - type: cdn_distribution
    name: site
    attributes:
      origin_domain: ${bucket.site.regional_domain_name}
  - type: bucket_policy
    name: site
    depends_on: [cdn_distribution.site]
    attributes:
      bucket: ${bucket.site.id}
      policy: {}
"""


class TestDesiredLoader:
    """Test desired-state file loading."""

    def test_load_yaml(self, tmp_path):
        """YAML documents load into ordered resource nodes."""
        path = tmp_path / "site.yaml"
        path.write_text(SITE_YAML)

        desired = load_desired_state(path)

        assert desired.addresses() == ["bucket.site", "cdn_distribution.site", "bucket_policy.site"]
        policy = desired.get("bucket_policy.site")
        assert policy.dependencies() == ["bucket.site", "cdn_distribution.site"]

    def test_load_json(self, tmp_path):
        """JSON documents are accepted by extension."""
        path = tmp_path / "site.json"
        path.write_text(json.dumps({
            "format_version": "1.0",
            "resources": [{"type": "bucket", "name": "logs", "attributes": {"bucket_name": "logs"}}]
        }))

        desired = load_desired_state(path)
        assert desired.addresses() == ["bucket.logs"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(DesiredStateLoadError, match="not found"):
            load_desired_state(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("resources: [unclosed")
        with pytest.raises(DesiredStateLoadError, match="Invalid YAML"):
            load_desired_state(path)

    def test_missing_format_version(self):
        with pytest.raises(SchemaViolation, match="format_version"):
            parse_desired_state({"resources": []})

    def test_unsupported_format_version(self):
        with pytest.raises(SchemaViolation, match="Unsupported format_version"):
            parse_desired_state({"format_version": "2.0", "resources": []})

    def test_resource_missing_name(self):
        with pytest.raises(SchemaViolation, match="missing required fields: name"):
            parse_desired_state({"format_version": "1.0", "resources": [{"type": "bucket"}]})

    def test_unknown_resource_field(self):
        with pytest.raises(SchemaViolation, match="unknown fields: count"):
            parse_desired_state({
                "format_version": "1.0",
                "resources": [{"type": "bucket", "name": "a", "count": 2}]
            })

    def test_bad_name_pattern(self):
        with pytest.raises(SchemaViolation, match="index 0"):
            parse_desired_state({
                "format_version": "1.0",
                "resources": [{"type": "bucket", "name": "has space"}]
            })

    def test_duplicate_address(self):
        with pytest.raises(SchemaViolation, match="Duplicate resource address"):
            parse_desired_state({
                "format_version": "1.0",
                "resources": [{"type": "bucket", "name": "a"}, {"type": "bucket", "name": "a"}]
            })

    def test_dangling_depends_on(self):
        with pytest.raises(SchemaViolation, match="undeclared resource 'bucket.missing'") as excinfo:
            parse_desired_state({
                "format_version": "1.0",
                "resources": [{"type": "bucket_policy", "name": "a", "depends_on": ["bucket.missing"]}]
            })
        assert excinfo.value.address == "bucket_policy.a"

    def test_dangling_reference(self):
        with pytest.raises(SchemaViolation, match="undeclared resource 'web_acl.main'"):
            parse_desired_state({
                "format_version": "1.0",
                "resources": [{
                    "type": "cdn_distribution",
                    "name": "site",
                    "attributes": {"web_acl_id": "${web_acl.main.arn}"}
                }]
            })

    def test_empty_resources(self):
        desired = parse_desired_state({"format_version": "1.0", "resources": None})
        assert desired.resources == []
