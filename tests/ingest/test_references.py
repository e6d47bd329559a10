"""Tests for reference parsing and resolution."""

import pytest
from converge.ingest.references import UnresolvedReference, find_references, resolve_references


def _lookup(values):
    def lookup(address, attribute):
        try:
            return values[(address, attribute)]
        except KeyError:
            raise UnresolvedReference(f"{address}.{attribute}")
    return lookup


class TestReferences:

    def test_find_nested_references(self):
        refs = find_references({
            "origin": "${bucket.site.regional_domain_name}",
            "rules": [{"acl": "arn=${web_acl.main.arn}"}],
            "count": 3,
        })
        assert sorted(r.address for r in refs) == ["bucket.site", "web_acl.main"]
        assert {r.attribute for r in refs} == {"regional_domain_name", "arn"}

    def test_whole_string_keeps_type(self):
        lookup = _lookup({("bucket.site", "versioning"): True})
        assert resolve_references("${bucket.site.versioning}", lookup) is True

    def test_embedded_reference_interpolates(self):
        lookup = _lookup({("bucket.site", "id"): "bucket-123"})
        assert resolve_references("arn:${bucket.site.id}/*", lookup) == "arn:bucket-123/*"

    def test_resolves_inside_lists_and_mappings(self):
        lookup = _lookup({("web_acl.main", "arn"): "arn:waf"})
        value = {"acls": ["${web_acl.main.arn}", "static"]}
        assert resolve_references(value, lookup) == {"acls": ["arn:waf", "static"]}

    def test_unresolved_propagates(self):
        with pytest.raises(UnresolvedReference):
            resolve_references("${bucket.site.id}", _lookup({}))

    def test_non_reference_strings_untouched(self):
        assert find_references("${not a reference}") == []
        assert resolve_references("plain", _lookup({})) == "plain"
