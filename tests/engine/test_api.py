"""Tests for the top-level plan/apply functions."""

from pathlib import Path
import pytest
import converge
from converge.utils.errors import DesiredStateLoadError


@pytest.fixture
def project(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CONVERGE_STATE", str(tmp_path / "api.state.jsonl"))
    monkeypatch.setenv("CONVERGE_PROVIDER_STORE", str(tmp_path / "api.live.json"))
    desired = tmp_path / "desired.yaml"
    desired.write_text(
        'format_version: "1.0"\n'
        'resources:\n'
        '  - {type: web_acl, name: main, attributes: {name: main, scope: CLOUDFRONT}}\n'
    )
    return desired


def test_plan_apply_destroy(project):
    first = converge.plan(str(project))
    assert first.has_changes

    result = converge.apply(str(project))
    assert result.success
    assert result.applied == ["web_acl.main"]

    assert not converge.plan(str(project)).has_changes

    destroyed = converge.apply(str(project), destroy=True)
    assert destroyed.applied == ["web_acl.main"]


def test_missing_desired_file(project):
    with pytest.raises(DesiredStateLoadError):
        converge.plan(str(project.parent / "missing.yaml"))
