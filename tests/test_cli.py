import json
import textwrap

import pytest

from jirasync.cli import _exit_code_from_counts, _summarize_counts, main


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for var in ("JIRA_URL", "JIRA_EMAIL", "JIRA_API_TOKEN"):
        monkeypatch.setenv(var, "placeholder")
        monkeypatch.delenv(var)


def _creds(jira, tmp_path):
    return [
        "--base-url", jira.base_url,
        "--email", "me@example.com",
        "--api-token", "TOKEN",
        "--logs-dir", str(tmp_path / "logs"),
    ]


def _manifest(tmp_path, text):
    path = tmp_path / "jira.yml"
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return str(path)


_GROUP_MANIFEST = """
  resources:
    - name: devs
      kind: group
      attributes:
        name: developers
"""


def test_summary_and_exit_code():
    assert _summarize_counts({"CREATED": 2, "ERROR": 1}) == (
        "CREATED=2 | UPDATED=0 | REPLACED=0 | UNCHANGED=0 | DELETED=0 | PARTIAL=0 | ERROR=1 | EXCEPTION=0"
    )
    assert _exit_code_from_counts({"CREATED": 2, "UNCHANGED": 1}) == 0
    assert _exit_code_from_counts({"PARTIAL": 1}) == 2
    assert _exit_code_from_counts({"EXCEPTION": 1}) == 2


def test_apply_creates_then_reports_unchanged(jira, tmp_path, capsys):
    manifest = _manifest(tmp_path, _GROUP_MANIFEST)
    argv = ["apply", "--manifest", manifest, "--state", str(tmp_path / "state.json")] + _creds(jira, tmp_path)

    assert main(argv) == 0
    out = capsys.readouterr().out
    assert "CREATED" in out and "devs" in out
    assert "CREATED=1 |" in out
    assert "developers" in jira.groups

    assert main(argv) == 0
    assert "UNCHANGED=1 |" in capsys.readouterr().out


def test_apply_failure_sets_exit_code(jira, tmp_path, capsys):
    scoped = jira.add_issue_type("Team bug", scoped=True)
    manifest = _manifest(tmp_path, f"""
      resources:
        - name: scheme
          kind: issue_type_scheme
          attributes:
            name: Software
            issue_type_ids: ["{scoped}"]
    """)
    argv = ["apply", "--manifest", manifest, "--state", str(tmp_path / "state.json")] + _creds(jira, tmp_path)

    assert main(argv) == 2
    out = capsys.readouterr().out
    assert "ERROR" in out and "project-scoped" in out


def test_apply_dry_run_needs_no_credentials(tmp_path, capsys):
    manifest = _manifest(tmp_path, _GROUP_MANIFEST)
    state = tmp_path / "state.json"

    rc = main(["apply", "--manifest", manifest, "--state", str(state), "--dry-run",
               "--logs-dir", str(tmp_path / "logs")])

    assert rc == 0
    assert "dry-run" in capsys.readouterr().out
    assert not state.exists()


def test_apply_without_credentials_fails_cleanly(tmp_path, capsys):
    manifest = _manifest(tmp_path, _GROUP_MANIFEST)
    assert main(["apply", "--manifest", manifest, "--logs-dir", str(tmp_path / "logs")]) == 2
    assert "error: Missing required configuration" in capsys.readouterr().err


def test_apply_bad_manifest(jira, tmp_path, capsys):
    manifest = _manifest(tmp_path, "resources: {}\n")
    assert main(["apply", "--manifest", manifest] + _creds(jira, tmp_path)) == 2
    assert "'resources' list is required" in capsys.readouterr().err


def test_lookup_prints_json(jira, tmp_path, capsys):
    jira.add_issue_type("Bug", scoped=True)
    tid = jira.add_issue_type("Bug")

    assert main(["lookup", "--kind", "issue_type", "--name", "bug"] + _creds(jira, tmp_path)) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["id"] == tid and data["kind"] == "issue_type"


def test_lookup_without_selector_is_an_error(jira, tmp_path, capsys):
    assert main(["lookup", "--kind", "issue_type"] + _creds(jira, tmp_path)) == 2
    assert "Missing input" in capsys.readouterr().err
    assert jira.calls == []


def test_read_present_and_absent(jira, tmp_path, capsys):
    gid = jira.add_group("developers")

    assert main(["read", "--kind", "group", "--id", gid, "--attr", "name=developers"] + _creds(jira, tmp_path)) == 0
    data = json.loads(capsys.readouterr().out)
    assert data == {"id": gid, "attributes": {"name": "developers"}}

    assert main(["read", "--kind", "project", "--id", "99999"] + _creds(jira, tmp_path)) == 1
    assert capsys.readouterr().out.strip() == "absent"


def test_read_rejects_malformed_attr(jira, tmp_path, capsys):
    assert main(["read", "--kind", "group", "--id", "x", "--attr", "name"] + _creds(jira, tmp_path)) == 2
    assert "--attr expects key=value" in capsys.readouterr().err
