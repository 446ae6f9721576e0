"""
Test the mitmproxy binding: flow translation, scope, findings files and commands
"""

import asyncio
import base64
import json
import subprocess
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from mitmproxy import exceptions, http
from mitmproxy.test import tflow

from shyhurricane.interception import addon as addon_module
from shyhurricane.interception.adapters import exchange_from_flow, finding_from_dict, load_findings_file
from shyhurricane.interception.addon import SCOPE_OPTION, ForwarderAddon
from shyhurricane.interception.scope import ScopeMatcher
from shyhurricane.models.finding import Confidence, Severity

SCOPE = [r"^https://([a-z0-9-]+\.)*example\.com/"]


def _flow(content_type="application/json", response_content=b'{"ok": true}', url="https://example.com/login"):
    request = http.Request.make(
        "POST",
        url,
        b"user=alice",
        http.Headers([(b"X-Foo", b"a"), (b"x-foo", b"b")])
    )
    response = http.Response.make(200, response_content, {"Content-Type": content_type})
    return tflow.tflow(req=request, resp=response)


@pytest.fixture
def scope():
    return ScopeMatcher(SCOPE)


@pytest.fixture
def addon(policy_store, pipeline, scope):
    return ForwarderAddon(policy_store, pipeline, scope)


def _finding_dict(**overrides):
    data = {
        "name": "Reflected XSS",
        "base_url": "https://example.com/search",
        "severity": "high",
        "confidence": "Certain",
        "background": "Input is echoed without encoding.",
        "evidence": [
            {
                "request": {"method": "GET", "url": "https://example.com/search?q=<script>"},
                "response": {"status_code": 200, "reason": "OK", "body": "<script>"},
            }
        ],
    }
    data.update(overrides)
    return data


# Scope

def test_scope_matching_is_case_insensitive(scope):
    assert scope.is_in_scope("https://EXAMPLE.com/a")
    assert scope.is_in_scope("https://api.example.com/")
    assert not scope.is_in_scope("https://example.org/")


def test_empty_scope_matches_nothing():
    assert not ScopeMatcher().is_in_scope("https://example.com/")


def test_invalid_scope_pattern_is_rejected(scope):
    with pytest.raises(ValueError):
        scope.update(["(unclosed"])
    # previous patterns survive a failed update
    assert scope.patterns == SCOPE


# Flow translation

def test_exchange_from_flow(scope):
    flow = _flow()
    exchange = exchange_from_flow(flow, scope)

    assert exchange.request.method == "POST"
    assert exchange.request.url == "https://example.com/login"
    assert exchange.request.in_scope is True
    assert exchange.request.headers[:2] == (("X-Foo", "a"), ("x-foo", "b"))
    assert exchange.request.read_text() == "user=alice"
    assert exchange.response.status_code == 200
    assert exchange.response.content_type == "application/json"
    assert exchange.response.read_text() == '{"ok": true}'
    assert exchange.observed_at.timestamp() == pytest.approx(flow.response.timestamp_end)


def test_exchange_from_flow_out_of_scope(scope):
    exchange = exchange_from_flow(_flow(url="https://other.test/"), scope)
    assert exchange.request.in_scope is False


def test_undecodable_flow_body_raises_on_read(scope):
    exchange = exchange_from_flow(_flow("text/plain; charset=utf-8", b"\xff\xfe\xfd"), scope)
    with pytest.raises(ValueError):
        exchange.response.read_text()


def test_flow_is_forwarded_through_pipeline(scope, pipeline, recorder):
    pipeline.handle_exchange(exchange_from_flow(_flow(), scope))

    _, payload = recorder.posts[0]
    headers = payload["request"]["headers"]
    assert headers["x-foo"] == "a;b"
    assert all(name == name.lower() for name in headers)
    assert payload["request"]["body"] == "user=alice"
    assert payload["response"]["headers"]["content-type"] == "application/json"


# Findings JSON

def test_finding_from_dict(scope):
    finding = finding_from_dict(_finding_dict(), scope)

    assert finding.severity is Severity.HIGH
    assert finding.confidence is Confidence.CERTAIN
    assert finding.title == "Reflected XSS at https://example.com/search"
    assert finding.detail is None
    assert finding.evidence[0].request.in_scope is True
    assert finding.evidence[0].response.body == "<script>"


def test_finding_scope_flags():
    data = _finding_dict(evidence=[
        {"request": {"url": "https://example.com/a", "in_scope": False}},
        {"request": {"url": "https://example.com/b"}},
    ])

    no_scope = finding_from_dict(data)
    assert [e.request.in_scope for e in no_scope.evidence] == [False, False]

    with_scope = finding_from_dict(data, ScopeMatcher(SCOPE))
    assert [e.request.in_scope for e in with_scope.evidence] == [False, True]
    assert with_scope.evidence[1].request.method == "GET"
    assert with_scope.evidence[1].response.status_code == 0


def test_base64_bodies_stay_bytes():
    data = _finding_dict(evidence=[{
        "request": {"url": "https://example.com/a", "body_base64": base64.b64encode(b"\x00\x01").decode()},
        "response": {"status_code": 200},
    }])
    assert finding_from_dict(data).evidence[0].request.body == b"\x00\x01"


def test_unknown_severity_is_rejected():
    with pytest.raises(ValueError, match="Choose from"):
        finding_from_dict(_finding_dict(severity="blocker"))


def test_load_findings_file_skips_malformed_entries(tmp_path, scope):
    path = tmp_path / "findings.json"
    path.write_text(json.dumps({"findings": [
        _finding_dict(),
        {"name": "missing base url", "severity": "LOW", "confidence": "FIRM"},
        _finding_dict(confidence="sure"),
        _finding_dict(name="Open redirect", severity="LOW"),
    ]}))

    findings = load_findings_file(path, scope)
    assert [f.name for f in findings] == ["Reflected XSS", "Open redirect"]


def test_load_findings_file_accepts_plain_list(tmp_path):
    path = tmp_path / "findings.json"
    path.write_text(json.dumps([_finding_dict()]))
    assert len(load_findings_file(path)) == 1


# Addon hooks and commands

def test_configure_applies_scope(addon, monkeypatch):
    options = SimpleNamespace(**{SCOPE_OPTION: ["internal\\.test"]})
    monkeypatch.setattr(addon_module, "ctx", SimpleNamespace(options=options))

    addon.configure({SCOPE_OPTION})

    assert addon.scope.patterns == ["internal\\.test"]


def test_configure_rejects_invalid_scope(addon, monkeypatch):
    options = SimpleNamespace(**{SCOPE_OPTION: ["[a-"]})
    monkeypatch.setattr(addon_module, "ctx", SimpleNamespace(options=options))

    with pytest.raises(exceptions.OptionsError):
        addon.configure({SCOPE_OPTION})


def test_configure_ignores_unrelated_options(addon):
    addon.configure({"listen_port"})
    assert addon.scope.patterns == SCOPE


def test_response_hook_forwards(addon, recorder):
    asyncio.run(addon.response(_flow()))

    assert len(recorder.posts) == 1
    assert recorder.posts[0][0] == "http://localhost:8000/index"


def test_response_hook_respects_content_policy(addon, recorder):
    asyncio.run(addon.response(_flow(content_type="image/png", response_content=b"\x89PNG")))
    assert recorder.posts == []


def test_handle_finding(addon, recorder, sample_finding):
    assert addon.handle_finding(sample_finding) is True
    assert recorder.posts[0][0] == "http://localhost:8000/findings"


def test_forward_findings_command(addon, recorder, tmp_path):
    path = tmp_path / "findings.json"
    path.write_text(json.dumps([_finding_dict(), _finding_dict(confidence="TENTATIVE")]))

    addon.forward_findings(str(path))

    # TENTATIVE is below the default FIRM threshold
    assert len(recorder.posts) == 1
    assert recorder.posts[0][1]["title"] == "Reflected XSS at https://example.com/search"


def test_forward_findings_command_missing_file(addon, tmp_path):
    with pytest.raises(exceptions.CommandError):
        addon.forward_findings(str(tmp_path / "absent.json"))


def test_policy_commands(addon, policy_store, preferences):
    addon.set_policy("minSeverity", "medium")

    assert policy_store.snapshot().min_severity is Severity.MEDIUM
    assert preferences.values["minSeverity"] == "MEDIUM"
    assert addon.show_policy() == (
        "onlyInScope=False, mcpServerUrl=http://localhost:8000, minConfidence=FIRM, minSeverity=MEDIUM"
    )


def test_set_policy_rejects_unknown_key(addon):
    with pytest.raises(exceptions.CommandError):
        addon.set_policy("maxSeverity", "HIGH")


def test_done_shuts_down_forwarder_and_reports(addon, sample_finding):
    addon.handle_finding(sample_finding)
    addon.done()

    stats = addon.get_stats()
    assert stats["findings_forwarded"] == 1
    assert stats["posted"] == 1


def test_set_policy_reports_save_failure(addon, preferences, monkeypatch):
    def fail(values):
        raise OSError("read-only file system")

    monkeypatch.setattr(preferences, "set_many", fail)

    with pytest.raises(exceptions.CommandError, match="Cannot save policy"):
        addon.set_policy("minSeverity", "LOW")
    assert addon.policy_store.snapshot().min_severity is Severity.INFORMATION


def test_non_object_entries_are_skipped(tmp_path):
    path = tmp_path / "findings.json"
    path.write_text(json.dumps(["oops", 42, None, _finding_dict()]))

    assert [f.name for f in load_findings_file(path)] == ["Reflected XSS"]


def test_malformed_evidence_skips_the_finding(tmp_path):
    path = tmp_path / "findings.json"
    path.write_text(json.dumps([
        _finding_dict(evidence="none"),
        _finding_dict(evidence=["not an object"]),
        _finding_dict(evidence=[{"request": "GET /"}]),
        _finding_dict(name="Kept"),
    ]))

    assert [f.name for f in load_findings_file(path)] == ["Kept"]


def test_null_findings_key_loads_nothing(tmp_path):
    path = tmp_path / "findings.json"
    path.write_text(json.dumps({"findings": None}))

    assert load_findings_file(path) == []


def test_findings_file_must_hold_a_list(tmp_path):
    path = tmp_path / "findings.json"
    path.write_text(json.dumps("just a string"))

    with pytest.raises(ValueError):
        load_findings_file(path)


def test_forward_findings_command_rejects_bad_file_shape(addon, tmp_path):
    path = tmp_path / "findings.json"
    path.write_text("42")

    with pytest.raises(exceptions.CommandError):
        addon.forward_findings(str(path))


@pytest.mark.parametrize("module", ["main", "shyhurricane.interception", "shyhurricane.interception.addon"])
def test_modules_import_in_a_fresh_interpreter(module):
    root = Path(__file__).resolve().parents[1]
    result = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        cwd=root,
        capture_output=True,
        text=True,
        timeout=120
    )
    assert result.returncode == 0, result.stderr
