"""
Test end-to-end functionality with a parameterized list of inputs and expected results

mock the GraphClient that the CLI constructs and verify exit codes, session
release and export artefacts
"""

import pytest  # type:ignore

import PasskeyPoodle as program  # type:ignore
from handlers.graph.client import AuthError


@pytest.fixture
def cli(monkeypatch, tmp_path, fake_client):
    """Run main() with a throwaway config and the fake Graph client"""
    for var in ("ENTRA_TENANT_ID", "ENTRA_CLIENT_ID", "ENTRA_CLIENT_SECRET",
                "PASSKEYPOODLE_OUTPUT_PATH", "PASSKEYPOODLE_DOMAIN_FILTER"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(program, "GraphClient", lambda **_: fake_client)
    config = str(tmp_path / "config.json")

    def invoke(*argv):
        return program.main(argv=["--config", config, "--no-banner", *argv])

    return invoke


@pytest.mark.parametrize(
    "test_input,expected",
    [
        (
            [],
            {"exit": 0, "exports": 0, "filter": None},
        ),
        (
            ["--export-csv"],
            {"exit": 0, "exports": 1, "filter": None},
        ),
        (
            ["--domain-filter", "contoso.com", "--export-csv", "--parallel", "2"],
            {"exit": 0, "exports": 1, "filter": "endswith(userPrincipalName,'@contoso.com')"},
        ),
        (
            ["--domain-filter", "@contoso.com", "--debug"],
            {"exit": 0, "exports": 0, "filter": "endswith(userPrincipalName,'@contoso.com')"},
        ),
    ],
    ids=[
        "Audit the whole directory, no export",
        "Audit the whole directory and export a CSV",
        "Domain filter without @, concurrent lookups, export",
        "Domain filter with @ and debug output",
    ],
)
def test_end_to_end(cli, fake_client, tmp_path, test_input, expected):
    out_dir = tmp_path / "reports"

    assert cli("--output-path", str(out_dir), *test_input) == expected["exit"]

    _, params, _ = fake_client.calls[0]
    assert params.get("$filter") == expected["filter"]
    assert fake_client.close_count == 1
    exports = list(out_dir.glob("Users_Without_FIDO2_*.csv")) if out_dir.exists() else []
    assert len(exports) == expected["exports"]
    for path in exports:
        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "DisplayName,UserPrincipalName,ID"
        assert len(lines) == 5


def test_config_supplies_defaults(cli, fake_client, tmp_path):
    cfg = tmp_path / "config.json"
    cfg.write_text(
        '{"domain_filter": "fabrikam.com", "output_path": "%s"}' % (tmp_path / "from_config").as_posix(),
        encoding="utf-8",
    )

    assert cli("--export-csv") == 0

    _, params, _ = fake_client.calls[0]
    assert params["$filter"] == "endswith(userPrincipalName,'@fabrikam.com')"
    assert len(list((tmp_path / "from_config").glob("*.csv"))) == 1


def test_auth_failure_exits_non_zero(cli, monkeypatch, fake_client, capsys):
    def refuse(**_):
        raise AuthError("MSAL authentication failed: AADSTS65001: consent required")

    monkeypatch.setattr(program, "GraphClient", refuse)

    assert cli() == 1
    assert fake_client.calls == []
    assert "AADSTS65001" in capsys.readouterr().out


def test_listing_failure_exits_non_zero_and_releases_session(cli, fake_client, capsys):
    fake_client.list_error = "Graph API request failed with status 403: Authorization_RequestDenied"

    assert cli("--export-csv") == 1
    assert fake_client.close_count == 1
    assert len(fake_client.calls) == 1
    assert "Authorization_RequestDenied" in capsys.readouterr().out


def test_per_user_failure_keeps_exit_zero(cli, fake_client, capsys):
    fake_client.failing = {"u-amy"}

    assert cli() == 0
    out = capsys.readouterr().out
    assert "3 without FIDO2, 1 skipped" in out
    assert "amy@contoso.com" in out
    assert "Failed to retrieve authentication methods for amy@contoso.com" in out


def test_export_failure_keeps_exit_zero(cli, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    assert cli("--export-csv", "--output-path", str(blocker)) == 0


def test_final_status_reports_run_and_counts(cli, capsys):
    assert cli() == 0
    last = capsys.readouterr().out.strip().splitlines()[-1]
    assert "Audit complete (run=fido2-" in last
    assert "4 without FIDO2, 0 skipped" in last
