"""Tests for CLI functionality."""

import json
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from apps.cli.main import app
from depsentry.models import DependencyType, OutdatedPackage, UpdateOutcome, Vulnerability
from depsentry.report import ProjectReport

EXPRESS = OutdatedPackage("express", "^4.18.0", "4.19.2", "4.19.2", DependencyType.PROD)
JEST = OutdatedPackage("jest", "^28.0.0", "29.7.0", "29.7.0", DependencyType.DEV)
LODASH_VULN = Vulnerability(
    name="lodash",
    version="4.17.20",
    severity="high",
    title="Prototype Pollution in lodash",
    vulnerable_versions="<4.17.21",
    patched_versions=">=4.17.21",
    url="https://github.com/advisories/GHSA-p6mc-m468-83gw",
)


def make_report(**kwargs) -> ProjectReport:
    defaults = {
        "outdated": [EXPRESS, JEST],
        "vulnerabilities": [LODASH_VULN],
        "checked_outdated": True,
        "checked_vulnerabilities": True,
        "vulnerability_source": "npm-audit",
    }
    defaults.update(kwargs)
    return ProjectReport(**defaults)


class TestCLI:
    """Test CLI command interface."""

    def setup_method(self):
        """Setup test fixtures."""
        self.runner = CliRunner()

    def test_cli_help_command(self):
        """Should display help when called with --help."""
        result = self.runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "--security" in result.output
        assert "--outdated" in result.output

    def test_version(self):
        result = self.runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "depsentry 0.1.0" in result.output

    def test_missing_manifest_is_fatal(self, tmp_path):
        """Should exit non-zero with a clear message without package.json."""
        result = self.runner.invoke(app, ["--dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "package.json not found" in result.output

    def test_invalid_manifest_is_fatal(self, tmp_path):
        (tmp_path / "package.json").write_text("{broken")

        result = self.runner.invoke(app, ["--dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "error" in result.output.lower()

    def test_full_report(self, project_dir):
        """Should show outdated packages and vulnerabilities, then ask to update."""
        with patch("apps.cli.main.check_project", new=AsyncMock(return_value=make_report())), \
                patch("apps.cli.main.apply_updates") as mock_apply:
            result = self.runner.invoke(app, ["--dir", str(project_dir)], input="n\n")

        assert result.exit_code == 0
        assert "Outdated Dependencies" in result.output
        assert "express" in result.output
        assert "4.19.2" in result.output
        assert "Prototype Pollution in lodash" in result.output
        assert "lodash@4.17.20" in result.output
        assert "Would you like to update" in result.output
        mock_apply.assert_not_called()

    def test_up_to_date(self, project_dir):
        report = make_report(outdated=[], vulnerabilities=[])

        with patch("apps.cli.main.check_project", new=AsyncMock(return_value=report)):
            result = self.runner.invoke(app, ["--dir", str(project_dir)])

        assert result.exit_code == 0
        assert "All dependencies are up to date" in result.output
        assert "No known vulnerabilities found" in result.output

    def test_incomplete_vulnerability_check(self, project_dir):
        """Should say so when only registry advisories were checked."""
        report = make_report(
            outdated=[],
            vulnerabilities=[],
            vulnerability_source="registry-advisories",
            vulnerabilities_complete=False,
            warnings=["npm audit unavailable"],
        )

        with patch("apps.cli.main.check_project", new=AsyncMock(return_value=report)):
            result = self.runner.invoke(app, ["--dir", str(project_dir)])

        assert result.exit_code == 0
        assert "may be incomplete" in result.output
        assert "1 warning(s)" in result.output

    def test_security_only(self, project_dir):
        mock_check = AsyncMock(return_value=make_report(outdated=[], checked_outdated=False))

        with patch("apps.cli.main.check_project", new=mock_check):
            result = self.runner.invoke(app, ["--dir", str(project_dir), "--security"])

        assert result.exit_code == 0
        kwargs = mock_check.call_args.kwargs
        assert kwargs["check_outdated"] is False
        assert kwargs["check_vulnerabilities"] is True
        assert "Outdated Dependencies" not in result.output

    def test_outdated_only(self, project_dir):
        mock_check = AsyncMock(return_value=make_report(vulnerabilities=[], checked_vulnerabilities=False))

        with patch("apps.cli.main.check_project", new=mock_check):
            result = self.runner.invoke(app, ["--dir", str(project_dir), "--outdated"], input="n\n")

        assert result.exit_code == 0
        kwargs = mock_check.call_args.kwargs
        assert kwargs["check_outdated"] is True
        assert kwargs["check_vulnerabilities"] is False
        assert "Security Vulnerabilities" not in result.output

    def test_no_audit_flag(self, project_dir):
        mock_check = AsyncMock(return_value=make_report(outdated=[]))

        with patch("apps.cli.main.check_project", new=mock_check):
            self.runner.invoke(app, ["--dir", str(project_dir), "--no-audit"])

        assert mock_check.call_args.kwargs["use_audit"] is False

    def test_registry_and_timeout_options(self, project_dir):
        mock_check = AsyncMock(return_value=make_report(outdated=[]))

        with patch("apps.cli.main.check_project", new=mock_check):
            self.runner.invoke(app, [
                "--dir", str(project_dir), "--registry", "https://npm.example.com/", "--timeout", "2.5",
            ])

        settings = mock_check.call_args.args[1]
        assert settings.registry_url == "https://npm.example.com"
        assert settings.timeout == 2.5

    def test_json_output(self, project_dir):
        """Should print a JSON report without prompting."""
        with patch("apps.cli.main.check_project", new=AsyncMock(return_value=make_report())):
            result = self.runner.invoke(app, ["--dir", str(project_dir), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [p["name"] for p in data["outdated"]] == ["express", "jest"]
        assert data["outdated"][1]["type"] == "dev"
        assert data["vulnerabilities"][0]["severity"] == "high"
        assert data["complete"] is True

    def test_automatic_update(self, project_dir):
        """--update applies every outdated package without prompting."""
        outcome = UpdateOutcome(updated=[EXPRESS], installed=True)

        with patch("apps.cli.main.check_project", new=AsyncMock(return_value=make_report())), \
                patch("apps.cli.main.apply_updates", return_value=outcome) as mock_apply:
            result = self.runner.invoke(app, ["--dir", str(project_dir), "--update"])

        assert result.exit_code == 0
        mock_apply.assert_called_once_with(project_dir, [EXPRESS, JEST], include_dev=False, include_peer=False)
        assert "Successfully updated dependencies" in result.output

    def test_ci_update_with_dev(self, project_dir):
        outcome = UpdateOutcome(updated=[EXPRESS, JEST], installed=True)

        with patch("apps.cli.main.check_project", new=AsyncMock(return_value=make_report())), \
                patch("apps.cli.main.apply_updates", return_value=outcome) as mock_apply:
            result = self.runner.invoke(app, ["--dir", str(project_dir), "--ci", "--include-dev"])

        assert result.exit_code == 0
        assert mock_apply.call_args.kwargs["include_dev"] is True

    def test_interactive_selection(self, project_dir):
        """Should update only the packages the user picks."""
        outcome = UpdateOutcome(updated=[EXPRESS], installed=True)

        with patch("apps.cli.main.check_project", new=AsyncMock(return_value=make_report())), \
                patch("apps.cli.main.apply_updates", return_value=outcome) as mock_apply:
            result = self.runner.invoke(app, ["--dir", str(project_dir)], input="y\nexpress\n")

        assert result.exit_code == 0
        mock_apply.assert_called_once_with(project_dir, [EXPRESS], include_dev=True, include_peer=True)

    def test_install_failure_is_reported(self, project_dir):
        """A failed install keeps the exit code at zero and explains the next step."""
        outcome = UpdateOutcome(updated=[EXPRESS], installed=False, install_error="exit status 1")

        with patch("apps.cli.main.check_project", new=AsyncMock(return_value=make_report())), \
                patch("apps.cli.main.apply_updates", return_value=outcome):
            result = self.runner.invoke(app, ["--dir", str(project_dir), "--update"])

        assert result.exit_code == 0
        assert "Error installing updated dependencies" in result.output
        assert "npm install" in result.output
