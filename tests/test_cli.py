"""Tests for the command line front end."""

import json
from pathlib import Path

from policygate.cli import main


def _inline_html() -> list[dict]:
    return [{"nodeType": "Stmt_InlineHTML", "value": "<p>hi</p>", "attributes": {"startLine": 1}}]


class TestMain:
    """Exit codes and output of main()."""

    def test_pass_prints_tree(self, tree_file, capsys) -> None:
        """A passing tree is printed as JSON and exits 0."""
        path = tree_file([{"nodeType": "Expr_Variable", "name": "GLOBALS"}])

        assert main([str(path)]) == 0

        out = json.loads(capsys.readouterr().out)
        assert out[0]["nodeType"] == "Expr_MethodCall"
        assert out[0]["name"] == "_get_superglobal"

    def test_violation_exits_1(self, tree_file, capsys) -> None:
        """Violations go to stderr with exit code 1."""
        path = tree_file(_inline_html())

        assert main([str(path)]) == 1

        err = capsys.readouterr().err
        assert err.startswith("Violation [escape]")
        assert "on line 1" in err

    def test_config_enables_feature(self, tree_file, tmp_path: Path, capsys) -> None:
        """Options from --config apply to the run."""
        config = tmp_path / "sandbox.json"
        config.write_text(json.dumps({"options": {"allow_escaping": True}}))
        path = tree_file(_inline_html())
        output = tmp_path / "out" / "tree.json"

        assert main([str(path), "--config", str(config), "--output", str(output)]) == 0

        assert "rewritten tree written to" in capsys.readouterr().out
        assert json.loads(output.read_text())[0]["nodeType"] == "Stmt_InlineHTML"

    def test_prelude_whitelists(self, tree_file, capsys) -> None:
        """Names used by the --prelude tree are whitelisted."""
        call = {"nodeType": "Expr_FuncCall", "name": {"nodeType": "Name", "parts": ["strlen"]}, "args": []}
        other = {"nodeType": "Expr_FuncCall", "name": {"nodeType": "Name", "parts": ["exec"]}, "args": []}
        prelude = tree_file([call], "prelude.json")
        path = tree_file([other])

        assert main([str(path), "--prelude", str(prelude)]) == 1
        assert "[valid_func]" in capsys.readouterr().err

    def test_invalid_config(self, tree_file, tmp_path: Path, capsys) -> None:
        """Bad configuration is reported as an error."""
        config = tmp_path / "sandbox.json"
        config.write_text(json.dumps({"options": {"allow_escaping": "yes"}}))
        path = tree_file(_inline_html())

        assert main([str(path), "--config", str(config)]) == 1
        assert capsys.readouterr().err.startswith("Error: Config validation failed")

    def test_missing_tree(self, tmp_path: Path, capsys) -> None:
        """A missing tree file is reported as an error."""
        assert main([str(tmp_path / "absent.json")]) == 1
        assert capsys.readouterr().err.startswith("Error:")

    def test_audit_log(self, tree_file, tmp_path: Path) -> None:
        """--audit-log records the run."""
        audit_log = tmp_path / "audit.log"
        path = tree_file(_inline_html())

        main([str(path), "--audit-log", str(audit_log)])

        content = audit_log.read_text()
        assert "[VIOLATION] kind=escape" in content
        assert "[VALIDATE] result=fail kind=escape" in content
