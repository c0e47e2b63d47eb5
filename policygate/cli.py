"""Command line front end: validate a parsed syntax tree against a sandbox policy."""

import argparse
import json
import sys
from pathlib import Path

from .audit import AuditLogger
from .gate import PolicyGate
from .loader import dump_tree, load_tree, save_tree
from .models.options import SandboxConfig
from .security.store import PolicyStore
from .validators.config import load_config


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Validate and rewrite a sandboxed syntax tree (parser JSON dump)"
    )
    parser.add_argument("tree", type=Path, help="Path to the sandboxed syntax tree JSON")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the sandbox configuration JSON (defaults apply if omitted)",
    )
    parser.add_argument(
        "--prelude",
        type=Path,
        default=None,
        help="Path to a trusted syntax tree whose names are whitelisted first",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the rewritten tree here (printed to stdout if not specified)",
    )
    parser.add_argument(
        "--audit-log",
        type=Path,
        default=None,
        help="Append policy decisions to this audit log",
    )

    args = parser.parse_args(argv)

    audit = AuditLogger(args.audit_log) if args.audit_log else None
    try:
        config = load_config(args.config) if args.config else SandboxConfig()
        tree = load_tree(args.tree)
        trusted = load_tree(args.prelude) if args.prelude else None
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    gate = PolicyGate(PolicyStore.from_config(config, audit))
    result = gate.check(tree, trusted)
    if not result.passed:
        print(f"Violation {result.violation}", file=sys.stderr)
        return 1

    if args.output:
        save_tree(result.tree, args.output)
        print(f"Validation passed, rewritten tree written to {args.output}")
    else:
        print(json.dumps(dump_tree(result.tree), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
