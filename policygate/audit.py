"""Audit logging for sandbox policy decisions."""

from datetime import datetime, timezone
from pathlib import Path

AuditValue = str | int | float | bool | None


def _format_value(value: AuditValue) -> str:
    """Render one value on a single line, quoted when it has spaces or is empty."""
    text = str(value).replace("\n", " ")
    if text == "" or " " in text:
        return f'"{text}"'
    return text


class AuditLogger:
    """Appends the store's allow-list, namespace, alias and violation records
    and the gate's run results to an audit file.

    Log format: ISO8601_TIMESTAMP [OPERATION] key1=value1 key2=value2
    Example: 2026-02-01T10:00:00Z [VIOLATION] kind=valid_func context=exec line=3

    Operations: WHITELIST, NAMESPACE, ALIAS, VIOLATION, VALIDATE
    """

    def __init__(self, log_path: Path) -> None:
        self.log_path = Path(log_path)

    @staticmethod
    def format_entry(operation: str, **fields: AuditValue) -> str:
        """Build one entry, without timestamp or newline.

        Example: format_entry("ALIAS", name="app\\user", alias=None) gives
        ``[ALIAS] name=app\\user``; None fields are left out.
        """
        rendered = [f"{key}={_format_value(value)}" for key, value in fields.items() if value is not None]
        return " ".join([f"[{operation}]", *rendered])

    def log(self, operation: str, **fields: AuditValue) -> None:
        """Append a timestamped entry for a policy decision.

        Args:
            operation: One of WHITELIST, NAMESPACE, ALIAS, VIOLATION, VALIDATE
            **fields: Details of the decision, e.g. ``category=functions name=strlen``
        """
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, "a") as f:
            f.write(f"{stamp} {self.format_entry(operation, **fields)}\n")

    def entries(self, operation: str | None = None) -> list[str]:
        """Return logged lines, optionally only those of one operation."""
        if not self.log_path.exists():
            return []
        lines = self.log_path.read_text().splitlines()
        if operation is None:
            return lines
        return [line for line in lines if f"[{operation}]" in line]
