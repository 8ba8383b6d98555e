"""
Multi-tenancy scoping lint check.

Scans Python source for data-access call sites that can leak rows across
outfitters:

1. SELECT/UPDATE/DELETE on a tenant-scoped model with no outfitter filter
2. Primary-key fetches (session.get) that bypass the tenant filter
3. outfitter_id taken from request, payload or query data
4. Hardcoded outfitter ids and default-outfitter constants
5. Route modules whose APIRouter is not guarded by get_tenant_context

USAGE:
    guidebook-tenant-audit
    python scripts/check_tenant_scoping.py -v --strict

    # Machine-readable output
    guidebook-tenant-audit --json --path Backend/guidebook

EXIT CODES:
    0 - No CRITICAL/HIGH findings (or --strict not given)
    1 - --strict and at least one CRITICAL/HIGH finding, or bad --path

Suppress a reviewed line with `# noqa: tenant-scoping`. Mark a route
module that intentionally serves unauthenticated requests with
`# tenant-scoping: public`.
"""

import argparse
import json
import re
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

# ────────────────────────────────────────────────────────────────
# Configuration
# ────────────────────────────────────────────────────────────────

# Root directory to scan
SCAN_ROOT = Path(__file__).resolve().parent.parent

# Files/directories to exclude
EXCLUDE_PATTERNS = [
    "__pycache__",
    "tenancy/",  # The scoping helpers themselves are allowed to build raw queries
    "tests/",
    "migrations/",
]

# Models whose rows belong to one outfitter
TENANT_MODELS: Tuple[str, ...] = (
    "Location",
    "Experience",
    "Customer",
    "Booking",
    "GuideAssignment",
    "BookingGuide",
    "Document",
    "Payment",
    "OutfitterSettings",
    "User",
)

SEVERITY_ORDER = ["CRITICAL", "HIGH", "MEDIUM", "WARNING", "INFO"]
SEVERITY_EMOJI = {
    "CRITICAL": "🔴",
    "HIGH": "🟠",
    "MEDIUM": "🟡",
    "WARNING": "🟣",
    "INFO": "🔵",
}

# Lines after a statement start that may still belong to it
CONTEXT_WINDOW = 6

_MODELS = "|".join(TENANT_MODELS)
_TENANT_KEYS = r"(?:outfitter_id|outfitterId|tenant_id|tenantId)"

QUERY_PATTERNS: List[Tuple[str, str, str, str]] = [
    # (pattern, severity, operation, description)
    (
        rf"\bselect\(\s*(?:{_MODELS})\b",
        "HIGH",
        "read",
        "Query on a tenant-scoped model without an outfitter_id filter - potential cross-tenant leak",
    ),
    (
        rf"\bupdate\(\s*(?:{_MODELS})\s*\)",
        "CRITICAL",
        "write",
        "UPDATE on a tenant-scoped model without an outfitter_id filter - can modify other outfitters' rows",
    ),
    (
        rf"\bdelete\(\s*(?:{_MODELS})\s*\)",
        "CRITICAL",
        "write",
        "DELETE on a tenant-scoped model without an outfitter_id filter - can remove other outfitters' rows",
    ),
]

LINE_PATTERNS: List[Tuple[str, str, str, str, str]] = [
    # (pattern, severity, operation, description, fix)
    (
        rf"\.get\(\s*(?:{_MODELS})\s*,",
        "HIGH",
        "pk_fetch",
        "Primary-key fetch bypasses the tenant filter",
        "Use get_scoped(session, ctx, Model, id)",
    ),
    (
        rf"\b{_TENANT_KEYS}\s*=\s*(?:request|payload|body|data|params|query|form)\b",
        "CRITICAL",
        "payload_tenant",
        "Tenant id taken from client-supplied data on the write path",
        "Set outfitter_id from ctx.outfitter_id only",
    ),
    (
        rf"(?:payload|body|data|params|query_params|form|headers)(?:\.get\(|\[)\s*[\"']{_TENANT_KEYS}[\"']",
        "CRITICAL",
        "payload_tenant",
        "Tenant id read from client-supplied data",
        "Resolve the tenant with get_tenant_context; never read it from the request",
    ),
    (
        r"\bDEFAULT_OUTFITTER(?:_ID)?\b",
        "CRITICAL",
        "hardcoded_tenant",
        "Default outfitter constant - requests must fail closed, not fall back to a tenant",
        "Remove the default and reject requests without a resolvable tenant",
    ),
    (
        r"\boutfitter_id\s*(?:=|==)\s*\d+\b",
        "CRITICAL",
        "hardcoded_tenant",
        "Hardcoded outfitter id",
        "Use ctx.outfitter_id",
    ),
]

# Evidence that a statement is scoped
SCOPED_RE = re.compile(r"outfitter_id|tenant_filter\(|scoped_select\(")

# Patterns that are OK (suppress false positives)
IGNORE_PATTERNS = [
    r"^\s*#",  # Comments
    r"noqa:\s*tenant-scoping",  # Explicit suppression
]

PUBLIC_MODULE_MARKER = "tenant-scoping: public"


# ────────────────────────────────────────────────────────────────
# Data Classes
# ────────────────────────────────────────────────────────────────

@dataclass
class Finding:
    """A single tenant scoping issue."""

    file: str
    line: int
    severity: str
    description: str
    operation: str
    fix: str
    line_text: str = ""

    def __str__(self):
        return f"{self.severity}: {self.file}:{self.line} - {self.description}\n  > {self.line_text.strip()}"


# ────────────────────────────────────────────────────────────────
# Scanning Logic
# ────────────────────────────────────────────────────────────────

def should_exclude(path: Path) -> bool:
    """Check if a path should be excluded from scanning."""
    path_str = path.as_posix()
    if path.name.startswith("test_"):
        return True
    return any(excl in path_str for excl in EXCLUDE_PATTERNS)


def should_ignore_line(line: str) -> bool:
    """Check if a line should be ignored (false positive suppression)."""
    return any(re.search(pattern, line, re.IGNORECASE) for pattern in IGNORE_PATTERNS)


def _docstring_lines(lines: Sequence[str]) -> set:
    """Line numbers (1-based) that sit inside a triple-quoted string."""
    inside = False
    result = set()
    for line_num, line in enumerate(lines, 1):
        quotes = line.count('"""') + line.count("'''")
        if inside or quotes:
            result.add(line_num)
        if quotes % 2 == 1:
            inside = not inside
    return result


def _scoped_within(lines: Sequence[str], index: int) -> bool:
    window = "\n".join(lines[index:index + CONTEXT_WINDOW])
    return bool(SCOPED_RE.search(window))


def _fix_for(operation: str) -> str:
    if operation == "read":
        return "Use scoped_select(Model, ctx) or the helpers in guidebook.tenancy.queries"
    return "Use update_scoped/delete_scoped, or add tenant_filter(Model, ctx) to the WHERE clause"


def scan_source(source: str, file_name: str = "<string>") -> List[Finding]:
    """Scan Python source text for tenant scoping issues."""
    findings = []
    lines = source.split("\n")
    in_docstring = _docstring_lines(lines)

    for index, line in enumerate(lines):
        line_num = index + 1
        if line_num in in_docstring or should_ignore_line(line):
            continue

        for pattern, severity, operation, description in QUERY_PATTERNS:
            if re.search(pattern, line) and not _scoped_within(lines, index):
                findings.append(Finding(
                    file=file_name,
                    line=line_num,
                    severity=severity,
                    description=description,
                    operation=operation,
                    fix=_fix_for(operation),
                    line_text=line,
                ))

        for pattern, severity, operation, description, fix in LINE_PATTERNS:
            if re.search(pattern, line):
                findings.append(Finding(
                    file=file_name,
                    line=line_num,
                    severity=severity,
                    description=description,
                    operation=operation,
                    fix=fix,
                    line_text=line,
                ))

    findings.extend(_check_router_guard(lines, file_name))
    return findings


def _check_router_guard(lines: Sequence[str], file_name: str) -> List[Finding]:
    """A module that builds an APIRouter must install get_tenant_context."""
    source = "\n".join(lines)
    if PUBLIC_MODULE_MARKER in source or "get_tenant_context" in source:
        return []
    for line_num, line in enumerate(lines, 1):
        if re.search(r"\bAPIRouter\(", line) and not should_ignore_line(line):
            return [Finding(
                file=file_name,
                line=line_num,
                severity="CRITICAL",
                description="Router without tenant middleware - handlers run without a resolved outfitter",
                operation="missing_middleware",
                fix="APIRouter(dependencies=[Depends(get_tenant_context)])",
                line_text=line,
            )]
    return []


def scan_file(file_path: Path) -> List[Finding]:
    """Scan a single file for tenant scoping issues."""
    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Warning: Could not read {file_path}: {e}", file=sys.stderr)
        return []
    return scan_source(content, str(file_path))


def scan_directory(root: Path) -> List[Finding]:
    """Recursively scan a directory for tenant scoping issues."""
    all_findings = []

    for path in sorted(root.rglob("*.py")):
        if should_exclude(path.relative_to(root)):
            continue
        all_findings.extend(scan_file(path))

    return all_findings


def blocking_findings(findings: Sequence[Finding]) -> List[Finding]:
    return [f for f in findings if f.severity in ("CRITICAL", "HIGH")]


# ────────────────────────────────────────────────────────────────
# Reporting
# ────────────────────────────────────────────────────────────────

def print_report(findings: Sequence[Finding], verbose: bool = False) -> None:
    """Print the findings report."""

    if not findings:
        print("✅ No tenant scoping issues found!")
        return

    # Group by severity
    by_severity = {}
    for f in findings:
        by_severity.setdefault(f.severity, []).append(f)

    print("\n" + "=" * 60)
    print("MULTI-TENANCY SCOPING CHECK REPORT")
    print("=" * 60)

    print("\nSUMMARY:")
    for sev in SEVERITY_ORDER:
        count = len(by_severity.get(sev, []))
        if count > 0:
            print(f"  {SEVERITY_EMOJI.get(sev, '⚪')} {sev}: {count}")

    print(f"\nTOTAL: {len(findings)} issues")

    if verbose:
        print("\n" + "-" * 60)
        print("DETAILS:")
        print("-" * 60)

        for sev in SEVERITY_ORDER:
            if sev in by_severity:
                print(f"\n{SEVERITY_EMOJI.get(sev, '⚪')} {sev}:")
                for f in by_severity[sev]:
                    print(f"  {f.file}:{f.line} [{f.operation}]")
                    print(f"    {f.description}")
                    print(f"    fix: {f.fix}")
                    print(f"    > {f.line_text.strip()[:80]}")
    else:
        print("\nRun with -v for detailed findings.")

    print("\n" + "=" * 60)


# ────────────────────────────────────────────────────────────────
# Main
# ────────────────────────────────────────────────────────────────

def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Check codebase for multi-tenancy scoping issues"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show detailed findings"
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with code 1 if any CRITICAL/HIGH issues are found (for CI)"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print findings as JSON"
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=SCAN_ROOT,
        help=f"Path to scan (default: {SCAN_ROOT})"
    )

    args = parser.parse_args(argv)

    if not args.path.exists():
        print(f"Error: Path {args.path} does not exist", file=sys.stderr)
        return 1

    if args.path.is_file():
        findings = scan_file(args.path)
    else:
        findings = scan_directory(args.path)

    if args.json:
        print(json.dumps([asdict(f) for f in findings], indent=2))
    else:
        print(f"Scanning {args.path}...")
        print_report(findings, verbose=args.verbose)

    blocking = blocking_findings(findings)
    if args.strict and blocking:
        if not args.json:
            print(f"\n❌ {len(blocking)} critical/high issues found. Failing.")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
