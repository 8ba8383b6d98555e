"""
Tests for the offline tenant scoping lint.
"""

import json
from pathlib import Path

import pytest

from guidebook import models
from guidebook.tenancy import audit
from guidebook.tenancy.audit import (
    SCAN_ROOT,
    TENANT_MODELS,
    blocking_findings,
    main,
    scan_directory,
    scan_source,
)


def _operations(source: str) -> list:
    return [f.operation for f in scan_source(source, "sample.py")]


class TestQueryPatterns:
    def test_unscoped_select_is_flagged(self):
        findings = scan_source(
            "async def leak(session):\n"
            "    result = await session.execute(select(Booking).where(Booking.status == 'paid'))\n"
            "    return result.scalars().all()\n",
            "sample.py",
        )

        assert len(findings) == 1
        assert findings[0].severity == "HIGH"
        assert findings[0].operation == "read"
        assert findings[0].line == 2

    def test_scoped_select_passes(self):
        assert _operations(
            "stmt = select(Booking).where(\n"
            "    Booking.outfitter_id == ctx.outfitter_id,\n"
            ")\n"
        ) == []
        assert _operations("stmt = scoped_select(Booking, ctx)\n") == []
        assert _operations(
            "stmt = select(Payment).where(tenant_filter(Payment, ctx))\n"
        ) == []

    def test_filter_outside_window_does_not_count(self):
        source = "stmt = select(Customer)\n" + "x = 1\n" * 10 + "stmt = stmt.where(Customer.outfitter_id == ctx.outfitter_id)\n"

        assert _operations(source) == ["read"]

    def test_unscoped_update_and_delete_are_critical(self):
        findings = scan_source(
            "await session.execute(update(Customer).values(notes=''))\n"
            "await session.execute(delete(Location))\n",
            "sample.py",
        )

        assert [(f.operation, f.severity) for f in findings] == [("write", "CRITICAL"), ("write", "CRITICAL")]

    def test_non_tenant_models_are_ignored(self):
        assert _operations("stmt = select(Outfitter).where(Outfitter.id == user.outfitter_id)\n") == []
        assert _operations("stmt = select(AuditLog)\n") == []


class TestLinePatterns:
    def test_primary_key_fetch(self):
        assert _operations("booking = await session.get(Booking, booking_id)\n") == ["pk_fetch"]

    @pytest.mark.parametrize(
        "line",
        [
            "customer.outfitter_id = payload['outfitter_id']\n",
            "Customer(outfitter_id=body.outfitter_id)\n",
            "tenant = request.headers.get('outfitterId')\n",
            "tenant = payload.get(\"tenant_id\")\n",
            "tenant = request.query_params['outfitter_id']\n",
        ],
    )
    def test_tenant_from_client_data(self, line):
        assert "payload_tenant" in _operations(line)

    @pytest.mark.parametrize(
        "line",
        [
            "DEFAULT_OUTFITTER_ID = 1\n",
            "ctx = TenantContext(outfitter_id=1, user_id='x')\n",
            "if row.outfitter_id == 2:\n",
        ],
    )
    def test_hardcoded_tenant(self, line):
        assert "hardcoded_tenant" in _operations(line)

    def test_context_tenant_is_fine(self):
        assert _operations("entity.outfitter_id = ctx.outfitter_id\n") == []


class TestSuppression:
    def test_noqa_suppresses_a_line(self):
        assert _operations("stmt = select(User).where(User.id == uid)  # noqa: tenant-scoping\n") == []

    def test_comments_and_docstrings_are_skipped(self):
        source = (
            '"""\n'
            "Example:\n"
            "    select(Booking)\n"
            "    DEFAULT_OUTFITTER_ID = 1\n"
            '"""\n'
            "# select(Customer) would leak\n"
        )

        assert _operations(source) == []


class TestRouterGuard:
    def test_unguarded_router_is_flagged(self):
        findings = scan_source('router = APIRouter(prefix="/api/widgets")\n', "widgets.py")

        assert [(f.operation, f.severity) for f in findings] == [("missing_middleware", "CRITICAL")]

    def test_guarded_router_passes(self):
        source = (
            "router = APIRouter(\n"
            '    prefix="/api/widgets",\n'
            "    dependencies=[Depends(get_tenant_context)],\n"
            ")\n"
        )

        assert _operations(source) == []

    def test_public_marker(self):
        source = "# tenant-scoping: public\nrouter = APIRouter(prefix=\"/api\")\n"

        assert _operations(source) == []


class TestDirectoryScan:
    def test_package_is_clean(self):
        findings = scan_directory(SCAN_ROOT)

        assert blocking_findings(findings) == [], "\n".join(str(f) for f in findings)

    def test_tenant_models_match_schema(self):
        """Every model with an outfitter_id column is covered by the lint."""
        scoped = {
            mapper.class_.__name__
            for mapper in models.Base.registry.mappers
            if "outfitter_id" in mapper.columns and mapper.class_.__name__ != "AuditLog"
        }

        assert scoped == set(TENANT_MODELS)

    def test_excluded_paths(self, tmp_path: Path):
        (tmp_path / "tenancy").mkdir()
        (tmp_path / "tenancy" / "helpers.py").write_text("stmt = select(Booking)\n")
        (tmp_path / "test_things.py").write_text("stmt = select(Booking)\n")
        (tmp_path / "service.py").write_text("stmt = select(Booking)\n")

        findings = scan_directory(tmp_path)

        assert [Path(f.file).name for f in findings] == ["service.py"]


class TestCommandLine:
    def test_clean_tree_exits_zero(self, capsys):
        assert main(["--strict"]) == 0
        assert "No tenant scoping issues found" in capsys.readouterr().out

    def test_strict_fails_on_findings(self, tmp_path: Path, capsys):
        (tmp_path / "leaky.py").write_text("rows = select(Customer)\n")

        assert main(["--path", str(tmp_path)]) == 0
        assert main(["--strict", "--path", str(tmp_path)]) == 1
        assert "critical/high issues found" in capsys.readouterr().out

    def test_json_output(self, tmp_path: Path, capsys):
        leaky = tmp_path / "leaky.py"
        leaky.write_text("rows = select(Customer)\nDEFAULT_OUTFITTER = 1\n")

        assert main(["--json", "--path", str(leaky)]) == 0
        report = json.loads(capsys.readouterr().out)

        assert {item["operation"] for item in report} == {"read", "hardcoded_tenant"}
        assert {item["line"] for item in report} == {1, 2}

    def test_missing_path(self, tmp_path: Path, capsys):
        assert main(["--path", str(tmp_path / "nope")]) == 1
        assert "does not exist" in capsys.readouterr().err

    def test_severity_emoji_covers_every_level(self):
        assert set(audit.SEVERITY_EMOJI) == set(audit.SEVERITY_ORDER)
