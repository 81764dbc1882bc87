#!/usr/bin/env python3
"""Validate local desk matcher environment readiness."""

from __future__ import annotations

import asyncio
import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from deskmatch.repository.data_repository import DataRepository
from deskmatch.services.matching_service import DeskMatchingService
from deskmatch.services.nlp_service import QueryParser
from deskmatch.services.preference_service import PreferenceNormalizer
from deskmatch.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="deskmatch-env-")

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("pandas", "pandas"),
        ("openai", "openai"),
        ("streamlit", "streamlit"),
        ("requests", "requests"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    from importlib.metadata import PackageNotFoundError, version

    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages", True)
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 3: Schema init + reference refresh + one match in a temp database
    try:
        settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "validate.db",
            openai_api_key="",
        )
        repository = DataRepository(settings)
        repository.initialize_database()
        repository.refresh_reference_data()
        desk_count = repository.count_desks()

        service = DeskMatchingService(
            repository=repository,
            normalizer=PreferenceNormalizer(parser=QueryParser(settings=settings)),
            settings=settings,
        )
        matches = asyncio.run(
            service.match_desks(employee_id="E-001", query="standing desk near marketing")
        )
        ok, line = _print_result(
            "Reference data + matching",
            True,
            f" ({desk_count} desks loaded, {len(matches)} matched for E-001)",
        )
    except Exception as exc:  # pragma: no cover - runtime guard
        ok, line = _print_result("Reference data + matching", False, str(exc))
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)
    results.append(line)
    all_passed = all_passed and ok

    print(SEPARATOR_LINE)
    print(" Desk Matcher Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
