"""Test suite loader — reads declarative feature tests from a directory of JSON files."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from autopilot.models.feature_test import FeatureTest

logger = logging.getLogger(__name__)

DEFAULT_FEATURES_DIR = Path(".autopilot") / "features"


class SuiteLoadError(Exception):
    """A test definition could not be read. Fatal to the whole run."""

    def __init__(self, message: str, path: Path | None = None):
        super().__init__(message)
        self.path = path


def load_feature_test(path: str | Path) -> FeatureTest:
    """Parse one test definition file."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SuiteLoadError(f"{path}: invalid JSON: {e}", path) from e
    except OSError as e:
        raise SuiteLoadError(f"{path}: cannot read file: {e}", path) from e

    try:
        return FeatureTest.model_validate(data)
    except ValidationError as e:
        raise SuiteLoadError(f"{path}: invalid test definition: {e}", path) from e


def load_test_suite(
    directory: str | Path = DEFAULT_FEATURES_DIR,
    features: list[str] | None = None,
) -> list[FeatureTest]:
    """Load every ``*.json`` test in ``directory``, in filename order.

    Any bad file aborts the load. When ``features`` is given, only tests
    whose module or id is listed are returned.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise SuiteLoadError(f"Test definition directory not found: {directory}", directory)

    tests: list[FeatureTest] = []
    seen: dict[str, Path] = {}
    for path in sorted(directory.glob("*.json")):
        logger.debug("Loading test definition %s", path)
        test = load_feature_test(path)
        if test.id in seen:
            raise SuiteLoadError(
                f"{path}: duplicate test id '{test.id}' (already defined in {seen[test.id]})", path
            )
        seen[test.id] = path
        tests.append(test)

    if features:
        wanted = set(features)
        selected = [t for t in tests if t.module in wanted or t.id in wanted]
        logger.debug("Feature filter %s kept %d of %d tests", sorted(wanted), len(selected), len(tests))
        tests = selected

    return tests
