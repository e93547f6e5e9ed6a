# -*- coding: utf-8 -*-
"""pyproject.toml paket metadatası."""

from __future__ import annotations

import importlib
import unittest
from pathlib import Path

try:
    import tomllib
except ModuleNotFoundError:  # Python < 3.11
    tomllib = None

ROOT = Path(__file__).resolve().parent.parent


@unittest.skipIf(tomllib is None, "tomllib Python 3.11 ile geldi")
class PyprojectTestCase(unittest.TestCase):
    """Kurulum metadatası gerçek dosyalara ve fonksiyonlara işaret eder."""

    def setUp(self) -> None:
        with open(ROOT / "pyproject.toml", "rb") as handle:
            self.project = tomllib.load(handle)["project"]

    def test_readme_points_to_an_existing_file_if_set(self) -> None:
        readme = self.project.get("readme")
        if isinstance(readme, dict):
            readme = readme.get("file")
        if readme is not None:
            self.assertTrue((ROOT / readme).is_file(), readme)

    def test_console_scripts_resolve_to_callables(self) -> None:
        scripts = self.project["scripts"]
        self.assertEqual(set(scripts), {"notesync-server", "notesync-worker"})
        for target in scripts.values():
            module_name, attribute = target.split(":")
            self.assertTrue(callable(getattr(importlib.import_module(module_name), attribute)))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
