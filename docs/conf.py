"""Sphinx configuration for plist-py."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from plist_py import __version__

project = "plist-py"
release = __version__

extensions = [
    "sphinx.ext.autodoc",
    "sphinx_autodoc_typehints",
]

exclude_patterns = ["_build"]

# Modules document themselves with reST field lists (:param:, :raises:)
autodoc_member_order = "bysource"
autodoc_default_options = {"members": True, "show-inheritance": True}
autodoc_typehints = "description"

html_theme = "furo"
