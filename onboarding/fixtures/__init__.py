"""
Question catalog fixtures.

Edit onboarding_catalog.json to change the default interview; set
CATALOG_PATH to load a different file.
"""

import json
from pathlib import Path
from typing import Optional, Union

from onboarding.config import CATALOG_PATH
from onboarding.models import QuestionDefinition

FIXTURES_DIR = Path(__file__).parent


def load_catalog(path: Optional[Union[str, Path]] = None) -> list[QuestionDefinition]:
    """Load and validate a question catalog from a JSON file."""
    with open(path or CATALOG_PATH, "r", encoding="utf-8") as f:
        raw = json.load(f)
    return [QuestionDefinition.model_validate(entry) for entry in raw]
