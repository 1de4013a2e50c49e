from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping

from .models import Module


def modules_to_json(modules: Mapping[str, Module], filename: str) -> Path:
    """Dump the assembled schedule to ``filename`` (``.json`` is appended if missing)."""
    path = Path(filename)
    if path.suffix != ".json":
        path = path.with_name(path.name + ".json")
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {module_id: module.to_dict() for module_id, module in modules.items()}
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    logging.info("Wrote %d modules to %s", len(payload), path)
    return path
