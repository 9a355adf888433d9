from __future__ import annotations

import importlib
from typing import Any

# Short names accepted wherever a dotted path is expected.
ALIASES = {
    "jsonl": "storefront_crawler.export.jsonl_exporter:JSONLinesExporter",
    "memory": "storefront_crawler.export.memory_exporter:MemoryExporter",
}


def load_symbol(dotted: str) -> Any:
    """
    Load a class or function from a dotted path or a registered alias.
    Supports both "package.module:ClassName" and "package.module.ClassName".
    """
    dotted = ALIASES.get(dotted, dotted)
    if ":" in dotted:
        module_name, symbol_name = dotted.split(":", 1)
    else:
        module_name, symbol_name = dotted.rsplit(".", 1)

    module = importlib.import_module(module_name)
    return getattr(module, symbol_name)
