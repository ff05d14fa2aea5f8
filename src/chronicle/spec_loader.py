import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import jsonschema

from . import config
from .errors import ConfigurationError
from .expectations import ExpectationTable
from .models import ItemDescriptor
from .utils import read_json

logger = logging.getLogger(__name__)


@dataclass
class TimelineSpec:
    items: List[ItemDescriptor]
    query_templates: Dict[str, Any]
    item_query_templates: Dict[str, Any]
    expectations: ExpectationTable
    groups: Optional[Any] = None
    options: Optional[Any] = None


def load_schema(path=config.SPEC_SCHEMA_FILE):
    return read_json(path)


def load_global_data(path=config.GLOBAL_DATA_FILE):
    return read_json(path)


def validate_spec(spec, schema=None):
    schema = schema if schema is not None else load_schema()
    validator = jsonschema.Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(spec), key=lambda e: len(list(e.absolute_path)))
    if errors:
        error = errors[0]
        location = "/".join(str(part) for part in error.absolute_path) or "<root>"
        raise ConfigurationError(
            "SCHEMA_VIOLATION",
            f"Spec validation failed at {location}: {error.message}",
            {
                "path": list(error.absolute_path),
                "schema_path": list(error.absolute_schema_path),
                "message": error.message,
            },
        )


def read_spec_file(path):
    try:
        return read_json(path)
    except FileNotFoundError as exc:
        raise ConfigurationError("INVALID_SPEC", f"Spec file not found: {path}", {"path": str(path)}) from exc
    except json.JSONDecodeError as exc:
        details = {"message": exc.msg, "line": exc.lineno, "column": exc.colno}
        raise ConfigurationError("INVALID_SPEC", f"Spec file {path} is not valid JSON.", details) from exc


def build_spec(raw, global_data=None):
    """Validate a decoded spec and merge it over the packaged global templates and expectations."""
    validate_spec(raw)
    global_data = global_data if global_data is not None else load_global_data()
    query_templates = dict(global_data.get("queryTemplates") or {})
    query_templates.update(raw.get("queryTemplates") or {})
    item_query_templates = dict(global_data.get("itemQueryTemplates") or {})
    item_query_templates.update(raw.get("itemQueryTemplates") or {})
    expectations = ExpectationTable(list(raw.get("expectations") or []) + list(global_data.get("expectations") or []))
    return TimelineSpec(
        items=[ItemDescriptor.from_dict(entry) for entry in raw["items"]],
        query_templates=query_templates,
        item_query_templates=item_query_templates,
        expectations=expectations,
        groups=raw.get("groups"),
        options=raw.get("options"),
    )


def load_spec(path, global_data=None):
    logger.info("[+] Fetching using spec '%s'.", path)
    return build_spec(read_spec_file(path), global_data=global_data)
