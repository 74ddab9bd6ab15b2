import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from ..exceptions import SourceParseError
from ..models import CatalogFile, Column, TableSchema
from .repo_sync import SchemaRepository

logger = logging.getLogger(__name__)

DEFAULT_COLUMN_TYPE = "TEXT"
SKIPPED_DIRECTORIES = {"node_modules"}


@dataclass(frozen=True)
class VersionedModels:
    """dbt ``version: 2`` document with a ``models`` list."""

    tables: Tuple[TableSchema, ...]


@dataclass(frozen=True)
class KeyedMap:
    """Mapping of table name to an object holding a ``columns`` list."""

    tables: Tuple[TableSchema, ...]


@dataclass(frozen=True)
class Unrecognized:
    reason: str

    @property
    def tables(self) -> Tuple[TableSchema, ...]:
        return ()


ParsedDocument = Union[VersionedModels, KeyedMap, Unrecognized]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _parse_column(entry: Any, type_keys: Tuple[str, ...]) -> Optional[Column]:
    if isinstance(entry, str):
        return Column(name=entry, type=DEFAULT_COLUMN_TYPE, description="")
    if not isinstance(entry, dict) or not entry.get("name"):
        return None
    col_type = next((entry[key] for key in type_keys if entry.get(key)), DEFAULT_COLUMN_TYPE)
    return Column(
        name=_text(entry["name"]),
        type=_text(col_type),
        description=_text(entry.get("description")),
    )


def _parse_columns(table_name: str, entries: Any, type_keys: Tuple[str, ...]) -> Tuple[Column, ...]:
    if not isinstance(entries, list):
        raise SourceParseError(f"Table '{table_name}' has a non-list columns entry")
    columns = []
    for position, entry in enumerate(entries):
        column = _parse_column(entry, type_keys)
        if column is None:
            logger.warning(f"Skipping unnamed column #{position} of table '{table_name}'")
            continue
        columns.append(column)
    return tuple(columns)


def _parse_versioned_models(data: Dict[str, Any]) -> ParsedDocument:
    models = data.get("models")
    if not isinstance(models, list):
        return Unrecognized("version 2 document without a models list")

    tables = []
    for model in models:
        if not isinstance(model, dict):
            raise SourceParseError(f"Model entry must be a mapping, got {type(model).__name__}")
        name = model.get("name")
        if not name or model.get("columns") is None:
            continue
        docs = model.get("docs") if isinstance(model.get("docs"), dict) else {}
        docs_meta = docs.get("meta") if isinstance(docs.get("meta"), dict) else {}
        tables.append(TableSchema(
            table_name=_text(name),
            description=_text(model.get("description") or docs_meta.get("description")),
            columns=_parse_columns(_text(name), model["columns"], ("data_type", "dataType")),
        ))
    return VersionedModels(tables=tuple(tables))


def _parse_keyed_map(data: Dict[str, Any]) -> ParsedDocument:
    tables = []
    for key, value in data.items():
        if not isinstance(value, dict) or value.get("columns") is None:
            continue
        tables.append(TableSchema(
            table_name=_text(key),
            description=_text(value.get("description")),
            columns=_parse_columns(_text(key), value["columns"], ("type", "data_type")),
        ))
    if not tables:
        return Unrecognized("no top-level entry with a columns list")
    return KeyedMap(tables=tuple(tables))


def parse_document(data: Any) -> ParsedDocument:
    """
    Classify one parsed YAML document and extract its tables.

    Shape A (``version: 2`` with ``models``) is tried first, then Shape B
    (top-level mapping of table name to ``{columns: [...]}``). Anything else
    is ``Unrecognized`` and contributes no tables.

    Raises:
        SourceParseError: a recognized document contains a malformed entry
    """
    if not isinstance(data, dict):
        return Unrecognized("document is not a mapping")
    try:
        if data.get("version") == 2:
            return _parse_versioned_models(data)
        return _parse_keyed_map(data)
    except ValidationError as e:
        raise SourceParseError(f"Invalid table definition: {e}") from e


def find_yaml_files(root: Union[str, Path]) -> List[Path]:
    """Find all YAML files under ``root``, skipping hidden and vendored directories."""
    root = Path(root)
    if not root.is_dir():
        return []

    files = []
    for path in root.rglob("*"):
        relative_parts = path.relative_to(root).parts
        if any(part.startswith(".") or part in SKIPPED_DIRECTORIES for part in relative_parts[:-1]):
            continue
        if path.is_file() and path.suffix in (".yml", ".yaml"):
            files.append(path)
    return sorted(files)


def parse_file(path: Union[str, Path]) -> List[TableSchema]:
    """
    Parse a single schema file.

    A file that cannot be read or normalized is logged and yields no tables.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        parsed = parse_document(data)
    except (OSError, UnicodeDecodeError, yaml.YAMLError, SourceParseError) as e:
        logger.warning(f"Error parsing {path}: {e}")
        return []

    if isinstance(parsed, Unrecognized):
        logger.debug(f"Skipping {path}: {parsed.reason}")
    return list(parsed.tables)


def load_documentation(docs_dir: Union[str, Path]) -> Dict[str, Dict[str, Any]]:
    """
    Load documentation overrides keyed by table name.

    Args:
        docs_dir: Directory of YAML documentation files

    Returns:
        Mapping of table name to ``{description, content}`` entries
    """
    documentation: Dict[str, Dict[str, Any]] = {}
    if not Path(docs_dir).is_dir():
        logger.info(f"Documentation directory {docs_dir} not found, skipping")
        return documentation

    for path in find_yaml_files(docs_dir):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.warning(f"Error reading doc file {path}: {e}")
            continue

        if not isinstance(data, dict):
            continue
        for key, value in data.items():
            if isinstance(value, dict):
                documentation[str(key)] = value
            elif isinstance(value, str):
                documentation[str(key)] = {"content": value}

    return documentation


def merge_documentation(schema: TableSchema, documentation: Dict[str, Dict[str, Any]]) -> TableSchema:
    doc = documentation.get(schema.table_name) or {}
    description = schema.description or _text(doc.get("description")) or _text(doc.get("content"))
    return schema.model_copy(update={
        "description": description,
        "full_description": _text(doc.get("content")) or description,
    })


def normalize(
    paths: Iterable[Union[str, Path]],
    documentation: Optional[Dict[str, Dict[str, Any]]] = None
) -> List[TableSchema]:
    """
    Normalize schema files into a catalog with one entry per table name.

    A table defined in several files keeps the definition of the last file
    parsed; its position in the catalog is where it was first seen.
    """
    catalog: Dict[str, TableSchema] = {}
    for path in paths:
        for schema in parse_file(path):
            if schema.table_name in catalog:
                logger.debug(f"Table {schema.table_name} redefined in {path}, keeping the later definition")
            catalog[schema.table_name] = schema

    documentation = documentation or {}
    return [merge_documentation(schema, documentation) for schema in catalog.values()]


def save_catalog(catalog: List[TableSchema], file_path: Union[str, Path]) -> None:
    """
    Save the catalog to a JSON file.

    Args:
        catalog: Normalized table schemas
        file_path: Output file path
    """
    document = CatalogFile(
        timestamp=datetime.now(timezone.utc).isoformat(),
        total_tables=len(catalog),
        schemas=list(catalog),
    )
    with open(file_path, "w", encoding="utf-8") as f:
        json.dump(document.model_dump(), f, indent=2, ensure_ascii=False)
    logger.info(f"Catalog with {len(catalog)} tables saved to {file_path}")


def load_catalog(file_path: Union[str, Path]) -> List[TableSchema]:
    """
    Load the catalog written by ``save_catalog``.

    Raises:
        ValueError: the file is malformed or lists a table twice
    """
    with open(file_path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    try:
        document = CatalogFile.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Invalid catalog file {file_path}: {e}") from e

    seen = set()
    for schema in document.schemas:
        if schema.table_name in seen:
            raise ValueError(f"Duplicate table '{schema.table_name}' in catalog {file_path}")
        seen.add(schema.table_name)

    logger.info(f"Catalog loaded from {file_path}: {len(document.schemas)} tables")
    return document.schemas


class SchemaParser:
    """Extracts the table catalog from the Tuva project repository."""

    def __init__(self, repository: Optional[SchemaRepository] = None):
        self.logger = logging.getLogger(__name__)
        self.repository = repository or SchemaRepository()

    def parse(self, pull: bool = True) -> List[TableSchema]:
        """
        Sync the repository and normalize its model files.

        Args:
            pull: Clone or pull before parsing

        Returns:
            Normalized catalog
        """
        if pull:
            self.repository.clone_or_pull()

        models_dir = self.repository.models_dir
        if not models_dir.is_dir():
            raise SourceParseError(
                f"Models directory not found in {self.repository.path}",
                stage="schema_sync"
            )

        yaml_files = find_yaml_files(models_dir)
        self.logger.info(f"Found {len(yaml_files)} YAML files in {models_dir}")

        documentation = load_documentation(self.repository.docs_dir)
        catalog = normalize(yaml_files, documentation)
        self.logger.info(f"Parsed {len(catalog)} table schemas")
        return catalog
