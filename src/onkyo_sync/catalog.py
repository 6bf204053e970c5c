"""Static eISCP command catalog.

The catalog is loaded once from the bundled YAML database and shared
read-only by every device. It maps each zone's ISCP command codes to their
high-level names, the named values each command accepts, numeric value
ranges, and the model families (modelsets) each value applies to.
"""

from __future__ import annotations

import functools
import itertools
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import cast

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from onkyo_sync.const import ONKYO_CATALOG_PATH
from onkyo_sync.exceptions import CatalogLoadError
from onkyo_sync.logging_abstraction import get_logger

__all__ = [
    "BUNDLED_CATALOG_PATH",
    "Catalog",
    "CatalogEntry",
    "CommandSpec",
    "get_default_catalog",
    "load_catalog",
    "normalize_token",
]

logger = get_logger(__name__)

BUNDLED_CATALOG_PATH = Path(__file__).parent / "data" / "eiscp-commands.yaml"

# "lo,hi" or "lo,default,hi"
_RANGE_TOKEN = re.compile(r"^(-?\d+)(?:,-?\d+)?,(-?\d+)$")
# Upstream YAML sometimes wraps tokens in typographic quotes ("“26”")
_CURLY_QUOTES = str.maketrans("", "", "“”„‟")


def normalize_token(token: str) -> str:
    """Strip typographic quote artifacts and whitespace from a value token."""
    return token.translate(_CURLY_QUOTES).strip()


def _scalar_text(value: object) -> object:
    # YAML 1.1 reads unquoted on/off/yes/no as booleans and bare digits as numbers
    if isinstance(value, bool):
        return "on" if value else "off"
    if isinstance(value, int | float):
        return str(value)
    return value


def _models_of(models: str | list[str] | None) -> frozenset[str]:
    if models is None:
        return frozenset()
    if isinstance(models, str):
        return frozenset((models,))
    return frozenset(models)


class _ValueDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | list[str]
    description: str = ""
    models: str | list[str] | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _name_as_text(cls, value: object) -> object:
        if isinstance(value, list):
            return [_scalar_text(item) for item in cast("list[object]", value)]
        return _scalar_text(value)


class _CommandDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    description: str = ""
    values: dict[str, _ValueDefinition] = {}

    @field_validator("values", mode="before")
    @classmethod
    def _tokens_as_text(cls, value: object) -> object:
        if isinstance(value, dict):
            tokens = cast("dict[object, object]", value)
            return {str(_scalar_text(token)): definition for token, definition in tokens.items()}
        return value


class _CatalogDocument(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    commands: dict[str, dict[str, _CommandDefinition]]
    modelsets: dict[str, list[str]]


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """One named value of one command, e.g. ``main.SLI`` ``01`` = ``video2,cbl/sat``.

    Attributes:
        zone: Zone the command belongs to ("main", "zone2")
        command: ISCP command code ("SLI")
        command_name: High-level command name ("input-selector")
        token: Value token exactly as stored in the database
        name: Display name; aliases joined with ","
        aliases: Individual names, display name first
        models: Model families (modelset names) the value applies to
        description: Free-text description

    """

    zone: str
    command: str
    command_name: str
    token: str
    name: str
    aliases: tuple[str, ...]
    models: frozenset[str]
    description: str = ""

    @property
    def code(self) -> str:
        """Token with quote artifacts removed, as sent on the wire."""
        return normalize_token(self.token)


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """An ISCP command of one zone, with the numeric ranges it accepts.

    ``range_models`` runs parallel to ``ranges`` and holds the modelsets
    each range applies to; an empty set (or a missing item) means every model.
    """

    zone: str
    code: str
    name: str
    description: str = ""
    ranges: tuple[tuple[int, int], ...] = ()
    range_models: tuple[frozenset[str], ...] = ()

    def accepts(self, number: int) -> bool:
        return any(low <= number <= high for low, high in self.ranges)

    @property
    def maximum(self) -> int | None:
        """Upper bound of the widest numeric range, if the command has one."""
        if not self.ranges:
            return None
        return max(high for _, high in self.ranges)

    def maximum_for(self, families: Iterable[str]) -> int | None:
        """Upper bound over the ranges that apply to a model in ``families``.

        Falls back to ``maximum`` when no range is tagged with one of them.
        """
        wanted = frozenset(families)
        highs = [
            high
            for (_low, high), models in itertools.zip_longest(self.ranges, self.range_models, fillvalue=frozenset())
            if not models or models & wanted
        ]
        return max(highs) if highs else self.maximum


class Catalog:
    """Immutable, indexed view of the command database."""

    def __init__(
        self,
        commands: Iterable[CommandSpec],
        entries: Iterable[CatalogEntry],
        modelsets: Mapping[str, Sequence[str]],
        source: str = "<memory>",
    ) -> None:
        self.source: str = source
        self._commands: tuple[CommandSpec, ...] = tuple(commands)
        self._entries: tuple[CatalogEntry, ...] = tuple(entries)
        self._modelsets: Mapping[str, tuple[str, ...]] = MappingProxyType(
            {family: tuple(members) for family, members in modelsets.items()},
        )

        by_code: dict[tuple[str, str], CommandSpec] = {}
        by_name: dict[tuple[str, str], CommandSpec] = {}
        for spec in self._commands:
            by_code[(spec.zone, spec.code)] = spec
            by_name[(spec.zone, spec.name.casefold())] = spec
        self._by_code: Mapping[tuple[str, str], CommandSpec] = MappingProxyType(by_code)
        self._by_name: Mapping[tuple[str, str], CommandSpec] = MappingProxyType(by_name)

        grouped: dict[tuple[str, str], list[CatalogEntry]] = {}
        for entry in self._entries:
            grouped.setdefault((entry.zone, entry.command), []).append(entry)
        self._by_command: Mapping[tuple[str, str], tuple[CatalogEntry, ...]] = MappingProxyType(
            {key: tuple(values) for key, values in grouped.items()},
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Catalog(source={self.source!r}, commands={len(self._commands)}, entries={len(self._entries)})"

    @property
    def entries(self) -> tuple[CatalogEntry, ...]:
        return self._entries

    @property
    def commands(self) -> tuple[CommandSpec, ...]:
        return self._commands

    @property
    def modelsets(self) -> Mapping[str, tuple[str, ...]]:
        return self._modelsets

    @property
    def zones(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(spec.zone for spec in self._commands))

    def command(self, zone: str, code: str) -> CommandSpec | None:
        return self._by_code.get((zone, code.upper()))

    def command_by_name(self, zone: str, name: str) -> CommandSpec | None:
        return self._by_name.get((zone, name.casefold()))

    def command_for_code(self, code: str) -> CommandSpec | None:
        """Find a command by ISCP code in any zone (codes are unique across zones)."""
        code = code.upper()
        for spec in self._commands:
            if spec.code == code:
                return spec
        return None

    def entries_for_command(self, zone: str, code: str) -> tuple[CatalogEntry, ...]:
        """All values of one command, in catalog order."""
        return self._by_command.get((zone, code.upper()), ())

    def entries_for_token(self, token: str) -> tuple[CatalogEntry, ...]:
        """All entries whose normalized token equals ``token``."""
        wanted = normalize_token(token).upper()
        return tuple(entry for entry in self._entries if entry.code.upper() == wanted)

    def entries_for_family(self, family: str) -> tuple[CatalogEntry, ...]:
        return tuple(entry for entry in self._entries if family in entry.models)

    def families_for_model(self, model_id: str) -> frozenset[str]:
        """Modelsets with a member containing ``model_id``.

        Substring matching tolerates regional suffixes such as "TX-NR686(E)".
        """
        if not model_id:
            return frozenset()
        return frozenset(
            family for family, members in self._modelsets.items() if any(model_id in member for member in members)
        )

    def maximum_for_model(self, zone: str, code: str, model_id: str) -> int | None:
        """Upper numeric bound of a command on one model, e.g. 200 for half-dB volume steps."""
        spec = self.command(zone, code)
        if spec is None:
            return None
        return spec.maximum_for(self.families_for_model(model_id))

    def find_value(self, zone: str, code: str, name: str) -> CatalogEntry | None:
        """Find a value of a command by any of its aliases (case-insensitive)."""
        wanted = name.casefold()
        for entry in self.entries_for_command(zone, code):
            if any(alias.casefold() == wanted for alias in entry.aliases):
                return entry
        return None

    def find_token(self, zone: str, code: str, token: str) -> CatalogEntry | None:
        wanted = normalize_token(token).upper()
        for entry in self.entries_for_command(zone, code):
            if entry.code.upper() == wanted:
                return entry
        return None

    @classmethod
    def from_document(cls, document: object, source: str = "<memory>") -> Catalog:
        """Build a catalog from the parsed YAML/JSON document.

        Raises:
            CatalogLoadError: If the document does not match the catalog schema

        """
        try:
            parsed = _CatalogDocument.model_validate(document)
        except ValidationError as e:
            raise CatalogLoadError(source, f"schema validation failed: {e.error_count()} error(s)") from e

        commands: list[CommandSpec] = []
        entries: list[CatalogEntry] = []
        for zone, zone_commands in parsed.commands.items():
            for code, definition in zone_commands.items():
                ranges: list[tuple[int, int]] = []
                range_models: list[frozenset[str]] = []
                for token, value in definition.values.items():
                    match = _RANGE_TOKEN.match(normalize_token(token))
                    if match:
                        ranges.append((int(match.group(1)), int(match.group(2))))
                        range_models.append(_models_of(value.models))
                        continue
                    entries.append(_build_entry(zone, code, definition.name, token, value))
                commands.append(
                    CommandSpec(
                        zone=zone,
                        code=code.upper(),
                        name=definition.name,
                        description=definition.description,
                        ranges=tuple(ranges),
                        range_models=tuple(range_models),
                    ),
                )

        if not commands:
            raise CatalogLoadError(source, "no commands defined")

        return cls(commands, entries, parsed.modelsets, source=source)


def _build_entry(
    zone: str,
    code: str,
    command_name: str,
    token: str,
    value: _ValueDefinition,
) -> CatalogEntry:
    aliases = tuple(value.name) if isinstance(value.name, list) else (value.name,)
    return CatalogEntry(
        zone=zone,
        command=code.upper(),
        command_name=command_name,
        token=token,
        name=",".join(aliases),
        aliases=aliases,
        models=_models_of(value.models),
        description=value.description,
    )


def load_catalog(path: str | Path | None = None) -> Catalog:
    """Load the command catalog from ``path`` (default: bundled database).

    Raises:
        CatalogLoadError: If the file is missing, unreadable, not YAML, or
            does not match the catalog schema

    """
    catalog_path = Path(path) if path is not None else BUNDLED_CATALOG_PATH
    source = str(catalog_path)
    try:
        with catalog_path.open(encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise CatalogLoadError(source, "file not found") from e
    except OSError as e:
        raise CatalogLoadError(source, f"unreadable ({e.strerror})") from e
    except yaml.YAMLError as e:
        raise CatalogLoadError(source, f"invalid YAML: {e}") from e

    catalog = Catalog.from_document(document, source=source)
    logger.debug(
        "Command catalog loaded",
        extra={
            "source": source,
            "commands": len(catalog.commands),
            "entries": len(catalog),
            "modelsets": len(catalog.modelsets),
        },
    )
    return catalog


@functools.cache
def get_default_catalog() -> Catalog:
    """Process-wide catalog, loaded on first use (ONKYO_CATALOG_PATH overrides the bundled file)."""
    return load_catalog(ONKYO_CATALOG_PATH)
