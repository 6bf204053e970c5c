"""Per-model input tables derived from the command catalog."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from onkyo_sync.catalog import Catalog
from onkyo_sync.exceptions import InvalidInputIndexError
from onkyo_sync.logging_abstraction import get_logger
from onkyo_sync.zones import ZONE_VERBS, Zone

__all__ = [
    "META_TOKEN_MARKERS",
    "InputSource",
    "InputTable",
    "primary_label",
    "resolve_inputs",
]

logger = get_logger(__name__)

# Tokens containing these are selector operations (wrap-around up/down, status query), not inputs
META_TOKEN_MARKERS: tuple[str, ...] = ("UP", "DOWN", "QSTN")


def primary_label(label: str) -> str:
    """First alias of a comma-qualified label ("video2,cbl/sat" -> "video2")."""
    return label.split(",", 1)[0].strip()


@dataclass(frozen=True, slots=True)
class InputSource:
    index: int  # 1-based; 0 is reserved for "no input"
    code: str
    label: str


class InputTable:
    """Ordered, 1-based table of the inputs a device supports."""

    def __init__(self, sources: tuple[InputSource, ...] = ()) -> None:
        self._sources = sources
        self._by_label = {source.label.casefold(): source.index for source in sources}

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[InputSource]:
        return iter(self._sources)

    def __repr__(self) -> str:
        return f"InputTable({[source.label for source in self._sources]!r})"

    @property
    def sources(self) -> tuple[InputSource, ...]:
        return self._sources

    def get(self, index: int) -> InputSource:
        """Return the source at a 1-based index.

        Raises:
            InvalidInputIndexError: If ``index`` is outside ``[1, len(self)]``

        """
        if isinstance(index, bool) or not isinstance(index, int) or not 1 <= index <= len(self._sources):
            raise InvalidInputIndexError(index, len(self._sources))
        return self._sources[index - 1]

    def index_of_label(self, label: str) -> int | None:
        """1-based index of a label (comma qualifiers ignored), or None."""
        return self._by_label.get(primary_label(label).casefold())


def resolve_inputs(catalog: Catalog, model_id: str, zone: Zone = Zone.MAIN) -> InputTable:
    """Build the input table of ``model_id`` from the zone's input-selector values.

    Catalog order is preserved. Entries are skipped when their token is a
    meta operation, when they carry no model family, or when none of their
    families contains the model.
    """
    families = catalog.families_for_model(model_id)
    selector_code = ZONE_VERBS[zone].input_code

    sources: list[InputSource] = []
    seen_labels: set[str] = set()
    for entry in catalog.entries_for_command(zone.value, selector_code):
        code = entry.code
        if any(marker in code for marker in META_TOKEN_MARKERS):
            continue
        if not entry.models:
            continue
        if not entry.models & families:
            continue

        label = primary_label(entry.name)
        if label.casefold() in seen_labels:
            logger.warning(
                "Duplicate input label skipped",
                extra={"model": model_id, "zone": zone.value, "label": label, "code": code},
            )
            continue
        seen_labels.add(label.casefold())
        sources.append(InputSource(index=len(sources) + 1, code=code, label=label))

    if not sources:
        logger.warning(
            "No inputs resolved for model",
            extra={"model": model_id, "zone": zone.value, "families": sorted(families)},
        )
    else:
        logger.debug(
            "Input table resolved",
            extra={"model": model_id, "zone": zone.value, "inputs": len(sources), "families": sorted(families)},
        )
    return InputTable(tuple(sources))
