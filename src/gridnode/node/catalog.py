"""Browser catalog snapshot advertised to the hub."""

import json
import logging
import types
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, Mapping, Tuple

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """Raised when a browsers file cannot be read or understood."""


@dataclass(frozen=True)
class CapacityCatalog:
    """
    Immutable snapshot of what this node can serve.

    Taken once at startup; browsers added to the node afterwards are not
    advertised until the process is restarted.
    """

    total: int
    browsers: Mapping[str, FrozenSet[str]] = field(default_factory=dict)

    def __post_init__(self):
        if self.total < 0:
            raise CatalogError(f"Total capacity must be non-negative, got {self.total}")
        object.__setattr__(
            self,
            "browsers",
            types.MappingProxyType(
                {name: frozenset(versions) for name, versions in self.browsers.items()}
            ),
        )

    def __hash__(self):
        return hash((self.total, frozenset(self.browsers.items())))

    def pairs(self) -> Iterator[Tuple[str, str]]:
        """Iterate over every (browser, version) pair."""
        for browser, versions in self.browsers.items():
            for version in versions:
                yield browser, version

    @property
    def version_count(self) -> int:
        """Number of (browser, version) pairs."""
        return sum(len(versions) for versions in self.browsers.values())

    @classmethod
    def from_mapping(
        cls, total: int, browsers: Mapping[str, Iterable[str]]
    ) -> "CapacityCatalog":
        """Create from a plain ``{browser: [versions]}`` mapping."""
        return cls(
            total=total,
            browsers={name: frozenset(str(v) for v in versions) for name, versions in browsers.items()},
        )

    @classmethod
    def from_browsers_file(cls, path: str, total: int) -> "CapacityCatalog":
        """
        Load browser names and versions from a selenoid browsers.json.

        Only the ``versions`` keys of each browser are read; image, port
        and path settings belong to the session engine.

        Args:
            path: Path to browsers.json
            total: Total session capacity of the node

        Raises:
            CatalogError: If the file is missing or malformed
        """
        try:
            with open(Path(path)) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"Cannot load browsers file {path}: {e}") from e

        if not isinstance(data, dict):
            raise CatalogError(f"Browsers file {path} must contain a JSON object")

        browsers: Dict[str, FrozenSet[str]] = {}
        for name, entry in data.items():
            versions = entry.get("versions") if isinstance(entry, dict) else None
            if not isinstance(versions, dict):
                raise CatalogError(f"Browser {name!r} in {path} has no versions map")
            browsers[name] = frozenset(versions)

        catalog = cls(total=total, browsers=browsers)
        logger.info(
            f"Loaded {catalog.version_count} browser versions "
            f"({len(browsers)} browsers) from {path}"
        )
        return catalog
