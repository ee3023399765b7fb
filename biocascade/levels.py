"""Level registry: the fixed set of biological levels and their channels.

A level is one layer of the installation (predator, flock, ... molecular).
Each level owns an ordered list of named numeric channels ("data points")
shown next to its clip. The registry is built once from configuration and
never changes during a run.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, NamedTuple, Sequence, Tuple

from biocascade.exceptions import ConfigurationError


class DataPoint(NamedTuple):
    """Identifies one numeric channel, e.g. ``DataPoint("predator", "Hunger")``.

    Being a tuple, it compares and hashes equal to ``("predator", "Hunger")``
    so plain tuples work as lookup keys too.
    """

    level_id: str
    name: str

    def __str__(self) -> str:
        return f"{self.level_id}.{self.name}"


@dataclass(frozen=True)
class LevelDefinition:
    """Static description of one level.

    Attributes:
        level_id: Identifier used everywhere else (``"predator"``)
        title: Display title (``"PREDATOR"``)
        subtitle: One-line description shown under the title
        scale: Display scale unit of the layer (``"~1 m"``)
        data_points: Ordered channel names
        units: Optional display unit per channel name
    """

    level_id: str
    title: str
    subtitle: str
    data_points: Tuple[str, ...]
    scale: str = ""
    units: Dict[str, str] = field(default_factory=dict)

    def channels(self) -> List[DataPoint]:
        return [DataPoint(self.level_id, name) for name in self.data_points]

    def unit_for(self, name: str) -> str:
        return self.units.get(name, "")


class LevelRegistry:
    """Ordered, immutable collection of level definitions.

    Iteration order is the display order (top row first) and the order in
    which levels are evaluated.
    """

    def __init__(self, levels: Sequence[LevelDefinition]) -> None:
        if not levels:
            raise ConfigurationError("At least one level must be configured")

        self._levels: Dict[str, LevelDefinition] = {}
        for level in levels:
            if level.level_id in self._levels:
                raise ConfigurationError(f"Duplicate level id: {level.level_id!r}")
            if not level.data_points:
                raise ConfigurationError(f"Level {level.level_id!r} has no data points")
            if len(set(level.data_points)) != len(level.data_points):
                raise ConfigurationError(f"Level {level.level_id!r} has duplicate data points")
            self._levels[level.level_id] = level

        self._data_points: Tuple[DataPoint, ...] = tuple(
            point for level in self._levels.values() for point in level.channels()
        )

    def __iter__(self) -> Iterator[LevelDefinition]:
        return iter(self._levels.values())

    def __len__(self) -> int:
        return len(self._levels)

    def __contains__(self, level_id: object) -> bool:
        return level_id in self._levels

    @property
    def level_ids(self) -> List[str]:
        return list(self._levels)

    @property
    def data_points(self) -> Tuple[DataPoint, ...]:
        """All channels in display order."""
        return self._data_points

    def get(self, level_id: str) -> LevelDefinition:
        """Look up a level, raising ConfigurationError if it does not exist."""
        try:
            return self._levels[level_id]
        except KeyError:
            raise ConfigurationError(
                f"Unknown level {level_id!r}. Known levels: {self.level_ids}"
            ) from None

    def has_data_point(self, level_id: str, name: str) -> bool:
        level = self._levels.get(level_id)
        return level is not None and name in level.data_points

    def require_data_point(self, level_id: str, name: str, context: str = "") -> DataPoint:
        """Validate a ``(level, channel)`` reference made by configuration.

        Args:
            level_id: Level the channel belongs to
            name: Channel name
            context: Description of the referencing rule, for the error message

        Returns:
            The matching DataPoint

        Raises:
            ConfigurationError: If the level or channel does not exist
        """
        prefix = f"{context}: " if context else ""
        if level_id not in self._levels:
            raise ConfigurationError(
                f"{prefix}unknown level {level_id!r}. Known levels: {self.level_ids}"
            )
        if name not in self._levels[level_id].data_points:
            raise ConfigurationError(
                f"{prefix}level {level_id!r} has no data point {name!r}. "
                f"Known data points: {list(self._levels[level_id].data_points)}"
            )
        return DataPoint(level_id, name)
