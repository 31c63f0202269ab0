"""Migration registry: validation, ordering and discovery."""

import importlib.util
from collections import Counter
from collections.abc import Iterable, Iterator
from pathlib import Path

from ..utils.logging import LogContext, RegistryValidationError, get_logger
from .migration import MigrationDefinition, NonTransactional, Transactional

logger = get_logger(__name__, LogContext.REGISTRY)

MIGRATION_ATTRIBUTE = "migration"


def _definition_problems(definition: MigrationDefinition) -> list[str]:
    problems = []
    version = definition.version

    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        problems.append(f"migration version must be > 0, got {version!r}")

    mode = definition.mode
    if mode is None:
        problems.append(
            f"migration {version} must define a transactional "
            "or non-transactional mode"
        )
    elif not isinstance(mode, (Transactional, NonTransactional)):
        problems.append(
            f"migration {version} mode must be Transactional or NonTransactional, "
            f"got {type(mode).__name__}"
        )
    elif not callable(mode.up) or not callable(mode.down):
        problems.append(
            f"migration {version} {mode.label} mode must have both "
            "up and down actions defined"
        )

    return problems


class MigrationRegistry:
    """An ordered collection of migration definitions.

    The registry keeps definitions in the order given; ``ascending()`` and
    ``descending()`` return sorted copies.
    """

    def __init__(self, definitions: Iterable[MigrationDefinition]) -> None:
        self._definitions = list(definitions)

    def __iter__(self) -> Iterator[MigrationDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    @property
    def versions(self) -> list[int]:
        return [definition.version for definition in self._definitions]

    def problems(self) -> list[str]:
        """Collect every validation problem; never stops at the first."""
        if not self._definitions:
            return ["no migrations provided"]

        problems = []
        for definition in self._definitions:
            problems.extend(_definition_problems(definition))

        counts = Counter(self.versions)
        for version in sorted(v for v, n in counts.items() if n > 1):
            problems.append(
                f"migration version {version} is defined {counts[version]} times"
            )

        return problems

    def validate(self) -> None:
        """Raise RegistryValidationError listing every problem found."""
        problems = self.problems()
        if problems:
            logger.error("Migration registry is invalid", problems=problems)
            raise RegistryValidationError(problems)

    def ascending(self) -> list[MigrationDefinition]:
        return sorted(self._definitions, key=lambda d: d.version)

    def descending(self) -> list[MigrationDefinition]:
        return sorted(self._definitions, key=lambda d: d.version, reverse=True)


def _load_definition(migration_file: Path) -> MigrationDefinition:
    module_name = f"schemastep_migration_{migration_file.stem}"
    spec = importlib.util.spec_from_file_location(module_name, migration_file)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot import {migration_file}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    definition = getattr(module, MIGRATION_ATTRIBUTE, None)
    if not isinstance(definition, MigrationDefinition):
        raise AttributeError(
            f"module does not define a {MIGRATION_ATTRIBUTE!r} MigrationDefinition"
        )
    return definition


def load_registry(migrations_dir: Path | str) -> MigrationRegistry:
    """Discover migration modules in a directory.

    Each ``*.py`` file (``__init__.py`` and other dunder files excluded) must
    define a module-level ``migration`` MigrationDefinition. Files that fail
    to load are reported together with any validation problems.

    Args:
        migrations_dir: Directory containing migration modules.

    Returns:
        The validated registry.

    Raises:
        RegistryValidationError: If any file fails to load or the resulting
            registry is invalid.
    """
    migrations_dir = Path(migrations_dir)
    if not migrations_dir.is_dir():
        raise RegistryValidationError(
            [f"migrations directory not found: {migrations_dir}"]
        )

    definitions = []
    load_problems = []
    for migration_file in sorted(migrations_dir.glob("*.py")):
        if migration_file.name.startswith("__"):
            continue
        try:
            definitions.append(_load_definition(migration_file))
        except Exception as e:
            load_problems.append(f"failed to load {migration_file.name}: {e}")

    registry = MigrationRegistry(definitions)
    problems = load_problems + registry.problems()
    if problems:
        logger.error("Migration registry is invalid", problems=problems)
        raise RegistryValidationError(problems)

    logger.debug(
        "Loaded migration registry",
        migrations_dir=str(migrations_dir),
        count=len(registry),
    )
    return registry
