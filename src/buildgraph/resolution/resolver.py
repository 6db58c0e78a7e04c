"""Conflict resolution across the transitive dependency graph.

Given the requests a module makes in one configuration, the resolver:

1. drops every coordinate matching an exclusion (its dependencies are never
   visited),
2. walks the transitive closure using the metadata of the *selected* version
   of each library, repeating the walk until the selection is stable (versions
   requested in an earlier pass stay requested, so selections only move up),
3. selects the highest requested version per coordinate,
4. replaces it with the forced version when a forced rule matches.

Forced rules are validated up front: two rules that force different versions
of one coordinate at the same scope and level raise ``ConflictError``.
"""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Mapping

from buildgraph.config import DEFAULT_CONFIGURATION
from buildgraph.errors import ConflictError
from buildgraph.logging import get_logger
from buildgraph.models.coordinates import (
    Coordinate,
    ExclusionRule,
    ForcedVersionRule,
    ResolvedRequest,
)
from buildgraph.resolution.metadata import MetadataIndex
from buildgraph.resolution.versions import compare_versions, highest_version

logger = get_logger(__name__)


class SelectionReason(Enum):
    """Why a version was selected for a coordinate."""

    REQUESTED = "requested"
    """Only one version was requested"""

    HIGHEST = "highest"
    """Several versions were requested; the highest won"""

    FORCED = "forced"
    """A forced version rule overrode the requests"""


@dataclass(frozen=True)
class Selection:
    """The outcome for one coordinate."""

    coordinate: Coordinate
    version: str
    reason: SelectionReason
    requested: tuple[str, ...] = ()


@dataclass
class Resolution:
    """Final versions for one configuration scope."""

    configuration: str
    selections: dict[Coordinate, Selection] = field(default_factory=dict)
    excluded: set[Coordinate] = field(default_factory=set)

    @property
    def versions(self) -> dict[Coordinate, str]:
        """Exactly one concrete version per coordinate."""
        return {c: s.version for c, s in sorted(self.selections.items())}

    def __len__(self) -> int:
        return len(self.selections)


def validate_forced_rules(rules: Iterable[ForcedVersionRule]) -> None:
    """Reject rule sets where two rules disagree at the same scope and level.

    Equivalent spellings of one version (``1.0`` and ``1.0.0``) do not conflict.

    Raises:
        ConflictError: On the first disagreeing group, in coordinate order
    """
    groups: dict[tuple[Coordinate, str, str | None], list[str]] = defaultdict(list)
    for rule in rules:
        groups[(rule.coordinate, rule.scope, rule.declared_by)].append(rule.version)

    for (coordinate, scope, _), versions in sorted(groups.items(), key=lambda kv: str(kv[0][0])):
        first = versions[0]
        if any(compare_versions(first, other) != 0 for other in versions[1:]):
            raise ConflictError(str(coordinate), scope, versions)


def winning_rule(
    rules: Iterable[ForcedVersionRule], coordinate: Coordinate, configuration: str
) -> ForcedVersionRule | None:
    """The most specific forced rule for a coordinate in a configuration."""
    matching = [r for r in rules if r.coordinate == coordinate and r.applies_to(configuration)]
    if not matching:
        return None
    return max(matching, key=lambda r: r.specificity)


class ConflictResolver:
    """Reconciles requested versions into one version per coordinate."""

    def __init__(self, metadata: MetadataIndex | None = None):
        """Initialize the resolver.

        Args:
            metadata: Transitive dependency metadata. Without it only direct
                requests are considered.
        """
        self.metadata = metadata or MetadataIndex()

    def reconcile(
        self,
        module_deps: Iterable[ResolvedRequest],
        forced_rules: Iterable[ForcedVersionRule] = (),
        exclusions: Iterable[ExclusionRule] = (),
        configuration: str = DEFAULT_CONFIGURATION,
        floors: Mapping[Coordinate, str] | None = None,
        pins: Mapping[Coordinate, str] | None = None,
    ) -> Resolution:
        """Resolve final versions for one configuration.

        Args:
            module_deps: Direct requests with concrete versions
            forced_rules: All forced rules in scope; those not applying to
                ``configuration`` are ignored after validation
            exclusions: Exclusion rules; those not applying are ignored
            configuration: Configuration being resolved
            floors: Versions selected elsewhere in the workspace. A reachable
                coordinate never resolves below its floor.
            pins: Versions forced elsewhere in the workspace. They apply to
                reachable coordinates that no local rule forces.

        Returns:
            Resolution with one selection per reachable coordinate

        Raises:
            ConflictError: If two forced rules disagree at the same scope
        """
        rules = list(forced_rules)
        validate_forced_rules(rules)
        active_rules = [r for r in rules if r.applies_to(configuration)]
        active_exclusions = [e for e in exclusions if e.applies_to(configuration)]
        direct = [r for r in module_deps if r.configuration == configuration]
        floors = floors or {}
        pins = pins or {}

        def select(coordinate: Coordinate, versions: set[str]) -> Selection:
            candidates = set(versions)
            if coordinate in floors:
                candidates.add(floors[coordinate])
            rule = winning_rule(active_rules, coordinate, configuration)
            if rule is not None:
                return Selection(coordinate, rule.version, SelectionReason.FORCED, tuple(sorted(versions)))
            if coordinate in pins:
                return Selection(coordinate, pins[coordinate], SelectionReason.FORCED, tuple(sorted(versions)))
            return _highest(coordinate, candidates, tuple(sorted(versions)))

        # Requested versions only accumulate across passes, so a selection
        # never moves down and the walk settles
        history: dict[Coordinate, set[str]] = defaultdict(set)
        previous: dict[Coordinate, Selection] = {}
        passes = 0
        while True:
            passes += 1
            current, excluded = self._walk(direct, previous, history, active_exclusions, select)
            if current == previous:
                logger.debug(
                    f"Resolved {len(current)} coordinates for '{configuration}' in {passes} pass(es)"
                )
                return Resolution(configuration=configuration, selections=current, excluded=excluded)
            previous = current

    def _walk(
        self,
        direct: list[ResolvedRequest],
        previous: dict[Coordinate, Selection],
        history: dict[Coordinate, set[str]],
        exclusions: list[ExclusionRule],
        select: Callable[[Coordinate, set[str]], Selection],
    ) -> tuple[dict[Coordinate, Selection], set[Coordinate]]:
        excluded: set[Coordinate] = set()
        queue: deque[Coordinate] = deque()

        def request(coordinate: Coordinate, version: str) -> None:
            if any(e.matches(coordinate) for e in exclusions):
                excluded.add(coordinate)
                return
            history[coordinate].add(version)
            queue.append(coordinate)

        for r in sorted(direct, key=lambda r: (r.coordinate, r.version)):
            request(r.coordinate, r.version)

        visited: set[Coordinate] = set()
        while queue:
            coordinate = queue.popleft()
            if coordinate in visited:
                continue
            visited.add(coordinate)

            if coordinate in previous:
                version = previous[coordinate].version
            else:
                version = select(coordinate, history[coordinate]).version

            for dep_coordinate, dep_version in self.metadata.dependencies_of(coordinate, version):
                request(dep_coordinate, dep_version)

        selections = {coordinate: select(coordinate, history[coordinate]) for coordinate in visited}
        return selections, excluded


def _highest(coordinate: Coordinate, candidates: set[str], requested: tuple[str, ...]) -> Selection:
    distinct: list[str] = []
    for version in sorted(candidates):
        if not any(compare_versions(version, seen) == 0 for seen in distinct):
            distinct.append(version)
    reason = SelectionReason.HIGHEST if len(distinct) > 1 else SelectionReason.REQUESTED
    return Selection(coordinate, highest_version(candidates), reason, requested)
