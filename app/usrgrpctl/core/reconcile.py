"""Post-write reconciliation.

After a privileged change (or a refused one) the reconciler loads a fresh
snapshot, re-derives the search views and maps the previous selection onto
the new data. A failed reload keeps the previous snapshot.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from usrgrpctl.core.errors import SourceUnavailableError
from usrgrpctl.core.search import SearchView, ViewFilter, build_view, clamp_index
from usrgrpctl.models.account import EntityKind
from usrgrpctl.models.snapshot import DirectorySnapshot
from usrgrpctl.scanners.directory import DirectoryScanner

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Selection:
    """Selected row of one view.

    Attributes:
        name: Name of the selected entity, if any.
        index: Position of the selected row.
    """

    name: str | None = None
    index: int = 0


@dataclass(frozen=True, slots=True)
class Reconciliation:
    """Outcome of a reconciliation pass.

    Attributes:
        snapshot: Snapshot to publish (the previous one if reloading failed).
        views: Recomputed view per entity kind.
        selection: Remapped selection per entity kind.
        error: Reload failure, if the previous snapshot was kept.
    """

    snapshot: DirectorySnapshot
    views: Mapping[EntityKind, SearchView]
    selection: Mapping[EntityKind, Selection]
    error: SourceUnavailableError | None = field(default=None)

    @property
    def reloaded(self) -> bool:
        """Check if a new snapshot was loaded."""
        return self.error is None


def remap_selection(view: SearchView, previous: Selection, follow: str | None = None) -> Selection:
    """Map a selection onto a recomputed view.

    The followed name wins (a renamed or created entity), then the
    previously selected name; otherwise the old index is clamped.
    """
    for name in (follow, previous.name):
        if name is None:
            continue
        index = view.index_of(name)
        if index is not None:
            return Selection(name=name, index=index)
    index = clamp_index(previous.index, len(view))
    return Selection(name=view.name_at(index), index=index)


class Reconciler:
    """Reloads the snapshot and re-derives all read-side views."""

    def __init__(self, scanner: DirectoryScanner) -> None:
        self._scanner = scanner

    def reconcile(
        self,
        previous: DirectorySnapshot | None,
        queries: Mapping[EntityKind, str],
        filters: Mapping[EntityKind, ViewFilter],
        selected: Mapping[EntityKind, Selection],
        follow: Mapping[EntityKind, str] | None = None,
    ) -> Reconciliation:
        """Load a new snapshot and recompute views and selection.

        Args:
            previous: Currently published snapshot (None before the first load).
            queries: Query per entity kind.
            filters: View filter per entity kind.
            selected: Current selection per entity kind.
            follow: Names the selection should move to when present.

        Returns:
            The reconciliation to publish.

        Raises:
            SourceUnavailableError: If loading fails and there is no previous snapshot.
        """
        error: SourceUnavailableError | None = None
        try:
            snapshot = self._scanner.load()
        except SourceUnavailableError as e:
            if previous is None:
                raise
            logger.warning("Reload failed, keeping snapshot v%d: %s", previous.version, e)
            snapshot = previous
            error = e

        follow = follow or {}
        views: dict[EntityKind, SearchView] = {}
        selection: dict[EntityKind, Selection] = {}
        for kind in EntityKind:
            view = build_view(snapshot, kind, queries.get(kind, ""), filters.get(kind))
            views[kind] = view
            selection[kind] = remap_selection(view, selected.get(kind, Selection()), follow.get(kind))

        return Reconciliation(snapshot=snapshot, views=views, selection=selection, error=error)
