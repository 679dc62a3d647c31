"""Organization hierarchy resolution.

Walks parent links from the requester's organization up to the root.
The walk is iterative and bounded: a revisited id or a path longer than
MAX_HIERARCHY_DEPTH stops it with a diagnostic instead of looping.
"""
import logging
from dataclasses import dataclass, field

from church_approvals.core.config import settings
from church_approvals.core.exceptions import OrganizationNotFoundError
from church_approvals.services.directory import OrganizationDirectory, OrganizationNode

logger = logging.getLogger(__name__)


@dataclass
class OrganizationPath:
    """Nodes ordered self first, root last. Never empty."""

    nodes: list[OrganizationNode]
    diagnostics: list[str] = field(default_factory=list)

    @property
    def own(self) -> OrganizationNode:
        return self.nodes[0]

    @property
    def parent(self) -> OrganizationNode:
        return self.nodes[1] if len(self.nodes) > 1 else self.nodes[0]

    @property
    def root(self) -> OrganizationNode:
        return self.nodes[-1]

    def index_of(self, organization_id: str) -> int | None:
        for i, node in enumerate(self.nodes):
            if node.id == organization_id:
                return i
        return None

    def __len__(self) -> int:
        return len(self.nodes)


def resolve_organization_path(
    directory: OrganizationDirectory,
    organization_id: str,
    max_depth: int | None = None,
) -> OrganizationPath:
    """Return the ancestor path of ``organization_id``.

    Raises:
        OrganizationNotFoundError: the starting organization does not exist.
        DirectoryLookupError: propagated from the directory.
    """
    if max_depth is None:
        max_depth = settings.MAX_HIERARCHY_DEPTH

    start = directory.get_organization(organization_id)
    if start is None:
        raise OrganizationNotFoundError(organization_id)

    nodes = [start]
    seen = {start.id}
    diagnostics: list[str] = []
    parent_id = start.parent_id

    while parent_id is not None:
        if parent_id in seen:
            msg = (
                f"Organization hierarchy of {organization_id} contains a cycle at "
                f"{parent_id}; path truncated at {nodes[-1].name}."
            )
            logger.warning(msg)
            diagnostics.append(msg)
            break
        if len(nodes) >= max_depth:
            msg = (
                f"Organization hierarchy of {organization_id} exceeds {max_depth} levels; "
                f"path truncated at {nodes[-1].name}."
            )
            logger.warning(msg)
            diagnostics.append(msg)
            break

        parent = directory.get_organization(parent_id)
        if parent is None:
            msg = (
                f"Parent organization {parent_id} of {nodes[-1].name} not found; "
                f"treating {nodes[-1].name} as the root."
            )
            logger.warning(msg)
            diagnostics.append(msg)
            break

        nodes.append(parent)
        seen.add(parent.id)
        parent_id = parent.parent_id

    logger.debug(
        "Resolved hierarchy for %s: %s",
        organization_id, " -> ".join(node.name for node in nodes),
    )
    return OrganizationPath(nodes=nodes, diagnostics=diagnostics)
