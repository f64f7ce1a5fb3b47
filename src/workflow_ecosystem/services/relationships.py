"""Typed relationship graph over workflow ids.

``RelationshipManager`` keeps every structure as a map keyed by id:

- outgoing edges per source, keyed by ``(target_id, type)``,
- the dependency adjacency (``inherits``, ``composes``, ``depends_on``),
- the ancestor chain of every workflow that inherits from another,
- compositions and the capability profile of registered workflows.

The node set is every registered workflow plus every edge endpoint.

All mutations run under one graph lock.  Graph-wide queries copy the
structures they need under that lock and iterate over the copy, so a cycle
scan never observes a half-applied edge.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from workflow_ecosystem.domain.enums import (
    EnhancementType,
    ExecutionStrategy,
    PropagationStrategy,
    RelationshipType,
    RiskLevel,
)
from workflow_ecosystem.domain.events import (
    CompositionCreated,
    DomainEvent,
    EnhancementPropagated,
    RelationshipCreated,
    RelationshipsOptimized,
)
from workflow_ecosystem.domain.values import (
    CollaborationOpportunities,
    EcosystemOverview,
    Enhancement,
    NetworkMetrics,
    Relationship,
    RelationshipOptimization,
    ResourceAllocation,
    WorkflowComposition,
    WorkflowStep,
)
from workflow_ecosystem.infrastructure.config import RelationshipConfig
from workflow_ecosystem.services.scoring import clamp

logger = logging.getLogger(__name__)

# Enhancements at these risk levels never propagate automatically.
_BLOCKED_RISKS = frozenset({RiskLevel.HIGH, RiskLevel.CRITICAL})


@dataclass(frozen=True)
class _Snapshot:
    """Consistent copy of the graph taken under the graph lock."""

    nodes: tuple[str, ...]
    edges: dict[str, tuple[Relationship, ...]]
    dependencies: dict[str, frozenset[str]]
    capabilities: dict[str, frozenset[str]]
    requirements: dict[str, frozenset[str]]

    def outgoing(self, workflow_id: str) -> tuple[Relationship, ...]:
        return self.edges.get(workflow_id, ())

    def incoming_sources(self, workflow_id: str) -> set[str]:
        return {
            source
            for source, links in self.edges.items()
            if any(link.target_id == workflow_id for link in links)
        }

    def targets(self, workflow_id: str) -> set[str]:
        return {link.target_id for link in self.outgoing(workflow_id)}

    def has_direct_edge(self, a: str, b: str) -> bool:
        return b in self.targets(a) or a in self.targets(b)


# ===================================================================== #
#  Graph algorithms (pure, over snapshots)                               #
# ===================================================================== #

def detect_cycle(start: str, adjacency: Mapping[str, Iterable[str]]) -> bool:
    """Depth-first search with a recursion stack.

    Returns ``True`` as soon as a node already on the current path is
    reached again, i.e. iff the subgraph reachable from *start* has a cycle.
    """
    on_path: set[str] = {start}
    visited: set[str] = {start}
    stack: list[tuple[str, list[str]]] = [(start, list(adjacency.get(start, ())))]
    while stack:
        node, pending = stack[-1]
        if not pending:
            stack.pop()
            on_path.discard(node)
            continue
        nxt = pending.pop()
        if nxt in on_path:
            return True
        if nxt not in visited:
            visited.add(nxt)
            on_path.add(nxt)
            stack.append((nxt, list(adjacency.get(nxt, ()))))
    return False


def reachable(start: str, goal: str, adjacency: Mapping[str, Iterable[str]]) -> bool:
    """True if *goal* can be reached from *start* along dependency edges."""
    seen: set[str] = set()
    frontier = [start]
    while frontier:
        node = frontier.pop()
        if node == goal:
            return True
        if node in seen:
            continue
        seen.add(node)
        frontier.extend(adjacency.get(node, ()))
    return False


class RelationshipManager:
    """Workflow relationship graph with composition and inheritance.

    Parameters
    ----------
    config:
        Thresholds for hub detection, propagation and optimization.
    event_bus:
        Optional ``EventBus`` receiving relationship events.
    """

    def __init__(
        self,
        config: RelationshipConfig | None = None,
        event_bus: Any = None,
    ) -> None:
        self._config = config or RelationshipConfig()
        self._config.validate()
        self._event_bus = event_bus
        self._lock = threading.RLock()
        self._nodes: dict[str, None] = {}  # insertion-ordered set
        self._edges: dict[str, dict[tuple[str, RelationshipType], Relationship]] = {}
        self._dependencies: dict[str, set[str]] = {}
        self._parents: dict[str, str] = {}
        self._chains: dict[str, list[str]] = {}
        self._compositions: dict[str, WorkflowComposition] = {}
        self._capabilities: dict[str, frozenset[str]] = {}
        self._requirements: dict[str, frozenset[str]] = {}
        self._applied: dict[str, list[Enhancement]] = {}

    @property
    def config(self) -> RelationshipConfig:
        return self._config

    # -- registration & edges -------------------------------------------------

    def register_workflow(
        self,
        workflow_id: str,
        capabilities: Iterable[str] = (),
        requirements: Iterable[str] = (),
    ) -> None:
        """Add *workflow_id* to the graph with its capability profile.

        Registering again replaces the profile.
        """
        with self._lock:
            self._nodes.setdefault(workflow_id, None)
            self._capabilities[workflow_id] = frozenset(capabilities)
            self._requirements[workflow_id] = frozenset(requirements)

    def create_relationship(
        self,
        source_id: str,
        target_id: str,
        relationship_type: RelationshipType | str,
        strength: float = 1.0,
        metadata: Mapping[str, Any] | None = None,
    ) -> Relationship:
        """Create the edge ``source -> target`` or replace its strength.

        Strength is clamped to [0, 1].  Dependency types also feed the
        dependency adjacency, and ``inherits`` recomputes the ancestor chain
        of the child and of everything inheriting from it.
        """
        rtype = RelationshipType(relationship_type)
        link = Relationship(
            source_id=source_id,
            target_id=target_id,
            type=rtype,
            strength=clamp(strength),
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._nodes.setdefault(source_id, None)
            self._nodes.setdefault(target_id, None)
            links = self._edges.setdefault(source_id, {})
            replaced = link.key in links
            links[link.key] = link
            if rtype.is_dependency:
                self._dependencies.setdefault(source_id, set()).add(target_id)
            if rtype is RelationshipType.INHERITS:
                self._parents[source_id] = target_id
                self._refresh_chain(source_id)

        logger.debug(
            "%s edge %s -[%s]-> %s (strength=%.2f)",
            "Replaced" if replaced else "Created",
            source_id, rtype.value, target_id, link.strength,
        )
        self._publish(RelationshipCreated(
            source_id=source_id,
            target_id=target_id,
            relationship_type=rtype,
            strength=link.strength,
            replaced=replaced,
        ))
        return link

    def get_relationships(self, workflow_id: str) -> list[Relationship]:
        with self._lock:
            return list(self._edges.get(workflow_id, {}).values())

    def get_related_workflows(
        self,
        workflow_id: str,
        relationship_type: RelationshipType | str,
    ) -> list[str]:
        """Targets of the outgoing edges of the given type."""
        rtype = RelationshipType(relationship_type)
        return [r.target_id for r in self.get_relationships(workflow_id) if r.type is rtype]

    def get_dependent_workflows(self, workflow_id: str) -> list[str]:
        """Sources holding a dependency-type edge to *workflow_id*."""
        with self._lock:
            edges = {src: list(links.values()) for src, links in self._edges.items()}
        return [
            source
            for source, links in edges.items()
            if any(l.target_id == workflow_id and l.type.is_dependency for l in links)
        ]

    def get_inheritance_chain(self, workflow_id: str) -> list[str]:
        """``[workflow, parent, grandparent, ...]``; ``[workflow]`` if it inherits nothing."""
        with self._lock:
            return list(self._chains.get(workflow_id, [workflow_id]))

    def workflow_ids(self) -> list[str]:
        with self._lock:
            return list(self._nodes)

    # -- cycles & structure ---------------------------------------------------

    def has_circular_dependency(self, workflow_id: str) -> bool:
        """True iff the dependency subgraph reachable from *workflow_id* has a cycle."""
        return detect_cycle(workflow_id, self._snapshot().dependencies)

    def calculate_network_metrics(self, workflow_id: str) -> NetworkMetrics:
        """Connectivity, influence, dependency and collaboration scores.

        With N nodes, ``connectivity = (out + in) / 2N`` and
        ``influence = in / N``, where *in* counts the distinct workflows with
        an edge to this one.  ``dependency`` is the share of outgoing edges
        that are ``depends_on`` or ``inherits``.  Every score is in [0, 1].
        """
        snap = self._snapshot()
        connectivity, influence = self._structural_scores(snap, workflow_id)
        outgoing = snap.outgoing(workflow_id)
        dependency = 0.0
        if outgoing:
            dependent = sum(
                1 for l in outgoing
                if l.type in (RelationshipType.DEPENDS_ON, RelationshipType.INHERITS)
            )
            dependency = dependent / len(outgoing)

        others = len(snap.nodes) - 1
        potential = 0.0
        if others > 0:
            opportunities = self._opportunities(snap, workflow_id)
            total = len(opportunities.potential_partners) + len(
                opportunities.composition_opportunities
            )
            potential = clamp(total / others)

        return NetworkMetrics(
            connectivity_score=connectivity,
            influence_score=influence,
            dependency_score=clamp(dependency),
            collaboration_potential=potential,
        )

    def get_ecosystem_overview(self) -> EcosystemOverview:
        """Graph-wide summary computed over one consistent snapshot."""
        snap = self._snapshot()
        with self._lock:
            composition_count = len(self._compositions)
        total = len(snap.nodes)
        edge_count = sum(len(links) for links in snap.edges.values())

        circular = [n for n in snap.nodes if detect_cycle(n, snap.dependencies)]
        isolated = [
            n for n in snap.nodes
            if not snap.outgoing(n) and not snap.incoming_sources(n)
        ]
        hubs = []
        for n in snap.nodes:
            connectivity, influence = self._structural_scores(snap, n)
            if (
                connectivity > self._config.hub_connectivity
                and influence > self._config.hub_influence
            ):
                hubs.append(n)

        return EcosystemOverview(
            total_workflows=total,
            total_relationships=edge_count,
            average_connectivity=edge_count / total if total else 0.0,
            composition_count=composition_count,
            circular_dependencies=tuple(circular),
            isolated_workflows=tuple(isolated),
            hub_workflows=tuple(hubs),
        )

    def find_collaboration_opportunities(self, workflow_id: str) -> CollaborationOpportunities:
        """Partners and composition candidates for *workflow_id*.

        A workflow is a partner if it shares a relationship target with
        *workflow_id* or if either one provides a capability the other
        requires.  It is a composition opportunity if neither can reach the
        other through dependency edges and no direct edge links them.
        """
        return self._opportunities(self._snapshot(), workflow_id)

    # -- compositions ---------------------------------------------------------

    def create_composition(
        self,
        composition_id: str,
        name: str,
        description: str,
        steps: Sequence[WorkflowStep],
        execution_strategy: ExecutionStrategy | str = ExecutionStrategy.SEQUENTIAL,
    ) -> WorkflowComposition:
        """Create a composition and a ``composes`` edge to every step.

        Parallel compositions may run all steps at once; every other
        strategy runs one at a time.
        """
        strategy = ExecutionStrategy(execution_strategy)
        ordered = tuple(sorted(steps, key=lambda s: s.order))
        concurrency = len(ordered) if strategy is ExecutionStrategy.PARALLEL else 1
        composition = WorkflowComposition(
            id=composition_id,
            name=name,
            description=description,
            steps=ordered,
            execution_strategy=strategy,
            resource_allocation=ResourceAllocation(max_concurrent_workflows=max(1, concurrency)),
        )
        with self._lock:
            self._compositions[composition_id] = composition
        for step in ordered:
            self.create_relationship(composition_id, step.workflow_id, RelationshipType.COMPOSES)

        logger.info(
            "Created composition %s (%s, %d steps)",
            composition_id, strategy.value, len(ordered),
        )
        self._publish(CompositionCreated(
            source_id=composition_id,
            composition_id=composition_id,
            step_ids=tuple(composition.workflow_ids),
        ))
        return composition

    def get_composition(self, composition_id: str) -> WorkflowComposition | None:
        with self._lock:
            return self._compositions.get(composition_id)

    # -- enhancement propagation ----------------------------------------------

    def should_propagate(self, enhancement: Enhancement) -> bool:
        """Propagation gate applied to every descendant."""
        if enhancement.risk in _BLOCKED_RISKS:
            return False
        if (
            enhancement.type is EnhancementType.BUG_FIX
            and enhancement.impact < self._config.bug_fix_min_impact
        ):
            return False
        return enhancement.impact > self._config.propagation_min_impact

    def propagate_enhancement(
        self,
        source_id: str,
        enhancement: Enhancement,
        strategy: PropagationStrategy | str = PropagationStrategy.GRADUAL,
    ) -> list[str]:
        """Push *enhancement* down the inheritance tree of *source_id*.

        Returns the descendants it reaches.  Only the ``immediate`` strategy
        records the enhancement on them; the others report the descendants
        without applying anything.
        """
        strategy = PropagationStrategy(strategy)
        if not self.should_propagate(enhancement):
            logger.info(
                "Enhancement %s from %s not propagated (type=%s, impact=%.2f, risk=%s)",
                enhancement.id, source_id, enhancement.type.value,
                enhancement.impact, enhancement.risk.value,
            )
            return []

        applied = strategy is PropagationStrategy.IMMEDIATE
        with self._lock:
            descendants = [
                child for child, chain in self._chains.items()
                if child != source_id and source_id in chain
            ]
            if applied:
                for child in descendants:
                    self._applied.setdefault(child, []).append(enhancement)

        for child in descendants:
            self._publish(EnhancementPropagated(
                source_id=source_id,
                target_id=child,
                enhancement=enhancement,
                strategy=strategy,
                applied=applied,
            ))
        logger.debug(
            "Enhancement %s from %s reached %d descendants (%s)",
            enhancement.id, source_id, len(descendants), strategy.value,
        )
        return descendants

    def get_applied_enhancements(self, workflow_id: str) -> list[Enhancement]:
        """Enhancements applied to *workflow_id* through immediate propagation."""
        with self._lock:
            return list(self._applied.get(workflow_id, ()))

    # -- optimization ---------------------------------------------------------

    def optimize_relationships(
        self,
        workflow_id: str,
        performance: Mapping[str, float],
    ) -> RelationshipOptimization:
        """Adjust the outgoing edge strengths of *workflow_id*.

        Parameters
        ----------
        workflow_id:
            Source whose outgoing edges are adjusted.
        performance:
            Performance score in [0, 1] per workflow id.  Targets missing
            from it are scored ``config.default_score``.

        Returns
        -------
        RelationshipOptimization
            Targets strengthened, weakened and removed, plus unlinked high
            performers proposed as new relationships.
        """
        cfg = self._config
        strengthened: list[str] = []
        weakened: list[str] = []
        removed: list[str] = []

        with self._lock:
            links = self._edges.get(workflow_id, {})
            for key, link in list(links.items()):
                score = performance.get(link.target_id, cfg.default_score)
                strength = link.strength
                if score > cfg.strengthen_above and strength < cfg.strengthen_below:
                    strength = min(1.0, strength + cfg.strengthen_step)
                    strengthened.append(link.target_id)
                if score < cfg.weaken_below and strength > cfg.weaken_floor:
                    strength = max(cfg.weaken_floor, strength - cfg.weaken_step)
                    weakened.append(link.target_id)
                if strength < cfg.removal_threshold:
                    del links[key]
                    self._unlink(workflow_id, link)
                    removed.append(link.target_id)
                elif strength != link.strength:
                    links[key] = replace(link, strength=strength)
            targets = {l.target_id for l in links.values()}

        proposed = [
            other for other, score in performance.items()
            if other != workflow_id and score > cfg.propose_above and other not in targets
        ]
        result = RelationshipOptimization(
            strengthened=tuple(strengthened),
            weakened=tuple(weakened),
            new=tuple(proposed),
            removed=tuple(removed),
        )
        self._publish(RelationshipsOptimized(source_id=workflow_id, result=result))
        return result

    # -- internals ------------------------------------------------------------

    def _unlink(self, source_id: str, link: Relationship) -> None:
        """Drop a deleted edge from the dependency adjacency and the chains.

        Must be called under the graph lock, after the edge has left
        ``_edges``.
        """
        remaining = list(self._edges.get(source_id, {}).values())
        if link.type.is_dependency and not any(
            other.target_id == link.target_id and other.type.is_dependency
            for other in remaining
        ):
            self._dependencies.get(source_id, set()).discard(link.target_id)
        if link.type is not RelationshipType.INHERITS:
            return
        if self._parents.get(source_id) != link.target_id:
            return
        fallback = [
            other.target_id for other in remaining
            if other.type is RelationshipType.INHERITS
        ]
        if fallback:
            self._parents[source_id] = fallback[-1]
            self._refresh_chain(source_id)
            return
        del self._parents[source_id]
        self._chains.pop(source_id, None)
        for child in [c for c, p in self._parents.items() if p == source_id]:
            self._refresh_chain(child)

    def _refresh_chain(self, child: str) -> None:
        """Recompute the ancestor chain of *child* and of its descendants.

        Must be called under the graph lock.
        """
        pending = [child]
        while pending:
            node = pending.pop()
            parent = self._parents[node]
            parent_chain = self._chains.get(parent, [parent])
            if node in parent_chain:
                logger.warning("Inheritance cycle through %s; chain not extended", node)
                self._chains[node] = [node]
                continue
            self._chains[node] = [node] + parent_chain
            pending.extend(c for c, p in self._parents.items() if p == node)

    def _snapshot(self) -> _Snapshot:
        with self._lock:
            return _Snapshot(
                nodes=tuple(self._nodes),
                edges={src: tuple(links.values()) for src, links in self._edges.items()},
                dependencies={src: frozenset(t) for src, t in self._dependencies.items()},
                capabilities=dict(self._capabilities),
                requirements=dict(self._requirements),
            )

    @staticmethod
    def _structural_scores(snap: _Snapshot, workflow_id: str) -> tuple[float, float]:
        total = len(snap.nodes)
        if total == 0:
            return 0.0, 0.0
        out_count = len(snap.outgoing(workflow_id))
        in_count = len(snap.incoming_sources(workflow_id))
        return clamp((out_count + in_count) / (2 * total)), clamp(in_count / total)

    @staticmethod
    def _opportunities(snap: _Snapshot, workflow_id: str) -> CollaborationOpportunities:
        own_targets = snap.targets(workflow_id)
        own_caps = snap.capabilities.get(workflow_id, frozenset())
        own_reqs = snap.requirements.get(workflow_id, frozenset())

        partners: list[str] = []
        compositions: list[str] = []
        shared: set[str] = set()
        complementary: set[str] = set()
        for other in snap.nodes:
            if other == workflow_id:
                continue
            other_caps = snap.capabilities.get(other, frozenset())
            other_reqs = snap.requirements.get(other, frozenset())
            provides = other_caps & own_reqs
            receives = own_caps & other_reqs

            if own_targets & snap.targets(other) or provides or receives:
                partners.append(other)
                shared |= own_caps & other_caps
                complementary |= provides | receives

            if (
                not snap.has_direct_edge(workflow_id, other)
                and not reachable(workflow_id, other, snap.dependencies)
                and not reachable(other, workflow_id, snap.dependencies)
            ):
                compositions.append(other)

        return CollaborationOpportunities(
            potential_partners=tuple(partners),
            composition_opportunities=tuple(compositions),
            shared_capabilities=tuple(sorted(shared)),
            complementary_skills=tuple(sorted(complementary)),
        )

    def _publish(self, event: DomainEvent) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)
