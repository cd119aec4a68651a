"""
mdlpeel Search Trace

Every candidate evaluated during inference, as a directed graph:

    root ──> d0 candidates ──(selected d0)──> d1 candidates ──> ...

Nodes carry the hypothesis and its score; edges run from the node selected
at the previous depth (or the root) to each candidate of the next depth,
weighted by the candidate's total bits. The selected chain is therefore the
only path from the root to the deepest selected node.

Usage:
    result = engine.infer(corpus)
    print(result.trace.summary())
    for hypothesis in result.trace.selected_path():
        print(hypothesis.describe())
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Optional, Sequence

import networkx as nx

from mdlpeel.hypothesis import Hypothesis

if TYPE_CHECKING:
    from mdlpeel.engine import Candidate

ROOT = "root"


def node_id(depth: int, rank: int) -> str:
    return f"d{depth}:{rank}"


class SearchTrace:
    """Record of the hypothesis search, backed by a networkx DiGraph."""

    def __init__(self) -> None:
        self._graph = nx.DiGraph()
        self._graph.add_node(ROOT, depth=-1, selected=True)
        self._selected: list[str] = []
        self._depths = 0

    def record_depth(
        self,
        depth: int,
        ranked: Sequence[Candidate],
        selected_rank: Optional[int],
    ) -> None:
        """Add the ranked candidates of one depth. selected_rank is None when
        nothing was accepted at this depth."""
        parent = self._selected[-1] if self._selected else ROOT
        for rank, candidate in enumerate(ranked):
            node = node_id(depth, rank)
            self._graph.add_node(
                node,
                depth=depth,
                rank=rank,
                hypothesis=candidate.hypothesis,
                label=candidate.hypothesis.describe(),
                generator=candidate.generator,
                total_bits=candidate.total_bits,
                parse_success_ratio=candidate.score.parse_success_ratio,
                selected=rank == selected_rank,
            )
            self._graph.add_edge(parent, node, weight=candidate.total_bits)
        if selected_rank is not None:
            self._selected.append(node_id(depth, selected_rank))
        self._depths = max(self._depths, depth + 1)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def graph(self) -> nx.DiGraph:
        return self._graph

    @property
    def depth_count(self) -> int:
        """Number of depths at which candidates were evaluated."""
        return self._depths

    def selected_path(self) -> list[Hypothesis]:
        """Hypotheses of the accepted layers, outermost first."""
        if not self._selected:
            return []
        path = nx.shortest_path(self._graph, ROOT, self._selected[-1])
        return [self._graph.nodes[node]["hypothesis"] for node in path[1:]]

    def candidates_at(self, depth: int) -> list[dict[str, Any]]:
        """Node attributes of every candidate at `depth`, best first."""
        nodes = [
            (data["rank"], data)
            for _, data in self._graph.nodes(data=True)
            if data.get("depth") == depth
        ]
        return [data for _, data in sorted(nodes, key=lambda item: item[0])]

    def to_dict(self) -> dict[str, Any]:
        nodes = []
        for node, data in self._graph.nodes(data=True):
            if node == ROOT:
                continue
            bits = data["total_bits"]
            nodes.append({
                "id": node,
                "depth": data["depth"],
                "rank": data["rank"],
                "hypothesis": data["hypothesis"].to_dict(),
                "generator": data["generator"],
                "total_bits": bits if math.isfinite(bits) else None,
                "parse_success_ratio": data["parse_success_ratio"],
                "selected": data["selected"],
            })
        return {
            "nodes": nodes,
            "edges": [[src, dst] for src, dst in self._graph.edges],
            "selected": list(self._selected),
        }

    def summary(self) -> str:
        lines = [
            f"Search Trace: {self._depths} depth(s), "
            f"{self._graph.number_of_nodes() - 1} candidates evaluated",
        ]
        for depth in range(self._depths):
            candidates = self.candidates_at(depth)
            chosen = next((c for c in candidates if c["selected"]), None)
            if chosen is None:
                lines.append(f"  depth {depth}: {len(candidates)} candidates, nothing accepted")
            else:
                lines.append(
                    f"  depth {depth}: {len(candidates)} candidates, "
                    f"selected {chosen['label']} ({chosen['total_bits']:.1f} bits)"
                )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"<SearchTrace: {self._graph.number_of_nodes() - 1} candidates, "
            f"{len(self._selected)} selected>"
        )
