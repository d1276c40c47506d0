"""Graph view of the status machines for agent-team.

This module compiles transition tables into ``networkx`` directed graphs,
one per entity kind, for lookups, reachability checks and rendering.
"""

from enum import Enum
from typing import Iterable, Optional

import networkx as nx

from ..models.status import STATUS_ENUMS, StatusEntity
from .rules import TRANSITION_RULES, TransitionRule


class TransitionGraph:
    """Directed graph of the allowed status transitions of one entity kind.

    Nodes are status values; each edge stores the rules that allow it
    under the ``rules`` attribute.

    Attributes:
        entity: Entity kind the graph describes
        graph: Directed graph representation
    """

    def __init__(self, entity: StatusEntity, rules: Iterable[TransitionRule]) -> None:
        self.entity = entity
        self.graph: nx.DiGraph = nx.DiGraph()

        status_enum: type[Enum] = STATUS_ENUMS[entity]
        for status in status_enum:
            self.graph.add_node(status.value)

        for transition_rule in rules:
            self.add_rule(transition_rule)

    def add_rule(self, transition_rule: TransitionRule) -> None:
        """Add the edges a rule allows.

        Raises:
            ValueError: If the rule mentions a status the entity does not have
        """
        for status in (*transition_rule.from_, *transition_rule.to):
            if status not in self.graph:
                raise ValueError(f"Unknown {self.entity.value} status in rule: {status}")

        for source in transition_rule.from_:
            for target in transition_rule.to:
                if self.graph.has_edge(source, target):
                    self.graph.edges[source, target]["rules"].append(transition_rule)
                else:
                    self.graph.add_edge(source, target, rules=[transition_rule])

    def has_status(self, status: str) -> bool:
        return status in self.graph

    def is_allowed(self, current: str, target: str) -> bool:
        return self.graph.has_edge(current, target)

    def rules_for(self, current: str, target: str) -> list[TransitionRule]:
        if not self.graph.has_edge(current, target):
            return []
        return list(self.graph.edges[current, target]["rules"])

    def successors(self, status: str) -> list[str]:
        if status not in self.graph:
            return []
        return list(self.graph.successors(status))

    def is_reachable(self, current: str, target: str) -> bool:
        """Whether ``target`` can be reached from ``current`` in any number of steps."""
        if current not in self.graph or target not in self.graph:
            return False
        return nx.has_path(self.graph, current, target)

    def shortest_path(self, current: str, target: str) -> Optional[list[str]]:
        try:
            return nx.shortest_path(self.graph, current, target)
        except (nx.NetworkXNoPath, nx.NodeNotFound):
            return None

    def visualize(self, format: str = "mermaid") -> str:
        """Render the machine.

        Args:
            format: "mermaid" or "dot"

        Returns:
            Diagram source
        """
        if format == "mermaid":
            return self._to_mermaid()
        if format == "dot":
            return self._to_dot()
        raise ValueError(f"Unsupported format: {format}")

    def _to_mermaid(self) -> str:
        lines = ["stateDiagram-v2"]
        for source, target in self.graph.edges():
            lines.append(f"  {source} --> {target}")
        return "\n".join(lines)

    def _to_dot(self) -> str:
        lines = [f"digraph {self.entity.value}_status {{", "  rankdir=LR;", "  node [shape=box];"]
        for node in self.graph.nodes():
            lines.append(f'  "{node}";')
        for source, target in self.graph.edges():
            lines.append(f'  "{source}" -> "{target}";')
        lines.append("}")
        return "\n".join(lines)


def build_graphs(
    rules: Optional[dict[StatusEntity, Iterable[TransitionRule]]] = None,
) -> dict[StatusEntity, TransitionGraph]:
    """Compile a graph for every entity kind (default tables when ``rules`` is None)."""
    table = TRANSITION_RULES if rules is None else rules
    return {entity: TransitionGraph(entity, table.get(entity, ())) for entity in StatusEntity}
