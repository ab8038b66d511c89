"""
Graph structure of a workflow and the run-scoped store of node outputs.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from typing import TYPE_CHECKING

from networkx import DiGraph

from hybridflow.data.dataset import Dataset, concatenate
from hybridflow.model.exceptions import (
    CycleDetected,
    DuplicateNodeId,
    UnknownNodeReference,
)
from hybridflow.model.WorkflowRequest import Edge, Node
from hybridflow.outputs import NodeOutput, as_dataset
from hybridflow.utils import not_none

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    WorkflowGraphBase = DiGraph[str]
else:
    WorkflowGraphBase = DiGraph


class WorkflowGraph(WorkflowGraphBase):
    """Graph of a workflow as sent by the editor, keyed by node id.

    Several edges between the same pair of nodes form a single connection.
    """

    node_data: dict[str, Node]
    edge_data: dict[tuple[str, str], list[Edge]]

    def __init__(self) -> None:
        super().__init__()
        self.node_data = {}
        self.edge_data = {}

    def append_node(self, node: Node) -> None:
        if node.id in self.node_data:
            raise DuplicateNodeId(node)
        super().add_node(node.id)
        self.node_data[node.id] = node

    def append_edge(self, edge: Edge) -> None:
        if edge.source not in self.node_data:
            raise UnknownNodeReference(edge.source, "source")
        if edge.target not in self.node_data:
            raise UnknownNodeReference(edge.target, "target")
        super().add_edge(edge.source, edge.target)
        self.edge_data.setdefault((edge.source, edge.target), []).append(edge)

    @staticmethod
    def create(nodes: Iterable[Node], edges: Iterable[Edge]) -> WorkflowGraph:
        graph = WorkflowGraph()
        for node in nodes:
            graph.append_node(node)
        for edge in edges:
            graph.append_edge(edge)
        return graph


def compute_order(graph: WorkflowGraph) -> list[str]:
    """
    Execution order by Kahn's algorithm.

    The queue is seeded with the source nodes in insertion order and successors are
    released in edge insertion order, so equal graphs always yield equal orders.

    :raises CycleDetected: If not every node could be ordered.
    """

    in_degree = {node: graph.in_degree(node) for node in graph.nodes}
    queue = deque(node for node, degree in in_degree.items() if degree == 0)
    order: list[str] = []

    while queue:
        node = queue.popleft()
        order.append(node)
        for successor in graph.successors(node):
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                queue.append(successor)

    if len(order) != graph.number_of_nodes():
        raise CycleDetected([node for node, degree in in_degree.items() if degree > 0])

    return order


class GraphScheduler:
    """
    Orders a workflow and holds the outputs of the nodes executed so far.

    :param graph: The workflow to schedule.
    """

    graph: WorkflowGraph
    outputs: dict[str, NodeOutput]

    def __init__(self, graph: WorkflowGraph) -> None:
        self.graph = graph
        self.outputs = {}

    def execution_order(self) -> list[str]:
        return compute_order(self.graph)

    def store(self, node_id: str, output: NodeOutput) -> None:
        self.outputs[node_id] = output

    def fetch(self, node_id: str) -> NodeOutput | None:
        return self.outputs.get(node_id)

    def clear(self) -> None:
        self.outputs.clear()

    def predecessor_outputs(self, node_id: str) -> list[tuple[str, NodeOutput]]:
        """Outputs of all predecessors, in predecessor order."""

        return [
            (
                source,
                not_none(
                    self.outputs.get(source),
                    f"Node '{source}' should already be executed",
                ),
            )
            for source in self.graph.predecessors(node_id)
        ]

    def resolve_inputs(self, node_id: str) -> NodeOutput | None:
        """
        Input of a node.

        - No predecessors: None.
        - One predecessor: its output, unchanged.
        - Several predecessors: the row-wise concatenation of their datasets.

        :raises InvalidDataset: If several inputs cannot be concatenated.
        """

        inputs = self.predecessor_outputs(node_id)
        if not inputs:
            return None
        if len(inputs) == 1:
            return inputs[0][1]

        logger.debug("Merging %d inputs of node '%s'", len(inputs), node_id)
        node = self.graph.node_data[node_id]
        return concatenate([as_dataset(output) for _, output in inputs], node)

    def resolve_dataset(self, node_id: str) -> Dataset | None:
        """Like :meth:`resolve_inputs`, but always as a tabular dataset."""

        resolved = self.resolve_inputs(node_id)
        return None if resolved is None else as_dataset(resolved)
