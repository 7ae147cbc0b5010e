from __future__ import annotations

from typing import Sequence

from ortools.constraint_solver import pywrapcp, routing_enums_pb2


def solve_open_path(
    distance_matrix: Sequence[Sequence[int]],
    start_index: int = 0,
    end_index: int | None = None,
    time_limit_seconds: int = 5,
) -> list[int] | None:
    """
    Order the nodes of a single-vehicle route with fixed endpoints using OR-Tools.

    Args:
        distance_matrix: Square matrix of distances between nodes.
        start_index: Node the vehicle departs from.
        end_index: Node the vehicle must finish at. Defaults to the last node.
        time_limit_seconds: Maximum time to spend searching for a solution.

    Returns:
        Node indices in visiting order, starting with ``start_index`` and
        finishing with ``end_index``, or None if no solution was found.
    """
    size = len(distance_matrix)
    if size == 0:
        return []
    if end_index is None:
        end_index = size - 1
    if size <= 2:
        return [start_index] if start_index == end_index else [start_index, end_index]

    manager = pywrapcp.RoutingIndexManager(size, 1, [start_index], [end_index])
    routing = pywrapcp.RoutingModel(manager)

    def distance_callback(from_index: int, to_index: int) -> int:
        from_node = manager.IndexToNode(from_index)
        to_node = manager.IndexToNode(to_index)
        return int(distance_matrix[from_node][to_node])

    transit_callback_index = routing.RegisterTransitCallback(distance_callback)
    routing.SetArcCostEvaluatorOfAllVehicles(transit_callback_index)

    search_parameters = pywrapcp.DefaultRoutingSearchParameters()
    search_parameters.first_solution_strategy = (
        routing_enums_pb2.FirstSolutionStrategy.PATH_CHEAPEST_ARC
    )
    search_parameters.local_search_metaheuristic = (
        routing_enums_pb2.LocalSearchMetaheuristic.GUIDED_LOCAL_SEARCH
    )
    search_parameters.time_limit.seconds = time_limit_seconds

    solution = routing.SolveWithParameters(search_parameters)
    if not solution:
        return None

    index = routing.Start(0)
    route_indices: list[int] = []
    while not routing.IsEnd(index):
        route_indices.append(manager.IndexToNode(index))
        index = solution.Value(routing.NextVar(index))
    route_indices.append(manager.IndexToNode(index))

    return route_indices
