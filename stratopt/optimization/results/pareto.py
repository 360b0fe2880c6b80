"""
Pareto dominance, frontier extraction and the NSGA-II ranking helpers.

Every comparison works on "oriented" objective vectors: minimized objectives
are negated and missing scores become -inf, so larger is always better and a
missing score can never win.
"""

from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np

from stratopt.optimization.objectives import ObjectiveScores, Objective, oriented_value, oriented_vector
from .models import OptimizationSolution

Vector = Tuple[float, ...]


def vector_dominates(a: Sequence[float], b: Sequence[float]) -> bool:
    """a dominates b: at least as good everywhere and strictly better somewhere."""
    strictly_better = False
    for a_value, b_value in zip(a, b):
        if a_value < b_value:
            return False
        if a_value > b_value:
            strictly_better = True
    return strictly_better


def dominates(a: ObjectiveScores, b: ObjectiveScores, objectives: Sequence[Objective]) -> bool:
    return vector_dominates(oriented_vector(a, objectives), oriented_vector(b, objectives))


def frontier_indices(vectors: Sequence[Sequence[float]]) -> List[int]:
    """
    Indices of the non-dominated vectors, in input order.

    When several vectors are identical only the first one is kept, so the
    frontier is deterministic with respect to evaluation order.
    """
    kept: List[int] = []
    seen = set()
    for i, candidate in enumerate(vectors):
        key = tuple(candidate)
        if key in seen:
            continue
        if any(vector_dominates(other, candidate) for j, other in enumerate(vectors) if j != i):
            continue
        seen.add(key)
        kept.append(i)
    return kept


def non_dominated_sort(vectors: Sequence[Sequence[float]]) -> List[List[int]]:
    """
    Split vectors into successive non-dominated fronts (fast non-dominated sort).

    Returns:
        List of fronts, best first; each front lists indices into ``vectors``.
    """
    n = len(vectors)
    dominated_by: List[List[int]] = [[] for _ in range(n)]
    domination_count = [0] * n
    fronts: List[List[int]] = [[]]

    for p in range(n):
        for q in range(n):
            if p == q:
                continue
            if vector_dominates(vectors[p], vectors[q]):
                dominated_by[p].append(q)
            elif vector_dominates(vectors[q], vectors[p]):
                domination_count[p] += 1
        if domination_count[p] == 0:
            fronts[0].append(p)

    current = 0
    while fronts[current]:
        next_front = []
        for p in fronts[current]:
            for q in dominated_by[p]:
                domination_count[q] -= 1
                if domination_count[q] == 0:
                    next_front.append(q)
        current += 1
        fronts.append(sorted(next_front))

    return fronts[:-1]


def crowding_distance(vectors: Sequence[Sequence[float]], front: Sequence[int]) -> Dict[int, float]:
    """
    Crowding distance of each member of one front.

    Boundary members get infinity; interior members the normalized perimeter
    of the cuboid formed by their neighbours. Larger means less crowded.
    """
    distances = {i: 0.0 for i in front}
    if len(front) <= 2:
        return {i: float('inf') for i in front}

    matrix = _finite_matrix([vectors[i] for i in front])
    for m in range(matrix.shape[1]):
        order = np.argsort(matrix[:, m], kind='stable')
        column = matrix[order, m]
        distances[front[order[0]]] = float('inf')
        distances[front[order[-1]]] = float('inf')
        span = column[-1] - column[0]
        if span == 0:
            continue
        for k in range(1, len(front) - 1):
            idx = front[order[k]]
            distances[idx] += (column[k + 1] - column[k - 1]) / span
    return distances


def _finite_matrix(rows: Sequence[Sequence[float]]) -> np.ndarray:
    """Replace -inf (missing scores) with a value just below each column's finite minimum."""
    matrix = np.array(rows, dtype=float)
    for m in range(matrix.shape[1]):
        column = matrix[:, m]
        finite = np.isfinite(column)
        floor = column[finite].min() - 1.0 if finite.any() else 0.0
        column[~finite] = floor
    return matrix


class ParetoFrontier:
    """
    Maintains the non-dominated subset of evaluated solutions.

    Frontier membership is judged on in-sample scores, the scores the search
    actually optimizes. Recomputation is O(n^2) in the number of solutions,
    which stays small because n is bounded by the iteration budget.
    """

    def __init__(self, objectives: Sequence[Objective]):
        self.objectives = [Objective(o) for o in objectives]
        self.members: List[OptimizationSolution] = []

    def dominates(self, a: OptimizationSolution, b: OptimizationSolution) -> bool:
        return dominates(a.in_sample_scores, b.in_sample_scores, self.objectives)

    def extract(self, solutions: Sequence[OptimizationSolution]) -> List[OptimizationSolution]:
        """Non-dominated solutions in evaluation order, without touching flags."""
        vectors = [oriented_vector(s.in_sample_scores, self.objectives) for s in solutions]
        return [solutions[i] for i in frontier_indices(vectors)]

    def update(self, solutions: Sequence[OptimizationSolution]) -> List[OptimizationSolution]:
        """Recompute the frontier and re-derive every solution's ``is_pareto_optimal`` flag."""
        frontier = self.extract(solutions)
        member_ids = {s.id for s in frontier}
        for solution in solutions:
            solution.is_pareto_optimal = solution.id in member_ids
        self.members = frontier
        return frontier

    def add(self, new_solutions: Sequence[OptimizationSolution]) -> List[OptimizationSolution]:
        """
        Fold newly evaluated solutions into the current frontier.

        Gives the same frontier as ``update`` over every solution seen so far:
        a solution dominated once stays dominated by some frontier member, and
        current members precede new solutions in evaluation order.
        """
        pool = self.members + list(new_solutions)
        frontier = self.extract(pool)
        member_ids = {s.id for s in frontier}
        for solution in pool:
            solution.is_pareto_optimal = solution.id in member_ids
        self.members = frontier
        return frontier

    def best_solution(self, frontier: Optional[Sequence[OptimizationSolution]] = None) -> Optional[OptimizationSolution]:
        """Frontier member with the best primary objective; earliest wins ties."""
        candidates = list(self.members if frontier is None else frontier)
        if not candidates:
            return None
        primary = self.objectives[0]
        best = candidates[0]
        for solution in candidates[1:]:
            if oriented_value(solution.in_sample_scores, primary) > oriented_value(best.in_sample_scores, primary):
                best = solution
        return best
