import logging
import typing

from .ontology import Ontology

logger = logging.getLogger(__name__)


class TermArranger:
    """
    Orders phenotype terms so that related terms sit next to each other.

    The ontology is walked depth-first from its roots (siblings in the ontology's own
    child order) and each requested term is emitted the first time it is reached.
    Terms under a trailing root (e.g. Neoplasm) are collected first and emitted after
    the main traversal. Terms that cannot be reached at all come last, in input order.
    """

    def __init__(self, ontology: Ontology, trailing_roots: typing.Optional[typing.Sequence[str]] = None):
        self._ontology = ontology
        if trailing_roots is None:
            trailing_roots = ontology.trailing_root_ids()
        self._trailing_roots = tuple(trailing_roots)

    def arrange(self, term_ids: typing.Iterable[str]) -> typing.List[str]:
        requested = list(dict.fromkeys(term_ids))
        wanted = set(requested)
        visited: typing.Set[str] = set()

        trailing: typing.List[str] = []
        for root in self._trailing_roots:
            self._walk(root, wanted, visited, trailing)

        arranged: typing.List[str] = []
        for root in self._ontology.root_ids():
            self._walk(root, wanted, visited, arranged)
        arranged.extend(trailing)

        emitted = set(arranged)
        unreachable = [t for t in requested if t not in emitted]
        if unreachable:
            logger.warning("%d term(s) not reachable from the ontology roots: %s", len(unreachable), ", ".join(unreachable))
            arranged.extend(unreachable)
        return arranged

    def _walk(self, start: str, wanted: typing.Set[str], visited: typing.Set[str], out: typing.List[str]) -> None:
        # iterative pre-order DFS; children pushed in reverse to keep their order
        stack = [start]
        while stack:
            term_id = stack.pop()
            if term_id in visited:
                continue
            visited.add(term_id)
            if term_id in wanted:
                out.append(term_id)
            children = self._ontology.children_of(term_id)
            stack.extend(reversed(children))
