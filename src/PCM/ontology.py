"""
Ontology access used by the arranger, merge engine and consistency checker.

`Ontology` is the query interface; `HpoOntology` adapts an `hpotk.MinimalOntology`
and `SimpleOntology` is a small in-memory hierarchy (handy for fixtures and for
callers that already hold the is-a edges).
"""

import abc
import typing
from collections import defaultdict
from dataclasses import dataclass

import hpotk

from .errors import TermResolutionError

ALL = "HP:0000001"
PHENOTYPIC_ABNORMALITY = "HP:0000118"
NEOPLASM = "HP:0002664"


@dataclass(frozen=True)
class TermInfo:
    """Primary identifier and current label of a term."""

    canonical_id: str
    label: str


class Ontology(metaclass=abc.ABCMeta):
    """
    Read-only hierarchy queries over a fully loaded ontology.

    Identifiers are CURIE strings. Implementations raise ValueError for a
    malformed CURIE.
    """

    @abc.abstractmethod
    def ancestor_of(self, a: str, b: str) -> bool:
        """True if `a` is a strict ancestor of `b`."""
        raise NotImplementedError

    @abc.abstractmethod
    def term_by_id(self, term_id: str) -> typing.Optional[TermInfo]:
        """Look up a primary or alternate id; None if unknown."""
        raise NotImplementedError

    @abc.abstractmethod
    def children_of(self, term_id: str) -> typing.Sequence[str]:
        raise NotImplementedError

    @abc.abstractmethod
    def root_ids(self) -> typing.Sequence[str]:
        """Traversal roots in priority order."""
        raise NotImplementedError

    def trailing_root_ids(self) -> typing.Sequence[str]:
        """Roots whose sub-hierarchies are arranged after everything else."""
        return ()

    @property
    def version(self) -> typing.Optional[str]:
        return None


class HpoOntology(Ontology):
    """`Ontology` backed by hpotk."""

    def __init__(self, hpo: hpotk.MinimalOntology):
        self._hpo = hpo

    @property
    def hpo(self) -> hpotk.MinimalOntology:
        return self._hpo

    @property
    def version(self) -> typing.Optional[str]:
        return self._hpo.version

    @staticmethod
    def _term_id(curie: str) -> hpotk.TermId:
        # hpotk raises ValueError for malformed CURIEs
        return hpotk.TermId.from_curie(curie)

    def ancestor_of(self, a: str, b: str) -> bool:
        return self._hpo.graph.is_ancestor_of(self._term_id(a), self._term_id(b))

    def term_by_id(self, term_id: str) -> typing.Optional[TermInfo]:
        term = self._hpo.get_term(self._term_id(term_id))
        if term is None:
            return None
        return TermInfo(canonical_id=term.identifier.value, label=term.name)

    def children_of(self, term_id: str) -> typing.Sequence[str]:
        tid = self._term_id(term_id)
        if self._hpo.get_term(tid) is None:
            return ()
        return tuple(child.value for child in self._hpo.graph.get_children(tid))

    def root_ids(self) -> typing.Sequence[str]:
        roots = [PHENOTYPIC_ABNORMALITY]
        root = self._hpo.graph.root.value
        if root != PHENOTYPIC_ABNORMALITY:
            roots.append(root)
        return tuple(roots)

    def trailing_root_ids(self) -> typing.Sequence[str]:
        return (NEOPLASM,)


def load_hpo(path: str) -> HpoOntology:
    """Load an HPO JSON file (plain or gzipped) with hpotk."""
    return HpoOntology(hpotk.load_minimal_ontology(path))


class SimpleOntology(Ontology):
    """
    In-memory hierarchy built from (child, parent) is-a edges.

    Children are enumerated in edge insertion order.
    """

    def __init__(
        self,
        labels: typing.Mapping[str, str],
        is_a: typing.Iterable[typing.Tuple[str, str]],
        roots: typing.Sequence[str] = (PHENOTYPIC_ABNORMALITY,),
        trailing_roots: typing.Sequence[str] = (),
        alt_ids: typing.Optional[typing.Mapping[str, str]] = None,
        version: typing.Optional[str] = None,
    ):
        self._labels = dict(labels)
        self._alt_ids = dict(alt_ids or {})
        self._roots = tuple(roots)
        self._trailing_roots = tuple(trailing_roots)
        self._version = version
        self._children: typing.Dict[str, typing.List[str]] = defaultdict(list)
        self._parents: typing.Dict[str, typing.List[str]] = defaultdict(list)
        for child, parent in is_a:
            for curie in (child, parent):
                _check_curie(curie)
                if curie not in self._labels:
                    raise ValueError(f"Edge mentions unlabelled term {curie!r}")
            self._children[parent].append(child)
            self._parents[child].append(parent)
        self._ancestors: typing.Dict[str, typing.FrozenSet[str]] = {}

    @property
    def version(self) -> typing.Optional[str]:
        return self._version

    def _primary(self, term_id: str) -> str:
        _check_curie(term_id)
        return self._alt_ids.get(term_id, term_id)

    def ancestors(self, term_id: str) -> typing.FrozenSet[str]:
        term_id = self._primary(term_id)
        cached = self._ancestors.get(term_id)
        if cached is not None:
            return cached
        found: typing.Set[str] = set()
        stack = list(self._parents.get(term_id, ()))
        while stack:
            parent = stack.pop()
            if parent not in found:
                found.add(parent)
                stack.extend(self._parents.get(parent, ()))
        result = frozenset(found)
        self._ancestors[term_id] = result
        return result

    def ancestor_of(self, a: str, b: str) -> bool:
        return self._primary(a) in self.ancestors(b)

    def term_by_id(self, term_id: str) -> typing.Optional[TermInfo]:
        primary = self._primary(term_id)
        label = self._labels.get(primary)
        if label is None:
            return None
        return TermInfo(canonical_id=primary, label=label)

    def children_of(self, term_id: str) -> typing.Sequence[str]:
        return tuple(self._children.get(self._primary(term_id), ()))

    def root_ids(self) -> typing.Sequence[str]:
        return self._roots

    def trailing_root_ids(self) -> typing.Sequence[str]:
        return self._trailing_roots


def _check_curie(curie: str) -> None:
    if not isinstance(curie, str) or curie.count(":") != 1:
        raise ValueError(f"Malformed CURIE: {curie!r}")
    prefix, suffix = curie.split(":")
    if not prefix or not suffix:
        raise ValueError(f"Malformed CURIE: {curie!r}")


def resolve_term(ontology: Ontology, term_id: str) -> TermInfo:
    """Like `Ontology.term_by_id` but raises TermResolutionError for malformed or unknown ids."""
    try:
        info = ontology.term_by_id(term_id)
    except ValueError as e:
        raise TermResolutionError(term_id, f"Malformed term id {term_id!r}: {e}") from e
    if info is None:
        raise TermResolutionError(term_id, f"{term_id} not found in ontology")
    return info
