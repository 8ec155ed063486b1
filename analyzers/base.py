# analyzers/base.py
"""
Shared analyzer plumbing.

An analyzer is a named set of independent rules. Each rule takes the
Resource Store and returns zero or more findings; the analyzer runs every
rule in order and hands the collected findings to build_result, which
wraps them in the analyzer's scored result type.
"""

from typing import Callable, Generic, List, Sequence, TypeVar

from models import Finding, ScoredAnalysis
from resources import Resource

ResultT = TypeVar("ResultT", bound=ScoredAnalysis)
Rule = Callable[[Sequence[Resource]], List[Finding]]


class Analyzer(Generic[ResultT]):
    """Base class: subclasses list their rule methods and build their result."""

    name = "analyzer"

    def rules(self) -> List[Rule]:
        raise NotImplementedError

    def build_result(self, resources: Sequence[Resource], findings: List[Finding]) -> ResultT:
        raise NotImplementedError

    def analyze(self, resources: Sequence[Resource]) -> ResultT:
        findings: List[Finding] = []
        for rule in self.rules():
            findings.extend(rule(resources))
        return self.build_result(resources, findings)
