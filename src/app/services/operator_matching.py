"""Operator Matching

Resolves the operator inferred by the compute engine to a billing customer.
Matchers are evaluated in priority order and the first hit wins:

1. exact IBA operator id
2. exact JetNet operator id
3. case-insensitive legal or trading name
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence
from src.app.repositories.customer_repository import CustomerRepository
from src.domain.flight import AircraftData, UNKNOWN_OPERATOR
from src.domain.invoice_error import OperatorMatchErrorType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperatorCandidate:
    """Operator identity as reported in compute output"""

    name: str
    iba_id: Optional[str] = None
    jetnet_id: Optional[str] = None

    @classmethod
    def from_aircraft_data(cls, aircraft_data: AircraftData) -> "OperatorCandidate":
        return cls(
            name=aircraft_data.display_name(),
            iba_id=aircraft_data.resolved_iba_id(),
            jetnet_id=aircraft_data.resolved_jetnet_id(),
        )

    @property
    def has_external_ids(self) -> bool:
        return bool(self.iba_id or self.jetnet_id)


@dataclass(frozen=True)
class OperatorLookupResult:
    operator_id: Optional[int]
    match_method: str
    error: Optional[OperatorMatchErrorType] = None
    attempted_iba_id: Optional[str] = None
    attempted_jetnet_id: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.operator_id is not None


class OperatorMatcher(ABC):
    """One strategy of the operator resolution chain"""

    method: str = "none"

    @abstractmethod
    async def try_match(self, candidate: OperatorCandidate) -> Optional[int]:
        """Return the customer id, or None when this strategy does not apply or finds nothing"""
        pass


class IbaIdOperatorMatcher(OperatorMatcher):
    method = "iba_id"

    def __init__(self, customer_repo: CustomerRepository):
        self.customer_repo = customer_repo

    async def try_match(self, candidate: OperatorCandidate) -> Optional[int]:
        if not candidate.iba_id:
            return None
        customer = await self.customer_repo.get_by_iba_id(candidate.iba_id)
        return customer.id if customer else None


class JetNetIdOperatorMatcher(OperatorMatcher):
    method = "jetnet_id"

    def __init__(self, customer_repo: CustomerRepository):
        self.customer_repo = customer_repo

    async def try_match(self, candidate: OperatorCandidate) -> Optional[int]:
        if not candidate.jetnet_id:
            return None
        customer = await self.customer_repo.get_by_jetnet_id(candidate.jetnet_id)
        return customer.id if customer else None


class NameOperatorMatcher(OperatorMatcher):
    method = "name_match"

    def __init__(self, customer_repo: CustomerRepository):
        self.customer_repo = customer_repo

    async def try_match(self, candidate: OperatorCandidate) -> Optional[int]:
        # The placeholder name would match any customer literally called that
        if not candidate.name or candidate.name == UNKNOWN_OPERATOR:
            return None
        customer = await self.customer_repo.get_by_name(candidate.name)
        return customer.id if customer else None


class OperatorResolver:
    """
    Runs matchers in order and reports how (or why not) an operator resolved

    Repository failures propagate to the caller; they are persistence
    problems, not matching failures.
    """

    def __init__(self, matchers: Sequence[OperatorMatcher]):
        self.matchers: List[OperatorMatcher] = list(matchers)

    @classmethod
    def default(cls, customer_repo: CustomerRepository) -> "OperatorResolver":
        return cls(
            [
                IbaIdOperatorMatcher(customer_repo),
                JetNetIdOperatorMatcher(customer_repo),
                NameOperatorMatcher(customer_repo),
            ]
        )

    async def resolve(self, candidate: OperatorCandidate) -> OperatorLookupResult:
        for matcher in self.matchers:
            operator_id = await matcher.try_match(candidate)
            if operator_id is not None:
                logger.debug(f"Matched operator {operator_id} by {matcher.method}")
                return OperatorLookupResult(
                    operator_id=operator_id,
                    match_method=matcher.method,
                    attempted_iba_id=candidate.iba_id,
                    attempted_jetnet_id=candidate.jetnet_id,
                )

        if candidate.has_external_ids:
            error = OperatorMatchErrorType.OPERATOR_ID_MISMATCH
        else:
            error = OperatorMatchErrorType.OPERATOR_ID_NOT_FOUND

        logger.warning(
            f"No operator match found for: name='{candidate.name}', "
            f"iba_id='{candidate.iba_id}', jetnet_id='{candidate.jetnet_id}', error={error.value}"
        )
        return OperatorLookupResult(
            operator_id=None,
            match_method="none",
            error=error,
            attempted_iba_id=candidate.iba_id,
            attempted_jetnet_id=candidate.jetnet_id,
        )
