"""Collects per-target outcomes into the final report."""

from __future__ import annotations

import logging
from typing import Optional

from common.models.results import (
    Outcome,
    Protocol,
    ResultRecord,
    TeardownFailure,
)

logger = logging.getLogger(__name__)

REPORT_HEADER = "dataVip,protocol,result,write_tput,read_tput"


class ResultAggregator:
    """Append-only list of results, one per tested (target, protocol)."""
    
    def __init__(self):
        self._records: list[ResultRecord] = []
        self._teardown_failures: list[TeardownFailure] = []
    
    @property
    def records(self) -> list[ResultRecord]:
        return list(self._records)
    
    @property
    def teardown_failures(self) -> list[TeardownFailure]:
        return list(self._teardown_failures)
    
    def record(self, record: ResultRecord) -> ResultRecord:
        self._records.append(record)
        logger.debug(f"Recorded result: {record.to_row()}")
        return record
    
    def record_success(
        self,
        target: str,
        protocol: Protocol,
        write_rate: float,
        read_rate: float,
    ) -> ResultRecord:
        return self.record(ResultRecord(
            target=target,
            protocol=protocol,
            outcome=Outcome.SUCCESS,
            write_rate=write_rate,
            read_rate=read_rate,
        ))
    
    def record_failure(self, target: str, protocol: Protocol, outcome: Outcome) -> ResultRecord:
        if outcome == Outcome.SUCCESS:
            raise ValueError("A failure record needs a failure outcome")
        return self.record(ResultRecord(target=target, protocol=protocol, outcome=outcome))
    
    def record_teardown_failure(self, resource: str, error: str) -> None:
        self._teardown_failures.append(TeardownFailure(resource=resource, error=error))
    
    def extend_teardown_failures(self, failures: list[TeardownFailure]) -> None:
        self._teardown_failures.extend(failures)
    
    def for_protocol(self, protocol: Protocol) -> list[ResultRecord]:
        return [r for r in self._records if r.protocol == protocol]
    
    @property
    def all_succeeded(self) -> bool:
        return all(r.outcome == Outcome.SUCCESS for r in self._records) and not self._teardown_failures
    
    def rows(self, header: Optional[str] = REPORT_HEADER) -> list[str]:
        """Report lines, header first."""
        lines = [header] if header else []
        lines.extend(r.to_row() for r in self._records)
        return lines
    
    def to_dict(self) -> dict:
        """Plain-data form of the report, for YAML export."""
        return {
            "results": [r.model_dump(mode="json") for r in self._records],
            "teardown_failures": [f.model_dump() for f in self._teardown_failures],
        }
