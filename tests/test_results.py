"""Unit tests for the result aggregator."""

import pytest

from common.models.results import Outcome, Protocol
from manager.core.results import REPORT_HEADER, ResultAggregator


class TestResultAggregator:
    """Tests for collecting and rendering results."""

    def test_empty_report(self):
        """Test that an empty report is just the header."""
        results = ResultAggregator()

        assert results.rows() == [REPORT_HEADER]
        assert results.rows(header=None) == []
        assert results.all_succeeded is True

    def test_rows_in_recording_order(self):
        """Test that rows follow the order results were recorded."""
        results = ResultAggregator()
        results.record_success("10.1.0.10", Protocol.NFS, 2_000_000_000, 3_500_000_000)
        results.record_failure("10.2.0.10", Protocol.NFS, Outcome.MOUNT_FAILED)
        results.record_success("10.1.0.10", Protocol.S3, 999, 1000)

        assert results.rows() == [
            "dataVip,protocol,result,write_tput,read_tput",
            "10.1.0.10,nfs,SUCCESS,2.0 GB/s,3.5 GB/s",
            "10.2.0.10,nfs,MOUNT FAILED,-,-",
            "10.1.0.10,s3,SUCCESS,999.0 B/s,1.0 kB/s",
        ]

    def test_zero_rates_are_success(self):
        """Test that a reachable target with no I/O still reports success."""
        results = ResultAggregator()
        record = results.record_success("10.1.0.10", Protocol.S3, 0.0, 0.0)

        assert record.outcome == Outcome.SUCCESS
        assert record.to_row() == "10.1.0.10,s3,SUCCESS,0.0 B/s,0.0 B/s"

    def test_failure_needs_failure_outcome(self):
        """Test that a failure cannot be recorded as success."""
        with pytest.raises(ValueError):
            ResultAggregator().record_failure("10.1.0.10", Protocol.S3, Outcome.SUCCESS)

    def test_for_protocol(self):
        """Test filtering results by protocol."""
        results = ResultAggregator()
        results.record_success("a", Protocol.NFS, 1, 1)
        results.record_failure("b", Protocol.S3, Outcome.CONNECT_FAILED)

        assert [r.target for r in results.for_protocol(Protocol.S3)] == ["b"]
        assert results.all_succeeded is False

    def test_records_are_copies(self):
        """Test that callers cannot mutate the stored list."""
        results = ResultAggregator()
        results.record_success("a", Protocol.NFS, 1, 1)

        results.records.clear()

        assert len(results.records) == 1

    def test_teardown_failures(self):
        """Test that teardown failures are kept apart from results."""
        results = ResultAggregator()
        results.record_success("a", Protocol.NFS, 1, 1)
        results.record_teardown_failure("bucket b", "injected failure")

        assert len(results.rows()) == 2
        assert results.teardown_failures[0].resource == "bucket b"
        assert results.all_succeeded is False

    def test_to_dict(self):
        """Test the plain-data report form."""
        results = ResultAggregator()
        results.record_success("a", Protocol.NFS, 10.0, 20.0)
        results.record_teardown_failure("bucket b", "boom")

        data = results.to_dict()

        assert data["results"] == [{
            "target": "a",
            "protocol": "nfs",
            "outcome": "SUCCESS",
            "write_rate": 10.0,
            "read_rate": 20.0,
        }]
        assert data["teardown_failures"] == [{"resource": "bucket b", "error": "boom"}]
