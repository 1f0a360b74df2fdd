"""
Redaction and log line property tests.

Property-based tests using Hypothesis to validate:
- Redaction never raises and stays within its length bounds
- Sensitive values never appear in redacted output
- Every sink write produces exactly one line
"""

import json
import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from reqtrail.observability.log_sink import LogCategory, LogSink
from reqtrail.observability.logger import RequestRecord, format_log_line
from reqtrail.security.payload_scrubber import DEFAULT_SENSITIVE_KEYS, redact
from reqtrail.utils.time_provider import FakeTimeProvider

json_values = st.recursive(
    st.none()
    | st.booleans()
    | st.integers(-(10**12), 10**12)
    | st.floats(allow_nan=False)
    | st.text(max_size=50),
    lambda children: st.lists(children, max_size=5)
    | st.dictionaries(st.text(max_size=10), children, max_size=5),
    max_leaves=30,
)

log_text = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",)),
    max_size=200,
)


class TestRedactionProperties:
    """Property-based tests for redaction invariants."""

    @settings(max_examples=200, deadline=None)
    @given(value=json_values)
    def test_never_raises_and_bounded(self, value):
        """Property: redact() always returns a string of at most 1003 characters."""
        result = redact(value)
        assert isinstance(result, str)
        assert len(result) <= 1003

    @settings(max_examples=100, deadline=None)
    @given(text=st.text(max_size=2000))
    def test_string_bound(self, text):
        """Property: strings are cut to 500 characters plus an ellipsis."""
        result = redact(text)
        if len(text) <= 500:
            assert result == text
        else:
            assert result == text[:500] + "..."

    @settings(max_examples=100, deadline=None)
    @given(
        key=st.sampled_from(sorted(DEFAULT_SENSITIVE_KEYS)),
        secret=st.text(alphabet="0123456789", min_size=8, max_size=40),
        nested=st.booleans(),
    )
    def test_secrets_never_logged(self, key, secret, nested):
        """Property: values under sensitive keys never reach the output."""
        payload = {"name": "visible", key: secret}
        if nested:
            payload = {"user": payload}
        result = redact(payload)

        assert secret not in result
        assert "visible" in result
        decoded = json.loads(result)
        masked = decoded["user"] if nested else decoded
        assert masked[key] == "***"

    @settings(max_examples=100, deadline=None)
    @given(
        key=st.sampled_from(sorted(DEFAULT_SENSITIVE_KEYS)),
        secret=st.text(alphabet="0123456789", min_size=1, max_size=40),
        extra=st.dictionaries(
            st.text(alphabet="abcdefghij", min_size=1, max_size=8),
            st.text(alphabet="abcdefghij ", max_size=20) | st.integers(-1000, 1000) | st.booleans(),
            max_size=4,
        ),
    )
    def test_redaction_idempotent(self, key, secret, extra):
        """Property: redacting an already redacted payload changes nothing."""
        payload = {**extra, key: secret}
        first = redact(payload)
        second = redact(first)

        assert second == first
        assert json.loads(first)[key] == "***"
        assert json.loads(second)[key] == "***"

    @settings(max_examples=100, deadline=None)
    @given(value=json_values)
    def test_input_never_mutated(self, value):
        """Property: redaction leaves its input untouched."""
        before = json.dumps(value, sort_keys=True)
        redact(value)
        assert json.dumps(value, sort_keys=True) == before


class TestLogLineProperties:
    """Property-based tests for log line framing."""

    @settings(max_examples=30, deadline=None)
    @given(messages=st.lists(log_text, min_size=1, max_size=5), url=log_text)
    def test_one_line_per_write(self, messages, url):
        """Property: arbitrary text never splits a log entry across lines."""
        with tempfile.TemporaryDirectory() as tmp:
            sink = LogSink(Path(tmp), time_provider=FakeTimeProvider(start_time=1709294400.0), offset_hours=0)
            try:
                for message in messages:
                    record = RequestRecord(
                        timestamp="2024-03-01T12:00:00",
                        correlation_id="abc",
                        method="POST",
                        url=url,
                        payload=message,
                    )
                    sink.write(LogCategory.APPLICATION, format_log_line(record))
            finally:
                sink.close()

            data = (Path(tmp) / "application-2024-03-01.log").read_bytes()
            assert data.count(b"\n") == len(messages)
