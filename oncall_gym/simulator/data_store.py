"""In-memory store of simulated telemetry backing the diagnostic tools.

A DataStore holds four collections for one scenario: log entries, metric
series keyed by service and metric name, deploy records and runbooks. It is
loaded once from fixtures and only ever read; every query returns copies.
"""

import copy
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog
import yaml

from oncall_gym.exceptions import FixtureNotFoundError


logger = structlog.get_logger()

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)
_FIXTURE_SUFFIXES = (".json", ".yaml", ".yml")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _normalize(value: Any) -> Any:
    # YAML turns unquoted timestamps into datetimes; keep everything as ISO text
    if isinstance(value, datetime):
        dt = parse_timestamp(value)
        return dt.isoformat().replace("+00:00", "Z")
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def _newest_first(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(
        records,
        key=lambda r: parse_timestamp(r.get("timestamp")) or _EPOCH,
        reverse=True,
    )


def _read_fixture_file(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f)


class DataStore:
    """Read-only simulated logs, metrics, deploys and runbooks."""

    def __init__(
        self,
        logs: Optional[List[Dict[str, Any]]] = None,
        metrics: Optional[Dict[str, Dict[str, List[Dict[str, Any]]]]] = None,
        deploys: Optional[List[Dict[str, Any]]] = None,
        runbooks: Optional[List[Dict[str, Any]]] = None,
    ):
        self._logs = _normalize(list(logs or []))
        self._metrics = _normalize(dict(metrics or {}))
        self._deploys = _normalize(list(deploys or []))
        self._runbooks = _normalize(list(runbooks or []))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DataStore":
        data = data or {}
        return cls(
            logs=data.get("logs"),
            metrics=data.get("metrics"),
            deploys=data.get("deploys"),
            runbooks=data.get("runbooks"),
        )

    @classmethod
    def from_fixtures(cls, directory: Union[str, Path]) -> "DataStore":
        """
        Load a store from a fixture directory.

        The directory may contain ``logs``, ``metrics``, ``deploys`` and
        ``runbooks`` files in JSON or YAML. Missing files mean empty data.
        """
        directory = Path(directory).expanduser()
        if not directory.is_dir():
            raise FixtureNotFoundError(f"fixture directory not found: {directory}")

        data = {}
        for kind in ("logs", "metrics", "deploys", "runbooks"):
            for suffix in _FIXTURE_SUFFIXES:
                path = directory / f"{kind}{suffix}"
                if path.exists():
                    data[kind] = _read_fixture_file(path)
                    break

        logger.debug("Fixtures loaded", directory=str(directory), kinds=sorted(data))
        return cls.from_dict(data)

    # -- queries -------------------------------------------------------------

    def logs(
        self,
        service: Optional[str] = None,
        level: Optional[str] = None,
        keyword: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Log entries matching all given filters, newest first."""
        entries = self._logs
        if service is not None:
            entries = [e for e in entries if e.get("service") == service]
        if level is not None:
            entries = [e for e in entries if str(e.get("level", "")).lower() == level.lower()]
        if keyword:
            needle = keyword.lower()
            entries = [e for e in entries if needle in str(e.get("message", "")).lower()]

        entries = _newest_first(entries)
        if limit is not None:
            entries = entries[:limit]
        return copy.deepcopy(entries)

    def metrics(self, service: str, metric_name: str) -> List[Dict[str, Any]]:
        """Datapoints for one metric series, newest first; empty if unknown."""
        series = self._metrics.get(service, {}).get(metric_name, [])
        return copy.deepcopy(_newest_first(series))

    def available_metrics(self, service: str) -> List[str]:
        return list(self._metrics.get(service, {}))

    @property
    def services(self) -> List[str]:
        """Every service mentioned anywhere in the store."""
        names = set(self._metrics)
        for records in (self._logs, self._deploys, self._runbooks):
            names.update(r["service"] for r in records if r.get("service"))
        return sorted(names)

    def deploys(
        self,
        service: Optional[str] = None,
        since: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Deploy records, newest first, optionally only those at or after ``since``."""
        records = self._deploys
        if service is not None:
            records = [d for d in records if d.get("service") == service]
        if since is not None:
            cutoff = parse_timestamp(since)
            if cutoff is None:
                raise ValueError(f"invalid timestamp: {since}")
            records = [
                d for d in records
                if (parse_timestamp(d.get("timestamp")) or _EPOCH) >= cutoff
            ]

        records = _newest_first(records)
        if limit is not None:
            records = records[:limit]
        return copy.deepcopy(records)

    def runbooks(
        self,
        service: Optional[str] = None,
        topic: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Runbooks whose title or symptoms contain ``topic`` (case-insensitive)."""
        books = self._runbooks
        if service is not None:
            books = [b for b in books if b.get("service") == service]
        if topic:
            needle = topic.lower()
            books = [
                b for b in books
                if needle in str(b.get("title", "")).lower()
                or any(needle in str(s).lower() for s in b.get("symptoms") or [])
            ]
        return copy.deepcopy(books)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "logs": copy.deepcopy(self._logs),
            "metrics": copy.deepcopy(self._metrics),
            "deploys": copy.deepcopy(self._deploys),
            "runbooks": copy.deepcopy(self._runbooks),
        }
