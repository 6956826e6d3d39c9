"""New Relic logging integration helpers."""

from collections.abc import MutableMapping
from typing import Any

import newrelic.agent

# Log context keys that are safe to forward to New Relic as error attributes
FORWARDED_CONTEXT_KEYS = ("tenant_host", "trust_domain", "error_kind", "path")


def newrelic_error_processor(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Processor that sends error-level logs to New Relic.

    Error and critical events are reported with notice_error, carrying the
    request context keys (tenant host, trust domain...) as attributes. Every
    log level passes through unchanged.
    """
    if method_name in ("error", "critical"):
        attributes = {
            key: str(event_dict[key]) for key in FORWARDED_CONTEXT_KEYS if key in event_dict
        }
        newrelic.agent.notice_error(attributes=attributes or None)

    return event_dict
