"""User-configured webhook endpoints: storage, resolution, auth, invocation."""

from toolrelay.webhooks.auth import build_headers
from toolrelay.webhooks.invoker import RequestPlan, WebhookInvoker, plan_request
from toolrelay.webhooks.models import EndpointConfig
from toolrelay.webhooks.resolver import (
    normalize_endpoint_key,
    resolve,
    resolve_endpoint,
)
from toolrelay.webhooks.store import EndpointStore, KeyValueEndpointStore

__all__ = [
    "EndpointConfig",
    "EndpointStore",
    "KeyValueEndpointStore",
    "RequestPlan",
    "WebhookInvoker",
    "build_headers",
    "normalize_endpoint_key",
    "plan_request",
    "resolve",
    "resolve_endpoint",
]
