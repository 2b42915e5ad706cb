"""Update predicate for webhook configurations that istiod patches at runtime."""

from __future__ import annotations

import copy
import re
from typing import Any

_ISTIOD_VALIDATOR_PATTERN = re.compile(r"istiod-.*-validator|istio-validator.*")


def _clear_ignored_fields(obj: dict[str, Any]) -> dict[str, Any]:
    obj = copy.deepcopy(obj)
    meta = obj.setdefault("metadata", {})
    meta.pop("resourceVersion", None)
    meta.pop("generation", None)
    meta.pop("managedFields", None)
    for webhook in obj.get("webhooks") or []:
        webhook.pop("failurePolicy", None)
    return obj


def validating_webhook_config_update(
    name: str, old: dict[str, Any] | None, new: dict[str, Any] | None
) -> bool:
    """Whether an update of the ValidatingWebhookConfiguration ``name`` should trigger.

    ``old`` and ``new`` may be full bodies or the diff essences kopf passes
    to update handlers; the name is given separately because essences omit it.
    """
    if old is None or new is None:
        return False

    if _ISTIOD_VALIDATOR_PATTERN.search(name):
        # istiod rewrites failurePolicy in istiod-<ns>-validator and
        # istio-validator[-<rev>]-<ns>; reacting to it would loop forever.
        return _clear_ignored_fields(old) != _clear_ignored_fields(new)
    return True
