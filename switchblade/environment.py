"""Environment entries shared by the staging and running containers."""

import json

from .errors import SwitchbladeError

_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _marshal(value):
    text = json.dumps(
        value, separators=(",", ":"), sort_keys=True, ensure_ascii=False, allow_nan=False
    )
    for char, escape in _ESCAPES.items():
        text = text.replace(char, escape)
    return text


def services_env(name, services):
    """Return the ``VCAP_SERVICES=...`` entry binding *services* to the app *name*.

    Each service becomes a user-provided binding named ``<name>-<key>``, in
    key order; with no services the value is an empty object.
    """
    if not services:
        return "VCAP_SERVICES={}"

    bindings = [
        {"name": f"{name}-{key}", "credentials": services[key]}
        for key in sorted(services)
    ]
    try:
        content = _marshal({"user-provided": bindings})
    except (TypeError, ValueError) as err:
        raise SwitchbladeError(f"failed to marshal services json: {err}") from err

    return f"VCAP_SERVICES={content}"