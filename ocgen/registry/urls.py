"""
URL scheme of the component registry.

    {base}{name}                  rendered markup
    {base}{name}?format=json      component metadata
    {base}{name}?param=value      query parameters forwarded to the component
    {base}{name}/{version}        a pinned version
"""

from typing import Mapping, Optional
from urllib.parse import urlencode


def component_url(
    registry_url: str,
    component_name: str,
    *,
    version: Optional[str] = None,
    params: Optional[Mapping[str, str]] = None,
    as_json: bool = False,
) -> str:
    base = registry_url if registry_url.endswith("/") else f"{registry_url}/"
    url = f"{base}{component_name}"
    if version:
        url = f"{url}/{version}"
    query = dict(params or {})
    if as_json:
        query["format"] = "json"
    if query:
        url = f"{url}?{urlencode(query)}"
    return url
