"""Service authoring forms.

Authors can describe where a service is published in three ways:

- declarative: ``{namespace: prod, subdomain: api}``, a literal ``host``,
  an explicit ``public`` block, or nothing at all;
- template: ``{host: "@prod/api"}``;
- helper: ``{host: h("prod", "api")}`` inside a callable ``services`` block.

``normalize_services`` runs once at the configuration boundary and tags every
raw service with its form. The resolver then dispatches on ``form`` only.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator, model_validator

from .models import HostHelper, HostRef, PublicEndpoint, ServiceFields

TEMPLATE_PATTERN = re.compile(r"^@(?P<namespace>[^/\s]+)/(?P<subdomain>[^/\s]+)$")


class DeclarativeForm(ServiceFields):
    form: Literal["declarative"] = "declarative"
    namespace: str | None = None
    subdomain: str | None = None
    host: str | None = None
    public: PublicEndpoint | None = None

    @model_validator(mode="after")
    def one_host_source(self) -> DeclarativeForm:
        if self.subdomain is not None and self.namespace is None:
            raise ValueError("subdomain requires a namespace")
        sources = [self.subdomain, self.host, self.public]
        if sum(source is not None for source in sources) > 1:
            raise ValueError("use only one of subdomain, host or public")
        return self

    def host_target(self) -> tuple[str, str] | None:
        if self.subdomain is None or self.namespace is None:
            return None
        return self.namespace, self.subdomain


class TemplateForm(ServiceFields):
    form: Literal["template"] = "template"
    namespace: str | None = None
    template: str

    @field_validator("template")
    @classmethod
    def valid_template(cls, value: str) -> str:
        if not TEMPLATE_PATTERN.match(value):
            raise ValueError(f"Host template {value!r} must look like '@namespace/subdomain'")
        return value

    def host_target(self) -> tuple[str, str]:
        # validated as @namespace/subdomain
        namespace, _, subdomain = self.template[1:].partition("/")
        return namespace, subdomain


class HelperForm(ServiceFields):
    form: Literal["helper"] = "helper"
    namespace: str | None = None
    ref: HostRef

    def host_target(self) -> tuple[str, str]:
        return self.ref.namespace, self.ref.subdomain


ServiceForm = Annotated[
    DeclarativeForm | TemplateForm | HelperForm, Field(discriminator="form")
]


def normalize_service(raw: Any) -> Any:
    """Tag one raw service declaration with its authoring form."""
    if isinstance(raw, (DeclarativeForm, TemplateForm, HelperForm)):
        return raw
    if not isinstance(raw, Mapping):
        raise ValueError(f"Service declaration must be a mapping, got {type(raw).__name__}")

    data = dict(raw)
    if "form" in data:
        return data

    host_value = data.get("host")
    if isinstance(host_value, HostRef):
        data.pop("host")
        return {**data, "form": "helper", "ref": host_value}
    if isinstance(host_value, str) and host_value.startswith("@"):
        data.pop("host")
        return {**data, "form": "template", "template": host_value}
    return {**data, "form": "declarative"}


def normalize_services(
    raw: Mapping[str, Any] | Callable[[HostHelper], Mapping[str, Any]],
) -> dict[str, Any]:
    """Normalize a services block (a mapping, or a callable taking the host helper)."""
    if callable(raw):
        raw = raw(HostHelper())
    if not isinstance(raw, Mapping):
        raise ValueError("services must be a mapping of service name to declaration")
    return {str(name): normalize_service(spec) for name, spec in raw.items()}
