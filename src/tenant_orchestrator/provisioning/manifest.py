"""Deployment manifest rendering and storage."""

import os
import pathlib
import tempfile
from dataclasses import dataclass

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from tenant_orchestrator.plans.catalog import PlanLimits
from tenant_orchestrator.provisioning.runtime import network_name

_TEMPLATES_DIR = pathlib.Path(__file__).parent / "templates"
DEFAULT_TEMPLATE = _TEMPLATES_DIR / "tenant-stack.yml.j2"


@dataclass(frozen=True)
class ManifestContext:
    """Everything a stack template may reference."""

    tenant_id: str
    tenant_name: str
    plan: str
    subdomain: str
    base_domain: str
    app_url: str
    db_password: str
    cache_password: str
    subnet: str
    limits: PlanLimits


class ManifestRenderer:
    """Fills the stack template for one tenant. Missing variables are an error."""

    def __init__(self, template_path: str | os.PathLike | None = None):
        path = pathlib.Path(template_path) if template_path else DEFAULT_TEMPLATE
        self._env = Environment(
            loader=FileSystemLoader(str(path.parent)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        self._template_name = path.name

    def render(self, context: ManifestContext) -> str:
        template = self._env.get_template(self._template_name)
        return template.render(
            tenant_id=context.tenant_id,
            tenant_name=context.tenant_name,
            plan=context.plan,
            subdomain=context.subdomain,
            base_domain=context.base_domain,
            app_url=context.app_url,
            db_password=context.db_password,
            cache_password=context.cache_password,
            subnet=context.subnet,
            network_name=network_name(context.tenant_id),
            limits=context.limits,
        )


class ManifestStore:
    """Rendered manifests on disk, one file per tenant."""

    def __init__(self, base_dir: str | os.PathLike):
        self.base_dir = pathlib.Path(base_dir)

    def path_for(self, tenant_id: str) -> pathlib.Path:
        return self.base_dir / f"docker-compose-tenant-{tenant_id}.yml"

    def save(self, tenant_id: str, manifest: str) -> pathlib.Path:
        """Write (or overwrite) a tenant's manifest atomically."""
        path = self.path_for(tenant_id)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, prefix=".manifest-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(manifest)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        return path

    def exists(self, tenant_id: str) -> bool:
        return self.path_for(tenant_id).exists()
