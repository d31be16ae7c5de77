# src/terra_converge/render/units.py
"""
Protocolo de renderização de execution units e implementação padrão.

O renderer recebe recurso, provider, stage e opções e devolve uma
`ExecutionUnit` ainda não persistida. Os labels de correlação são
sempre reaplicados pelo Step que cria a unit, independentemente do
renderer utilizado.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from terra_converge.core.config.settings import Settings
from terra_converge.model.labels import (
    OWNER_NAME_LABEL,
    OWNER_NAMESPACE_LABEL,
    OWNER_UID_LABEL,
    STAGE_LABEL,
    GENERATION_LABEL,
    WATCHER_LABEL,
    Stage,
    UnitLabels,
    config_artifact_name,
    watcher_name,
)
from terra_converge.model.meta import ObjectMeta
from terra_converge.model.resources import Configuration, ExecutionUnit, Provider


@dataclass(frozen=True)
class RenderOptions:
    namespace: str
    executor_image: str
    terraform_image: str
    policy_image: str = ""
    infracost_image: str = ""
    enable_infracosts: bool = False
    enable_policy: bool = False
    executor_secrets: List[str] = field(default_factory=list)
    backoff_limit: int = 2
    extra_labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "RenderOptions":
        c = settings.controller
        values = dict(
            namespace=c.namespace,
            executor_image=c.executor_image,
            terraform_image=c.terraform_image,
            policy_image=c.policy_image,
            infracost_image=c.infracost_image,
            enable_infracosts=c.enable_infracosts,
            executor_secrets=list(c.executor_secrets),
            backoff_limit=c.backoff_limit,
        )
        values.update(overrides)
        return cls(**values)


class UnitRenderer(Protocol):
    def render(
        self,
        resource: Configuration,
        provider: Optional[Provider],
        stage: Stage,
        options: RenderOptions,
    ) -> ExecutionUnit:
        ...

    def render_watcher(self, resource: Configuration, stage: Stage, options: RenderOptions) -> ExecutionUnit:
        ...


def correlation_labels(resource: Configuration, stage: Stage) -> Dict[str, str]:
    return UnitLabels(
        name=resource.metadata.name,
        namespace=resource.metadata.namespace,
        owner_uid=resource.metadata.uid,
        stage=stage,
        generation=resource.metadata.generation,
    ).to_dict()


class DefaultUnitRenderer:
    """Renderer mínimo: um container executor com o comando do stage."""

    def render(
        self,
        resource: Configuration,
        provider: Optional[Provider],
        stage: Stage,
        options: RenderOptions,
    ) -> ExecutionUnit:
        meta = resource.metadata
        labels = correlation_labels(resource, stage)
        labels.update(options.extra_labels)

        env = {
            "CONFIGURATION_NAME": meta.name,
            "CONFIGURATION_NAMESPACE": meta.namespace,
            "CONFIGURATION_UID": meta.uid,
            "TERRAFORM_STAGE": stage.value,
            "CONFIG_ARTIFACT": config_artifact_name(meta.uid),
        }
        if provider is not None:
            env["PROVIDER"] = provider.spec.provider

        steps = [{"name": "terraform", "image": options.terraform_image, "command": ["terraform", stage.value]}]
        if stage == Stage.PLAN and options.enable_policy and options.policy_image:
            steps.append({"name": "policy", "image": options.policy_image, "command": ["checkov", "--framework", "terraform_plan"]})
        if stage == Stage.PLAN and options.enable_infracosts and options.infracost_image:
            steps.append({"name": "costs", "image": options.infracost_image, "command": ["infracost", "breakdown"]})

        return ExecutionUnit(
            metadata=ObjectMeta(
                name=f"{meta.name}-{stage.value}-{uuid.uuid4().hex[:5]}",
                namespace=options.namespace,
                labels=labels,
            ),
            spec={
                "image": options.executor_image,
                "steps": steps,
                "env": env,
                "secrets": list(options.executor_secrets),
                "backoff_limit": options.backoff_limit,
            },
        )

    def render_watcher(self, resource: Configuration, stage: Stage, options: RenderOptions) -> ExecutionUnit:
        meta = resource.metadata
        labels = {
            OWNER_NAME_LABEL: meta.name,
            OWNER_NAMESPACE_LABEL: meta.namespace,
            OWNER_UID_LABEL: meta.uid,
            STAGE_LABEL: stage.value,
            GENERATION_LABEL: str(meta.generation),
            WATCHER_LABEL: "true",
        }
        return ExecutionUnit(
            metadata=ObjectMeta(
                name=watcher_name(meta.name, meta.generation, stage),
                namespace=meta.namespace,
                labels=labels,
            ),
            spec={
                "image": options.executor_image,
                "args": [
                    "watch",
                    f"--namespace={options.namespace}",
                    f"--stage={stage.value}",
                    f"--generation={meta.generation}",
                    f"--uid={meta.uid}",
                ],
            },
        )
