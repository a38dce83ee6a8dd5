from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from atlasbroker.core.errors import CorruptInstanceState
from atlasbroker.plans.models import Plan


class InstanceRecord(BaseModel):
    """Persisted state of one service instance.

    ``parameters`` is loosely typed on purpose; the resolved plan lives under
    its ``plan`` key and is only trusted after ``plan()`` validates it.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    instance_id: str
    plan_id: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_plan(cls, instance_id: str, plan_id: str | None, plan: Plan) -> InstanceRecord:
        return cls(instance_id=instance_id, plan_id=plan_id, parameters={"plan": plan.to_document()})

    @classmethod
    def from_raw(cls, instance_id: str, raw: Any) -> InstanceRecord:
        if not isinstance(raw, dict):
            raise CorruptInstanceState(
                f"instance metadata has the wrong type {type(raw).__name__}",
                {"instance_id": instance_id},
            )
        try:
            return cls.model_validate({"instanceId": instance_id, **raw})
        except ValidationError as exc:
            raise CorruptInstanceState(
                f"instance record for {instance_id!r} has an incompatible shape",
                {"instance_id": instance_id, "errors": exc.error_count()},
            ) from exc

    def to_raw(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    def plan(self) -> Plan:
        """Decode the persisted plan.

        Raises:
            CorruptInstanceState: plan missing or not a valid plan document
        """
        document = self.parameters.get("plan")
        if document is None:
            raise CorruptInstanceState(
                "plan not found in instance metadata",
                {"instance_id": self.instance_id},
            )
        if not isinstance(document, dict):
            raise CorruptInstanceState(
                f"instance metadata plan has the wrong type {type(document).__name__}",
                {"instance_id": self.instance_id},
            )
        try:
            return Plan.from_document(document)
        except ValidationError as exc:
            raise CorruptInstanceState(
                f"instance plan for {self.instance_id!r} does not match the plan schema",
                {"instance_id": self.instance_id, "errors": exc.error_count()},
            ) from exc
