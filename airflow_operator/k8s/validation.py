"""Schema validation of generated child manifests.

Runs every MANAGED manifest of an ObjectSet through the Kubernetes OpenAPI
schemas shipped with kubernetes-validate. REFERRED objects are skeletons
used only for lookups and are skipped.
"""

import logging
from typing import List, Optional

import kubernetes_validate
from kubernetes_validate.utils import InvalidSchemaError, SchemaNotFoundError, ValidationError

from airflow_operator.core.config import get_config_value
from airflow_operator.core.schema.objects import ObjectSet
from airflow_operator.core.schema.violation import Violation

logger = logging.getLogger(__name__)

DEFAULT_KUBERNETES_VERSION = "1.28"


class SchemaValidator:
    """K8s schema validator for desired object sets.

    Example:
        validator = SchemaValidator()
        violations = validator(component.expected_resources(base, {}))
        assert violations == []
    """

    def __init__(self, kubernetes_version: Optional[str] = None, strict: bool = False):
        """Initialize SchemaValidator.

        Args:
            kubernetes_version: Schema version to validate against (default:
                                config ``validation.kubernetes_version`` or 1.28)
            strict: Also reject fields the schema does not declare
        """
        self.kubernetes_version = kubernetes_version or get_config_value(
            ["validation", "kubernetes_version"], DEFAULT_KUBERNETES_VERSION
        )
        self.strict = strict

    def __call__(self, objects: ObjectSet) -> List[Violation]:
        """Validate every managed manifest in ``objects``.

        Returns:
            List of Violations (empty if all manifests are valid)
        """
        violations = []
        for obj in objects.managed():
            path = [f"{obj.kind}/{obj.name}"]
            try:
                kubernetes_validate.validate(obj.obj, self.kubernetes_version, self.strict)
            except ValidationError as e:
                violations.append(Violation(
                    id="schema.VALIDATION_ERROR",
                    message=str(e),
                    path=path,
                    evidence={"error": str(e)},
                ))
            except (SchemaNotFoundError, InvalidSchemaError) as e:
                violations.append(Violation(
                    id="schema.VALIDATION_EXCEPTION",
                    message=f"Validation failed: {e}",
                    path=path,
                    evidence={"exception": str(e)},
                ))
        if violations:
            logger.debug("%d schema violations against %s", len(violations), self.kubernetes_version)
        return violations
