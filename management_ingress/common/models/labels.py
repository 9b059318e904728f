from typing import Dict


class Labels:
    KUBERNETES_DOMAIN = "app.kubernetes.io/"

    KUBERNETES_NAME_LABEL = KUBERNETES_DOMAIN + "name"

    KUBERNETES_INSTANCE_LABEL = KUBERNETES_DOMAIN + "instance"

    KUBERNETES_COMPONENT_LABEL = KUBERNETES_DOMAIN + "component"

    KUBERNETES_MANAGED_BY_LABEL = KUBERNETES_DOMAIN + "managed-by"

    APP_LABEL = "app"

    COMPONENT_LABEL = "component"

    INTENT_LABEL = "intent"

    OPERATOR_NAME = "ibm-management-ingress-operator"

    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = labels if labels else dict()

    def update(self, labels: Dict[str, str]) -> "Labels":
        self._labels.update(labels.copy())
        return self

    def as_dict(self) -> Dict[str, str]:
        """Return labels as dictionary."""
        return self._labels.copy()

    def include(self, label: str, value: str) -> "Labels":
        self.update({label: value})
        return self

    def include_app(self, app: str) -> "Labels":
        return self.include(self.APP_LABEL, app)

    def include_component(self, component: str) -> "Labels":
        return self.include(self.COMPONENT_LABEL, component).include(
            self.KUBERNETES_COMPONENT_LABEL, component
        )

    def include_kubernetes_name(self, name: str) -> "Labels":
        return self.include(self.KUBERNETES_NAME_LABEL, name)

    def include_kubernetes_instance(self, instance_name: str) -> "Labels":
        return self.include(self.KUBERNETES_INSTANCE_LABEL, instance_name)

    def include_kubernetes_managed_by(self, operator_name: str) -> "Labels":
        return self.include(self.KUBERNETES_MANAGED_BY_LABEL, operator_name)

    def include_intent(self, intent: str) -> "Labels":
        return self.include(self.INTENT_LABEL, intent)

    def __str__(self):
        return f"Labels<{self._labels}>"

    @classmethod
    def generate_default_labels(
        cls, app_name: str, instance_name: str, managed_by: str = OPERATOR_NAME
    ) -> "Labels":
        labels = Labels()
        return (
            labels.include_app(app_name)
            .include_component(app_name)
            .include_kubernetes_name(app_name)
            .include_kubernetes_instance(instance_name)
            .include_kubernetes_managed_by(managed_by)
        )

    @classmethod
    def has_legacy_selector(cls, match_labels: Dict[str, str]) -> bool:
        """True for selectors written with an empty managed-by label.

        Deployment selectors are immutable, so such deployments have to be
        recreated rather than patched.
        """
        return (match_labels or {}).get(cls.KUBERNETES_MANAGED_BY_LABEL, None) == ""
