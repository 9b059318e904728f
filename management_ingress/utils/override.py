"""
Teach kopf to recognise kubernetes_asyncio models.

kopf detects third-party kubernetes models through
``kopf._cogs.helpers.thirdparty``, which only knows about the synchronous
``kubernetes`` client. The operator builds its owned objects with
``kubernetes_asyncio`` models and relies on ``kopf.append_owner_reference``
to set owner references on them, so the detection module is replaced in
``sys.modules`` before kopf loads it.

This module must be imported before anything imports kopf.
"""
import abc
import sys
import types
from typing import Any, Optional

_THIRDPARTY = "kopf._cogs.helpers.thirdparty"


def patch_kopf_thirdparty():
    """Install the kubernetes_asyncio aware thirdparty module (idempotent)."""
    existing = sys.modules.get(_THIRDPARTY)
    if existing is not None and getattr(existing, "_management_ingress_patched", False):
        return

    class _absent:
        pass

    try:
        from pykube.objects import APIObject as PykubeObject
    except ImportError:
        PykubeObject = _absent

    from kubernetes_asyncio.client import V1ObjectMeta, V1OwnerReference

    class KubernetesModel(abc.ABC):
        @classmethod
        def __subclasshook__(cls, subcls: Any) -> Any:
            if cls is KubernetesModel:
                for klass in subcls.__mro__:
                    module = klass.__module__
                    if module.startswith("kubernetes.client.models.") or module.startswith(
                        "kubernetes_asyncio.client.models."
                    ):
                        return True
            return NotImplemented

        @property
        def metadata(self) -> Optional[V1ObjectMeta]:
            raise NotImplementedError

        @metadata.setter
        def metadata(self, _: Optional[V1ObjectMeta]) -> None:
            raise NotImplementedError

    module = types.ModuleType("thirdparty")
    module.PykubeObject = PykubeObject
    module.KubernetesModel = KubernetesModel
    module.V1ObjectMeta = V1ObjectMeta
    module.V1OwnerReference = V1OwnerReference
    module._management_ingress_patched = True
    sys.modules[_THIRDPARTY] = module


patch_kopf_thirdparty()
