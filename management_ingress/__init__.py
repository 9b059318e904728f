# Kopf patches must be applied before anything imports kopf, so that
# kubernetes_asyncio models are recognised by kopf.append_owner_reference.
from management_ingress.utils.override import patch_kopf_thirdparty
patch_kopf_thirdparty()

try:
    import os
    from dotenv import load_dotenv, find_dotenv

    env_file = os.environ.get("ENV_FILE", ".env")
    path = find_dotenv(filename=env_file, raise_error_if_not_found=True)
    print(f"Loading environment variables from {path}")
    load_dotenv(dotenv_path=path)

except Exception:
    # No file to set environment variables
    pass

# Now safe to import handlers (which import kopf)  # noqa: E402
from management_ingress.handlers import (  # noqa: E402
    probes,
    managementingress,
)

__all__ = [
    "probes",
    "managementingress",
]

__version__ = "0.1.0"
