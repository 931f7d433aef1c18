"""Run the operator: ``python -m sftpgo_operator``."""

import os

import kopf

from . import main as _main  # noqa: F401  registers startup and resource handlers


def main() -> None:
    namespace = os.getenv("WATCH_NAMESPACE")
    if namespace:
        kopf.run(namespaces=[namespace])
    else:
        kopf.run(clusterwide=True)


if __name__ == "__main__":
    main()
