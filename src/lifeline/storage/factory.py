"""Turn configuration into object stores and replication destinations."""

from __future__ import annotations

from lifeline.config import LifelineConfig
from lifeline.errors import LifelineConfigurationError
from lifeline.models import DestinationType, StorageDestinationConfig
from lifeline.observability import get_logger

from .base import ObjectStore
from .fanout import Destination
from .local import LocalObjectStore
from .s3 import S3ObjectStore

log = get_logger("lifeline.storage")

R2_REGION = "auto"


def build_store(dest: StorageDestinationConfig) -> ObjectStore:
    """Build the object store for one secondary destination.

    Raises
    ------
    LifelineConfigurationError
        If the config is missing a field its type requires.  S3 needs a
        bucket and a region, R2 a bucket and an endpoint.
    """
    if not dest.bucket:
        raise LifelineConfigurationError(
            f"Destination {dest.id or dest.name} has no bucket",
            context={"destination": dest.name},
        )
    if dest.type is DestinationType.S3:
        if not dest.region:
            raise LifelineConfigurationError(
                f"S3 destination {dest.name} requires a region",
                context={"destination": dest.name},
            )
        region = dest.region
    else:
        if not dest.endpoint:
            raise LifelineConfigurationError(
                f"R2 destination {dest.name} requires an endpoint",
                context={"destination": dest.name},
            )
        region = R2_REGION
    return S3ObjectStore(
        bucket=dest.bucket,
        region=region,
        endpoint=dest.endpoint,
        access_key_id=dest.access_key_id,
        secret_access_key=dest.secret_access_key,
        force_path_style=dest.force_path_style,
        name=dest.name,
    )


def build_destinations(
    configs: list[StorageDestinationConfig],
    store_factory=build_store,
) -> tuple[list[Destination], list[tuple[StorageDestinationConfig, LifelineConfigurationError]]]:
    """Build secondary destinations from the enabled *configs*.

    Disabled configs are ignored.  A config that cannot be built is logged
    and returned alongside its error instead of raising.

    Returns
    -------
    tuple
        ``(destinations, failures)``.
    """
    destinations: list[Destination] = []
    failures: list[tuple[StorageDestinationConfig, LifelineConfigurationError]] = []
    for dest in configs:
        if not dest.is_enabled:
            continue
        try:
            store = store_factory(dest)
        except LifelineConfigurationError as exc:
            log.warning(
                "Skipping misconfigured destination",
                extra={"extra_fields": {"destination": dest.name, "error": exc.message}},
            )
            failures.append((dest, exc))
            continue
        destinations.append(Destination(name=dest.name, store=store, mode=dest.replication_mode))
    return destinations, failures


def build_primary(config: LifelineConfig) -> Destination:
    """Build the primary destination from job configuration.

    ``local_storage_dir`` wins over ``primary_bucket`` so development runs
    never touch a real bucket.
    """
    if config.local_storage_dir:
        store: ObjectStore = LocalObjectStore(config.local_storage_dir, name="primary")
    elif config.primary_bucket:
        store = S3ObjectStore(
            bucket=config.primary_bucket,
            region=config.primary_region,
            endpoint=config.primary_endpoint,
            access_key_id=config.primary_access_key_id,
            secret_access_key=config.primary_secret_access_key,
            name="primary",
        )
    else:
        raise LifelineConfigurationError(
            "No primary storage configured (set primary_bucket or local_storage_dir)",
        )
    return Destination(name="primary", store=store, primary=True)
