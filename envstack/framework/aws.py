"""EC2 lookups backed by boto3: base-image discovery and availability-zone count."""

from __future__ import annotations

import logging
from typing import Any

import boto3

logger = logging.getLogger(__name__)

IMAGE_OWNER = "amazon"


def ec2_client(*, region: str | None = None, profile: str | None = None) -> Any:
    session = boto3.Session(profile_name=profile, region_name=region)
    return session.client("ec2")


class Ec2ImageFinder:
    def __init__(self, client: Any | None = None, *, region: str | None = None, profile: str | None = None):
        self._client = client if client is not None else ec2_client(region=region, profile=profile)

    def find_latest_image_id(self, name_pattern: str) -> str:
        response = self._client.describe_images(
            Owners=[IMAGE_OWNER],
            Filters=[{"Name": "name", "Values": [name_pattern]}],
        )
        images = sorted(
            response.get("Images", []),
            key=lambda item: item.get("CreationDate", ""),
            reverse=True,
        )
        if not images:
            raise LookupError(f"No images found matching {name_pattern!r}")

        image_id = images[0]["ImageId"]
        logger.debug("Found latest image %s for pattern %s", image_id, name_pattern)
        return image_id


class Ec2AZCounter:
    def __init__(self, client: Any | None = None, *, region: str | None = None, profile: str | None = None):
        self._client = client if client is not None else ec2_client(region=region, profile=profile)

    def count_azs(self) -> int:
        response = self._client.describe_availability_zones(
            Filters=[{"Name": "state", "Values": ["available"]}],
        )
        return len(response.get("AvailabilityZones", []))
