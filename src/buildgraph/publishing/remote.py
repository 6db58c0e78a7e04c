"""Bundled HTTP publisher.

Uploads artifacts to Maven-layout repositories with HTTP PUT. Before the
upload a HEAD request checks whether the version is already published;
existing artifacts are never replaced unless overwriting is allowed.
"""

import requests

from buildgraph import hookimpl
from buildgraph.errors import PublishError
from buildgraph.logging import get_logger

logger = get_logger(__name__)

SCHEMES = ["http", "https"]

CONTENT_TYPE = "application/octet-stream"


def _auth(credentials) -> tuple[dict[str, str], tuple[str, str] | None]:
    """Headers and basic auth for a target's credentials."""
    if credentials is None:
        return {}, None
    if credentials.token:
        return {"Authorization": f"Bearer {credentials.token}"}, None
    return {}, credentials.basic_auth


def _already_published(target: str, location: str, headers, auth, timeout: int) -> bool:
    response = requests.head(location, headers=headers, auth=auth, timeout=timeout, allow_redirects=True)
    if response.status_code in (401, 403):
        raise PublishError(target, f"Access denied (HTTP {response.status_code})")
    return response.status_code == 200


def _put(location: str, data: bytes, headers, auth, timeout: int) -> None:
    response = requests.put(location, data=data, headers=headers, auth=auth, timeout=timeout)
    response.raise_for_status()


@hookimpl
def register_publishers() -> dict:
    """Register the HTTP publisher."""
    return {
        "name": "http",
        "schemes": SCHEMES,
        "description": "Remote repository over HTTP(S) PUT",
    }


@hookimpl
def publish_artifact(
    scheme, target, location, payload, digest, credentials, allow_overwrite, timeout
) -> dict | None:
    """Upload artifact bytes and their SHA-256 checksum."""
    if scheme not in SCHEMES:
        return None

    headers, auth = _auth(credentials)

    try:
        if not allow_overwrite and _already_published(target, location, headers, auth, timeout):
            raise PublishError(target, f"{location} is already published")

        _put(
            location,
            payload,
            {**headers, "Content-Type": CONTENT_TYPE, "X-Checksum-Sha256": digest},
            auth,
            timeout,
        )
        _put(f"{location}.sha256", digest.encode(), {**headers, "Content-Type": "text/plain"}, auth, timeout)

    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else "?"
        raise PublishError(target, f"Upload rejected (HTTP {status})") from e
    except requests.exceptions.Timeout as e:
        raise PublishError(target, f"Upload timed out after {timeout}s") from e
    except requests.exceptions.RequestException as e:
        raise PublishError(target, f"Upload failed: {e}") from e

    logger.debug(f"[{target}] uploaded {len(payload)} bytes to {location}")
    return {"status": "success", "location": location}
