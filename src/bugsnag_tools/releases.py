"""Builds and releases annotated with project stability data."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .api_client import BugsnagApiClient
from .cache import CacheKey, CacheStore, CacheTTL
from .errors import InvalidArgumentError, NotFoundError
from .models import PageResult, StabilityTargets
from .queries import DEFAULT_PER_PAGE, validate_per_page
from .resolver import ProjectResolver
from .stability import annotate

logger = logging.getLogger(__name__)


class ReleaseService:
    """Lists and fetches builds and releases of a project.

    Single records are cached after annotation for a short time; list pages
    are always fetched fresh and only the stability targets are reused.
    """

    def __init__(self, api_client: BugsnagApiClient, resolver: ProjectResolver, cache: CacheStore) -> None:
        self._api_client = api_client
        self._resolver = resolver
        self._cache = cache

    def get_stability_targets(self, project_id: str) -> StabilityTargets:
        key = CacheKey.stability_targets(project_id)
        targets = self._cache.get(key)
        if targets is None:
            targets = StabilityTargets.from_payload(self._api_client.get_project_stability_targets(project_id))
            self._cache.set(key, targets, CacheTTL.MEDIUM)
        return targets

    def list_builds(
        self,
        project_id: Optional[str] = None,
        release_stage: Optional[str] = None,
        per_page: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> PageResult:
        validate_per_page(per_page)
        project = self._resolver.get_input_project(project_id)

        params: Dict[str, Any] = {}
        if release_stage:
            params["release_stage"] = release_stage
        if per_page:
            params["per_page"] = per_page

        response = self._api_client.list_builds(project.id, params=params, next_url=next_url, per_page=per_page)
        targets = self.get_stability_targets(project.id)
        builds = [annotate(build, targets) for build in response.body]
        return PageResult(data=builds, count=len(builds), total=response.total_count, next_url=response.next_url)

    def get_build(self, build_id: str, project_id: Optional[str] = None) -> Dict[str, Any]:
        """Return one build with stability data.

        Raises:
            NotFoundError: If the build does not exist.
        """
        if not build_id:
            raise InvalidArgumentError("buildId argument is required")
        project = self._resolver.get_input_project(project_id)

        key = CacheKey.build(build_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        build = self._api_client.get_build(project.id, build_id)
        if build is None:
            raise NotFoundError(f"No build for {build_id} found.")

        annotated = annotate(build, self.get_stability_targets(project.id))
        self._cache.set(key, annotated, CacheTTL.SHORT)
        return annotated

    def list_releases(
        self,
        project_id: Optional[str] = None,
        release_stage: str = "production",
        visible_only: bool = False,
        per_page: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> PageResult:
        validate_per_page(per_page)
        project = self._resolver.get_input_project(project_id)

        params = {
            "release_stage": release_stage or "production",
            "visible_only": "true" if visible_only else "false",
            "per_page": per_page or DEFAULT_PER_PAGE,
        }
        response = self._api_client.list_releases(project.id, params=params, next_url=next_url, per_page=per_page)
        targets = self.get_stability_targets(project.id)
        releases = [annotate(release, targets) for release in response.body]
        return PageResult(data=releases, count=len(releases), total=response.total_count, next_url=response.next_url)

    def get_release(self, release_id: str, project_id: Optional[str] = None) -> Dict[str, Any]:
        """Return one release with stability data.

        Raises:
            NotFoundError: If the release does not exist.
        """
        if not release_id:
            raise InvalidArgumentError("releaseId argument is required")
        project = self._resolver.get_input_project(project_id)

        key = CacheKey.release(release_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        release = self._api_client.get_release(project.id, release_id)
        if release is None:
            raise NotFoundError(f"No release for {release_id} found.")

        annotated = annotate(release, self.get_stability_targets(project.id))
        self._cache.set(key, annotated, CacheTTL.SHORT)
        return annotated

    def list_builds_in_release(self, release_id: str, project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if not release_id:
            raise InvalidArgumentError("releaseId argument is required")
        project = self._resolver.get_input_project(project_id)

        key = CacheKey.builds_in_release(release_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        targets = self.get_stability_targets(project.id)
        builds = [annotate(build, targets) for build in self._api_client.list_builds_in_release(project.id, release_id)]
        self._cache.set(key, builds, CacheTTL.SHORT)
        logger.debug(
            "Cached builds in release",
            extra={"project_id": project.id, "release_id": release_id, "build_count": len(builds)},
        )
        return builds
